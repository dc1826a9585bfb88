"""
Inventory Corrections
=====================
- Box moves between warehouses (per-line source / destination overrides)
- Repack: quantity split off one box into new boxes
- Individual repack: a one-piece serial relabelled
- CKD part number change on a box
"""

import logging

from ..gateway import QueryGateway, Transaction
from ..models import MovementType
from ..security import RequestContext
from ..utils import to_float
from .ledger_service import (
    BatchOutcome, ItemRejected, MovementEntry, SkipReason, ValidationFailed,
    atomicity_for, credit_stock, debit_stock, require, require_items, resolve_location,
    run_batch, write_movement,
)
from .material_service import business_date

logger = logging.getLogger(__name__)


def _refuse_stocked_unit(tx: Transaction, unit_no: str):
    """A new box / serial number must not already hold stock anywhere."""
    on_hand = tx.scalar(
        "SELECT COALESCE(SUM(qty), 0) FROM pms100 WHERE box_no = :box_no",
        {"box_no": unit_no},
    )
    if to_float(on_hand) > 0:
        raise ItemRejected(f"{unit_no} already holds stock")


def _record_repack(tx: Transaction, ctx: RequestContext, repack_date: str, repack_type: str,
                   source_no: str, new_no: str, item_code, whs_code: str, qty: float):
    tx.execute(
        """
        INSERT INTO pmb600 (
            saupj, repack_date, repack_type, source_no, new_no,
            item_code, whs_code, qty, reg_user, reg_date
        ) VALUES (
            :saupj, :repack_date, :repack_type, :source_no, :new_no,
            :item_code, :whs_code, :qty, :user, CURRENT_TIMESTAMP
        )
        """,
        {"saupj": ctx.business_unit, "repack_date": repack_date, "repack_type": repack_type,
         "source_no": source_no, "new_no": new_no, "item_code": item_code,
         "whs_code": whs_code, "qty": qty, "user": ctx.user_id},
    )
    write_movement(tx, MovementEntry(
        saupj=ctx.business_unit, move_date=repack_date, box_no=source_no, item_code=item_code,
        from_whs=whs_code, qty=qty, movement_type=MovementType.REPACK_OUT, ref_no=new_no,
        user=ctx.user_id,
    ))
    write_movement(tx, MovementEntry(
        saupj=ctx.business_unit, move_date=repack_date, box_no=new_no, item_code=item_code,
        to_whs=whs_code, qty=qty, movement_type=MovementType.REPACK_IN, ref_no=source_no,
        user=ctx.user_id,
    ))


class InventoryService:
    """Service class for stock moves and repacking"""

    @staticmethod
    def move(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """
        Move boxes between warehouses. A line may name its own source or
        destination; each box's debit, credit and TRANSFER commit together.
        """
        require(body.from_whs_code, "fromWhsCode and toWhsCode are required")
        require(body.to_whs_code, "fromWhsCode and toWhsCode are required")
        if body.from_whs_code == body.to_whs_code:
            raise ValidationFailed("fromWhsCode and toWhsCode must differ")
        require_items(body.items, "no boxes to move")
        move_date = business_date(body.move_date)

        def apply(tx: Transaction, line):
            from_whs = line.whs_code or body.from_whs_code
            to_whs = line.to_whs_code or body.to_whs_code
            if from_whs == to_whs:
                raise ItemRejected(f"{line.box_no} would move from {from_whs} to itself")
            debit_stock(tx, line.box_no, from_whs, line.qty, ctx.user_id)
            credit_stock(tx, line.box_no, to_whs, line.qty, ctx.user_id, ctx.business_unit,
                         item_code=line.item_code)
            write_movement(tx, MovementEntry(
                saupj=ctx.business_unit, move_date=move_date, box_no=line.box_no,
                item_code=line.item_code, from_whs=from_whs, to_whs=to_whs, qty=line.qty,
                movement_type=MovementType.TRANSFER, user=ctx.user_id,
            ))

        return run_batch(gateway, body.items, apply, atomicity_for("inventory_move"))

    @staticmethod
    def repack(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """
        Split quantity off a source box into new boxes in the same warehouse.
        The new boxes together can never take more than the source holds:
        every line is its own conditional debit of the source.
        """
        source_no = require(body.source_box_no, "sourceBoxNo is required")
        require_items(body.items, "no boxes to repack into")
        if any(line.new_box_no == source_no for line in body.items):
            raise ValidationFailed("a new box cannot reuse the source box number")
        repack_date = business_date(body.repack_date)
        total = round(sum(line.qty for line in body.items), 3)

        with gateway.transaction() as tx:
            try:
                whs_code = body.whs_code or resolve_location(tx, source_no, total)
            except ItemRejected as exc:
                raise ValidationFailed(exc.detail)
            item_code = tx.scalar(
                "SELECT item_code FROM pms100 WHERE box_no = :box_no AND whs_code = :whs_code",
                {"box_no": source_no, "whs_code": whs_code},
            )

        def apply(tx: Transaction, line):
            _refuse_stocked_unit(tx, line.new_box_no)
            debit_stock(tx, source_no, whs_code, line.qty, ctx.user_id)
            credit_stock(tx, line.new_box_no, whs_code, line.qty, ctx.user_id, ctx.business_unit,
                         item_code=item_code)
            _record_repack(tx, ctx, repack_date, "BOX", source_no, line.new_box_no, item_code,
                           whs_code, line.qty)

        outcome = run_batch(gateway, body.items, apply, atomicity_for("repack"),
                            key="new_box_no", unit_label="newBoxNo")
        logger.info("Repacked %s in %s into %d box(es)", source_no, whs_code, outcome.count)
        return outcome

    @staticmethod
    def repack_serial(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """Relabel one-piece serial units: the old serial empties, the new one takes its place."""
        require_items(body.items, "no serials to repack")
        repack_date = business_date(body.repack_date)

        def apply(tx: Transaction, line):
            if line.old_serial_no == line.new_serial_no:
                raise ItemRejected(f"{line.old_serial_no} cannot be relabelled to itself")
            whs_code = line.whs_code or resolve_location(tx, line.old_serial_no, 1)
            item_code = tx.scalar(
                "SELECT item_code FROM pms100 WHERE box_no = :box_no AND whs_code = :whs_code",
                {"box_no": line.old_serial_no, "whs_code": whs_code},
            )
            _refuse_stocked_unit(tx, line.new_serial_no)
            debit_stock(tx, line.old_serial_no, whs_code, 1, ctx.user_id)
            credit_stock(tx, line.new_serial_no, whs_code, 1, ctx.user_id, ctx.business_unit,
                         item_code=item_code)
            _record_repack(tx, ctx, repack_date, "SERIAL", line.old_serial_no, line.new_serial_no,
                           item_code, whs_code, 1)

        return run_batch(gateway, body.items, apply, atomicity_for("repack_serial"),
                         key="old_serial_no", unit_label="serialNo")

    @staticmethod
    def change_item(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """
        CKD part number change: the box keeps its quantity and location and
        is re-registered under the new item. An ITEM_CHANGE movement and a
        PMB610 row record every location changed.
        """
        require_items(body.items, "no boxes to change")
        change_date = business_date(None)

        def apply(tx: Transaction, line):
            if not tx.scalar("SELECT COUNT(*) FROM bom_master WHERE item_code = :item_code",
                             {"item_code": line.new_item_code}):
                raise ItemRejected(f"unknown item {line.new_item_code}", SkipReason.NOT_FOUND)

            sql = "SELECT whs_code, item_code, qty FROM pms100 WHERE box_no = :box_no AND qty > 0"
            params = {"box_no": line.box_no}
            if body.whs_code:
                sql += " AND whs_code = :whs_code"
                params["whs_code"] = body.whs_code
            rows = tx.query(sql, params)
            if not rows:
                raise ItemRejected(f"{line.box_no} holds no stock", SkipReason.NOT_FOUND)

            for row in rows:
                if line.old_item_code and row["item_code"] != line.old_item_code:
                    raise ItemRejected(f"{line.box_no} in {row['whs_code']} carries "
                                       f"{row['item_code']}, not {line.old_item_code}")
                tx.execute(
                    """
                    UPDATE pms100
                       SET item_code = :new_item_code,
                           upd_user = :user,
                           upd_date = CURRENT_TIMESTAMP
                     WHERE box_no = :box_no
                       AND whs_code = :whs_code
                    """,
                    {"new_item_code": line.new_item_code, "user": ctx.user_id,
                     "box_no": line.box_no, "whs_code": row["whs_code"]},
                )
                tx.execute(
                    """
                    INSERT INTO pmb610 (
                        saupj, change_date, box_no, whs_code, old_item_code,
                        new_item_code, qty, reg_user, reg_date
                    ) VALUES (
                        :saupj, :change_date, :box_no, :whs_code, :old_item_code,
                        :new_item_code, :qty, :user, CURRENT_TIMESTAMP
                    )
                    """,
                    {"saupj": ctx.business_unit, "change_date": change_date, "box_no": line.box_no,
                     "whs_code": row["whs_code"], "old_item_code": row["item_code"],
                     "new_item_code": line.new_item_code, "qty": to_float(row["qty"]),
                     "user": ctx.user_id},
                )
                write_movement(tx, MovementEntry(
                    saupj=ctx.business_unit, move_date=change_date, box_no=line.box_no,
                    item_code=line.new_item_code, from_whs=row["whs_code"], to_whs=row["whs_code"],
                    qty=to_float(row["qty"]), movement_type=MovementType.ITEM_CHANGE,
                    ref_no=row["item_code"], user=ctx.user_id,
                ))

        return run_batch(gateway, body.items, apply, atomicity_for("item_change"))
