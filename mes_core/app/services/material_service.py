"""
Material Warehouse Operations
=============================
Issue (with and without a request slip), receipt and its cancellation,
release, outsourcing shipment-out and stock-taking. Every operation funnels
its line items through the ledger batch runner.
"""

import logging
from typing import Optional

from ..gateway import QueryGateway, Transaction
from ..models import MovementType
from ..security import RequestContext
from ..utils import compact_date, to_float
from .ledger_service import (
    BatchOutcome, ItemRejected, MovementEntry, SkipReason, ValidationFailed,
    atomicity_for, credit_stock, debit_stock, find_open_movement, cancel_movement,
    require, require_items, resolve_location, run_batch, set_stock, write_movement,
)

logger = logging.getLogger(__name__)


def business_date(value: Optional[str]) -> str:
    """Request date as YYYYMMDD, today when omitted."""
    try:
        return compact_date(value, default_today=True)
    except ValueError as exc:
        raise ValidationFailed(str(exc))


class MaterialService:
    """Service class for material warehouse operations"""

    @staticmethod
    def issue_no_slip(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """
        Warehouse-to-warehouse transfer without a request slip.
        Debit, credit and the TRANSFER movement commit together per box.
        """
        require(body.from_whs_code, "fromWhsCode and toWhsCode are required")
        require(body.to_whs_code, "fromWhsCode and toWhsCode are required")
        if body.from_whs_code == body.to_whs_code:
            raise ValidationFailed("fromWhsCode and toWhsCode must differ")
        require_items(body.items, "no items to issue")
        move_date = business_date(body.issue_date)

        def apply(tx: Transaction, line):
            debit_stock(tx, line.box_no, body.from_whs_code, line.qty, ctx.user_id)
            credit_stock(tx, line.box_no, body.to_whs_code, line.qty, ctx.user_id,
                         ctx.business_unit, item_code=line.item_code)
            write_movement(tx, MovementEntry(
                saupj=ctx.business_unit, move_date=move_date, box_no=line.box_no,
                item_code=line.item_code, from_whs=body.from_whs_code, to_whs=body.to_whs_code,
                qty=line.qty, movement_type=MovementType.TRANSFER, user=ctx.user_id,
            ))

        return run_batch(gateway, body.items, apply, atomicity_for("issue_no_slip"))

    @staticmethod
    def issue_slip(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """Issue against request slip lines; the slip line records the issued box."""
        require(body.slip_no, "slipNo is required")
        require(body.warehouse_code, "warehouseCode is required")
        require_items(body.items, "no items to issue")
        move_date = business_date(body.issue_date)

        def apply(tx: Transaction, line):
            debit_stock(tx, line.box_no, body.warehouse_code, line.issue_qty, ctx.user_id)
            rows = tx.execute(
                """
                UPDATE tb_slip_detail
                   SET issue_qty = COALESCE(issue_qty, 0) + :qty,
                       lot_no = :box_no,
                       wh_code = :whs_code,
                       issue_user = :user,
                       issue_date = CURRENT_TIMESTAMP
                 WHERE slip_no = :slip_no
                   AND item_code = :item_code
                """,
                {"qty": line.issue_qty, "box_no": line.box_no, "whs_code": body.warehouse_code,
                 "user": ctx.user_id, "slip_no": body.slip_no, "item_code": line.item_code},
            )
            if not rows:
                raise ItemRejected(f"slip {body.slip_no} has no line for {line.item_code}",
                                   SkipReason.NOT_FOUND)
            write_movement(tx, MovementEntry(
                saupj=ctx.business_unit, move_date=move_date, box_no=line.box_no,
                item_code=line.item_code, from_whs=body.warehouse_code, qty=line.issue_qty,
                movement_type=MovementType.ISSUE, ref_no=body.slip_no, user=ctx.user_id,
            ))

        return run_batch(gateway, body.items, apply, atomicity_for("issue_slip"))

    @staticmethod
    def receive(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        require(body.whs_code, "whsCode is required")
        require_items(body.items, "no items to receive")
        move_date = business_date(body.receive_date)

        def apply(tx: Transaction, line):
            credit_stock(tx, line.box_no, body.whs_code, line.qty, ctx.user_id,
                         ctx.business_unit, item_code=line.item_code, lot_no=line.lot_no)
            write_movement(tx, MovementEntry(
                saupj=ctx.business_unit, move_date=move_date, box_no=line.box_no,
                item_code=line.item_code, to_whs=body.whs_code, qty=line.qty,
                movement_type=MovementType.RECEIVE, ref_no=body.vendor_code, user=ctx.user_id,
            ))

        return run_batch(gateway, body.items, apply, atomicity_for("receive"))

    @staticmethod
    def receive_cancel(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """
        Reverse a receipt: the box must still hold the received quantity and
        an uncancelled RECEIVE for it must exist, otherwise nothing changes.
        A receipt is only ever reversed whole.
        """
        require(body.whs_code, "whsCode is required")
        require_items(body.items, "no items to cancel")

        def apply(tx: Transaction, line):
            try:
                receive_date = compact_date(line.receive_date)
            except ValueError as exc:
                raise ItemRejected(str(exc))
            receipt = find_open_movement(tx, MovementType.RECEIVE.value, line.box_no,
                                         whs_column="to_whs", whs_code=body.whs_code,
                                         move_date=receive_date)
            if receipt is None:
                raise ItemRejected(f"no open receipt of {line.box_no} into {body.whs_code}",
                                   SkipReason.NOT_FOUND)
            received = round(to_float(receipt["qty"]), 3)
            if line.qty != received:
                raise ItemRejected(f"{line.box_no} was received as {received:g}, "
                                   f"cancel quantity {line.qty:g} does not match")
            debit_stock(tx, line.box_no, body.whs_code, received, ctx.user_id)
            cancel_movement(tx, receipt["id"], MovementType.RECEIVE.value, ctx.user_id)

        return run_batch(gateway, body.items, apply, atomicity_for("receive_cancel"))

    @staticmethod
    def release(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        require(body.whs_code, "whsCode is required")
        require_items(body.items, "no items to release")
        move_date = business_date(body.release_date)

        def apply(tx: Transaction, line):
            debit_stock(tx, line.box_no, body.whs_code, line.qty, ctx.user_id)
            write_movement(tx, MovementEntry(
                saupj=ctx.business_unit, move_date=move_date, box_no=line.box_no,
                item_code=line.item_code, from_whs=body.whs_code, qty=line.qty,
                movement_type=MovementType.RELEASE, user=ctx.user_id,
            ))

        return run_batch(gateway, body.items, apply, atomicity_for("release"))

    @staticmethod
    def outsource(gateway: QueryGateway, ctx: RequestContext, body, operation: str) -> BatchOutcome:
        """
        Ship boxes out to an outsourcing vendor. The source is the line's
        warehouse, else the header's, else wherever the box has enough stock.
        """
        require(body.vendor_code, "vendorCode is required")
        require_items(body.items, "no items to ship out")
        move_date = business_date(body.out_date)

        def apply(tx: Transaction, line):
            whs_code = line.whs_code or body.whs_code or resolve_location(tx, line.box_no, line.qty)
            debit_stock(tx, line.box_no, whs_code, line.qty, ctx.user_id)
            write_movement(tx, MovementEntry(
                saupj=ctx.business_unit, move_date=move_date, box_no=line.box_no,
                item_code=line.item_code, from_whs=whs_code, qty=line.qty,
                movement_type=MovementType.OUTSOURCE_OUT, ref_no=body.vendor_code, user=ctx.user_id,
            ))

        return run_batch(gateway, body.items, apply, atomicity_for(operation))

    @staticmethod
    def stocktake(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """
        Overwrite on-hand quantities with counted ones. The difference is
        taken against what the ledger holds at commit time, not what the
        PDA displayed when the box was scanned.
        """
        require(body.whs_code, "whsCode is required")
        require_items(body.items, "no items to count")
        move_date = business_date(body.check_date)

        def apply(tx: Transaction, line):
            system_qty = set_stock(tx, line.box_no, body.whs_code, line.actual_qty,
                                   ctx.user_id, ctx.business_unit, item_code=line.item_code)
            if line.system_qty is not None and line.system_qty != system_qty:
                logger.info("Stock of %s in %s changed since scan: shown %s, ledger %s",
                            line.box_no, body.whs_code, line.system_qty, system_qty)
            write_movement(tx, MovementEntry(
                saupj=ctx.business_unit, move_date=move_date, box_no=line.box_no,
                item_code=line.item_code, to_whs=body.whs_code,
                qty=round(line.actual_qty - system_qty, 3),
                movement_type=MovementType.STOCKTAKE, system_qty=system_qty,
                actual_qty=line.actual_qty, user=ctx.user_id,
            ))

        return run_batch(gateway, body.items, apply, atomicity_for("stocktake"))
