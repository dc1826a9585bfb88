"""
Production Floor Operations
===========================
- Parts input against a work order (and its cancellation)
- Production results booked into stock, disposal of scrapped boxes
- SMD inspection results
- Assembly results per serial, rolled up onto the work order
- Periodic line checks (header + detail rows in one transaction)
"""

import logging
from typing import Tuple

from ..gateway import QueryGateway, Transaction
from ..models import CheckType, MovementType
from ..security import RequestContext
from ..utils import compact_date
from .ledger_service import (
    BatchOutcome, ItemRejected, LedgerError, MovementEntry, NotFoundError, SkipReason, ValidationFailed,
    atomicity_for, cancel_movement, credit_stock, debit_stock, movement_scan_key, require,
    require_items, resolve_location, run_batch, write_movement,
)
from .material_service import business_date

logger = logging.getLogger(__name__)


def _insert_inspection(tx: Transaction, ctx: RequestContext, check_type: str, check_date: str,
                       process_code, line_code, order_no, unit_no, item_code, result, check_time):
    tx.execute(
        """
        INSERT INTO pmb400 (
            saupj, check_type, check_date, process_code, line_code, order_no,
            unit_no, item_code, result, check_time, reg_user, reg_date
        ) VALUES (
            :saupj, :check_type, :check_date, :process_code, :line_code, :order_no,
            :unit_no, :item_code, :result, :check_time, :user, CURRENT_TIMESTAMP
        )
        """,
        {"saupj": ctx.business_unit, "check_type": check_type, "check_date": check_date,
         "process_code": process_code, "line_code": line_code, "order_no": order_no,
         "unit_no": unit_no, "item_code": item_code, "result": result,
         "check_time": check_time or None, "user": ctx.user_id},
    )


class ProductionService:
    """Service class for production floor operations"""

    @staticmethod
    def parts_input(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """Consume part boxes into a work order from their line-side location."""
        require(body.work_order, "workOrder is required")
        require_items(body.items, "no parts to input")
        move_date = business_date(body.input_date)

        def apply(tx: Transaction, line):
            whs_code = line.whs_code or body.whs_code or resolve_location(tx, line.box_no, line.qty)
            debit_stock(tx, line.box_no, whs_code, line.qty, ctx.user_id)
            write_movement(tx, MovementEntry(
                saupj=ctx.business_unit, move_date=move_date, box_no=line.box_no,
                item_code=line.part_code, from_whs=whs_code, qty=line.qty,
                movement_type=MovementType.PRODUCTION_INPUT, ref_no=body.work_order,
                process_code=body.process_code, line_code=body.line_code, user=ctx.user_id,
            ))

        return run_batch(gateway, body.items, apply, atomicity_for("parts_input"))

    @staticmethod
    def input_cancel(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """Undo a parts input: flag the movement and put the quantity back where it came from."""
        require(body.process_code, "processCode and lineCode are required")
        require(body.line_code, "processCode and lineCode are required")
        require_items(body.items, "no items to cancel")

        def apply(tx: Transaction, line):
            sql = """
                SELECT id, item_code, from_whs, qty, saupj
                  FROM pmb300
                 WHERE movement_type = :movement_type
                   AND box_no = :box_no
                   AND process_code = :process_code
                   AND line_code = :line_code
                   AND cancel_yn IS NULL
            """
            params = {"movement_type": MovementType.PRODUCTION_INPUT.value, "box_no": line.box_no,
                      "process_code": body.process_code, "line_code": body.line_code}
            if line.movement_id is not None:
                sql += " AND id = :id"
                params["id"] = line.movement_id
            rows = tx.query(sql + " ORDER BY id DESC", params)
            if not rows:
                raise ItemRejected(f"no open input of {line.box_no} on {body.line_code}",
                                   SkipReason.NOT_FOUND)
            movement = rows[0]

            cancel_movement(tx, movement["id"], MovementType.PRODUCTION_INPUT.value, ctx.user_id)
            credit_stock(tx, line.box_no, movement["from_whs"], float(movement["qty"]), ctx.user_id,
                         movement["saupj"] or ctx.business_unit, item_code=movement["item_code"])

        return run_batch(gateway, body.items, apply, atomicity_for("input_cancel"),
                         scan_key=movement_scan_key)

    @staticmethod
    def production_result(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """
        Book finished boxes off a line into stock. The destination is the
        request's warehouse, else the one the process reports into.
        """
        require(body.process_code, "processCode and lineCode are required")
        require(body.line_code, "processCode and lineCode are required")
        require_items(body.items, "no result boxes")
        move_date = business_date(body.plan_date)

        whs_code = body.whs_code
        if not whs_code:
            process = gateway.query("SELECT whs_code FROM tb_process WHERE op_code = :op_code",
                                    {"op_code": body.process_code})
            if not process.success:
                raise LedgerError("could not read process", 500)
            whs_code = process.data[0]["whs_code"] if process.data else None
        require(whs_code, f"whsCode is required; process {body.process_code} has no result warehouse")

        def apply(tx: Transaction, line):
            credit_stock(tx, line.box_no, whs_code, line.qty, ctx.user_id, ctx.business_unit,
                         item_code=line.item_code)
            write_movement(tx, MovementEntry(
                saupj=ctx.business_unit, move_date=move_date, box_no=line.box_no,
                item_code=line.item_code, to_whs=whs_code, qty=line.qty,
                movement_type=MovementType.PRODUCTION_RESULT, ref_no=body.work_order or None,
                process_code=body.process_code, line_code=body.line_code, user=ctx.user_id,
            ))

        return run_batch(gateway, body.items, apply, atomicity_for("production_result"))

    @staticmethod
    def disposal(gateway: QueryGateway, ctx: RequestContext, body) -> Tuple[BatchOutcome, float]:
        """Scrap quantity out of boxes; returns the outcome and the total disposed."""
        require(body.whs_code, "whsCode is required")
        require(body.reason, "reason is required")
        require_items(body.items, "no boxes to dispose")
        move_date = business_date(None)

        def apply(tx: Transaction, line):
            debit_stock(tx, line.box_no, body.whs_code, line.qty, ctx.user_id)
            write_movement(tx, MovementEntry(
                saupj=ctx.business_unit, move_date=move_date, box_no=line.box_no,
                item_code=line.item_code, from_whs=body.whs_code, qty=line.qty,
                movement_type=MovementType.DISPOSAL, ref_no=body.reason,
                remark=body.remark or None, user=ctx.user_id,
            ))

        outcome = run_batch(gateway, body.items, apply, atomicity_for("disposal"))
        # first scan of a box is the one applied
        qty_by_box = {}
        for line in body.items:
            qty_by_box.setdefault(line.box_no, line.qty)
        total_qty = round(sum(qty_by_box[box_no] for box_no in outcome.applied), 3)
        logger.info("Disposed %d box(es), %g in total, from %s (%s)", outcome.count, total_qty,
                    body.whs_code, body.reason)
        return outcome, total_qty

    @staticmethod
    def smd_check(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        require(body.process_code, "processCode and lineCode are required")
        require(body.line_code, "processCode and lineCode are required")
        require_items(body.items, "no inspection results")
        check_date = business_date(body.work_date)

        def apply(tx: Transaction, line):
            _insert_inspection(tx, ctx, CheckType.SMD.value, check_date, body.process_code,
                               body.line_code, body.order_no, line.box_no, line.item_code,
                               line.result, line.check_time)
            return line.result

        return run_batch(gateway, body.items, apply, atomicity_for("smd_check"))

    @staticmethod
    def assembly_result(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """
        Record one OK/NG result per assembled serial. Each OK bumps the work
        order's assembly_qty in the same transaction as its record.
        """
        require(body.process_code, "processCode and lineCode are required")
        require(body.line_code, "processCode and lineCode are required")
        require(body.order_no, "orderNo is required")
        require_items(body.items, "no assembly results")
        check_date = business_date(body.work_date)

        order = gateway.query("SELECT status FROM pmo100 WHERE order_no = :order_no",
                              {"order_no": body.order_no})
        if not order.success:
            raise LedgerError("could not read work order", 500)
        if not order.data:
            raise NotFoundError(f"work order {body.order_no} not found")

        def apply(tx: Transaction, line):
            _insert_inspection(tx, ctx, CheckType.ASSEMBLY.value, check_date, body.process_code,
                               body.line_code, body.order_no, line.serial_no, line.item_code,
                               line.status, line.assembly_time)
            if line.status == "OK":
                tx.execute(
                    """
                    UPDATE pmo100
                       SET assembly_qty = COALESCE(assembly_qty, 0) + 1,
                           upd_user = :user,
                           upd_date = CURRENT_TIMESTAMP
                     WHERE order_no = :order_no
                    """,
                    {"user": ctx.user_id, "order_no": body.order_no},
                )
            return line.status

        return run_batch(gateway, body.items, apply, atomicity_for("assembly_result"),
                         key="serial_no", unit_label="serialNo")

    @staticmethod
    def periodic_check(gateway: QueryGateway, ctx: RequestContext, body) -> dict:
        """Save a periodic check; NG on any item makes the whole check NG."""
        require(body.process_code, "processCode and lineCode are required")
        require(body.line_code, "processCode and lineCode are required")
        require_items(body.results, "no check results")
        try:
            check_date = compact_date(body.check_date, default_today=True)
        except ValueError as exc:
            raise ValidationFailed(str(exc))

        ok_count = sum(1 for r in body.results if r.result == "OK")
        ng_count = len(body.results) - ok_count
        final_result = "NG" if ng_count else "OK"

        with gateway.transaction() as tx:
            tx.execute(
                """
                INSERT INTO qms300 (
                    saupj, check_date, process_code, line_code, check_type,
                    final_result, ok_count, ng_count, remark, reg_user, reg_date
                ) VALUES (
                    :saupj, :check_date, :process_code, :line_code, 'PERIODIC',
                    :final_result, :ok_count, :ng_count, :remark, :user, CURRENT_TIMESTAMP
                )
                """,
                {"saupj": ctx.business_unit, "check_date": check_date,
                 "process_code": body.process_code, "line_code": body.line_code,
                 "final_result": final_result, "ok_count": ok_count, "ng_count": ng_count,
                 "remark": body.remark or None, "user": ctx.user_id},
            )
            for r in body.results:
                tx.execute(
                    """
                    INSERT INTO qms310 (
                        saupj, check_date, process_code, line_code, check_no,
                        check_name, standard, result, measure_value, reg_user, reg_date
                    ) VALUES (
                        :saupj, :check_date, :process_code, :line_code, :check_no,
                        :check_name, :standard, :result, :measure_value, :user, CURRENT_TIMESTAMP
                    )
                    """,
                    {"saupj": ctx.business_unit, "check_date": check_date,
                     "process_code": body.process_code, "line_code": body.line_code,
                     "check_no": r.no, "check_name": r.check_name, "standard": r.standard,
                     "result": r.result, "measure_value": r.value, "user": ctx.user_id},
                )

        logger.info("Periodic check %s/%s on %s: %s (%d OK, %d NG)", body.process_code,
                    body.line_code, check_date, final_result, ok_count, ng_count)
        return {"finalResult": final_result, "okCount": ok_count, "ngCount": ng_count}
