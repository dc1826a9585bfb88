"""
Outbound Operations
===================
- Shipment of finished boxes (per-day round numbers)
- Shipment cancellation
- Customer returns: boxes in bulk, serials one by one, and their cancellation
"""

import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError

from ..gateway import QueryGateway, Transaction
from ..models import MovementType, ReturnGrade, SerialStatus
from ..security import RequestContext
from .ledger_service import (
    BatchOutcome, ItemRejected, LedgerError, MovementEntry, SkipReason,
    atomicity_for, cancel_movement, credit_stock, debit_stock, find_open_movement,
    movement_scan_key, require, require_items, resolve_location, run_batch, write_movement,
)
from .material_service import business_date

logger = logging.getLogger(__name__)

ROUND_CLAIM_ATTEMPTS = 5

NEXT_ROUND_SQL = """
    SELECT COALESCE(MAX(round_no), 0) + 1 AS round_no
      FROM shp_round
     WHERE wk_date = :wk_date
"""


def next_round(gateway: QueryGateway, wk_date: str) -> int:
    """Next free shipment round for a day (1 when nothing shipped yet)."""
    result = gateway.query(NEXT_ROUND_SQL, {"wk_date": wk_date})
    if not result.success:
        raise LedgerError("could not read shipment rounds", 500)
    return int(result.data[0]["round_no"]) if result.data else 1


def claim_round(gateway: QueryGateway, wk_date: str, user: str, round_no: Optional[int] = None) -> int:
    """
    Reserve a round for a shipment. Without round_no the next free one is
    taken; the (day, round) unique key makes a concurrent claim of the same
    number fail, and the loser reads again. An explicit round_no adds boxes
    to that round, registering it when it is new.
    """
    if round_no is not None:
        with gateway.transaction() as tx:
            tx.execute(
                """
                INSERT INTO shp_round (wk_date, round_no, reg_user, reg_date)
                SELECT :wk_date, :round_no, :user, CURRENT_TIMESTAMP
                 WHERE NOT EXISTS (
                    SELECT 1 FROM shp_round WHERE wk_date = :wk_date AND round_no = :round_no
                 )
                """,
                {"wk_date": wk_date, "round_no": round_no, "user": user},
            )
        return round_no

    for attempt in range(ROUND_CLAIM_ATTEMPTS):
        try:
            with gateway.transaction() as tx:
                claimed = int(tx.scalar(NEXT_ROUND_SQL, {"wk_date": wk_date}))
                tx.execute(
                    "INSERT INTO shp_round (wk_date, round_no, reg_user, reg_date) "
                    "VALUES (:wk_date, :round_no, :user, CURRENT_TIMESTAMP)",
                    {"wk_date": wk_date, "round_no": claimed, "user": user},
                )
            return claimed
        except IntegrityError:
            logger.info("Round for %s taken concurrently (attempt %d), reading again",
                        wk_date, attempt + 1)
    raise LedgerError(f"could not allocate a shipment round for {wk_date}", 500)


class ShipmentService:
    """Service class for outbound operations"""

    @staticmethod
    def shipment(gateway: QueryGateway, ctx: RequestContext, body) -> Tuple[BatchOutcome, int]:
        require(body.dest_code, "destCode is required")
        require(body.out_type, "outType is required")
        require_items(body.items, "no boxes to ship")
        wk_date = business_date(body.wk_date)
        round_no = claim_round(gateway, wk_date, ctx.user_id, body.round_no)

        def apply(tx: Transaction, line):
            whs_code = line.whs_code or body.whs_code or resolve_location(tx, line.box_no, line.out_qty)
            debit_stock(tx, line.box_no, whs_code, line.out_qty, ctx.user_id)
            write_movement(tx, MovementEntry(
                saupj=ctx.business_unit, move_date=wk_date, box_no=line.box_no,
                item_code=line.item_code, from_whs=whs_code, qty=line.out_qty,
                movement_type=MovementType.SHIPMENT_OUT, ref_no=body.cust_code or None,
                round_no=round_no, dest_code=body.dest_code, out_type=body.out_type,
                car_no=body.car_no or None, user=ctx.user_id,
            ))

        outcome = run_batch(gateway, body.items, apply, atomicity_for("shipment"))
        return outcome, round_no

    @staticmethod
    def shipment_cancel(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """Flag the shipment movement and return the quantity to its source location."""
        require_items(body.items, "no shipments selected")

        def apply(tx: Transaction, line):
            movement = find_open_movement(tx, MovementType.SHIPMENT_OUT.value, line.box_no,
                                          movement_id=line.movement_id)
            if movement is None:
                raise ItemRejected(f"no open shipment of {line.box_no}", SkipReason.NOT_FOUND)
            cancel_movement(tx, movement["id"], MovementType.SHIPMENT_OUT.value, ctx.user_id)
            credit_stock(tx, line.box_no, movement["from_whs"], float(movement["qty"]), ctx.user_id,
                         movement["saupj"] or ctx.business_unit, item_code=movement["item_code"])

        return run_batch(gateway, body.items, apply, atomicity_for("shipment_cancel"),
                         scan_key=movement_scan_key)

    @staticmethod
    def return_individual(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """
        Take a shipped serial back into a return warehouse. Only SHIPPED
        serials qualify; each comes back as a one-piece unit.
        """
        require(body.whs_code, "whsCode is required")
        require_items(body.items, "no serials to return")
        return_date = business_date(None)
        condition = body.condition or "GOOD"

        def apply(tx: Transaction, line):
            serials = tx.query(
                "SELECT item_code, cust_code, status FROM shp_serial WHERE serial_no = :serial_no",
                {"serial_no": line.serial_no},
            )
            if not serials:
                raise ItemRejected(f"serial {line.serial_no} was never shipped", SkipReason.NOT_FOUND)
            serial = serials[0]

            rows = tx.execute(
                """
                UPDATE shp_serial
                   SET status = :returned,
                       whs_code = :whs_code,
                       return_date = :return_date,
                       return_reason = :reason,
                       return_condition = :condition,
                       upd_user = :user,
                       upd_date = CURRENT_TIMESTAMP
                 WHERE serial_no = :serial_no
                   AND status = :shipped
                """,
                {"returned": SerialStatus.RETURNED.value, "shipped": SerialStatus.SHIPPED.value,
                 "whs_code": body.whs_code, "return_date": return_date,
                 "reason": body.reason or None, "condition": condition,
                 "user": ctx.user_id, "serial_no": line.serial_no},
            )
            if not rows:
                raise ItemRejected(f"serial {line.serial_no} is {serial['status']}, not shipped")

            item_code = line.item_code or serial["item_code"]
            credit_stock(tx, line.serial_no, body.whs_code, 1, ctx.user_id, ctx.business_unit,
                         item_code=item_code)
            write_movement(tx, MovementEntry(
                saupj=ctx.business_unit, move_date=return_date, box_no=line.serial_no,
                item_code=item_code, to_whs=body.whs_code, qty=1,
                movement_type=MovementType.RETURN_IN, ref_no=serial["cust_code"], grade=condition,
                remark=body.remark or None, user=ctx.user_id,
            ))

        return run_batch(gateway, body.items, apply, atomicity_for("return_individual"),
                         key="serial_no", unit_label="serialNo")

    @staticmethod
    def return_receive(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """
        Take returned boxes back from a customer destination. Good boxes go
        to the return warehouse; defective ones straight to the defect
        warehouse when one is given.
        """
        require(body.return_whs_code, "returnWhsCode is required")
        require(body.dest_code, "destCode is required")
        require_items(body.items, "no boxes to return")
        return_date = business_date(body.return_date)

        def apply(tx: Transaction, line):
            whs_code = body.return_whs_code
            if line.grade == ReturnGrade.DEFECT.value and body.defect_whs_code:
                whs_code = body.defect_whs_code
            credit_stock(tx, line.box_no, whs_code, line.qty, ctx.user_id, ctx.business_unit,
                         item_code=line.item_code)
            write_movement(tx, MovementEntry(
                saupj=ctx.business_unit, move_date=return_date, box_no=line.box_no,
                item_code=line.item_code, to_whs=whs_code, qty=line.qty,
                movement_type=MovementType.RETURN_IN, ref_no=body.dest_code, grade=line.grade,
                remark=body.remark or None, user=ctx.user_id,
            ))

        return run_batch(gateway, body.items, apply, atomicity_for("return_receive"))

    @staticmethod
    def return_cancel(gateway: QueryGateway, ctx: RequestContext, body) -> BatchOutcome:
        """
        Undo a return, box or serial: the returned quantity must still be on
        hand where it was put. A cancelled serial return puts the serial back
        to SHIPPED.
        """
        require_items(body.items, "no returns selected")

        def apply(tx: Transaction, line):
            movement = find_open_movement(tx, MovementType.RETURN_IN.value, line.box_no,
                                          movement_id=line.movement_id)
            if movement is None:
                raise ItemRejected(f"no open return of {line.box_no}", SkipReason.NOT_FOUND)
            debit_stock(tx, line.box_no, movement["to_whs"], float(movement["qty"]), ctx.user_id)
            cancel_movement(tx, movement["id"], MovementType.RETURN_IN.value, ctx.user_id)
            tx.execute(
                """
                UPDATE shp_serial
                   SET status = :shipped,
                       whs_code = NULL,
                       return_date = NULL,
                       return_reason = NULL,
                       return_condition = NULL,
                       upd_user = :user,
                       upd_date = CURRENT_TIMESTAMP
                 WHERE serial_no = :serial_no
                   AND status = :returned
                """,
                {"shipped": SerialStatus.SHIPPED.value, "returned": SerialStatus.RETURNED.value,
                 "user": ctx.user_id, "serial_no": line.box_no},
            )

        return run_batch(gateway, body.items, apply, atomicity_for("return_cancel"),
                         scan_key=movement_scan_key)
