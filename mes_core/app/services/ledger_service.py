"""
Inventory Ledger
================
Stock mutation primitives and the batch runner every write endpoint uses:
- Over-draw prevention with a conditional UPDATE (no read-then-write)
- Insert-or-merge of stock rows on receipt / transfer-in / stock-take
- Append-only movement history; cancellation only flips a flag, once
- Per-item or whole-batch atomicity, chosen per operation
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..config import BATCH_ATOMIC_OPERATIONS, EXPOSE_DRIVER_ERRORS
from ..gateway import QueryGateway, Transaction
from ..utils import to_float

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LedgerError(Exception):
    """Base exception for request-level failures; carries the HTTP status"""
    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(LedgerError):
    """Request rejected before anything was written"""
    status_code = 400


class NotFoundError(LedgerError):
    status_code = 404


class InvalidTransitionError(LedgerError):
    """Work order action not allowed from its current status"""
    status_code = 400


class PermissionDenied(LedgerError):
    status_code = 403


class SkipReason(str, Enum):
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    NOT_FOUND = "NOT_FOUND"
    DUPLICATE_SCAN = "DUPLICATE_SCAN"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    INVALID_ITEM = "INVALID_ITEM"
    DRIVER_ERROR = "DRIVER_ERROR"


class ItemRejected(Exception):
    """One line item cannot be applied; the rest of the batch may continue"""
    reason = SkipReason.INVALID_ITEM

    def __init__(self, detail: str, reason: Optional[SkipReason] = None):
        super().__init__(detail)
        self.detail = detail
        if reason is not None:
            self.reason = reason


class InsufficientStockError(ItemRejected):
    """Raised when trying to take more than the location holds"""
    reason = SkipReason.INSUFFICIENT_STOCK


class StockNotFoundError(ItemRejected):
    reason = SkipReason.NOT_FOUND


class MovementNotFoundError(ItemRejected):
    reason = SkipReason.NOT_FOUND


class BatchRejected(LedgerError):
    """A batch-atomic operation hit a rejection and was rolled back whole"""

    def __init__(self, message: str, reason: SkipReason):
        super().__init__(message, 400)
        self.reason = reason


class Atomicity(str, Enum):
    PER_ITEM = "PER_ITEM"
    BATCH = "BATCH"


def atomicity_for(operation: str) -> Atomicity:
    if operation in BATCH_ATOMIC_OPERATIONS:
        return Atomicity.BATCH
    return Atomicity.PER_ITEM


def require(value: Any, message: str):
    """Pre-loop validation: reject the whole request before any write."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationFailed(message)
    return value


def require_items(items: Optional[list], message: str) -> list:
    if not items:
        raise ValidationFailed(message)
    return items


# =============================================================================
# STOCK PRIMITIVES
# =============================================================================

def debit_stock(tx: Transaction, box_no: str, whs_code: str, qty: float, user: str) -> None:
    """
    Take qty out of (box_no, whs_code).

    The quantity check lives in the WHERE clause so two concurrent debits can
    never both pass it. Zero rows affected means the row is missing or short.
    """
    rows = tx.execute(
        """
        UPDATE pms100
           SET qty = qty - :qty,
               upd_user = :user,
               upd_date = CURRENT_TIMESTAMP
         WHERE box_no = :box_no
           AND whs_code = :whs_code
           AND qty >= :qty
        """,
        {"qty": qty, "user": user, "box_no": box_no, "whs_code": whs_code},
    )
    if rows:
        return

    on_hand = tx.scalar(
        "SELECT qty FROM pms100 WHERE box_no = :box_no AND whs_code = :whs_code",
        {"box_no": box_no, "whs_code": whs_code},
    )
    if on_hand is None:
        raise StockNotFoundError(f"{box_no} has no stock record in {whs_code}")
    raise InsufficientStockError(
        f"{box_no} holds {to_float(on_hand):g} in {whs_code}, requested {qty:g}"
    )


def credit_stock(
    tx: Transaction,
    box_no: str,
    whs_code: str,
    qty: float,
    user: str,
    saupj: str,
    item_code: Optional[str] = None,
    lot_no: Optional[str] = None,
) -> None:
    """Add qty to (box_no, whs_code), creating the row on first arrival."""
    rows = tx.execute(
        """
        UPDATE pms100
           SET qty = qty + :qty,
               item_code = COALESCE(:item_code, item_code),
               lot_no = COALESCE(:lot_no, lot_no),
               upd_user = :user,
               upd_date = CURRENT_TIMESTAMP
         WHERE box_no = :box_no
           AND whs_code = :whs_code
        """,
        {"qty": qty, "item_code": item_code or None, "lot_no": lot_no or None,
         "user": user, "box_no": box_no, "whs_code": whs_code},
    )
    if rows:
        return

    if not item_code:
        # Box arriving at a new location keeps the item code it had elsewhere
        item_code = tx.scalar(
            "SELECT item_code FROM pms100 WHERE box_no = :box_no AND item_code IS NOT NULL",
            {"box_no": box_no},
        )
    _insert_stock(tx, box_no, whs_code, qty, user, saupj, item_code, lot_no)


def set_stock(
    tx: Transaction,
    box_no: str,
    whs_code: str,
    qty: float,
    user: str,
    saupj: str,
    item_code: Optional[str] = None,
) -> float:
    """
    Stock-take: overwrite the on-hand quantity with the counted one.

    Returns the quantity the system held before (0 for a unit it didn't know).
    """
    system_qty = tx.scalar(
        "SELECT qty FROM pms100 WHERE box_no = :box_no AND whs_code = :whs_code",
        {"box_no": box_no, "whs_code": whs_code},
    )
    if system_qty is None:
        _insert_stock(tx, box_no, whs_code, qty, user, saupj, item_code, None)
        return 0.0

    tx.execute(
        """
        UPDATE pms100
           SET qty = :qty,
               item_code = COALESCE(:item_code, item_code),
               upd_user = :user,
               upd_date = CURRENT_TIMESTAMP
         WHERE box_no = :box_no
           AND whs_code = :whs_code
        """,
        {"qty": qty, "item_code": item_code or None, "user": user,
         "box_no": box_no, "whs_code": whs_code},
    )
    return to_float(system_qty)


def _insert_stock(tx, box_no, whs_code, qty, user, saupj, item_code, lot_no):
    tx.execute(
        """
        INSERT INTO pms100 (saupj, box_no, whs_code, item_code, qty, lot_no, reg_user, reg_date)
        VALUES (:saupj, :box_no, :whs_code, :item_code, :qty, :lot_no, :user, CURRENT_TIMESTAMP)
        """,
        {"saupj": saupj, "box_no": box_no, "whs_code": whs_code, "item_code": item_code,
         "qty": qty, "lot_no": lot_no or None, "user": user},
    )


def resolve_location(tx: Transaction, box_no: str, qty: float) -> str:
    """Warehouse holding box_no with at least qty on hand (largest first)."""
    rows = tx.query(
        """
        SELECT whs_code, qty
          FROM pms100
         WHERE box_no = :box_no
           AND qty > 0
         ORDER BY qty DESC, whs_code
        """,
        {"box_no": box_no},
    )
    if not rows:
        raise StockNotFoundError(f"{box_no} has no stock at any location")
    for row in rows:
        if to_float(row["qty"]) >= qty:
            return row["whs_code"]
    raise InsufficientStockError(
        f"{box_no} holds at most {to_float(rows[0]['qty']):g} at one location, requested {qty:g}"
    )


# =============================================================================
# MOVEMENT HISTORY
# =============================================================================

@dataclass
class MovementEntry:
    saupj: str
    move_date: str
    box_no: str
    qty: float
    movement_type: str
    user: str
    item_code: Optional[str] = None
    from_whs: Optional[str] = None
    to_whs: Optional[str] = None
    ref_no: Optional[str] = None
    process_code: Optional[str] = None
    line_code: Optional[str] = None
    round_no: Optional[int] = None
    dest_code: Optional[str] = None
    out_type: Optional[str] = None
    car_no: Optional[str] = None
    system_qty: Optional[float] = None
    actual_qty: Optional[float] = None
    grade: Optional[str] = None
    remark: Optional[str] = None


def write_movement(tx: Transaction, entry: MovementEntry) -> None:
    params = {
        "saupj": entry.saupj, "move_date": entry.move_date, "box_no": entry.box_no,
        "item_code": entry.item_code, "from_whs": entry.from_whs, "to_whs": entry.to_whs,
        "qty": entry.qty, "movement_type": getattr(entry.movement_type, "value", entry.movement_type),
        "ref_no": entry.ref_no, "process_code": entry.process_code, "line_code": entry.line_code,
        "round_no": entry.round_no, "dest_code": entry.dest_code, "out_type": entry.out_type,
        "car_no": entry.car_no, "system_qty": entry.system_qty, "actual_qty": entry.actual_qty,
        "grade": getattr(entry.grade, "value", entry.grade), "remark": entry.remark,
        "user": entry.user,
    }
    tx.execute(
        """
        INSERT INTO pmb300 (
            saupj, move_date, box_no, item_code, from_whs, to_whs, qty, movement_type,
            ref_no, process_code, line_code, round_no, dest_code, out_type, car_no,
            system_qty, actual_qty, grade, remark, reg_user, reg_date
        ) VALUES (
            :saupj, :move_date, :box_no, :item_code, :from_whs, :to_whs, :qty, :movement_type,
            :ref_no, :process_code, :line_code, :round_no, :dest_code, :out_type, :car_no,
            :system_qty, :actual_qty, :grade, :remark, :user, CURRENT_TIMESTAMP
        )
        """,
        params,
    )


def cancel_movement(tx: Transaction, movement_id: int, movement_type: str, user: str) -> None:
    """Flip the cancel flag on one movement; it can only ever flip once."""
    rows = tx.execute(
        """
        UPDATE pmb300
           SET cancel_yn = 'Y',
               cancel_user = :user,
               cancel_date = CURRENT_TIMESTAMP
         WHERE id = :id
           AND movement_type = :movement_type
           AND cancel_yn IS NULL
        """,
        {"user": user, "id": movement_id, "movement_type": movement_type},
    )
    if rows:
        return

    flag = tx.query(
        "SELECT cancel_yn FROM pmb300 WHERE id = :id AND movement_type = :movement_type",
        {"id": movement_id, "movement_type": movement_type},
    )
    if flag:
        raise ItemRejected(f"movement {movement_id} is already cancelled", SkipReason.ALREADY_CANCELLED)
    raise MovementNotFoundError(f"no {movement_type} movement {movement_id}")


def find_open_movement(
    tx: Transaction,
    movement_type: str,
    box_no: str,
    whs_column: Optional[str] = None,
    whs_code: Optional[str] = None,
    move_date: Optional[str] = None,
    movement_id: Optional[int] = None,
) -> Optional[dict]:
    """Latest uncancelled movement of a type for a unit, optionally narrowed."""
    sql = """
        SELECT id, box_no, item_code, from_whs, to_whs, qty, move_date, saupj
          FROM pmb300
         WHERE movement_type = :movement_type
           AND box_no = :box_no
           AND cancel_yn IS NULL
    """
    params = {"movement_type": movement_type, "box_no": box_no}
    if movement_id is not None:
        sql += " AND id = :id"
        params["id"] = movement_id
    if whs_column in ("from_whs", "to_whs") and whs_code:
        sql += f" AND {whs_column} = :whs_code"
        params["whs_code"] = whs_code
    if move_date:
        sql += " AND move_date = :move_date"
        params["move_date"] = move_date
    sql += " ORDER BY id DESC"

    rows = tx.query(sql, params)
    return rows[0] if rows else None


# =============================================================================
# BATCH RUNNER
# =============================================================================

@dataclass
class SkippedItem:
    index: int
    unit: str
    reason: SkipReason
    detail: str = ""


@dataclass
class BatchOutcome:
    applied: List[str] = field(default_factory=list)
    skipped: List[SkippedItem] = field(default_factory=list)
    ok: int = 0
    ng: int = 0
    unit_label: str = "boxNo"

    @property
    def count(self) -> int:
        return len(self.applied)

    def record(self, unit: str, verdict: Optional[str] = None):
        self.applied.append(unit)
        if verdict == "OK":
            self.ok += 1
        elif verdict == "NG":
            self.ng += 1

    def skip(self, index: int, unit: str, reason: SkipReason, detail: str = ""):
        self.skipped.append(SkippedItem(index, unit, reason, detail))

    def raise_if_empty(self, message: str):
        """Zero applied items fails the request, naming the first skip."""
        if self.count:
            return
        if self.skipped:
            first = self.skipped[0]
            message = f"{message} ({first.unit}: {first.detail or first.reason.value})"
        raise ValidationFailed(message)

    def as_data(self) -> dict:
        return {
            "count": self.count,
            "ok": self.ok,
            "ng": self.ng,
            "skipped": [
                {"index": s.index, self.unit_label: s.unit, "reason": s.reason.value, "detail": s.detail}
                for s in self.skipped
            ],
        }


def _unit_of(item: Any, key: str) -> str:
    if isinstance(item, dict):
        return str(item.get(key) or "")
    return str(getattr(item, key, "") or "")


def movement_scan_key(line) -> tuple:
    """Cancel lines naming a movement id are distinct even for the same box"""
    return (line.box_no, line.movement_id)


def _driver_detail(exc: SQLAlchemyError) -> str:
    return str(exc.orig if getattr(exc, "orig", None) else exc) if EXPOSE_DRIVER_ERRORS else "database error"


def run_batch(
    gateway: QueryGateway,
    items: Iterable[Any],
    apply_item: Callable[[Transaction, Any], Optional[str]],
    atomicity: Atomicity = Atomicity.PER_ITEM,
    key: str = "box_no",
    unit_label: str = "boxNo",
    scan_key: Optional[Callable[[Any], Any]] = None,
) -> BatchOutcome:
    """
    Apply apply_item(tx, item) to every line item.

    apply_item may return "OK" / "NG" for inspection tallies. A repeated unit
    id in the same batch is skipped as a duplicate scan; scan_key(item)
    replaces the unit id for that check where one unit can legitimately
    appear twice (two movements of the same box).

    PER_ITEM: each item commits or rolls back on its own; rejections and
    driver errors become skips and the loop continues.
    BATCH: one transaction; the first rejection rolls everything back and
    raises BatchRejected.

    Anything else raised by apply_item is a bug and propagates.
    """
    outcome = BatchOutcome(unit_label=unit_label)
    seen = set()

    if atomicity == Atomicity.BATCH:
        with gateway.transaction() as tx:
            for index, item in enumerate(items):
                unit = _unit_of(item, key)
                token = scan_key(item) if scan_key else unit
                if token in seen:
                    outcome.skip(index, unit, SkipReason.DUPLICATE_SCAN, "scanned twice in one batch")
                    continue
                seen.add(token)
                try:
                    verdict = apply_item(tx, item)
                except ItemRejected as exc:
                    logger.warning("Batch rolled back at item %d (%s): %s %s",
                                   index, unit, exc.reason.value, exc.detail)
                    raise BatchRejected(f"{unit}: {exc.detail}", exc.reason) from exc
                outcome.record(unit, verdict)
        return outcome

    for index, item in enumerate(items):
        unit = _unit_of(item, key)
        token = scan_key(item) if scan_key else unit
        if token in seen:
            outcome.skip(index, unit, SkipReason.DUPLICATE_SCAN, "scanned twice in one batch")
            continue
        seen.add(token)
        try:
            with gateway.transaction() as tx:
                verdict = apply_item(tx, item)
        except ItemRejected as exc:
            logger.info("Skipped item %d (%s): %s %s", index, unit, exc.reason.value, exc.detail)
            outcome.skip(index, unit, exc.reason, exc.detail)
            continue
        except SQLAlchemyError as exc:
            logger.error("Item %d (%s) rolled back on database error: %s", index, unit, exc)
            outcome.skip(index, unit, SkipReason.DRIVER_ERROR, _driver_detail(exc))
            continue
        outcome.record(unit, verdict)
    return outcome
