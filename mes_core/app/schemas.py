"""
Request bodies posted by the PDA. JSON keys are camelCase (boxNo,
fromWhsCode, userId); attributes are snake_case.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ActorFields(CamelModel):
    """userId / saupj every write body may carry; a bearer token overrides them"""
    user_id: Optional[str] = None
    saupj: Optional[str] = None


def _round_qty(v):
    return round(v, 3) if v is not None else v


def _positive_qty(v, name="qty"):
    """Round to ledger precision; a quantity that rounds away to nothing is refused"""
    v = _round_qty(v)
    if v is not None and v <= 0:
        raise ValueError(f"{name} must be greater than 0")
    return v


def _ok_ng(v):
    v = (v or "").strip().upper()
    if v not in ("OK", "NG"):
        raise ValueError("result must be OK or NG")
    return v


# =============================================================================
# AUTH
# =============================================================================

class LoginRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    saupj: Optional[str] = None


# =============================================================================
# MATERIAL
# =============================================================================

class BoxLine(CamelModel):
    """One scanned box: the unit id, its item and the quantity to move"""
    box_no: str = Field(..., min_length=1)
    item_code: Optional[str] = None
    qty: float = Field(..., gt=0)
    whs_code: Optional[str] = None  # per-line source, overrides the header

    @validator("qty")
    def round_precision(cls, v):
        return _positive_qty(v)


class IssueNoSlipRequest(ActorFields):
    issue_date: Optional[str] = None
    from_whs_code: Optional[str] = None
    to_whs_code: Optional[str] = None
    items: List[BoxLine] = []


class SlipLine(CamelModel):
    box_no: str = Field(..., min_length=1)
    item_code: str = Field(..., min_length=1)
    issue_qty: float = Field(..., gt=0)

    @validator("issue_qty")
    def round_precision(cls, v):
        return _positive_qty(v, "issueQty")


class IssueSlipRequest(ActorFields):
    slip_no: Optional[str] = None
    warehouse_code: Optional[str] = None
    issue_date: Optional[str] = None
    items: List[SlipLine] = []


class ReceiveLine(BoxLine):
    lot_no: Optional[str] = None


class ReceiveRequest(ActorFields):
    receive_date: Optional[str] = None
    whs_code: Optional[str] = None
    vendor_code: Optional[str] = None
    items: List[ReceiveLine] = []


class ReceiveCancelLine(BoxLine):
    receive_date: Optional[str] = None


class ReceiveCancelRequest(ActorFields):
    whs_code: Optional[str] = None
    items: List[ReceiveCancelLine] = []


class ReleaseRequest(ActorFields):
    release_date: Optional[str] = None
    whs_code: Optional[str] = None
    items: List[BoxLine] = []


class OutsourceRequest(ActorFields):
    out_date: Optional[str] = None
    whs_code: Optional[str] = None
    vendor_code: Optional[str] = None
    items: List[BoxLine] = []


class StocktakeLine(CamelModel):
    box_no: str = Field(..., min_length=1)
    item_code: Optional[str] = None
    system_qty: Optional[float] = None  # what the PDA was shown; the ledger re-reads it
    actual_qty: float = Field(..., ge=0)

    @validator("actual_qty", "system_qty")
    def round_precision(cls, v):
        return _round_qty(v)


class StocktakeRequest(ActorFields):
    whs_code: Optional[str] = None
    check_date: Optional[str] = None
    items: List[StocktakeLine] = []


# =============================================================================
# PRODUCTION / QUALITY
# =============================================================================

class PartsInputLine(CamelModel):
    box_no: str = Field(..., min_length=1)
    part_code: Optional[str] = None
    qty: float = Field(..., gt=0)
    whs_code: Optional[str] = None

    @validator("qty")
    def round_precision(cls, v):
        return _positive_qty(v)


class PartsInputRequest(ActorFields):
    work_order: Optional[str] = None
    process_code: Optional[str] = None
    line_code: Optional[str] = None
    whs_code: Optional[str] = None
    input_date: Optional[str] = None
    items: List[PartsInputLine] = []


class InputCancelLine(CamelModel):
    box_no: str = Field(..., min_length=1)
    movement_id: Optional[int] = None
    qty: Optional[float] = None


class InputCancelRequest(ActorFields):
    process_code: Optional[str] = None
    line_code: Optional[str] = None
    items: List[InputCancelLine] = []


class SmdCheckLine(CamelModel):
    box_no: str = Field(..., min_length=1)
    item_code: Optional[str] = None
    result: str
    check_time: Optional[str] = None

    @validator("result")
    def ok_or_ng(cls, v):
        return _ok_ng(v)


class SmdCheckRequest(ActorFields):
    process_code: Optional[str] = None
    line_code: Optional[str] = None
    work_date: Optional[str] = None
    order_no: Optional[str] = None
    items: List[SmdCheckLine] = []


class AssemblyLine(CamelModel):
    serial_no: str = Field(..., min_length=1)
    item_code: Optional[str] = None
    status: str
    assembly_time: Optional[str] = None

    @validator("status")
    def ok_or_ng(cls, v):
        return _ok_ng(v)


class AssemblyRequest(ActorFields):
    order_no: Optional[str] = None
    process_code: Optional[str] = None
    line_code: Optional[str] = None
    work_date: Optional[str] = None
    items: List[AssemblyLine] = []


class CheckResultLine(CamelModel):
    no: int
    check_name: Optional[str] = None
    standard: Optional[str] = None
    result: str
    value: Optional[str] = None

    @validator("result")
    def ok_or_ng(cls, v):
        return _ok_ng(v)


class PeriodicCheckRequest(ActorFields):
    process_code: Optional[str] = None
    line_code: Optional[str] = None
    check_date: Optional[str] = None
    remark: Optional[str] = None
    results: List[CheckResultLine] = []


class WorkActionRequest(ActorFields):
    order_no: Optional[str] = None
    action: Optional[str] = None


# =============================================================================
# OUTBOUND
# =============================================================================

class ShipmentLine(CamelModel):
    box_no: str = Field(..., min_length=1)
    item_code: Optional[str] = None
    whs_code: Optional[str] = None
    out_qty: float = Field(..., gt=0)

    @validator("out_qty")
    def round_precision(cls, v):
        return _positive_qty(v, "outQty")


class ShipmentRequest(ActorFields):
    wk_date: Optional[str] = None
    round_no: Optional[int] = None  # next free round of the day when omitted
    cust_code: Optional[str] = None
    dest_code: Optional[str] = None
    out_type: Optional[str] = None
    car_no: Optional[str] = None
    whs_code: Optional[str] = None
    items: List[ShipmentLine] = []


class ShipmentCancelLine(CamelModel):
    box_no: str = Field(..., min_length=1)
    movement_id: Optional[int] = None


class ShipmentCancelRequest(ActorFields):
    items: List[ShipmentCancelLine] = []


class ReturnLine(CamelModel):
    serial_no: str = Field(..., min_length=1)
    item_code: Optional[str] = None


class ReturnRequest(ActorFields):
    whs_code: Optional[str] = None
    reason: Optional[str] = None
    condition: Optional[str] = None
    remark: Optional[str] = None
    items: List[ReturnLine] = []


class ReturnBoxLine(BoxLine):
    grade: str = "GOOD"

    @validator("grade")
    def good_or_defect(cls, v):
        v = (v or "GOOD").strip().upper()
        # PDA screens send the legacy Y / N flag
        v = {"Y": "GOOD", "N": "DEFECT"}.get(v, v)
        if v not in ("GOOD", "DEFECT"):
            raise ValueError("grade must be GOOD or DEFECT")
        return v


class ReturnReceiveRequest(ActorFields):
    return_date: Optional[str] = None
    return_whs_code: Optional[str] = None
    defect_whs_code: Optional[str] = None
    dest_code: Optional[str] = None
    remark: Optional[str] = None
    items: List[ReturnBoxLine] = []


class ReturnCancelLine(CamelModel):
    box_no: str = Field(..., min_length=1)  # box or serial number
    movement_id: Optional[int] = None


class ReturnCancelRequest(ActorFields):
    items: List[ReturnCancelLine] = []


# =============================================================================
# REPACK / STOCK CORRECTIONS
# =============================================================================

class RepackLine(CamelModel):
    new_box_no: str = Field(..., min_length=1)
    qty: float = Field(..., gt=0)

    @validator("qty")
    def round_precision(cls, v):
        return _positive_qty(v)


class RepackRequest(ActorFields):
    source_box_no: Optional[str] = None
    whs_code: Optional[str] = None
    repack_date: Optional[str] = None
    items: List[RepackLine] = []


class SerialRepackLine(CamelModel):
    old_serial_no: str = Field(..., min_length=1)
    new_serial_no: str = Field(..., min_length=1)
    whs_code: Optional[str] = None


class SerialRepackRequest(ActorFields):
    repack_date: Optional[str] = None
    items: List[SerialRepackLine] = []


class ItemChangeLine(CamelModel):
    box_no: str = Field(..., min_length=1)
    old_item_code: Optional[str] = None
    new_item_code: str = Field(..., min_length=1)


class ItemChangeRequest(ActorFields):
    whs_code: Optional[str] = None
    items: List[ItemChangeLine] = []


class MoveLine(BoxLine):
    to_whs_code: Optional[str] = None  # per-line destination, overrides the header


class MoveRequest(ActorFields):
    move_date: Optional[str] = None
    from_whs_code: Optional[str] = None
    to_whs_code: Optional[str] = None
    items: List[MoveLine] = []


class ProductionResultRequest(ActorFields):
    process_code: Optional[str] = None
    line_code: Optional[str] = None
    work_order: Optional[str] = None
    whs_code: Optional[str] = None  # defaults to the process's finished-goods warehouse
    plan_date: Optional[str] = None
    items: List[BoxLine] = []


class DisposalRequest(ActorFields):
    whs_code: Optional[str] = None
    reason: Optional[str] = None
    remark: Optional[str] = None
    items: List[BoxLine] = []
