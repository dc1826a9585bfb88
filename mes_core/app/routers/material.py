"""
Material Warehouse API Router
=============================
Barcode lookup, issue (with/without slip), receipt and cancellation,
release, outsourcing and stock-taking from the PDA.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from ..excel import parse_count_sheet
from ..gateway import QueryGateway, get_gateway
from ..response import batch_success, success
from ..schemas import (
    IssueNoSlipRequest, IssueSlipRequest, OutsourceRequest, ReceiveCancelRequest,
    ReceiveRequest, ReleaseRequest, StocktakeLine, StocktakeRequest,
)
from ..security import Permission, build_context, get_principal, require_permission
from ..services.ledger_service import require
from ..services.lookup_service import LookupService
from ..services.material_service import MaterialService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/material", tags=["material"],
    dependencies=[Depends(require_permission(Permission.MATERIAL_VIEW))],
)


# =============================================================================
# LOOKUPS
# =============================================================================

@router.get("/barcode")
def barcode(
    box_no: Optional[str] = Query(None, alias="boxNo"),
    whs_code: Optional[str] = Query(None, alias="whsCode"),
    gateway: QueryGateway = Depends(get_gateway),
):
    return success(LookupService.barcode(gateway, box_no, whs_code))


@router.get("/issue-slip")
def issue_slip_lines(
    slip_no: Optional[str] = Query(None, alias="slipNo"),
    gateway: QueryGateway = Depends(get_gateway),
):
    return success(LookupService.slip_lines(gateway, slip_no))


@router.get("/receive")
def receive_history(
    whs_code: Optional[str] = Query(None, alias="whsCode"),
    from_date: Optional[str] = Query(None, alias="fromDate"),
    to_date: Optional[str] = Query(None, alias="toDate"),
    gateway: QueryGateway = Depends(get_gateway),
):
    """Open receipts, the candidates a receive-cancel screen offers"""
    return success(LookupService.receive_history(gateway, whs_code, from_date, to_date))


@router.get("/outsource")
def outsourcing_vendors(keyword: str = "", gateway: QueryGateway = Depends(get_gateway)):
    return success(LookupService.outsourcing_vendors(gateway, keyword))


@router.get("/stocktaking")
def stocktaking_lookup(
    box_no: Optional[str] = Query(None, alias="boxNo"),
    whs_code: Optional[str] = Query(None, alias="whsCode"),
    gateway: QueryGateway = Depends(get_gateway),
):
    return success(LookupService.stocktake_lookup(gateway, box_no, whs_code))


# =============================================================================
# WRITES
# =============================================================================

@router.post("/issue-no-slip")
def issue_no_slip(
    body: IssueNoSlipRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.MATERIAL_ISSUE)
    outcome = MaterialService.issue_no_slip(gateway, ctx, body)
    outcome.raise_if_empty("No items were issued")
    return batch_success(outcome, "issued")


@router.post("/issue-slip")
def issue_slip(
    body: IssueSlipRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.MATERIAL_ISSUE)
    outcome = MaterialService.issue_slip(gateway, ctx, body)
    outcome.raise_if_empty("No items were issued")
    return batch_success(outcome, "issued")


@router.post("/receive")
def receive(
    body: ReceiveRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.MATERIAL_RECEIVE)
    outcome = MaterialService.receive(gateway, ctx, body)
    outcome.raise_if_empty("No items were received")
    return batch_success(outcome, "received")


@router.post("/receive-cancel")
def receive_cancel(
    body: ReceiveCancelRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.MATERIAL_RECEIVE)
    outcome = MaterialService.receive_cancel(gateway, ctx, body)
    outcome.raise_if_empty("No receipts were cancelled; stock may be insufficient")
    return batch_success(outcome, "cancelled")


@router.post("/release")
def release(
    body: ReleaseRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.MATERIAL_RELEASE)
    outcome = MaterialService.release(gateway, ctx, body)
    outcome.raise_if_empty("No items were released; stock may be insufficient")
    return batch_success(outcome, "released")


@router.post("/outsource")
def outsource(
    body: OutsourceRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.OUTSOURCE_CREATE)
    outcome = MaterialService.outsource(gateway, ctx, body, "material_outsource")
    outcome.raise_if_empty("No items were shipped out; stock may be insufficient")
    return batch_success(outcome, "shipped out")


@router.post("/stocktaking")
def stocktaking(
    body: StocktakeRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.STOCK_ADJUST)
    outcome = MaterialService.stocktake(gateway, ctx, body)
    outcome.raise_if_empty("No counts were saved")
    return batch_success(outcome, "counted")


@router.post("/stocktaking/upload")
def stocktaking_upload(
    file: UploadFile = File(...),
    whs_code: Optional[str] = Form(None, alias="whsCode"),
    user_id: Optional[str] = Form(None, alias="userId"),
    saupj: Optional[str] = Form(None),
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    """
    Stock-take from a count sheet (.xlsx / .csv) instead of box-by-box scans.
    Columns are matched by common header names (box no / barcode, item code,
    actual qty / count).
    """
    ctx = build_context(principal, user_id, saupj).require(Permission.STOCK_ADJUST)
    require(whs_code, "whsCode is required")

    counted = parse_count_sheet(file.file.read(), file.filename)
    system = LookupService.system_quantities(gateway, whs_code, [c["box_no"] for c in counted])
    logger.info("Count sheet %s: %d boxes for %s", file.filename, len(counted), whs_code)

    body = StocktakeRequest(
        whs_code=whs_code,
        items=[StocktakeLine(system_qty=system.get(c["box_no"], 0.0), **c) for c in counted],
    )
    outcome = MaterialService.stocktake(gateway, ctx, body)
    outcome.raise_if_empty("No counts were saved")
    return batch_success(outcome, "counted")
