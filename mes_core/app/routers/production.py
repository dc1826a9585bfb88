from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..gateway import QueryGateway, get_gateway
from ..models import WorkOrderStatus
from ..response import batch_success, success
from ..schemas import (
    AssemblyRequest, DisposalRequest, InputCancelRequest, PartsInputRequest,
    ProductionResultRequest, SmdCheckRequest,
)
from ..security import Permission, build_context, get_principal, require_permission
from ..services.lookup_service import LookupService
from ..services.production_service import ProductionService

router = APIRouter(
    prefix="/production", tags=["production"],
    dependencies=[Depends(require_permission(Permission.PRODUCTION_VIEW))],
)


@router.post("/parts-input")
def parts_input(
    body: PartsInputRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.PRODUCTION_INPUT)
    outcome = ProductionService.parts_input(gateway, ctx, body)
    outcome.raise_if_empty("No parts were input")
    return batch_success(outcome, "input")


@router.get("/input-cancel")
def input_history(
    process_code: Optional[str] = Query(None, alias="processCode"),
    line_code: Optional[str] = Query(None, alias="lineCode"),
    work_date: Optional[str] = Query(None, alias="workDate"),
    gateway: QueryGateway = Depends(get_gateway),
):
    """Today's (or workDate's) open parts inputs on a line"""
    return success(LookupService.input_history(gateway, process_code, line_code, work_date))


@router.post("/input-cancel")
def input_cancel(
    body: InputCancelRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.PRODUCTION_INPUT)
    outcome = ProductionService.input_cancel(gateway, ctx, body)
    outcome.raise_if_empty("No inputs were cancelled")
    return batch_success(outcome, "cancelled")


@router.post("/smd-check")
def smd_check(
    body: SmdCheckRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.QA_INSPECT)
    outcome = ProductionService.smd_check(gateway, ctx, body)
    outcome.raise_if_empty("No inspection results were saved")
    return batch_success(outcome, "inspected")


@router.get("/assembly")
def assembly_orders(
    process_code: Optional[str] = Query(None, alias="processCode"),
    line_code: Optional[str] = Query(None, alias="lineCode"),
    work_date: Optional[str] = Query(None, alias="workDate"),
    gateway: QueryGateway = Depends(get_gateway),
):
    """Work orders open for assembly reporting (not yet completed)"""
    statuses = [WorkOrderStatus.SCHEDULED.value, WorkOrderStatus.READY.value,
                WorkOrderStatus.STARTED.value]
    return success(LookupService.work_orders(gateway, process_code, line_code, work_date, statuses))


@router.post("/assembly")
def assembly_result(
    body: AssemblyRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.PRODUCTION_INPUT)
    outcome = ProductionService.assembly_result(gateway, ctx, body)
    outcome.raise_if_empty("No assembly results were saved")
    return batch_success(outcome, "recorded")


@router.post("/result")
def production_result(
    body: ProductionResultRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.PRODUCTION_INPUT)
    outcome = ProductionService.production_result(gateway, ctx, body)
    outcome.raise_if_empty("No results were saved")
    return batch_success(outcome, "booked")


@router.post("/disposal")
def disposal(
    body: DisposalRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.STOCK_ADJUST)
    outcome, total_qty = ProductionService.disposal(gateway, ctx, body)
    outcome.raise_if_empty("No boxes were disposed")
    data = outcome.as_data()
    data["totalQty"] = total_qty
    return success(data, f"{outcome.count} item(s) ({total_qty:g} EA) disposed")
