"""
Plan API Router
===============
Work order start/end, next-work preparation and periodic line checks.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..gateway import QueryGateway, get_gateway
from ..models import WorkOrderStatus
from ..response import success
from ..schemas import PeriodicCheckRequest, WorkActionRequest
from ..security import Permission, build_context, get_principal, require_permission
from ..services.lookup_service import LookupService
from ..services.production_service import ProductionService
from ..services.work_order_service import NEXT_WORK_ACTIONS, WORK_ACTIONS, WorkOrderService

router = APIRouter(
    prefix="/plan", tags=["plan"],
    dependencies=[Depends(require_permission(Permission.PRODUCTION_VIEW))],
)


@router.get("/check")
def check_items(
    process_code: Optional[str] = Query(None, alias="processCode"),
    line_code: Optional[str] = Query(None, alias="lineCode"),
    gateway: QueryGateway = Depends(get_gateway),
):
    return success(LookupService.check_items(gateway, process_code, line_code))


@router.post("/check")
def save_check(
    body: PeriodicCheckRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.QA_INSPECT)
    data = ProductionService.periodic_check(gateway, ctx, body)
    return success(data, f"Periodic check saved: {data['finalResult']}")


@router.get("/work")
def work_orders(
    process_code: Optional[str] = Query(None, alias="processCode"),
    line_code: Optional[str] = Query(None, alias="lineCode"),
    work_date: Optional[str] = Query(None, alias="workDate"),
    gateway: QueryGateway = Depends(get_gateway),
):
    return success(LookupService.work_orders(gateway, process_code, line_code, work_date))


@router.post("/work")
def work_action(
    body: WorkActionRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    """start | end"""
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.WORK_ORDER_UPDATE)
    data = WorkOrderService.apply_action(gateway, ctx, body.order_no, body.action, WORK_ACTIONS)
    return success(data, f"Work order {data['statusName']}")


@router.get("/next-work")
def next_work(
    process_code: Optional[str] = Query(None, alias="processCode"),
    line_code: Optional[str] = Query(None, alias="lineCode"),
    from_date: Optional[str] = Query(None, alias="fromDate"),
    to_date: Optional[str] = Query(None, alias="toDate"),
    gateway: QueryGateway = Depends(get_gateway),
):
    """Upcoming work orders that are not finished yet"""
    statuses = [WorkOrderStatus.SCHEDULED.value, WorkOrderStatus.READY.value,
                WorkOrderStatus.STARTED.value]
    return success(LookupService.work_orders(gateway, process_code, line_code, from_date,
                                             statuses, to_date=to_date or from_date))


@router.post("/next-work")
def next_work_action(
    body: WorkActionRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    """ready | start"""
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.WORK_ORDER_UPDATE)
    data = WorkOrderService.apply_action(gateway, ctx, body.order_no, body.action, NEXT_WORK_ACTIONS)
    return success(data, f"Work order {data['statusName']}")
