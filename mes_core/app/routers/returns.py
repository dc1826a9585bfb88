from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..gateway import QueryGateway, get_gateway
from ..response import batch_success, success
from ..schemas import ReturnCancelRequest, ReturnReceiveRequest, ReturnRequest
from ..security import Permission, build_context, get_principal, require_permission
from ..services.lookup_service import LookupService
from ..services.shipment_service import ShipmentService

router = APIRouter(
    prefix="/return", tags=["return"],
    dependencies=[Depends(require_permission(Permission.MATERIAL_VIEW))],
)


@router.get("/individual")
def shipped_serial(
    serial_no: Optional[str] = Query(None, alias="serialNo"),
    gateway: QueryGateway = Depends(get_gateway),
):
    return success(LookupService.shipped_serial(gateway, serial_no))


@router.post("/individual")
def return_individual(
    body: ReturnRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.RETURN_RECEIVE)
    outcome = ShipmentService.return_individual(gateway, ctx, body)
    outcome.raise_if_empty("No serials were returned")
    return batch_success(outcome, "returned")


@router.post("")
def return_receive(
    body: ReturnReceiveRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.RETURN_RECEIVE)
    outcome = ShipmentService.return_receive(gateway, ctx, body)
    outcome.raise_if_empty("No boxes were returned")
    return batch_success(outcome, "returned")


@router.get("/cancel")
def return_history(
    whs_code: Optional[str] = Query(None, alias="whsCode"),
    from_date: Optional[str] = Query(None, alias="fromDate"),
    to_date: Optional[str] = Query(None, alias="toDate"),
    gateway: QueryGateway = Depends(get_gateway),
):
    return success(LookupService.return_history(gateway, whs_code, from_date, to_date))


@router.post("/cancel")
def return_cancel(
    body: ReturnCancelRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.RETURN_CANCEL)
    outcome = ShipmentService.return_cancel(gateway, ctx, body)
    outcome.raise_if_empty("No returns were cancelled")
    return batch_success(outcome, "cancelled")
