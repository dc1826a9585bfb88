"""
Shipment API Router
===================
Round numbers, box lookup, shipment and shipment cancellation.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..gateway import QueryGateway, get_gateway
from ..response import batch_success, success
from ..schemas import ShipmentCancelRequest, ShipmentRequest
from ..security import Permission, build_context, get_principal, require_permission
from ..services.ledger_service import ValidationFailed
from ..services.lookup_service import LookupService
from ..services.material_service import business_date
from ..services.shipment_service import ShipmentService, next_round

router = APIRouter(
    prefix="/shipment", tags=["shipment"],
    dependencies=[Depends(require_permission(Permission.MATERIAL_VIEW))],
)


@router.get("")
def shipment_round(
    wk_date: Optional[str] = Query(None, alias="wkDate"),
    gateway: QueryGateway = Depends(get_gateway),
):
    """Next free shipment round for the day"""
    if not wk_date:
        raise ValidationFailed("wkDate is required")
    return success({"roundNo": next_round(gateway, business_date(wk_date))})


@router.get("/box")
def shipment_box(
    box_no: Optional[str] = Query(None, alias="boxNo"),
    saupj: Optional[str] = None,
    gateway: QueryGateway = Depends(get_gateway),
):
    return success(LookupService.box_stock(gateway, box_no, saupj))


@router.post("")
def ship(
    body: ShipmentRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.SHIPMENT_CREATE)
    outcome, round_no = ShipmentService.shipment(gateway, ctx, body)
    outcome.raise_if_empty("No boxes were shipped")
    data = outcome.as_data()
    data["roundNo"] = round_no
    return success(data, f"{outcome.count} item(s) shipped in round {round_no}")


@router.get("/cancel")
def shipment_history(
    from_date: Optional[str] = Query(None, alias="fromDate"),
    to_date: Optional[str] = Query(None, alias="toDate"),
    gateway: QueryGateway = Depends(get_gateway),
):
    return success(LookupService.shipment_history(gateway, from_date, to_date))


@router.post("/cancel")
def cancel_shipment(
    body: ShipmentCancelRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.SHIPMENT_CANCEL)
    outcome = ShipmentService.shipment_cancel(gateway, ctx, body)
    outcome.raise_if_empty("No shipments were cancelled")
    return batch_success(outcome, "cancelled")
