"""
Repack API Router
=================
Box repack, individual (serial) repack and CKD part number change.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..gateway import QueryGateway, get_gateway
from ..response import batch_success, success
from ..schemas import ItemChangeRequest, RepackRequest, SerialRepackRequest
from ..security import Permission, build_context, get_principal, require_permission
from ..services.inventory_service import InventoryService
from ..services.lookup_service import LookupService

router = APIRouter(
    prefix="/repack", tags=["repack"],
    dependencies=[Depends(require_permission(Permission.MATERIAL_VIEW))],
)


@router.get("")
def source_box(
    box_no: Optional[str] = Query(None, alias="boxNo"),
    gateway: QueryGateway = Depends(get_gateway),
):
    """Source box for a repack; it must still hold stock"""
    return success(LookupService.box_stock(gateway, box_no))


@router.post("")
def repack(
    body: RepackRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.STOCK_ADJUST)
    outcome = InventoryService.repack(gateway, ctx, body)
    outcome.raise_if_empty("No boxes were repacked")
    return batch_success(outcome, "repacked")


@router.post("/individual")
def repack_individual(
    body: SerialRepackRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.STOCK_ADJUST)
    outcome = InventoryService.repack_serial(gateway, ctx, body)
    outcome.raise_if_empty("No serials were repacked")
    return batch_success(outcome, "repacked")


@router.post("/ckd-change")
def ckd_change(
    body: ItemChangeRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.STOCK_ADJUST)
    outcome = InventoryService.change_item(gateway, ctx, body)
    outcome.raise_if_empty("No part numbers were changed")
    return batch_success(outcome, "changed")
