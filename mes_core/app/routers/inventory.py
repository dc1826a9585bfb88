from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..gateway import QueryGateway, get_gateway
from ..response import batch_success, success
from ..schemas import MoveRequest
from ..security import Permission, build_context, get_principal, require_permission
from ..services.inventory_service import InventoryService
from ..services.lookup_service import LookupService

router = APIRouter(
    prefix="/inventory", tags=["inventory"],
    dependencies=[Depends(require_permission(Permission.MATERIAL_VIEW))],
)


@router.get("/move/box")
def move_box(
    box_no: Optional[str] = Query(None, alias="boxNo"),
    whs_code: Optional[str] = Query(None, alias="whsCode"),
    gateway: QueryGateway = Depends(get_gateway),
):
    return success(LookupService.barcode(gateway, box_no, whs_code))


@router.post("/move")
def move(
    body: MoveRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.MATERIAL_ISSUE)
    outcome = InventoryService.move(gateway, ctx, body)
    outcome.raise_if_empty("No boxes were moved; stock may be insufficient")
    return batch_success(outcome, "moved")
