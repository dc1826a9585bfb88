from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..gateway import QueryGateway, get_gateway
from ..response import batch_success, success
from ..schemas import OutsourceRequest
from ..security import Permission, build_context, get_principal, require_permission
from ..services.lookup_service import LookupService
from ..services.material_service import MaterialService

router = APIRouter(
    prefix="/outsourcing", tags=["outsourcing"],
    dependencies=[Depends(require_permission(Permission.MATERIAL_VIEW))],
)


@router.get("/box")
def outsourcing_box(
    box_no: Optional[str] = Query(None, alias="boxNo"),
    saupj: Optional[str] = None,
    gateway: QueryGateway = Depends(get_gateway),
):
    return success(LookupService.box_stock(gateway, box_no, saupj))


@router.get("/vendor")
def outsourcing_vendors(keyword: str = "", gateway: QueryGateway = Depends(get_gateway)):
    return success(LookupService.outsourcing_vendors(gateway, keyword))


@router.post("")
def outsource(
    body: OutsourceRequest,
    principal: Optional[dict] = Depends(get_principal),
    gateway: QueryGateway = Depends(get_gateway),
):
    """Outsourcing shipment-out of finished/semi-finished boxes, all or nothing by default"""
    ctx = build_context(principal, body.user_id, body.saupj).require(Permission.OUTSOURCE_CREATE)
    outcome = MaterialService.outsource(gateway, ctx, body, "outsourcing")
    outcome.raise_if_empty("No boxes were shipped out")
    return batch_success(outcome, "shipped out")
