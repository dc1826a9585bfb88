from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..config import DEFAULT_SAUPJ
from ..gateway import QueryGateway, get_gateway
from ..response import success
from ..security import get_principal
from ..services.lookup_service import LookupService

router = APIRouter(prefix="/common", tags=["common"], dependencies=[Depends(get_principal)])


@router.get("/combo")
def combo(
    major_code: Optional[str] = Query(None, alias="majorCode"),
    gateway: QueryGateway = Depends(get_gateway),
):
    """Common code list (bma100) for one major code"""
    return success(LookupService.combo(gateway, major_code))


@router.get("/warehouses")
def warehouses(saupj: str = Query(DEFAULT_SAUPJ), gateway: QueryGateway = Depends(get_gateway)):
    return success(LookupService.warehouses(gateway, saupj))


@router.get("/lines")
def lines(
    saupj: str = Query(DEFAULT_SAUPJ),
    op_code: Optional[str] = Query(None, alias="opCode"),
    gateway: QueryGateway = Depends(get_gateway),
):
    return success(LookupService.lines(gateway, saupj, op_code))


@router.get("/processes")
def processes(saupj: str = Query(DEFAULT_SAUPJ), gateway: QueryGateway = Depends(get_gateway)):
    return success(LookupService.processes(gateway, saupj))
