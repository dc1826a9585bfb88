from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..gateway import QueryGateway, get_gateway
from ..response import success
from ..security import Permission, require_permission
from ..services.lookup_service import LookupService

router = APIRouter(
    prefix="/quality", tags=["quality"],
    dependencies=[Depends(require_permission(Permission.PRODUCTION_VIEW))],
)


@router.get("/kanban-check")
def kanban_check(
    kanban_no: Optional[str] = Query(None, alias="kanbanNo"),
    gateway: QueryGateway = Depends(get_gateway),
):
    """Classify a scanned kanban as valid / invalid / expired"""
    return success(LookupService.kanban_check(gateway, kanban_no))
