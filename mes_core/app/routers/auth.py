import logging

from fastapi import APIRouter, Depends

from ..config import DEFAULT_SAUPJ
from ..gateway import QueryGateway, get_gateway
from ..response import error, server_error, success
from ..schemas import LoginRequest
from ..security import create_access_token, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
def login(body: LoginRequest, gateway: QueryGateway = Depends(get_gateway)):
    """PDA login. User ids are stored upper-case per business unit."""
    user_id = body.user_id.strip().upper()
    saupj = (body.saupj or "").strip() or DEFAULT_SAUPJ

    result = gateway.query(
        """
        SELECT user_id, user_name, password_hash, saupj, role, op_code, line_code, is_active
          FROM bma200
         WHERE user_id = :user_id
           AND saupj = :saupj
        """,
        {"user_id": user_id, "saupj": saupj},
    )
    if not result.success:
        return server_error("Login failed")

    user = result.data[0] if result.data else None
    if not user or not verify_password(body.password, user["password_hash"]):
        logger.warning("Failed login for %s/%s", saupj, user_id)
        return error("Invalid user ID or password", 401)
    if user["is_active"] is not None and not user["is_active"]:
        return error("User account is disabled", 401)

    token = create_access_token({"sub": user["user_id"], "saupj": user["saupj"], "role": user["role"]})
    logger.info("User %s logged in to business unit %s", user_id, saupj)
    return success({
        "userId": user["user_id"],
        "userName": user["user_name"],
        "saupj": user["saupj"],
        "opCode": user["op_code"] or "",
        "lineCode": user["line_code"] or "",
        "role": user["role"],
        "accessToken": token,
        "tokenType": "bearer",
    })
