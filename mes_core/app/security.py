"""
Security Module for the PDA Back-end
====================================
- Secret key management
- bcrypt password hashing
- JWT access tokens (python-jose)
- Role-based access control with fine-grained permissions
- Explicit per-request context (acting user + business unit) handed to
  every ledger operation
"""

import hashlib
import logging
import os
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import FrozenSet, Optional, Set

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from .config import ANONYMOUS_ROLE, DEFAULT_SAUPJ, ENVIRONMENT, REQUIRE_AUTH, SYSTEM_USER
from .services.ledger_service import PermissionDenied

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION - Secure Defaults
# =============================================================================

def get_secret_key() -> str:
    """
    Get secret key from environment with validation.
    NEVER use a default secret key in production!
    """
    secret = os.getenv("MES_SECRET_KEY")

    if not secret:
        if ENVIRONMENT == "production":
            raise RuntimeError(
                "CRITICAL: MES_SECRET_KEY environment variable must be set in production! "
                "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
            )
        logger.warning("Using development secret key. Set MES_SECRET_KEY for production!")
        # Deterministic so tokens survive a hot reload
        secret = hashlib.sha256(b"mes-core-dev-key").hexdigest()

    if len(secret) < 32:
        raise RuntimeError("MES_SECRET_KEY must be at least 32 characters")

    return secret


SECRET_KEY = get_secret_key()
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("TOKEN_EXPIRE_MINUTES", "720"))  # one shift


# =============================================================================
# PASSWORD SECURITY
# =============================================================================

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash (legacy plain value in bma200)
        return False


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


# =============================================================================
# TOKEN MANAGEMENT
# =============================================================================

# auto_error off: the PDA may run without login when REQUIRE_AUTH is unset
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()

    now = datetime.utcnow()
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode.update({
        "exp": expire,
        "iat": now,
        "jti": secrets.token_urlsafe(16),
        "type": "access",
    })

    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """
    Decode and validate a JWT token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if payload.get("type") != "access" or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


# =============================================================================
# ROLE-BASED ACCESS CONTROL (RBAC)
# =============================================================================

class Permission:
    """Fine-grained permissions for shop-floor operations"""

    # Material / warehouse
    MATERIAL_VIEW = "material:view"
    MATERIAL_RECEIVE = "material:receive"
    MATERIAL_ISSUE = "material:issue"
    MATERIAL_RELEASE = "material:release"
    STOCK_ADJUST = "stock:adjust"  # stock-taking

    # Production
    PRODUCTION_VIEW = "production:view"
    PRODUCTION_INPUT = "production:input"
    WORK_ORDER_UPDATE = "work_order:update"

    # Quality
    QA_INSPECT = "qa:inspect"

    # Outbound
    SHIPMENT_CREATE = "shipment:create"
    SHIPMENT_CANCEL = "shipment:cancel"
    OUTSOURCE_CREATE = "outsource:create"
    RETURN_RECEIVE = "return:receive"
    RETURN_CANCEL = "return:cancel"


_ALL_PERMISSIONS = {
    value for name, value in vars(Permission).items() if name.isupper()
}

ROLE_PERMISSIONS: dict[str, Set[str]] = {
    "Admin": set(_ALL_PERMISSIONS),

    "Supervisor": set(_ALL_PERMISSIONS),

    "Operator": {
        Permission.MATERIAL_VIEW, Permission.MATERIAL_RECEIVE, Permission.MATERIAL_ISSUE,
        Permission.MATERIAL_RELEASE, Permission.STOCK_ADJUST,
        Permission.PRODUCTION_VIEW, Permission.PRODUCTION_INPUT, Permission.WORK_ORDER_UPDATE,
        Permission.QA_INSPECT,
        Permission.SHIPMENT_CREATE, Permission.OUTSOURCE_CREATE, Permission.RETURN_RECEIVE,
    },

    "Inspector": {
        Permission.MATERIAL_VIEW,
        Permission.PRODUCTION_VIEW,
        Permission.QA_INSPECT,
    },

    "Viewer": {
        Permission.MATERIAL_VIEW,
        Permission.PRODUCTION_VIEW,
    },
}


def get_role_permissions(role: str) -> Set[str]:
    """Get permissions for a role"""
    return ROLE_PERMISSIONS.get(role, set())


# =============================================================================
# REQUEST CONTEXT
# =============================================================================

@dataclass(frozen=True)
class RequestContext:
    """Who is acting, for which business unit, and with what rights."""
    user_id: str
    business_unit: str
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    authenticated: bool = False

    def has(self, permission: str) -> bool:
        return permission in self.permissions

    def require(self, *permissions: str) -> "RequestContext":
        missing = [p for p in permissions if p not in self.permissions]
        if missing:
            raise PermissionDenied(f"Missing permissions: {', '.join(missing)}")
        return self


async def get_principal(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[dict]:
    """
    Token claims for the caller, or None for an anonymous PDA.
    Anonymous access is refused when REQUIRE_AUTH is set.
    """
    if not token:
        if REQUIRE_AUTH:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return None
    return decode_token(token)


def build_context(
    principal: Optional[dict],
    user_id: Optional[str] = None,
    saupj: Optional[str] = None,
) -> RequestContext:
    """
    Token claims win over body fields; without a token the body values are
    used, falling back to the system user / default business unit.
    """
    if principal:
        return RequestContext(
            user_id=principal["sub"],
            business_unit=principal.get("saupj") or saupj or DEFAULT_SAUPJ,
            permissions=frozenset(get_role_permissions(principal.get("role", ""))),
            authenticated=True,
        )
    return RequestContext(
        user_id=(user_id or "").strip() or SYSTEM_USER,
        business_unit=(saupj or "").strip() or DEFAULT_SAUPJ,
        permissions=frozenset(get_role_permissions(ANONYMOUS_ROLE)),
        authenticated=False,
    )


def require_permission(*required_permissions: str):
    """
    Router-level read gate: builds the context from the token alone and
    checks permissions. Writes check their own permission on top.
    """
    async def permission_checker(principal: Optional[dict] = Depends(get_principal)) -> RequestContext:
        return build_context(principal).require(*required_permissions)

    return permission_checker
