import os
from pathlib import Path


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _csv(name: str, default: str) -> frozenset:
    raw = os.getenv(name, default)
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Prefer explicit DATABASE_URL. Otherwise a local SQLite file in a `data/`
# folder next to the package.
DATABASE_URL = os.getenv("DATABASE_URL") or (
    "sqlite:///" + (Path(__file__).resolve().parents[1] / "data" / "mes_core.db").as_posix()
)

# Sentinels used when a request body omits the business unit / acting user
DEFAULT_SAUPJ = os.getenv("DEFAULT_SAUPJ", "10")
SYSTEM_USER = os.getenv("SYSTEM_USER", "SYSTEM")

REQUIRE_AUTH = _flag("REQUIRE_AUTH")
ANONYMOUS_ROLE = os.getenv("ANONYMOUS_ROLE", "Operator")
EXPOSE_DRIVER_ERRORS = _flag("EXPOSE_DRIVER_ERRORS")

# Ledger operations that apply all-or-nothing per batch. Anything not listed
# runs one transaction per line item.
BATCH_ATOMIC_OPERATIONS = _csv(
    "BATCH_ATOMIC_OPERATIONS",
    "issue_slip,shipment,shipment_cancel,outsourcing,return_individual,return_receive,"
    "return_cancel,repack,production_result",
)


def get_cors_origins():
    """Get CORS origins from environment or use defaults for development"""
    origins_env = os.getenv("CORS_ORIGINS", "")
    if origins_env:
        return [o.strip() for o in origins_env.split(",") if o.strip()]
    return [
        "http://127.0.0.1:3000",
        "http://localhost:3000",
        "http://127.0.0.1:8080",
        "http://localhost:8080",
    ]
