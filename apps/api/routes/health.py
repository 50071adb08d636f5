from datetime import datetime, timezone

from fastapi import APIRouter, Request

from apps.api.services.etickets import ETicketStoreUnavailableError

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Public health probe")
async def healthcheck(request: Request) -> dict[str, str]:
    store = getattr(request.app.state, "eticket_store", None)
    database = "unavailable"
    if store is not None:
        try:
            await store.ping()
        except ETicketStoreUnavailableError:
            database = "unavailable"
        else:
            database = "ok"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
