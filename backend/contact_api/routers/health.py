# contact_api/routers/health.py
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from contact_api.core.errors import DeliveryError
from contact_api.core.mailer import Mailer
from contact_api.core.settings import Settings
from contact_api.dependencies import get_mailer, get_settings

router = APIRouter(tags=["health"])
log = logging.getLogger("uvicorn.error")


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get("/")
async def root(settings: Settings = Depends(get_settings)):
    return {"ok": True, "service": settings.service_name, "time": _utc_now_iso()}


@router.get("/health")
async def health_root():
    return {"ok": True}


@router.get("/debug/verify")
async def debug_verify(mailer: Mailer = Depends(get_mailer)):
    """Check that the configured mail backend is reachable without sending anything."""
    try:
        details = await mailer.verify()
    except DeliveryError as e:
        log.error(f"[verify] {mailer.name} failed: {e.reason}")
        return JSONResponse(status_code=500, content={"ok": False, "error": e.reason})
    except Exception as e:
        log.exception(f"[verify] {mailer.name} failed unexpectedly")
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})
    return {"ok": True, "backend": mailer.name, **details}
