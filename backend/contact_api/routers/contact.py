# contact_api/routers/contact.py
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from contact_api.core.errors import ContactValidationError, DeliveryError
from contact_api.core.mailer import Mailer, build_message
from contact_api.core.rate_limit import enforce_rate_limit
from contact_api.core.settings import Settings
from contact_api.dependencies import get_mailer, get_settings
from contact_api.lib.validation import parse_submission, validate_submission

router = APIRouter(tags=["contact"])
log = logging.getLogger("uvicorn.error")

SEND_FAILED = "Failed to send email. Please try again later."


def _error(request: Request, status_code: int, message: str) -> JSONResponse:
    # returned responses bypass the dependency's Response, so copy quota headers by hand
    state = getattr(request.state, "rate_limit", None)
    headers = state.headers() if state is not None else None
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


async def _read_capped(request: Request, limit: int):
    """Read at most `limit` bytes of the body; None once the cap is exceeded."""
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        return None

    chunks = []
    total = 0
    async for chunk in request.stream():
        total += len(chunk)
        if total > limit:
            return None
        chunks.append(chunk)
    return b"".join(chunks)


async def _read_json(request: Request, limit: int):
    raw = await _read_capped(request, limit)
    if raw is None:
        return None, _error(request, 413, "Request body too large.")
    if not raw.strip():
        return {}, None
    try:
        return json.loads(raw), None
    except ValueError:
        return None, _error(request, 400, "Invalid JSON body.")


@router.post("/contact", dependencies=[Depends(enforce_rate_limit)])
async def contact(
    request: Request,
    settings: Settings = Depends(get_settings),
    mailer: Mailer = Depends(get_mailer),
):
    payload, failure = await _read_json(request, settings.max_body_bytes)
    if failure is not None:
        return failure

    submission = parse_submission(payload)

    # honeypot = silently succeed
    if submission.is_spam:
        log.info("[contact] honeypot filled, skipping send")
        return {"ok": True, "skip": True}

    try:
        validate_submission(submission)
    except ContactValidationError as e:
        return _error(request, 400, e.message)

    message = build_message(submission, settings)
    try:
        await mailer.send(message)
    except DeliveryError as e:
        log.error(f"[contact] mail error via {mailer.name}: {e.reason}")
        return _error(request, 500, e.reason if settings.expose_delivery_errors else SEND_FAILED)

    log.info(f"[contact] sent via {mailer.name} (source={submission.source})")
    return {"ok": True, "message": "Email sent successfully."}
