import logging
import typing

from fastapi.middleware.cors import CORSMiddleware
from starlette.datastructures import Headers
from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Receive, Scope, Send

log = logging.getLogger("uvicorn.error")


class AllowListCORSMiddleware(CORSMiddleware):
    """
    CORSMiddleware that refuses unknown origins outright instead of just
    leaving out the Access-Control-* headers.

    Requests without an Origin header (curl, server-to-server, same-origin)
    always pass. Matching is exact and case-sensitive unless
    `case_sensitive=False`.
    """

    def __init__(
        self,
        app: ASGIApp,
        allow_origins: typing.Sequence[str] = (),
        case_sensitive: bool = True,
        **kwargs: typing.Any,
    ) -> None:
        super().__init__(app, allow_origins=allow_origins, **kwargs)
        self.case_sensitive = case_sensitive
        self._folded_origins = {o.lower() for o in allow_origins}

    def is_allowed_origin(self, origin: str) -> bool:
        if self.case_sensitive:
            return super().is_allowed_origin(origin)
        return self.allow_all_origins or origin.lower() in self._folded_origins

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            origin = Headers(scope=scope).get("origin")
            if origin is not None and not self.is_allowed_origin(origin):
                log.warning(f"[cors] rejected origin {origin!r} for {scope.get('path')}")
                response = PlainTextResponse("Not allowed by CORS", status_code=403)
                await response(scope, receive, send)
                return
        await super().__call__(scope, receive, send)
