from typing import Dict, Optional, Sequence

from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

ALLOW_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
ALLOW_HEADERS = ["Content-Type", "Authorization"]


def cors_headers(origin: Optional[str], allowed_origins: Sequence[str]) -> Dict[str, str]:
    headers = {
        "Access-Control-Allow-Methods": ", ".join(ALLOW_METHODS),
        "Access-Control-Allow-Headers": ", ".join(ALLOW_HEADERS),
    }
    if origin and origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
    return headers


class AllowlistCORSMiddleware(CORSMiddleware):
    """CORSMiddleware whose preflight answer is always 204.

    Origins outside the allowlist get no Access-Control-Allow-Origin header, which the browser
    treats as a refusal.
    """

    def __init__(self, app: ASGIApp, allow_origins: Sequence[str] = ()) -> None:
        super().__init__(
            app,
            allow_origins=list(allow_origins),
            allow_methods=ALLOW_METHODS,
            allow_headers=ALLOW_HEADERS,
        )
        self.allowlist = list(allow_origins)

    def preflight_response(self, request_headers: Headers) -> Response:
        return Response(status_code=204, headers=cors_headers(request_headers.get("origin"), self.allowlist))
