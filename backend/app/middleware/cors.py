from __future__ import annotations

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send

# Public function routes answer CORS themselves (open to all origins).
CORS_BYPASS_PREFIXES = ("/functions/",)


def _is_cors_bypass_path(path: str) -> bool:
    return any(path.startswith(prefix) for prefix in CORS_BYPASS_PREFIXES)


class ConfiguredCORSMiddleware:
    """
    CORSMiddleware restricted to settings.CORS_ORIGINS, except for the public
    function routes, which are passed straight through to the app.
    """

    def __init__(self, app: ASGIApp, **cors_options) -> None:
        self.app = app
        self.cors = CORSMiddleware(app, **cors_options)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and _is_cors_bypass_path(scope.get("path", "")):
            await self.app(scope, receive, send)
            return
        await self.cors(scope, receive, send)
