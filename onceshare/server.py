import time
from datetime import datetime

from fastapi import FastAPI, Request

from . import config
from .handler import OneShotHandler
from .logging_config import access_log, log


ALL_METHODS = ("GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "TRACE", "CONNECT")


def _request_target(request: Request, token: str) -> str:
    """Raw request target for the access log, with the token masked when configured."""
    raw_path = request.scope.get("raw_path") or request.url.path.encode("utf-8")
    target = raw_path.decode("latin-1") if isinstance(raw_path, bytes) else str(raw_path)
    query = request.scope.get("query_string") or b""
    if query:
        target += "?" + query.decode("latin-1")
    if config.REDACT_TOKEN and token:
        target = target.replace(token, "***")
    return target


def create_app(handler: OneShotHandler) -> FastAPI:
    """Build the ASGI application that routes every request through `handler`."""
    app = FastAPI(
        title=f"onceshare {config.VERSION}",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    token = handler.session.token

    @app.middleware("http")
    async def http_log_middleware(request: Request, call_next):
        """Write one common-log-format line per request."""
        started = time.perf_counter()
        method = str(request.method or "")
        target = _request_target(request, token)
        try:
            response = await call_next(request)
        except Exception:
            log.exception("HTTP %s %s -> 500", method, target)
            raise

        dt_ms = (time.perf_counter() - started) * 1000.0
        host = request.client.host if request.client else "-"
        stamp = datetime.now().astimezone().strftime("%d/%b/%Y:%H:%M:%S %z")
        version = request.scope.get("http_version", "1.1")
        size = response.headers.get("content-length", "-")
        access_log.info(
            '%s - - [%s] "%s %s HTTP/%s" %s %s',
            host,
            stamp,
            method,
            target,
            version,
            response.status_code,
            size,
        )
        log.debug("HTTP %s %s -> %s in %.1fms", method, target, response.status_code, dt_ms)
        return response

    # Every method must reach the handler so non-GET requests get 400, not 405.
    app.add_route("/{path:path}", handler.handle, methods=list(ALL_METHODS), include_in_schema=False)
    return app
