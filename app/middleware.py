import logging
import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Per-request context variables
# ---------------------------------------------------------------------------

query_count_var: ContextVar[int] = ContextVar("query_count", default=0)
write_count_var: ContextVar[int] = ContextVar("write_count", default=0)

_WRITE_VERBS = ("INSERT", "UPDATE", "DELETE")


def is_write_statement(statement: str) -> bool:
    """True when *statement* mutates rows (INSERT / UPDATE / DELETE)."""
    return statement.lstrip().upper().startswith(_WRITE_VERBS)


def install_query_counter(engine) -> None:
    """
    Register a ``before_cursor_execute`` listener on *engine* that bumps
    ``query_count_var`` for every SQL statement and ``write_count_var``
    for every mutating one.

    Must be called once per engine (production engine in ``database.py``,
    test engine in ``conftest.py``).
    """
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _count_query(conn, cursor, statement, parameters, context, executemany):
        query_count_var.set(query_count_var.get() + 1)
        if is_write_statement(statement):
            write_count_var.set(write_count_var.get() + 1)


def reset_counters() -> None:
    query_count_var.set(0)
    write_count_var.set(0)


# ---------------------------------------------------------------------------
# Middleware (pure ASGI; BaseHTTPMiddleware would isolate the ContextVars)
# ---------------------------------------------------------------------------

class TimingMiddleware:
    """
    Pure ASGI middleware that adds diagnostic response headers:

    - ``X-Response-Time-Ms``: wall-clock time for the entire request.
    - ``X-Query-Count``: SQL statements executed during the request.
    - ``X-Write-Count``: how many of those were INSERT/UPDATE/DELETE.

    The counters are filled by the engine listener registered with
    ``install_query_counter``.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        reset_counters()
        start = time.perf_counter()

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                headers = list(message.get("headers", []))
                headers.append((b"x-response-time-ms", str(duration_ms).encode()))
                headers.append((b"x-query-count", str(query_count_var.get()).encode()))
                headers.append((b"x-write-count", str(write_count_var.get()).encode()))
                message["headers"] = headers
                logger.debug(
                    "%s %s -> %s in %sms (%d queries, %d writes)",
                    scope.get("method"),
                    scope.get("path"),
                    message.get("status"),
                    duration_ms,
                    query_count_var.get(),
                    write_count_var.get(),
                )
            await send(message)

        await self.app(scope, receive, send_wrapper)
