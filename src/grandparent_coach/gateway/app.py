import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from loguru import logger

from grandparent_coach.gateway.errors import GatewayError, error_response
from grandparent_coach.gateway.schemas import (
    CoachRequest,
    ContentResponse,
    ErrorResponse,
    SummarizeRequest,
)
from grandparent_coach.gateway.service import CoachingGateway, GatewayReply


def caller_identity(request: Request) -> str:
    """Resolve the rate-limit key for a request.

    Priority:
    1. X-Caller-Id (set by the app for signed-in users)
    2. Authorization bearer token
    3. X-Forwarded-For (first hop) / X-Real-IP
    4. request.client.host
    """
    caller = request.headers.get("X-Caller-Id")
    if caller and caller.strip():
        return f"caller:{caller.strip()}"

    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer ") and auth[7:].strip():
        return f"token:{auth[7:].strip()}"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return f"ip:{real_ip.strip()}"
    if request.client:
        return f"ip:{request.client.host}"
    return "unknown"


async def _sweep_forever(gateway: CoachingGateway, interval_seconds: float) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        gateway.rate_limiter.sweep()


def create_app(gateway: CoachingGateway, *, sweep_interval_seconds: float = 60.0) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI):
        task = asyncio.create_task(_sweep_forever(gateway, sweep_interval_seconds))
        try:
            yield
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    app = FastAPI(title="Grandparent Coach gateway", lifespan=lifespan)
    app.state.gateway = gateway

    @app.exception_handler(GatewayError)
    async def _gateway_error_handler(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.error}: {exc.message}")
        return error_response(exc)

    @app.get("/health")
    async def health() -> dict:
        return {"ok": True}

    @app.post(
        "/coach",
        response_model=ContentResponse,
        responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    )
    async def coach(body: CoachRequest, request: Request, response: Response) -> ContentResponse:
        reply = await gateway.coach(body, caller_identity(request))
        return _to_response(reply, response)

    @app.post(
        "/summarize",
        response_model=ContentResponse,
        responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    )
    async def summarize(body: SummarizeRequest, request: Request, response: Response) -> ContentResponse:
        reply = await gateway.summarize(body, caller_identity(request))
        return _to_response(reply, response)

    return app


def _to_response(reply: GatewayReply, response: Response) -> ContentResponse:
    for key, value in reply.headers.items():
        response.headers[key] = value
    safety = None if reply.safety.value == "safe" else reply.safety.value
    return ContentResponse(content=reply.content, safety=safety)
