from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slack_bolt.adapter.fastapi.async_handler import AsyncSlackRequestHandler
from slack_bolt.async_app import AsyncApp

from .logger_factory import get_logger


def create_app(slack_app: AsyncApp) -> FastAPI:
    """Events API endpoint for deployments that cannot use Socket Mode."""
    log = get_logger("HTTP")
    app = FastAPI(title="Suplo Slack bot")
    handler = AsyncSlackRequestHandler(slack_app)

    @app.post("/slack/events")
    async def slack_events(req: Request):
        return await handler.handle(req)

    @app.get("/healthz")
    async def healthz():
        return JSONResponse({"status": "ok"})

    log.info("http-routes-ready paths=/slack/events,/healthz")
    return app
