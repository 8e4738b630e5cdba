"""
Webhook and read API for the QX event store.

Run with: qx-watcher serve --config config.yaml
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from .analysis.aggregates import (
    DAY_MS,
    activity_buckets,
    compute_kpi_stats,
    now_ms,
    top_wallets_by_volume,
)
from .config import Config
from .db import Repository
from .detection import WhaleClassifier
from .feed import InsertionBroadcaster
from .ingest import BatchMode, ConflictPolicy, EventNormalizer, EventWriter, WriteStatus
from .settings import SettingsStore

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def _webhook_response(body: dict, status_code: int) -> JSONResponse:
    return JSONResponse(content=body, status_code=status_code, headers=CORS_HEADERS)


class ThresholdUpdate(BaseModel):
    """Request to change one token's whale threshold."""

    amount: int = Field(..., ge=0, description="Whale threshold in token units")


async def _finish(task: asyncio.Task):
    """Cancel a background task and collect its outcome."""
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as e:
        logger.debug(f"Background task ended with an error: {e}")


def create_app(config: Config, settings: SettingsStore | None = None) -> FastAPI:
    """Build the FastAPI application around one repository and writer."""
    repository = Repository(config.database.path)
    broadcaster = InsertionBroadcaster()
    normalizer = EventNormalizer()
    writer = EventWriter(
        repository,
        normalizer=normalizer,
        broadcaster=broadcaster,
        conflict_policy=ConflictPolicy(config.ingest.conflict_policy),
        batch_mode=BatchMode(config.ingest.batch_mode),
    )
    settings = settings or SettingsStore(config.detection.settings_file)
    classifier = WhaleClassifier(settings, config.detection.default_threshold)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await repository.initialize()
        logger.info(
            f"Webhook ready at {config.server.webhook_path} "
            f"(conflict policy: {writer.conflict_policy.value}, "
            f"batch mode: {writer.batch_mode.value})"
        )
        yield
        await repository.close()

    app = FastAPI(
        title="QX Watcher",
        description="Ingests QX exchange events and serves them to dashboards",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.repository = repository
    app.state.writer = writer
    app.state.broadcaster = broadcaster
    app.state.classifier = classifier
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.options(config.server.webhook_path)
    async def webhook_preflight():
        return Response(status_code=200, headers=CORS_HEADERS)

    @app.post(config.server.webhook_path)
    async def webhook(request: Request):
        """Ingest one event object or an array of event objects."""
        raw = await request.body()
        try:
            body = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Webhook error: malformed JSON body: {e}")
            return _webhook_response(
                {"success": False, "error": f"Malformed JSON body: {e}"}, 500
            )

        logger.debug(f"Received webhook payload: {raw[:2000]!r}")

        try:
            outcome = await writer.ingest(body)
        except Exception as e:
            logger.error(f"Webhook error: {e}", exc_info=True)
            return _webhook_response({"success": False, "error": str(e)}, 500)

        if not outcome.success:
            content = {"success": False, "error": outcome.error}
            if outcome.batch:
                content["results"] = [r.to_dict() for r in outcome.results]
            return _webhook_response(content, 500)

        if outcome.batch:
            return _webhook_response(
                {
                    "success": True,
                    "results": [r.to_dict() for r in outcome.results],
                    "message": f"{len(outcome.results)} events processed",
                },
                200,
            )

        result = outcome.results[0]
        message = (
            "Event already processed"
            if result.status is WriteStatus.DUPLICATE
            else "Event processed successfully"
        )
        return _webhook_response(
            {"success": True, "event_id": result.event_id, "message": message}, 200
        )

    @app.get("/events")
    async def list_events(
        limit: int = Query(100, ge=1, le=1000, description="Maximum number of events"),
    ) -> list[dict]:
        """Most recently inserted events, newest first."""
        events = await repository.list_recent(limit)
        return [event.to_dict() for event in events]

    @app.get("/events/wallet/{address}")
    async def list_wallet_events(
        address: str,
        limit: int = Query(20, ge=1, le=500, description="Maximum number of events"),
    ) -> list[dict]:
        """Events where the wallet is source or destination, newest first."""
        events = await repository.list_by_wallet(address, limit)
        return [event.to_dict() for event in events]

    @app.get("/stats")
    async def stats() -> dict:
        """KPI summary, activity buckets and top wallets for the last 24 hours."""
        now = now_ms()
        events = await repository.list_since(now - DAY_MS)
        return {
            "kpi": asdict(compute_kpi_stats(events, classifier)),
            "activity": [asdict(bucket) for bucket in activity_buckets(events, now)],
            "top_wallets": [
                {"address": address, "volume": volume}
                for address, volume in top_wallets_by_volume(events)
            ],
            "whale_thresholds": settings.whale_thresholds,
        }

    @app.get("/settings/thresholds")
    async def get_thresholds() -> dict[str, int]:
        """Current token -> whale threshold map."""
        return settings.whale_thresholds

    @app.put("/settings/thresholds/{token}")
    async def put_threshold(token: str, update: ThresholdUpdate) -> dict[str, int]:
        """Change one token's threshold; applies to classification immediately."""
        settings.set_whale_threshold(token, update.amount)
        return settings.whale_thresholds

    @app.delete("/settings/thresholds")
    async def reset_thresholds() -> dict[str, int]:
        """Restore the default thresholds."""
        settings.reset_whale_thresholds()
        return settings.whale_thresholds

    @app.get("/health")
    async def health() -> dict:
        """Health check with ingestion counters."""
        return {
            "status": "healthy",
            "events_stored": await repository.count_events(),
            "payload_shapes": dict(normalizer.shape_counts),
            "stream_subscribers": broadcaster.subscriber_count,
        }

    @app.websocket("/ws/events")
    async def insertion_stream(websocket: WebSocket):
        """Push one message per newly inserted event."""
        await websocket.accept()
        queue = broadcaster.subscribe()

        async def forward():
            while True:
                event = await queue.get()
                await websocket.send_json({"type": "insert", "event": event.to_dict()})

        sender = asyncio.create_task(forward())
        try:
            # Reading is only needed to notice the client going away
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text("pong")
        except WebSocketDisconnect:
            logger.debug("Insertion stream client disconnected")
        finally:
            broadcaster.unsubscribe(queue)
            await _finish(sender)

    return app
