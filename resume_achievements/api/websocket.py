"""
Websocket endpoint that drives the processing pipeline for one browser tab.

Each connection owns an ``EventChannel`` drained by a sender task, so pipeline
events reach the client in publish order while inbound commands (notably
``cancel-processing``) keep being read during a run.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from resume_achievements.core.errors import JobAlreadyRunningError, PipelineError
from resume_achievements.dependencies import (
    get_app_settings,
    get_job_registry,
    get_pipeline_orchestrator,
    get_session_store,
)
from resume_achievements.schemas import (
    ProcessingCancelled,
    ProcessingFailed,
    ProcessingRequest,
    ReprocessingRequest,
    SocketCommand,
)
from resume_achievements.services import (
    EventChannel,
    JobRegistry,
    PipelineOrchestrator,
    SessionStore,
)

router = APIRouter()
logger = logging.getLogger(__name__)

CANCEL_ACKNOWLEDGED = "Processing cancelled successfully"
NOTHING_TO_CANCEL = "No cancellable operation in progress"


class ProcessingConnection:
    """Command dispatch for a single websocket connection."""

    def __init__(
        self,
        connection_id: str,
        session_id: str,
        *,
        orchestrator: PipelineOrchestrator,
        jobs: JobRegistry,
        store: SessionStore,
        channel: EventChannel,
    ) -> None:
        self.connection_id = connection_id
        self.session_id = session_id
        self._orchestrator = orchestrator
        self._jobs = jobs
        self._store = store
        self._channel = channel
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def dispatch(self, raw: Any) -> None:
        try:
            command = SocketCommand.model_validate(raw)
        except ValidationError:
            await self._fail("Invalid message format")
            return

        if command.type == "start-processing":
            await self._start_processing(command.data)
        elif command.type == "start-reprocessing":
            await self._start_reprocessing(command.data)
        elif command.type == "cancel-processing":
            await self._cancel()
        else:
            await self._fail(f"Unknown command: {command.type}")

    async def _start_processing(self, data: dict) -> None:
        try:
            request = ProcessingRequest.model_validate(data)
        except ValidationError:
            await self._fail("Invalid processing request")
            return
        try:
            self._ensure_idle()
            record = self._store.resolve(self.session_id, "dataset")
        except PipelineError as exc:
            await self._channel.publish(ProcessingFailed(error=exc.message, can_retry=exc.can_retry))
            return
        self._task = asyncio.create_task(
            self._orchestrator.process(
                self.connection_id,
                request.selected_fields,
                request.ai_prompt,
                record,
                self._channel,
            )
        )

    async def _start_reprocessing(self, data: dict) -> None:
        try:
            request = ReprocessingRequest.model_validate(data)
        except ValidationError:
            await self._fail("Invalid reprocessing request")
            return
        try:
            self._ensure_idle()
            record = self._store.resolve(self.session_id, "summary")
        except PipelineError as exc:
            await self._channel.publish(ProcessingFailed(error=exc.message, can_retry=exc.can_retry))
            return
        self._task = asyncio.create_task(
            self._orchestrator.reprocess(
                self.connection_id,
                request.selected_achievements,
                request.additional_prompt,
                record,
                self._channel,
            )
        )

    async def _cancel(self) -> None:
        if self._jobs.cancel(self.connection_id):
            await self._channel.publish(ProcessingCancelled(message=CANCEL_ACKNOWLEDGED))
        else:
            await self._fail(NOTHING_TO_CANCEL)

    def _ensure_idle(self) -> None:
        if self.running:
            raise JobAlreadyRunningError(
                "A processing run is already in progress for this connection."
            )

    async def _fail(self, message: str) -> None:
        await self._channel.publish(ProcessingFailed(error=message))

    async def close(self) -> None:
        """Stop any run still in flight and forget the connection's job state."""
        self._jobs.cancel(self.connection_id)
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._jobs.remove(self.connection_id)
        self._channel.close()


async def _send_events(websocket: WebSocket, channel: EventChannel) -> None:
    async for event in channel:
        try:
            await websocket.send_json(event.to_message())
        except (WebSocketDisconnect, RuntimeError):
            logger.debug("Client went away before event %s was delivered", event.event)
            return


@router.websocket("/ws")
async def processing_socket(
    websocket: WebSocket,
    orchestrator: Annotated[Any, Depends(get_pipeline_orchestrator)],
    jobs: Annotated[Any, Depends(get_job_registry)],
    store: Annotated[Any, Depends(get_session_store)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> None:
    """Accept commands and stream pipeline events until the client disconnects."""
    await websocket.accept()
    connection_id = uuid.uuid4().hex
    session_id = websocket.cookies.get(settings.session.cookie_name) or uuid.uuid4().hex
    jobs.initialize(connection_id, session_id)
    store.touch(session_id)

    channel = EventChannel()
    connection = ProcessingConnection(
        connection_id,
        session_id,
        orchestrator=orchestrator,
        jobs=jobs,
        store=store,
        channel=channel,
    )
    sender = asyncio.create_task(_send_events(websocket, channel))
    logger.info("Websocket connected", extra={"connection_id": connection_id, "session_id": session_id})

    try:
        while True:
            try:
                raw = await websocket.receive_json()
            except json.JSONDecodeError:
                await channel.publish(ProcessingFailed(error="Invalid message format"))
                continue
            await connection.dispatch(raw)
    except WebSocketDisconnect:
        logger.info("Websocket disconnected", extra={"connection_id": connection_id})
    finally:
        await connection.close()
        await sender


__all__ = ["ProcessingConnection", "router"]
