"""
Batch summarization pipeline driven from a websocket connection.

Both flows report every outcome through the connection's event sink: the
caller has no return value to inspect, so errors are converted into
``processing-error`` events here rather than propagated.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Sequence

from resume_achievements.core.errors import (
    InputError,
    PipelineError,
    StorageError,
    TransientRemoteError,
)
from resume_achievements.models.session import FinalResult, SessionRecord, SummaryResult
from resume_achievements.schemas.events import (
    ChunkCompleted,
    ChunkProgress,
    ProcessingCancelled,
    ProcessingCompleted,
    ProcessingFailed,
    ProcessingStarted,
)
from resume_achievements.services.event_channel import EventSink
from resume_achievements.services.job_state import JobRegistry, JobState, Operation
from resume_achievements.services.session_store import SessionStore
from resume_achievements.services.summarizer import (
    RemoteSummarizer,
    parse_items,
    preview_lines,
)
from resume_achievements.services.tabular_batcher import TabularBatcher
from resume_achievements.services.temp_files import TempFileManager

logger = logging.getLogger(__name__)

DEGRADED_PLACEHOLDER = "Original CSV content (AI processing not available)"
CANCELLED_MESSAGE = "Processing cancelled by user"


class _Cancelled(Exception):
    """Internal signal: the run observed a cancellation request."""


class PipelineOrchestrator:
    """Run the summarize/deduplicate flow and the refine/export flow."""

    def __init__(
        self,
        *,
        store: SessionStore,
        files: TempFileManager,
        batcher: TabularBatcher,
        summarizer: RemoteSummarizer | None,
        jobs: JobRegistry,
    ) -> None:
        self._store = store
        self._files = files
        self._batcher = batcher
        self._summarizer = summarizer
        self._jobs = jobs

    @property
    def ai_enabled(self) -> bool:
        return self._summarizer is not None

    async def process(
        self,
        connection_id: str,
        selected_columns: Sequence[str],
        user_instruction: str | None,
        session: SessionRecord,
        sink: EventSink,
    ) -> None:
        """Summarize the session's dataset batch by batch, then deduplicate."""
        state = self._jobs.require(connection_id, session.session_id)
        try:
            columns = _validate_columns(selected_columns)
            dataset_path = _validate_dataset(session)
            run_id = state.start(Operation.PROCESSING)
        except PipelineError as exc:
            await sink.publish(_failure(exc))
            return

        try:
            await self._run_process(state, run_id, columns, user_instruction, session, dataset_path, sink)
        except _Cancelled:
            logger.info("Processing cancelled", extra={"session_id": session.session_id})
            await sink.publish(ProcessingCancelled(message=CANCELLED_MESSAGE))
        except PipelineError as exc:
            logger.warning("Processing failed: %s", exc.message, extra={"session_id": session.session_id})
            await sink.publish(_failure(exc))
        except Exception as exc:  # noqa: BLE001 - reported to the client as an event
            logger.exception("Unexpected processing failure", extra={"session_id": session.session_id})
            await sink.publish(ProcessingFailed(error=f"Processing failed: {exc}", can_retry=True))
        finally:
            state.finish(run_id)

    async def reprocess(
        self,
        connection_id: str,
        selected_items: Sequence[str],
        refinement_instruction: str | None,
        session: SessionRecord,
        sink: EventSink,
    ) -> None:
        """Optionally refine a curated subset and persist it for export."""
        state = self._jobs.require(connection_id, session.session_id)
        items = [item.strip() for item in selected_items or [] if item and item.strip()]
        try:
            if not items:
                raise InputError("No achievements selected")
            run_id = state.start(Operation.REPROCESSING)
        except PipelineError as exc:
            await sink.publish(_failure(exc))
            return

        try:
            await self._run_reprocess(state, run_id, items, refinement_instruction, session, sink)
        except _Cancelled:
            await sink.publish(ProcessingCancelled(message=CANCELLED_MESSAGE))
        except PipelineError as exc:
            logger.warning("Reprocessing failed: %s", exc.message, extra={"session_id": session.session_id})
            await sink.publish(_failure(exc))
        except Exception as exc:  # noqa: BLE001 - reported to the client as an event
            logger.exception("Unexpected reprocessing failure", extra={"session_id": session.session_id})
            await sink.publish(ProcessingFailed(error=f"Reprocessing failed: {exc}", can_retry=True))
        finally:
            state.finish(run_id)

    async def _run_process(
        self,
        state: JobState,
        run_id: int,
        columns: list[str],
        user_instruction: str | None,
        session: SessionRecord,
        dataset_path: Path,
        sink: EventSink,
    ) -> None:
        await sink.publish(ProcessingStarted(message="Starting processing..."))
        content = await asyncio.to_thread(self._files.read_text, dataset_path)

        if self._summarizer is None:
            achievements = [DEGRADED_PLACEHOLDER]
        else:
            achievements = await self._summarize(
                self._summarizer, state, run_id, content, columns, user_instruction, sink
            )

        _ensure_same_dataset(session, dataset_path)
        session.summary = SummaryResult(
            selected_columns=columns,
            instruction=user_instruction or None,
            achievements=achievements,
        )
        self._store.save(session)
        logger.info(
            "Processing completed",
            extra={"session_id": session.session_id, "achievements": len(achievements)},
        )
        await sink.publish(
            ProcessingCompleted(achievements=achievements, total_achievements=len(achievements))
        )

    async def _summarize(
        self,
        summarizer: RemoteSummarizer,
        state: JobState,
        run_id: int,
        content: str,
        columns: list[str],
        user_instruction: str | None,
        sink: EventSink,
    ) -> list[str]:
        records = self._batcher.parse(content, columns)
        if not records:
            raise InputError("No rows contain data in the selected fields")
        batches = self._batcher.create_batches(records)
        stats = self._batcher.estimate_stats(records)
        logger.info("Batched dataset", extra=stats.to_dict())

        total_steps = len(batches) + 1
        await sink.publish(
            ChunkProgress(
                current=0,
                total=total_steps,
                status=f"Starting processing of {len(batches)} chunks + deduplication...",
            )
        )

        outputs: list[str] = []
        for index, batch in enumerate(batches, start=1):
            if not state.is_active(run_id):
                raise _Cancelled()
            await sink.publish(
                ChunkProgress(
                    current=index,
                    total=total_steps,
                    status=f"Processing data chunk {index} of {len(batches)}...",
                )
            )
            try:
                result = await summarizer.summarize_batch(
                    self._batcher.format_for_remote(batch), user_instruction
                )
            except PipelineError as exc:
                exc.message = f"Failed to process chunk {index}: {exc.message}"
                raise
            outputs.append(result)
            await sink.publish(
                ChunkCompleted(
                    chunk_index=index,
                    progress=round(index / total_steps * 100),
                    partial_results=preview_lines(result),
                )
            )

        if not state.is_active(run_id):
            raise _Cancelled()
        await sink.publish(
            ChunkProgress(current=total_steps, total=total_steps, status="Performing final deduplication...")
        )
        merged = await summarizer.deduplicate_merged("\n\n".join(outputs))
        await sink.publish(
            ChunkCompleted(
                chunk_index=total_steps,
                progress=100,
                partial_results=["Deduplication completed successfully"],
            )
        )
        achievements = parse_items(merged)
        if not achievements:
            raise TransientRemoteError("The AI service returned no achievements")
        return achievements

    async def _run_reprocess(
        self,
        state: JobState,
        run_id: int,
        items: list[str],
        refinement_instruction: str | None,
        session: SessionRecord,
        sink: EventSink,
    ) -> None:
        dataset_path = _dataset_path(session)
        await sink.publish(ProcessingStarted(message="Starting reprocessing..."))

        summarizer = self._summarizer
        instruction = (refinement_instruction or "").strip()
        refine = bool(instruction) and summarizer is not None
        total_steps = 2 if refine else 1
        await sink.publish(
            ChunkProgress(
                current=1,
                total=total_steps,
                status="Preparing selected achievements..." if refine else "Finalizing selected achievements...",
            )
        )

        final_items = items
        if refine and summarizer is not None:
            if not state.is_active(run_id):
                raise _Cancelled()
            await sink.publish(
                ChunkProgress(current=2, total=total_steps, status="Applying additional processing...")
            )
            refined = await summarizer.refine_selection("\n".join(items), instruction)
            final_items = parse_items(refined)
            if not final_items:
                raise TransientRemoteError("The AI service returned no achievements")
            await sink.publish(
                ChunkCompleted(
                    chunk_index=total_steps,
                    progress=100,
                    partial_results=["Additional processing completed successfully"],
                )
            )
        else:
            await sink.publish(
                ChunkCompleted(chunk_index=1, progress=100, partial_results=["Achievement selection completed"])
            )

        _ensure_same_dataset(session, dataset_path)
        if session.final is not None and session.final.file_path is not None:
            self._files.release(session.final.file_path)
        export_path = await asyncio.to_thread(self._files.write_export, session.session_id, final_items)

        session.final = FinalResult(
            achievements=final_items,
            refinement_instruction=instruction or None,
            file_path=export_path,
        )
        self._store.save(session)
        logger.info(
            "Reprocessing completed",
            extra={"session_id": session.session_id, "achievements": len(final_items)},
        )
        await sink.publish(
            ProcessingCompleted(
                achievements=final_items,
                total_achievements=len(final_items),
                download_ready=True,
            )
        )


def _validate_columns(selected_columns: Sequence[str] | None) -> list[str]:
    columns = [column for column in selected_columns or [] if column and column.strip()]
    if not columns:
        raise InputError("No fields selected for processing")
    return columns


def _validate_dataset(session: SessionRecord) -> Path:
    if session.dataset is None:
        raise InputError("No CSV data found in session. Please upload a file first.")
    path = Path(session.dataset.file_path)
    if not path.exists():
        raise StorageError("CSV file no longer exists")
    return path


def _dataset_path(session: SessionRecord) -> Path | None:
    if session.dataset is None:
        return None
    return Path(session.dataset.file_path)


def _ensure_same_dataset(session: SessionRecord, dataset_path: Path | None) -> None:
    """Refuse to attach results to a dataset uploaded while the run was going."""
    if _dataset_path(session) != dataset_path:
        raise InputError("The dataset was replaced during processing. Please start again.")


def _failure(exc: PipelineError) -> ProcessingFailed:
    return ProcessingFailed(error=exc.message, can_retry=exc.can_retry)


__all__ = ["CANCELLED_MESSAGE", "DEGRADED_PLACEHOLDER", "PipelineOrchestrator"]
