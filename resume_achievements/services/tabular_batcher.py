"""Parse uploaded CSV content and group rows into token-bounded batches."""

from __future__ import annotations

import csv
import io
import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, Mapping, Sequence

from resume_achievements.core.config import BatchingSettings
from resume_achievements.core.errors import InputError

logger = logging.getLogger(__name__)

Record = Mapping[str, str]

_BOM = "\ufeff"


@dataclass(frozen=True, slots=True)
class Batch:
    """Contiguous run of records sent to the model in one request."""

    records: tuple[Record, ...]
    estimated_tokens: int

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)


@dataclass(frozen=True, slots=True)
class BatchStats:
    total_records: int
    batch_count: int
    avg_batch_size: float
    estimated_tokens_per_batch: float

    def to_dict(self) -> dict[str, float | int]:
        return {
            "totalRecords": self.total_records,
            "batchCount": self.batch_count,
            "avgBatchSize": self.avg_batch_size,
            "estimatedTokensPerBatch": self.estimated_tokens_per_batch,
        }


class TabularBatcher:
    """Turn raw CSV text into records and records into batches.

    Token cost of a record is estimated from the length of its rendered
    ``- column: value`` lines, so the estimate tracks what is actually sent.
    """

    def __init__(
        self,
        *,
        max_batch_tokens: int = 6000,
        chars_to_tokens_factor: float = 0.25,
        max_records_per_batch: int | None = None,
    ) -> None:
        if max_batch_tokens < 1:
            raise ValueError("max_batch_tokens must be positive")
        if chars_to_tokens_factor <= 0:
            raise ValueError("chars_to_tokens_factor must be positive")
        self._max_batch_tokens = max_batch_tokens
        self._factor = chars_to_tokens_factor
        self._max_records = max_records_per_batch

    @classmethod
    def from_settings(cls, settings: BatchingSettings) -> "TabularBatcher":
        return cls(
            max_batch_tokens=settings.max_batch_tokens,
            chars_to_tokens_factor=settings.chars_to_tokens_factor,
            max_records_per_batch=settings.max_records_per_batch,
        )

    @property
    def max_batch_tokens(self) -> int:
        return self._max_batch_tokens

    def get_headers(self, raw_text: str) -> list[str]:
        """Return the header row in order, duplicates included."""
        reader = csv.reader(io.StringIO(_strip_bom(raw_text)))
        for row in _iter_rows(reader):
            headers = [cell.strip() for cell in row]
            if any(headers):
                return headers
        raise InputError("CSV content has no header row")

    def count_rows(self, raw_text: str) -> int:
        """Count non-blank data rows below the header."""
        reader = csv.reader(io.StringIO(_strip_bom(raw_text)))
        rows = [row for row in _iter_rows(reader) if any(cell.strip() for cell in row)]
        return max(0, len(rows) - 1)

    def parse(self, raw_text: str, selected_columns: Sequence[str]) -> list[Record]:
        """Return records holding only ``selected_columns``.

        Rows whose selected cells are all blank are dropped. Rows the CSV
        reader cannot decode are skipped.
        """
        reader = csv.reader(io.StringIO(_strip_bom(raw_text)))
        rows = _iter_rows(reader)

        headers: list[str] | None = None
        for row in rows:
            candidate = [cell.strip() for cell in row]
            if any(candidate):
                headers = candidate
                break
        if headers is None:
            return []

        wanted = set(selected_columns)
        positions: dict[str, int] = {}
        for index, name in enumerate(headers):
            if name in wanted and name not in positions:
                positions[name] = index
        # Preserve the caller's column order in every record.
        ordered = [name for name in dict.fromkeys(selected_columns) if name in positions]

        records: list[Record] = []
        for row in rows:
            values = {
                name: (row[positions[name]].strip() if positions[name] < len(row) else "")
                for name in ordered
            }
            if not any(values.values()):
                continue
            records.append(MappingProxyType(values))
        return records

    def estimate_tokens(self, record: Record) -> int:
        return math.ceil(len(_render_fields(record)) * self._factor)

    def create_batches(self, records: Sequence[Record]) -> list[Batch]:
        """Greedily pack records, closing a batch when the next would overflow."""
        batches: list[Batch] = []
        current: list[Record] = []
        current_tokens = 0

        for record in records:
            cost = self.estimate_tokens(record)
            over_budget = current_tokens + cost > self._max_batch_tokens
            over_count = self._max_records is not None and len(current) >= self._max_records
            if current and (over_budget or over_count):
                batches.append(Batch(tuple(current), current_tokens))
                current, current_tokens = [], 0
            current.append(record)
            current_tokens += cost

        if current:
            batches.append(Batch(tuple(current), current_tokens))
        return batches

    @staticmethod
    def format_for_remote(batch: Batch | Sequence[Record]) -> str:
        blocks = []
        for index, record in enumerate(batch, start=1):
            blocks.append(f"Item {index}:\n{_render_fields(record)}\n")
        return "".join(blocks)

    def estimate_stats(self, records: Sequence[Record]) -> BatchStats:
        batches = self.create_batches(records)
        count = len(batches)
        if not count:
            return BatchStats(len(records), 0, 0.0, 0.0)
        total_tokens = sum(batch.estimated_tokens for batch in batches)
        return BatchStats(
            total_records=len(records),
            batch_count=count,
            avg_batch_size=round(len(records) / count, 2),
            estimated_tokens_per_batch=round(total_tokens / count, 2),
        )


def _render_fields(record: Record) -> str:
    return "".join(
        f"- {key}: {value}\n" for key, value in record.items() if value and value.strip()
    )


def _strip_bom(raw_text: str) -> str:
    return raw_text[1:] if raw_text.startswith(_BOM) else raw_text


def _iter_rows(reader: Iterator[list[str]]) -> Iterator[list[str]]:
    """Yield rows, logging and skipping any the reader rejects."""
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as exc:
            logger.warning("Skipping unreadable CSV row: %s", exc)
            continue
        yield row


__all__ = ["Batch", "BatchStats", "Record", "TabularBatcher"]
