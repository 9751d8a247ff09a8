"""Id-keyed record collector with last-write-wins semantics."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Generic, Protocol, TypeVar


class HasRecordId(Protocol):
    @property
    def record_id(self) -> str: ...


RecordT = TypeVar("RecordT", bound=HasRecordId)


class DedupCollector(Generic[RecordT]):
    """Merge overlapping page fetches into one collection keyed by ``record_id``.

    Re-inserting an id overwrites the stored record but keeps its original
    position, so ``materialize`` preserves first-seen order.
    """

    def __init__(self) -> None:
        self._records: dict[str, RecordT] = {}
        self._last_appended: RecordT | None = None

    def merge(self, records: Iterable[RecordT]) -> int:
        """Insert or overwrite records; return how many ids were new."""
        new_count = 0
        for record in records:
            record_id = record.record_id
            if not record_id:
                continue
            if record_id not in self._records:
                new_count += 1
            self._records[record_id] = record
            self._last_appended = record
        return new_count

    @property
    def size(self) -> int:
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def last_ids(self, count: int) -> tuple[str, ...]:
        if count <= 0:
            return ()
        ids = list(self._records)
        return tuple(ids[-count:])

    def last_record(self) -> RecordT | None:
        return self._last_appended

    def materialize(self, limit: int | None = None) -> tuple[RecordT, ...]:
        records = tuple(self._records.values())
        if limit is not None and limit >= 0:
            return records[:limit]
        return records
