# -*- coding: utf-8 -*-
"""
Storage and audit ports.

Services receive a RecordStore and an AuditSink through their constructors.
The in-memory implementations here back the CLI, the MCP servers and the
tests; a database-backed store only needs to implement the same four calls.
"""
from __future__ import annotations

import abc
import copy
import typing as t
from dataclasses import dataclass, field
from datetime import datetime, timezone

Record = dict[str, t.Any]


class StorageError(RuntimeError):
    """Raised by a RecordStore when a read or write fails."""


class RecordStore(abc.ABC):
    """Key/value record storage grouped by collection name."""

    @abc.abstractmethod
    def put(self, collection: str, key: str, record: Record) -> None:
        ...

    @abc.abstractmethod
    def get(self, collection: str, key: str) -> t.Optional[Record]:
        ...

    @abc.abstractmethod
    def list(self, collection: str) -> list[Record]:
        ...

    @abc.abstractmethod
    def delete(self, collection: str, key: str) -> bool:
        ...


class InMemoryRecordStore(RecordStore):
    """Dict-backed store. Records are copied in and out."""

    def __init__(self):
        self._collections: dict[str, dict[str, Record]] = {}

    def put(self, collection: str, key: str, record: Record) -> None:
        self._collections.setdefault(collection, {})[key] = copy.deepcopy(record)

    def get(self, collection: str, key: str) -> t.Optional[Record]:
        record = self._collections.get(collection, {}).get(key)
        return copy.deepcopy(record) if record is not None else None

    def list(self, collection: str) -> list[Record]:
        return [copy.deepcopy(record) for record in self._collections.get(collection, {}).values()]

    def delete(self, collection: str, key: str) -> bool:
        return self._collections.get(collection, {}).pop(key, None) is not None


@dataclass(frozen=True)
class AuditEntry:
    """One recorded action, e.g. ANALYZE_REQUEST or PROCESS_SYLLABUS."""
    action: str
    user_id: str
    details: dict[str, t.Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class AuditSink(abc.ABC):

    @abc.abstractmethod
    def record(self, entry: AuditEntry) -> None:
        ...


class InMemoryAuditLog(AuditSink):
    """Keeps audit entries in arrival order."""

    def __init__(self):
        self.entries: list[AuditEntry] = []

    def record(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    def for_user(self, user_id: str) -> list[AuditEntry]:
        return [entry for entry in self.entries if entry.user_id == user_id]
