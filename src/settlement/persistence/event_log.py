"""Append-only event log — the audit trail of every delivered instruction.

Accepted and rejected instructions both produce an event. Events are
immutable once written; each carries the SHA-256 of its canonical JSON
form so a persisted log can be verified on reload.

File format: JSONL, one event per line, keys sorted.
"""

from __future__ import annotations

import enum
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    """Classification of settlement events."""
    CONTRACT_DEPLOYED = "contract_deployed"
    CONTRACT_FUNDED = "contract_funded"
    ACCOUNT_MINTED = "account_minted"
    TRANSFER_SETTLED = "transfer_settled"
    COMMISSION_RATE_CHANGED = "commission_rate_changed"
    FUNDS_WITHDRAWN = "funds_withdrawn"
    PARTNER_SHARE_SET = "partner_share_set"
    PARTNER_SHARE_REMOVED = "partner_share_removed"
    INSTRUCTION_REJECTED = "instruction_rejected"


def _canonical_hash(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    actor_id: str,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "timestamp_utc": timestamp_utc,
            "actor_id": actor_id,
            "payload": payload,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable settlement event."""
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        """Create a new event record with computed hash."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.strftime("%Y-%m-%dT%H:%M:%SZ")
        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            actor_id=actor_id,
            payload=payload,
            event_hash=_canonical_hash(
                event_id, event_kind.value, ts_str, actor_id, payload,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "event_hash": self.event_hash,
        }


class EventLog:
    """Append-only event log with optional JSONL persistence.

    Loading is fail-closed: a tampered record (hash mismatch), a record
    with missing fields or a duplicate event ID aborts the load with
    ValueError.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._event_ids: set[str] = set()
        self._storage_path = storage_path

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, event: EventRecord) -> None:
        """Append an event. Raises ValueError on a duplicate event_id."""
        if event.event_id in self._event_ids:
            raise ValueError(f"Duplicate event ID: {event.event_id}")
        if self._storage_path:
            self._append_to_file(event)
        self._events.append(event)
        self._event_ids.add(event.event_id)

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.event_kind == kind]

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def _append_to_file(self, event: EventRecord) -> None:
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)
                try:
                    event = self._parse_record(data, line_num)
                except (KeyError, TypeError) as e:
                    raise ValueError(
                        f"Malformed event record (line {line_num}): missing or invalid {e}"
                    ) from e
                self._events.append(event)
                self._event_ids.add(event.event_id)
        logger.debug("Loaded %d events from %s", len(self._events), path)

    def _parse_record(self, data: dict[str, Any], line_num: int) -> EventRecord:
        event_id = data["event_id"]
        if event_id in self._event_ids:
            raise ValueError(
                f"Duplicate event ID on load (line {line_num}): {event_id}"
            )
        expected = _canonical_hash(
            event_id,
            data["event_kind"],
            data["timestamp_utc"],
            data["actor_id"],
            data["payload"],
        )
        if data["event_hash"] != expected:
            raise ValueError(
                f"Integrity check failed (line {line_num}): event {event_id} "
                f"stored hash {data['event_hash']} != computed {expected}"
            )
        return EventRecord(
            event_id=event_id,
            event_kind=EventKind(data["event_kind"]),
            timestamp_utc=data["timestamp_utc"],
            actor_id=data["actor_id"],
            payload=data["payload"],
            event_hash=data["event_hash"],
        )
