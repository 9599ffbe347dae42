from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any

from core.config import SESSION_HISTORY_LIMIT

logger = logging.getLogger("coach.report.history")


class SessionHistoryStore:
    """
    Bounded, newest-first list of completed session records.

    When a path is given the list is mirrored to a JSON file after every
    mutation (tmp file + replace).
    """

    def __init__(self, path: str | Path | None = None, limit: int = SESSION_HISTORY_LIMIT):
        self._lock = Lock()
        self._limit = max(1, int(limit))
        self._path = Path(path) if path else None
        self._records: list[dict[str, Any]] = []
        self._load()

    @property
    def limit(self) -> int:
        return self._limit

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("session history unreadable, starting empty | path=%s err=%s", self._path, exc)
            return
        if isinstance(payload, list):
            self._records = [item for item in payload if isinstance(item, dict)][: self._limit]

    def _persist(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(self._records, ensure_ascii=False, default=str), encoding="utf-8")
        temp_path.replace(self._path)

    def save_session(self, record: dict[str, Any]) -> None:
        with self._lock:
            self._records.insert(0, dict(record))
            evicted = len(self._records) - self._limit
            if evicted > 0:
                del self._records[self._limit:]
                logger.info("session history capped | evicted=%s limit=%s", evicted, self._limit)
            self._persist()

    def list_sessions(self, limit: int | None = None) -> list[dict[str, Any]]:
        with self._lock:
            rows = list(self._records)
        if limit is None:
            return rows
        return rows[: max(0, int(limit))]

    def get_session(self, session_id: str) -> dict[str, Any] | None:
        sid = str(session_id or "").strip()
        with self._lock:
            for record in self._records:
                if str(record.get("id")) == sid:
                    return dict(record)
        return None

    def clear(self) -> None:
        with self._lock:
            self._records = []
            self._persist()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
