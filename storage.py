# storage.py
#
# Small key-value blob store for user preferences and cached projection rows.
# Values are JSON; the sqlite store keeps one row per key.

from __future__ import annotations

import copy
import json
import sqlite3
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

from config import STORE_PATH  # type: ignore[import]
from models import ProjectionRow  # type: ignore[import]

PROJECTIONS_SCHEMA = 1
PREFERENCES_KEY = "preferences"

DEFAULT_PREFERENCES: Dict[str, Any] = {
    "exclude_dynasty": None,      # None = config default
    "opponent_optimal": None,
    "waiver_min_gain": None,
    "league_keys": [],            # empty = every configured league
}


class KeyValueStore(Protocol):
    def load(self, key: str) -> Optional[Any]: ...

    def save(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Process-local store; values are JSON round-tripped like the sqlite one."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def load(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def save(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SqliteKeyValueStore:
    def __init__(self, path: Union[str, Path] = STORE_PATH):
        self.path = Path(path)
        conn = self._get_conn()
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        conn.commit()
        conn.close()

    def _get_conn(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def load(self, key: str) -> Optional[Any]:
        conn = self._get_conn()
        row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        conn.close()
        if row is None:
            return None
        return json.loads(row["value"])

    def save(self, key: str, value: Any) -> None:
        conn = self._get_conn()
        conn.execute(
            """
            INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, json.dumps(value), datetime.now(timezone.utc).isoformat()),
        )
        conn.commit()
        conn.close()

    def delete(self, key: str) -> None:
        conn = self._get_conn()
        conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        conn.commit()
        conn.close()


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------


def projections_key(season: int, week: int) -> str:
    return f"proj_{season}_w{week}"


def save_projections(store: KeyValueStore, season: int, week: int, rows: List[ProjectionRow]) -> None:
    payload = {
        "schema": PROJECTIONS_SCHEMA,
        "updated_at": datetime.now(timezone.utc).isoformat(),
        "rows": [dict(asdict(r), stats=dict(r.stats)) for r in rows],
    }
    store.save(projections_key(season, week), payload)


def load_projections(store: KeyValueStore, season: int, week: int) -> Optional[List[ProjectionRow]]:
    """Cached rows, or None if absent or written under another schema."""
    payload = store.load(projections_key(season, week))
    if not isinstance(payload, dict) or payload.get("schema") != PROJECTIONS_SCHEMA:
        return None
    return [ProjectionRow(**r) for r in payload.get("rows") or []]


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


def load_preferences(store: KeyValueStore) -> Dict[str, Any]:
    """Stored preferences over the defaults; unknown keys are dropped."""
    prefs = copy.deepcopy(DEFAULT_PREFERENCES)
    stored = store.load(PREFERENCES_KEY)
    if isinstance(stored, dict):
        prefs.update({k: v for k, v in stored.items() if k in DEFAULT_PREFERENCES})
    return prefs


def save_preferences(store: KeyValueStore, prefs: Dict[str, Any]) -> Dict[str, Any]:
    merged = load_preferences(store)
    merged.update({k: v for k, v in prefs.items() if k in DEFAULT_PREFERENCES})
    store.save(PREFERENCES_KEY, merged)
    return merged
