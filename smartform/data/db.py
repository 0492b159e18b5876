from __future__ import annotations
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from smartform.common.events import ExerciseMode
from smartform.counter.pipeline import CalibrationProfile, RepThresholds

logger = logging.getLogger(__name__)

SCHEMA = r"""
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS calibration (
  key TEXT PRIMARY KEY,
  value REAL NOT NULL
);
"""


def _keys(mode: ExerciseMode):
    return f"{mode.value}_down", f"{mode.value}_up"


class CalibrationStore:
    """Key/value persistence for per-mode thresholds (curl_down, curl_up, ...)."""

    def __init__(self, db_path: Union[str, Path] = "./smartform.db"):
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path.as_posix(), check_same_thread=False)
            try:
                conn.executescript(SCHEMA)
                conn.commit()
            except sqlite3.Error:
                conn.close()
                raise
            self._conn = conn
        return self._conn

    def _rows(self) -> Dict[str, float]:
        cur = self.get_conn().execute("SELECT key, value FROM calibration")
        return {k: float(v) for k, v in cur.fetchall()}

    def load(self) -> CalibrationProfile:
        """Stored profile, falling back to defaults per missing or unreadable value."""
        profile = CalibrationProfile()
        try:
            with self._lock:
                rows = self._rows()
        except sqlite3.Error as e:
            logger.warning("calibration store unreadable (%s), using defaults", e)
            return profile

        for mode in ExerciseMode:
            down_key, up_key = _keys(mode)
            defaults = profile.for_mode(mode)
            down = rows.get(down_key, defaults.down_thresh)
            up = rows.get(up_key, defaults.up_thresh)
            try:
                profile = profile.with_mode(mode, RepThresholds(down_thresh=down, up_thresh=up))
            except ValueError as e:
                logger.warning("ignoring stored %s thresholds: %s", mode.value, e)
        return profile

    def save(self, profile: CalibrationProfile) -> None:
        values = []
        for mode in ExerciseMode:
            t = profile.for_mode(mode)
            down_key, up_key = _keys(mode)
            values += [(down_key, t.down_thresh), (up_key, t.up_thresh)]
        with self._lock:
            conn = self.get_conn()
            conn.executemany("INSERT OR REPLACE INTO calibration (key, value) VALUES (?,?)", values)
            conn.commit()
        logger.info("calibration profile saved to %s", self.db_path)

    def reset_to_defaults(self) -> None:
        with self._lock:
            conn = self.get_conn()
            conn.execute("DELETE FROM calibration")
            conn.commit()

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
