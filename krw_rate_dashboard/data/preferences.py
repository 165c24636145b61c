"""SQLite key-value store for notification preferences."""

import json
import logging
import sqlite3
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

from krw_rate_dashboard.models import NotificationPreferences


logger = logging.getLogger(__name__)

PREFERENCES_KEY = "notificationSettings"


class PreferenceStore:
    """SQLite-backed key-value store.

    Preferences are only recorded; nothing here sends email.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

    def get(self, key: str) -> str | None:
        """Return the raw stored value for a key, if any."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?",
                (key,),
            ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        """Store or replace a raw value."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO kv_store (key, value, updated_at)
                VALUES (?, ?, ?)
                """,
                (key, value, datetime.now().isoformat()),
            )

    def load(self) -> NotificationPreferences:
        """
        Read notification preferences.

        Missing or unreadable records fall back to defaults.
        """
        raw = self.get(PREFERENCES_KEY)
        if raw is None:
            return NotificationPreferences()

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError(f"expected an object, got {type(data).__name__}")
        except ValueError as e:
            logger.warning(f"Failed to parse notification settings: {e}")
            return NotificationPreferences()

        return NotificationPreferences(
            email=str(data.get("email") or ""),
            notify_at_9am=bool(data.get("notify_at_9am", False)),
            notify_at_6pm=bool(data.get("notify_at_6pm", False)),
        )

    def save(self, prefs: NotificationPreferences) -> None:
        """Persist notification preferences."""
        cleaned = NotificationPreferences(
            email=prefs.email.strip(),
            notify_at_9am=prefs.notify_at_9am,
            notify_at_6pm=prefs.notify_at_6pm,
        )
        self.set(PREFERENCES_KEY, json.dumps(asdict(cleaned)))
        logger.info("Notification settings saved")
