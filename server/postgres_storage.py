"""PostgreSQL storage implementation."""

import json
import logging
import os
import psycopg2
from psycopg2.extras import RealDictCursor

from core.interfaces import ContextStore

logger = logging.getLogger(__name__)


class PostgresStorage(ContextStore):
    """PostgreSQL-based storage for durable navigation values and events."""

    def __init__(self, config_file: str = None, db_url: str = None):
        self.config_file = config_file or os.path.expanduser('~/.config/linkhop/config.json')
        self.db_url = db_url or os.environ.get(
            'DATABASE_URL',
            'postgresql://localhost:5432/linkhop'
        )
        self._conn = None
        self._initialized = False

    @property
    def conn(self):
        """Lazy connection initialization."""
        if self._conn is None or self._conn.closed:
            self._conn = psycopg2.connect(self.db_url)
            if not self._initialized:
                self._init_db()
                self._initialized = True
        return self._conn

    def _init_db(self):
        """Create tables if they don't exist."""
        with self._conn.cursor() as cur:
            cur.execute("""
                CREATE TABLE IF NOT EXISTS navigation_state (
                    user_id VARCHAR(255) NOT NULL,
                    key VARCHAR(100) NOT NULL,
                    value JSONB NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (user_id, key)
                )
            """)
            cur.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    id SERIAL PRIMARY KEY,
                    timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    event VARCHAR(50) NOT NULL,
                    user_id VARCHAR(255) NOT NULL,
                    session_id VARCHAR(64),
                    data JSONB
                )
            """)
            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_events_user_id ON events(user_id)
            """)
            cur.execute("""
                CREATE INDEX IF NOT EXISTS idx_events_event ON events(event)
            """)
        self._conn.commit()

    def close(self):
        """Close the database connection."""
        if self._conn and not self._conn.closed:
            self._conn.close()

    def load_config(self) -> dict:
        if not os.path.exists(self.config_file):
            raise FileNotFoundError(
                f"Config file not found at {self.config_file}\n"
                f'Please create it with: {{"storage": "postgres"}}'
            )
        with open(self.config_file, 'r') as f:
            return json.load(f)

    def load_value(self, key: str, user_id: str = "default") -> dict | None:
        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    "SELECT value FROM navigation_state WHERE user_id = %s AND key = %s",
                    (user_id, key)
                )
                row = cur.fetchone()
                if row:
                    return row['value']
                return None
        except Exception as e:
            logger.error(f"Error loading {key} for {user_id}: {e}")
            return None

    def save_value(self, key: str, value: dict, user_id: str = "default") -> None:
        try:
            with self.conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO navigation_state (user_id, key, value, updated_at)
                    VALUES (%s, %s, %s, CURRENT_TIMESTAMP)
                    ON CONFLICT (user_id, key)
                    DO UPDATE SET value = EXCLUDED.value, updated_at = CURRENT_TIMESTAMP
                """, (user_id, key, json.dumps(value)))
            self.conn.commit()
        except Exception as e:
            logger.error(f"Error saving {key} for {user_id}: {e}")
            self.conn.rollback()
            raise

    def delete_value(self, key: str, user_id: str = "default") -> bool:
        try:
            with self.conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM navigation_state WHERE user_id = %s AND key = %s",
                    (user_id, key)
                )
                deleted = cur.rowcount > 0
            self.conn.commit()
            return deleted
        except Exception as e:
            logger.error(f"Error deleting {key} for {user_id}: {e}")
            self.conn.rollback()
            raise

    # Event logging methods
    def log_event(self, event: str, user_id: str, session_id: str = None, **data) -> None:
        """Log an event to the database."""
        try:
            with self.conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO events (event, user_id, session_id, data)
                    VALUES (%s, %s, %s, %s)
                """, (event, user_id, session_id, json.dumps(data) if data else None))
            self.conn.commit()
        except Exception as e:
            logger.error(f"Error logging event: {e}")
            self.conn.rollback()
