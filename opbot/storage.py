"""
PostgreSQL storage for the chats the bot delivers reports to.
"""

from contextlib import contextmanager

import psycopg2
from psycopg2.extras import RealDictCursor


class ChatStore:
    def __init__(self, database_url: str):
        self.database_url = database_url

    # -------------------------------------------------------------------------
    # Connection Helper
    # -------------------------------------------------------------------------
    @contextmanager
    def db(self):
        """Database connection context manager with auto-commit."""
        conn = psycopg2.connect(self.database_url)
        try:
            yield conn.cursor(cursor_factory=RealDictCursor)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self):
        with self.db() as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS chats (
                    chat_id BIGINT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    added_at TIMESTAMPTZ NOT NULL DEFAULT now()
                )
            """
            )

    # -------------------------------------------------------------------------
    # Chats
    # -------------------------------------------------------------------------
    def save_chat(self, chat_id: int, title: str):
        with self.db() as cur:
            cur.execute(
                """
                INSERT INTO chats (chat_id, title, added_at)
                VALUES (%s, %s, now())
                ON CONFLICT (chat_id) DO UPDATE SET title=EXCLUDED.title, added_at=EXCLUDED.added_at
            """,
                (chat_id, title or ""),
            )

    def remove_chat(self, chat_id: int):
        with self.db() as cur:
            cur.execute("DELETE FROM chats WHERE chat_id=%s", (chat_id,))

    def list_chat_ids(self):
        with self.db() as cur:
            cur.execute("SELECT chat_id FROM chats ORDER BY added_at")
            return [int(r["chat_id"]) for r in cur.fetchall()]

    def list_chats(self):
        with self.db() as cur:
            cur.execute("SELECT chat_id, title, added_at FROM chats ORDER BY added_at")
            return [dict(r) for r in cur.fetchall()]
