# exam_ai/response_cache.py

import os
import hashlib
import sqlite3
from datetime import datetime
from typing import Optional


def make_key(prompt_version: str, model: str, prompt: str) -> str:
    key_src = f"{prompt_version}::{model}::{prompt}"
    return hashlib.sha256(key_src.encode()).hexdigest()


class ResponseCache:
    """Cache SQLite cho phản hồi AI, khóa theo (hash prompt, model)."""

    def __init__(self, db_path: str = "ai_cache.db"):
        self.db_path = db_path
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)
        self._init_db()

    def _init_db(self):
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS cache (
                    key TEXT NOT NULL,
                    model TEXT NOT NULL,
                    created_at TEXT,
                    tokens INTEGER DEFAULT 0,
                    response TEXT NOT NULL,
                    PRIMARY KEY (key, model)
                );
            """)
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str, model: str) -> Optional[str]:
        conn = sqlite3.connect(self.db_path)
        try:
            row = conn.execute("SELECT response FROM cache WHERE key=? AND model=?", (key, model)).fetchone()
        finally:
            conn.close()
        return row[0] if row else None

    def set(self, key: str, model: str, text: str, tokens: int = 0):
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute(
                "INSERT OR REPLACE INTO cache VALUES (?, ?, ?, ?, ?)",
                (key, model, datetime.now().isoformat(), tokens, text),
            )
            conn.commit()
        finally:
            conn.close()
