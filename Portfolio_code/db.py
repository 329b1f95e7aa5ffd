# db.py
import os
import logging
from datetime import datetime
from typing import Optional

import psycopg2
from psycopg2.extras import Json
from dotenv import load_dotenv

from cache import CacheEntry

load_dotenv()

logger = logging.getLogger(__name__)

DB_DSN = os.getenv("DATABASE_URL")

_tables_created = set()


def _get_conn(dsn: Optional[str] = None):
    dsn = dsn or DB_DSN
    if not dsn:
        return None
    return psycopg2.connect(dsn)


def _ensure_cache_table(cur) -> None:
    if "renderer_cache" in _tables_created:
        return
    cur.execute("""
        CREATE TABLE IF NOT EXISTS renderer_cache (
            id SERIAL PRIMARY KEY,
            url TEXT NOT NULL,
            content_type TEXT NOT NULL,
            response_data JSONB NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            expires_at TIMESTAMPTZ NOT NULL DEFAULT (now() + INTERVAL '48 hours')
        );
        CREATE INDEX IF NOT EXISTS idx_renderer_cache_url_type
            ON renderer_cache (url, content_type);
        CREATE INDEX IF NOT EXISTS idx_renderer_cache_expires
            ON renderer_cache (expires_at);
    """)
    _tables_created.add("renderer_cache")


def _ensure_history_table(cur) -> None:
    if "scraping_history" in _tables_created:
        return
    cur.execute("""
        CREATE TABLE IF NOT EXISTS scraping_history (
            id SERIAL PRIMARY KEY,
            url TEXT NOT NULL,
            request_id TEXT,
            investment_count INTEGER NOT NULL DEFAULT 0,
            pages_crawled INTEGER NOT NULL DEFAULT 0,
            investments_data JSONB NOT NULL DEFAULT '[]'::jsonb,
            created_at TIMESTAMPTZ DEFAULT now()
        );
    """)
    _tables_created.add("scraping_history")


class PostgresCacheStore:
    """renderer_cache table. Errors propagate; ResponseCache decides what to swallow."""

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn or DB_DSN
        if not self.dsn:
            raise RuntimeError("DATABASE_URL missing - cannot use PostgresCacheStore")

    def insert(self, entry: CacheEntry) -> None:
        conn = _get_conn(self.dsn)
        try:
            with conn:
                with conn.cursor() as cur:
                    _ensure_cache_table(cur)
                    cur.execute(
                        """
                        INSERT INTO renderer_cache
                            (url, content_type, response_data, created_at, expires_at)
                        VALUES (%s, %s, %s, %s, %s);
                        """,
                        (
                            entry.url,
                            entry.content_type,
                            Json(entry.response_data),
                            entry.created_at,
                            entry.expires_at,
                        ),
                    )
        finally:
            conn.close()

    def latest(self, url: str, content_type: str, now: datetime) -> Optional[CacheEntry]:
        conn = _get_conn(self.dsn)
        try:
            with conn:
                with conn.cursor() as cur:
                    _ensure_cache_table(cur)
                    cur.execute(
                        """
                        SELECT url, content_type, response_data, created_at, expires_at
                        FROM renderer_cache
                        WHERE url = %s AND content_type = %s AND expires_at > %s
                        ORDER BY created_at DESC
                        LIMIT 1;
                        """,
                        (url, content_type, now),
                    )
                    row = cur.fetchone()
        finally:
            conn.close()

        if not row:
            return None
        return CacheEntry(
            url=row[0],
            content_type=row[1],
            response_data=row[2],
            created_at=row[3],
            expires_at=row[4],
        )

    def purge_expired(self, now: datetime) -> int:
        conn = _get_conn(self.dsn)
        try:
            with conn:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM renderer_cache WHERE expires_at < %s;", (now,))
                    return cur.rowcount
        finally:
            conn.close()


def insert_scrape_history(record: dict) -> None:
    """Persist one finished scrape. Never raises."""
    if not DB_DSN:
        logger.info("DATABASE_URL not set - skipping history insert: %s", record.get("url"))
        return

    conn = None
    try:
        conn = _get_conn()
        with conn:
            with conn.cursor() as cur:
                _ensure_history_table(cur)
                investments = record.get("investments") or []
                cur.execute(
                    """
                    INSERT INTO scraping_history
                        (url, request_id, investment_count, pages_crawled, investments_data)
                    VALUES (%s, %s, %s, %s, %s);
                    """,
                    (
                        record.get("url"),
                        record.get("request_id"),
                        len(investments),
                        record.get("pages_crawled", 0),
                        Json(investments),
                    ),
                )
        logger.info("Saved scrape history: %s (%d investments)", record.get("url"), len(investments))
    except psycopg2.Error as e:
        logger.error("History insert failed: %s", e)
    finally:
        if conn:
            conn.close()
