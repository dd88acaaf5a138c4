"""PostgreSQL book store and suggestion cache."""
import asyncio
import json
import logging
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any

import psycopg2
from psycopg2 import pool
from psycopg2.extras import Json

from readlog.errors import TransportError
from readlog.models import Book
from readlog.parse import load_books
from readlog.storage import BookStore

logger = logging.getLogger(__name__)


class PostgresBookStore(BookStore):
    """Book store for one user in PostgreSQL, with connection pooling."""

    def __init__(
        self,
        connection_string: str,
        user_id: str,
        min_conn: int = 1,
        max_conn: int = 10
    ):
        """
        Initialize database connection pool.

        Args:
            connection_string: PostgreSQL connection string
            user_id: Owner of the collection
            min_conn: Minimum connections in pool
            max_conn: Maximum connections in pool
        """
        super().__init__()
        self.user_id = user_id
        try:
            self.connection_pool = psycopg2.pool.ThreadedConnectionPool(
                min_conn,
                max_conn,
                connection_string
            )
        except psycopg2.Error as e:
            raise TransportError(f"Failed to create connection pool: {e}") from e

        logger.info("Database connection pool created successfully")

    def init_schema(self):
        """Create database tables if they don't exist."""
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                # One JSONB document per book, per user
                cur.execute("""
                    CREATE TABLE IF NOT EXISTS books (
                        user_id VARCHAR(255) NOT NULL,
                        id VARCHAR(255) NOT NULL,
                        data JSONB NOT NULL,
                        created_at BIGINT NOT NULL,
                        updated_at BIGINT NOT NULL,
                        PRIMARY KEY (user_id, id)
                    )
                """)

                # AI suggestion cache
                cur.execute("""
                    CREATE TABLE IF NOT EXISTS suggestion_cache (
                        cache_key VARCHAR(512) PRIMARY KEY,
                        response_data JSONB NOT NULL,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        expires_at TIMESTAMP NOT NULL
                    )
                """)

                cur.execute("""
                    CREATE INDEX IF NOT EXISTS idx_books_user_created
                    ON books (user_id, created_at DESC)
                """)

                cur.execute("""
                    CREATE INDEX IF NOT EXISTS idx_cache_expires
                    ON suggestion_cache (expires_at)
                """)

                conn.commit()
                logger.info("Database schema initialized successfully")
        except psycopg2.Error as e:
            conn.rollback()
            raise TransportError(f"Failed to initialize schema: {e}") from e
        finally:
            self.connection_pool.putconn(conn)

    def _fetch_records(self) -> List[Dict[str, Any]]:
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    SELECT data FROM books
                    WHERE user_id = %s
                    ORDER BY created_at DESC
                """, (self.user_id,))
                # JSONB is automatically deserialized
                return [row[0] for row in cur.fetchall()]
        except psycopg2.Error as e:
            raise TransportError(f"Failed to load books: {e}") from e
        finally:
            self.connection_pool.putconn(conn)

    def _upsert(self, book: Book):
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO books (user_id, id, data, created_at, updated_at)
                    VALUES (%s, %s, %s, %s, %s)
                    ON CONFLICT (user_id, id) DO UPDATE SET
                        data = EXCLUDED.data,
                        created_at = EXCLUDED.created_at,
                        updated_at = EXCLUDED.updated_at
                """, (
                    self.user_id, book.id, Json(book.to_dict()),
                    book.created_at, book.updated_at
                ))
                conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Failed to save book {book.id}: {e}")
            raise TransportError(f"Failed to save book: {e}") from e
        finally:
            self.connection_pool.putconn(conn)

    def _delete(self, book_id: str):
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM books WHERE user_id = %s AND id = %s",
                    (self.user_id, book_id)
                )
                conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Failed to delete book {book_id}: {e}")
            raise TransportError(f"Failed to delete book: {e}") from e
        finally:
            self.connection_pool.putconn(conn)

    async def list_books(self) -> List[Book]:
        records = await asyncio.to_thread(self._fetch_records)
        return load_books(records)

    async def save_book(self, book: Book):
        await asyncio.to_thread(self._upsert, book)
        await self._notify()

    async def delete_book(self, book_id: str):
        await asyncio.to_thread(self._delete, book_id)
        await self._notify()

    def cache_get(self, cache_key: str) -> Optional[Dict[str, Any]]:
        """
        Get cached suggestion response if not expired.

        Args:
            cache_key: Cache key

        Returns:
            Cached response or None
        """
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    SELECT response_data
                    FROM suggestion_cache
                    WHERE cache_key = %s AND expires_at > CURRENT_TIMESTAMP
                """, (cache_key,))

                row = cur.fetchone()
                if row:
                    logger.info(f"Cache hit: {cache_key}")
                    return row[0]

                logger.info(f"Cache miss: {cache_key}")
                return None
        finally:
            self.connection_pool.putconn(conn)

    def cache_set(
        self,
        cache_key: str,
        response_data: Dict[str, Any],
        ttl_seconds: int = 86400
    ) -> bool:
        """
        Cache a suggestion response with TTL.

        Args:
            cache_key: Cache key
            response_data: Response to cache
            ttl_seconds: Time to live in seconds

        Returns:
            True if successful
        """
        conn = self.connection_pool.getconn()
        try:
            expires_at = datetime.now() + timedelta(seconds=ttl_seconds)

            with conn.cursor() as cur:
                cur.execute("""
                    INSERT INTO suggestion_cache (cache_key, response_data, expires_at)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (cache_key) DO UPDATE SET
                        response_data = EXCLUDED.response_data,
                        expires_at = EXCLUDED.expires_at,
                        created_at = CURRENT_TIMESTAMP
                """, (cache_key, json.dumps(response_data, ensure_ascii=False), expires_at))

                conn.commit()
                logger.info(f"Cached response: {cache_key} (TTL: {ttl_seconds}s)")
                return True
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Failed to cache response: {e}")
            return False
        finally:
            self.connection_pool.putconn(conn)

    def cleanup_expired_cache(self) -> int:
        """Remove expired cache entries."""
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    DELETE FROM suggestion_cache
                    WHERE expires_at <= CURRENT_TIMESTAMP
                """)
                deleted = cur.rowcount
                conn.commit()
                logger.info(f"Cleaned up {deleted} expired cache entries")
                return deleted
        finally:
            self.connection_pool.putconn(conn)

    def close(self):
        """Close all connections in the pool."""
        if self.connection_pool:
            self.connection_pool.closeall()
            logger.info("Database connection pool closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
