"""Database operations using psycopg (PostgreSQL)."""

import json
import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Optional

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from ..models import InvoiceRecord, InvoiceUpdate

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS invoices (
    id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id         TEXT NOT NULL,
    message_id      TEXT NOT NULL,
    invoice_number  TEXT,
    invoice_date    TEXT,
    vendor          TEXT,
    amount          NUMERIC(14, 2),
    due_date        TEXT,
    currency        TEXT,
    description     TEXT,
    file_name       TEXT,
    file_url        TEXT,
    extracted_data  JSONB NOT NULL DEFAULT '{}'::jsonb,
    status          TEXT NOT NULL DEFAULT 'approved'
                    CHECK (status IN ('approved', 'pending', 'paid', 'overdue')),
    created_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
    CONSTRAINT invoices_user_message_key UNIQUE (user_id, message_id)
);

CREATE INDEX IF NOT EXISTS invoices_user_created_idx ON invoices (user_id, created_at DESC);

CREATE TABLE IF NOT EXISTS auth_handoff (
    token       TEXT PRIMARY KEY,
    payload     JSONB NOT NULL,
    expires_at  TIMESTAMPTZ NOT NULL,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS user_sessions (
    session_id     TEXT PRIMARY KEY,
    user_id        TEXT NOT NULL,
    google_tokens  JSONB NOT NULL,
    updated_at     TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

INVOICE_COLUMNS = """
    id, user_id, message_id, invoice_number, invoice_date, vendor, amount,
    due_date, currency, description, file_name, file_url, extracted_data,
    status, created_at, updated_at
"""


def _decimal_to_float(obj):
    """JSON serializer for Decimal objects.

    Args:
        obj: Object to serialize

    Returns:
        float: Decimal converted to float

    Raises:
        TypeError: If object is not Decimal
    """
    if isinstance(obj, Decimal):
        return float(obj)
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


class DatabaseClient:
    """PostgreSQL database client using psycopg.

    Every invoice query is scoped by user id.
    """

    def __init__(self, database_url: str):
        """Initialize database client.

        Args:
            database_url: PostgreSQL connection string
        """
        self.database_url = database_url
        self._conn: Optional[psycopg.Connection] = None

    def connect(self):
        """Establish database connection."""
        if self._conn is None or self._conn.closed:
            self._conn = psycopg.connect(
                self.database_url,
                row_factory=dict_row,
                autocommit=False,  # We'll manage transactions explicitly
            )
            logger.info("Database connection established")
        return self._conn

    def close(self):
        """Close database connection."""
        if self._conn and not self._conn.closed:
            self._conn.close()
            logger.info("Database connection closed")

    @contextmanager
    def transaction(self):
        """Context manager for database transactions.

        Usage:
            with db.transaction() as conn:
                conn.execute("INSERT INTO ...")
                # Automatically commits on success, rolls back on exception

        Yields:
            psycopg.Connection: Database connection object
        """
        conn = self.connect()
        try:
            yield conn
            conn.commit()
            logger.debug("Transaction committed")
        except Exception as e:
            conn.rollback()
            logger.error(f"Transaction rolled back: {e}")
            raise

    def create_schema(self):
        """Create tables and indexes if they do not exist."""
        with self.transaction() as conn:
            conn.execute(SCHEMA_SQL)
        logger.info("Database schema ensured")

    # ========================================================================
    # Invoice Operations
    # ========================================================================

    def invoice_exists(self, user_id: str, message_id: str) -> bool:
        """Check whether a message already produced an invoice for this user."""
        with self.transaction() as conn:
            row = conn.execute("""
                SELECT 1 FROM invoices
                WHERE user_id = %s AND message_id = %s
                LIMIT 1
            """, (user_id, message_id)).fetchone()
        return row is not None

    def insert_invoice(self, invoice: InvoiceRecord) -> Optional[InvoiceRecord]:
        """Insert an invoice row.

        Args:
            invoice: Record to insert (id and timestamps are generated)

        Returns:
            InvoiceRecord: The stored row
            None: If a row for (user_id, message_id) already exists
        """
        with self.transaction() as conn:
            row = conn.execute(sql.SQL("""
                INSERT INTO invoices (
                    user_id, message_id, invoice_number, invoice_date, vendor,
                    amount, due_date, currency, description, file_name, file_url,
                    extracted_data, status
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s::jsonb, %s)
                ON CONFLICT (user_id, message_id) DO NOTHING
                RETURNING {columns}
            """).format(columns=sql.SQL(INVOICE_COLUMNS)), (
                invoice.user_id,
                invoice.message_id,
                invoice.invoice_number,
                invoice.invoice_date,
                invoice.vendor,
                invoice.amount,
                invoice.due_date,
                invoice.currency,
                invoice.description,
                invoice.file_name,
                invoice.file_url,
                json.dumps(invoice.extracted_data, default=_decimal_to_float),
                invoice.status,
            )).fetchone()

        if row is None:
            logger.info(f"Invoice for message {invoice.message_id} already exists, insert skipped")
            return None
        logger.info(f"Inserted invoice {row['id']} for message {invoice.message_id}")
        return InvoiceRecord(**row)

    def list_invoices(self, user_id: str) -> list[InvoiceRecord]:
        """Fetch all invoices of a user, newest first."""
        with self.transaction() as conn:
            rows = conn.execute(sql.SQL("""
                SELECT {columns} FROM invoices
                WHERE user_id = %s
                ORDER BY created_at DESC
            """).format(columns=sql.SQL(INVOICE_COLUMNS)), (user_id,)).fetchall()
        return [InvoiceRecord(**row) for row in rows]

    def get_invoice(self, invoice_id: str, user_id: str) -> Optional[InvoiceRecord]:
        """Fetch one invoice owned by the user."""
        with self.transaction() as conn:
            row = conn.execute(sql.SQL("""
                SELECT {columns} FROM invoices
                WHERE id = %s AND user_id = %s
            """).format(columns=sql.SQL(INVOICE_COLUMNS)), (invoice_id, user_id)).fetchone()
        return InvoiceRecord(**row) if row else None

    def update_invoice(
        self, invoice_id: str, user_id: str, update: InvoiceUpdate
    ) -> Optional[InvoiceRecord]:
        """Apply a partial update to an invoice owned by the user.

        Only fields explicitly set on `update` are written.

        Returns:
            InvoiceRecord: The updated row
            None: If no invoice with this id belongs to the user
        """
        changes = update.model_dump(exclude_unset=True)
        if not changes:
            return self.get_invoice(invoice_id, user_id)

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in changes
        )
        with self.transaction() as conn:
            row = conn.execute(sql.SQL("""
                UPDATE invoices
                SET {assignments}, updated_at = now()
                WHERE id = %s AND user_id = %s
                RETURNING {columns}
            """).format(assignments=assignments, columns=sql.SQL(INVOICE_COLUMNS)),
                (*changes.values(), invoice_id, user_id),
            ).fetchone()

        if row is None:
            logger.warning(f"Invoice {invoice_id} not found for user {user_id} during update")
            return None
        return InvoiceRecord(**row)

    def delete_invoice(self, invoice_id: str, user_id: str) -> bool:
        """Delete an invoice owned by the user.

        Returns:
            bool: True if a row was deleted
        """
        with self.transaction() as conn:
            deleted = conn.execute(
                "DELETE FROM invoices WHERE id = %s AND user_id = %s",
                (invoice_id, user_id),
            ).rowcount
        logger.info(f"Deleted {deleted} invoice(s) with id {invoice_id}")
        return deleted > 0

    # ========================================================================
    # Auth Hand-off Operations
    # ========================================================================

    def put_auth_handoff(self, token: str, payload: dict, ttl_seconds: int = 300):
        """Store a short-lived one-time login payload."""
        with self.transaction() as conn:
            conn.execute("""
                INSERT INTO auth_handoff (token, payload, expires_at)
                VALUES (%s, %s::jsonb, now() + %s * interval '1 second')
            """, (token, json.dumps(payload), ttl_seconds))

    def pop_auth_handoff(self, token: str) -> Optional[dict]:
        """Consume a login payload.

        The row is deleted whether or not it has expired.

        Returns:
            dict: The payload if the token exists and has not expired
            None: Otherwise
        """
        with self.transaction() as conn:
            row = conn.execute("""
                DELETE FROM auth_handoff
                WHERE token = %s
                RETURNING payload, expires_at > now() AS valid
            """, (token,)).fetchone()

        if row is None or not row["valid"]:
            return None
        return row["payload"]

    def purge_expired_handoffs(self) -> int:
        """Delete expired login payloads.

        Returns:
            int: Number of rows deleted
        """
        with self.transaction() as conn:
            deleted = conn.execute("DELETE FROM auth_handoff WHERE expires_at <= now()").rowcount
        if deleted:
            logger.info(f"Purged {deleted} expired auth hand-off(s)")
        return deleted

    # ========================================================================
    # Session Token Operations
    # ========================================================================

    def save_google_tokens(self, session_id: str, user_id: str, tokens: dict):
        """Store or replace the Google tokens behind a browser session."""
        with self.transaction() as conn:
            conn.execute("""
                INSERT INTO user_sessions (session_id, user_id, google_tokens)
                VALUES (%s, %s, %s::jsonb)
                ON CONFLICT (session_id) DO UPDATE
                SET google_tokens = EXCLUDED.google_tokens, updated_at = now()
            """, (session_id, user_id, json.dumps(tokens)))

    def get_google_tokens(self, session_id: str) -> Optional[dict]:
        """Google tokens for a browser session, or None if the session is unknown."""
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT google_tokens FROM user_sessions WHERE session_id = %s",
                (session_id,),
            ).fetchone()
        return row["google_tokens"] if row else None

    def delete_session(self, session_id: str) -> bool:
        """Forget the tokens behind a browser session.

        Returns:
            bool: True if a session was deleted
        """
        with self.transaction() as conn:
            deleted = conn.execute(
                "DELETE FROM user_sessions WHERE session_id = %s",
                (session_id,),
            ).rowcount
        return deleted > 0
