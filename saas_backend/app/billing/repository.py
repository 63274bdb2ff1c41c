"""Persistence layer for billing domain objects."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...app_context import get_conn
from .errors import StoreUnavailable
from .models import Account, InvoiceRecord, SubscriptionRecord, SubscriptionStatus
from .store import BillingStore

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS accounts (
        account_id TEXT PRIMARY KEY,
        email TEXT,
        display_name TEXT,
        billing_customer_id TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS subscriptions (
        subscription_id TEXT PRIMARY KEY,
        account_id TEXT NOT NULL,
        status TEXT NOT NULL,
        price_id TEXT NOT NULL,
        product_id TEXT NOT NULL,
        current_period_start TIMESTAMPTZ,
        current_period_end TIMESTAMPTZ,
        cancel_at_period_end BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL,
        ended_at TIMESTAMPTZ,
        canceled_at TIMESTAMPTZ,
        trial_start TIMESTAMPTZ,
        trial_end TIMESTAMPTZ,
        customer_id TEXT,
        last_event_at TIMESTAMPTZ
    )
    """,
    "CREATE INDEX IF NOT EXISTS subscriptions_account_idx ON subscriptions (account_id)",
    """
    CREATE TABLE IF NOT EXISTS invoices (
        invoice_id TEXT PRIMARY KEY,
        customer_id TEXT,
        subscription_id TEXT NOT NULL,
        status TEXT,
        total BIGINT NOT NULL DEFAULT 0,
        subtotal BIGINT NOT NULL DEFAULT 0,
        currency TEXT NOT NULL,
        period_start TIMESTAMPTZ,
        period_end TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL,
        failure_message TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS invoices_customer_idx ON invoices (customer_id, created_at DESC)",
)

_SUBSCRIPTION_COLUMNS = (
    "subscription_id",
    "account_id",
    "status",
    "price_id",
    "product_id",
    "current_period_start",
    "current_period_end",
    "cancel_at_period_end",
    "created_at",
    "ended_at",
    "canceled_at",
    "trial_start",
    "trial_end",
    "customer_id",
    "last_event_at",
)

_INVOICE_COLUMNS = (
    "invoice_id",
    "customer_id",
    "subscription_id",
    "status",
    "total",
    "subtotal",
    "currency",
    "period_start",
    "period_end",
    "created_at",
    "failure_message",
)


def _upsert_sql(table: str, columns: Sequence[str], key: str) -> str:
    column_list = ", ".join(columns)
    placeholders = ", ".join(f"%({column})s" for column in columns)
    assignments = ", ".join(f"{column} = EXCLUDED.{column}" for column in columns if column != key)
    return (
        f"INSERT INTO {table} ({column_list}) VALUES ({placeholders}) "
        f"ON CONFLICT ({key}) DO UPDATE SET {assignments}"
    )


UPSERT_SUBSCRIPTION_SQL = (
    _upsert_sql("subscriptions", _SUBSCRIPTION_COLUMNS, "subscription_id")
    + " WHERE subscriptions.last_event_at IS NULL"
    " OR EXCLUDED.last_event_at IS NULL"
    " OR subscriptions.last_event_at <= EXCLUDED.last_event_at"
    " RETURNING subscription_id"
)

UPSERT_INVOICE_SQL = _upsert_sql("invoices", _INVOICE_COLUMNS, "invoice_id") + " RETURNING *"


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None):
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    try:
        connection = get_conn()
    except (psycopg2.OperationalError, psycopg2.InterfaceError) as exc:
        raise StoreUnavailable(str(exc)) from exc
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


def ensure_schema(conn: Optional[PgConnection] = None) -> None:
    """Create the billing collections when they do not exist."""

    with managed_connection(conn) as (connection, _managed):
        with connection.cursor() as cursor:
            for statement in SCHEMA_STATEMENTS:
                cursor.execute(statement)


def _row_to_account(row: dict) -> Account:
    return Account(
        account_id=row["account_id"],
        email=row.get("email"),
        display_name=row.get("display_name"),
        billing_customer_id=row.get("billing_customer_id"),
        created_at=row["created_at"],
    )


def _row_to_subscription(row: dict) -> SubscriptionRecord:
    return SubscriptionRecord(
        subscription_id=row["subscription_id"],
        account_id=row["account_id"],
        status=SubscriptionStatus(row["status"]),
        price_id=row["price_id"],
        product_id=row["product_id"],
        current_period_start=row.get("current_period_start"),
        current_period_end=row.get("current_period_end"),
        cancel_at_period_end=bool(row.get("cancel_at_period_end")),
        created_at=row["created_at"],
        ended_at=row.get("ended_at"),
        canceled_at=row.get("canceled_at"),
        trial_start=row.get("trial_start"),
        trial_end=row.get("trial_end"),
        customer_id=row.get("customer_id"),
        last_event_at=row.get("last_event_at"),
    )


def _row_to_invoice(row: dict) -> InvoiceRecord:
    return InvoiceRecord(
        invoice_id=row["invoice_id"],
        customer_id=row.get("customer_id"),
        subscription_id=row["subscription_id"],
        status=row.get("status"),
        total=int(row["total"]),
        subtotal=int(row["subtotal"]),
        currency=row["currency"],
        period_start=row.get("period_start"),
        period_end=row.get("period_end"),
        created_at=row["created_at"],
        failure_message=row.get("failure_message"),
    )


class PostgresBillingStore(BillingStore):
    """Concrete store persisting billing documents in PostgreSQL."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterator[PgCursor]:
        try:
            with managed_connection(self._conn) as (connection, _managed):
                cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
                try:
                    yield cursor
                finally:
                    cursor.close()
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as exc:
            raise StoreUnavailable(str(exc)) from exc

    def get_account(self, account_id: str) -> Optional[Account]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM accounts WHERE account_id = %s", (account_id,))
            row = cursor.fetchone()
        return _row_to_account(row) if row else None

    def create_account_if_absent(self, account: Account) -> Account:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO accounts (account_id, email, display_name, created_at)
                VALUES (%(account_id)s, %(email)s, %(display_name)s, %(created_at)s)
                ON CONFLICT (account_id) DO NOTHING
                """,
                account.model_dump(include={"account_id", "email", "display_name", "created_at"}),
            )
            cursor.execute("SELECT * FROM accounts WHERE account_id = %s", (account.account_id,))
            row = cursor.fetchone()
        return _row_to_account(row)

    def set_billing_customer_id_if_absent(self, account_id: str, customer_id: str) -> Optional[str]:
        # The row lock taken by UPDATE makes the read-and-set atomic.
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE accounts
                SET billing_customer_id = COALESCE(billing_customer_id, %s)
                WHERE account_id = %s
                RETURNING billing_customer_id
                """,
                (customer_id, account_id),
            )
            row = cursor.fetchone()
        return row["billing_customer_id"] if row else None

    def get_subscription(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM subscriptions WHERE subscription_id = %s", (subscription_id,))
            row = cursor.fetchone()
        return _row_to_subscription(row) if row else None

    def upsert_subscription(self, record: SubscriptionRecord) -> bool:
        params = record.model_dump()
        params["status"] = record.status.value
        with self._cursor() as cursor:
            cursor.execute(UPSERT_SUBSCRIPTION_SQL, params)
            row = cursor.fetchone()
        return row is not None

    def list_subscriptions_for_account(self, account_id: str) -> Sequence[SubscriptionRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM subscriptions WHERE account_id = %s ORDER BY created_at DESC",
                (account_id,),
            )
            rows = cursor.fetchall()
        return [_row_to_subscription(row) for row in rows]

    def upsert_invoice(self, invoice: InvoiceRecord) -> InvoiceRecord:
        with self._cursor() as cursor:
            cursor.execute(UPSERT_INVOICE_SQL, invoice.model_dump())
            row = cursor.fetchone()
        return _row_to_invoice(row)

    def list_invoices_for_customer(self, customer_id: str, *, limit: int = 20) -> Sequence[InvoiceRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT * FROM invoices
                WHERE customer_id = %s
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (customer_id, limit),
            )
            rows = cursor.fetchall()
        return [_row_to_invoice(row) for row in rows]


__all__ = ["PostgresBillingStore", "ensure_schema", "managed_connection"]
