"""
RecordStore -- generic key-addressable table abstraction.

Responsibility:
    The only persistence surface the workflow engine sees.  Four
    operations over named tables whose rows are plain dicts:

        append_record(table, fields)
        read_all_records(table) -> rows
        update_record_by_key(table, key, key_value, patch) -> bool
        find_record_by_key(table, key, key_value) -> row | None

Architecture position:
    Kernel > Services.  ``SqlRecordStore`` adapts SQLAlchemy models to the
    contract; the engine never touches ORM objects directly.

Invariants enforced:
    - Full-row reads: every read materializes the whole record.
    - Unknown tables and columns are rejected, never silently dropped.
    - The store flushes but never commits; the caller owns the transaction.

Failure modes:
    - UnknownTableError / UnknownColumnError on bad names.
    - IntegrityError from the database on duplicate business keys.
    - ImmutableRecordError from model listeners (terminal status rewrites).
"""

from __future__ import annotations

from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_kernel.db.base import Base
from procurement_kernel.exceptions import UnknownColumnError, UnknownTableError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models import (
    ItemModel,
    LedgerEntryModel,
    PendingRequestModel,
    UserModel,
)

logger = get_logger("services.record_store")

ITEMS = "items"
PENDING = "pending_requests"
LEDGER = "ledger_entries"
USERS = "users"

Row = dict[str, Any]


class RecordStore(Protocol):
    """Contract consumed by every kernel service."""

    def append_record(self, table: str, fields: Row) -> Row:
        ...

    def read_all_records(self, table: str) -> list[Row]:
        ...

    def update_record_by_key(
        self, table: str, key: str, key_value: Any, patch: Row
    ) -> bool:
        ...

    def find_record_by_key(self, table: str, key: str, key_value: Any) -> Row | None:
        ...


class SqlRecordStore:
    """
    RecordStore over SQLAlchemy models registered by table name.

    ``find_record_by_key`` and ``update_record_by_key`` read the row with
    ``SELECT ... FOR UPDATE`` so the Pending re-check before a terminal
    write holds the row on PostgreSQL.  SQLite ignores the lock clause.
    """

    DEFAULT_TABLES: dict[str, type[Base]] = {
        ITEMS: ItemModel,
        PENDING: PendingRequestModel,
        LEDGER: LedgerEntryModel,
        USERS: UserModel,
    }

    def __init__(self, session: Session, tables: dict[str, type[Base]] | None = None):
        self._session = session
        self._tables = dict(tables or self.DEFAULT_TABLES)

    @property
    def session(self) -> Session:
        return self._session

    def _model(self, table: str) -> type[Base]:
        try:
            return self._tables[table]
        except KeyError:
            raise UnknownTableError(table) from None

    def _columns(self, table: str, model: type[Base]) -> set[str]:
        return {attr.key for attr in model.__mapper__.column_attrs} - {"id"}

    def _check_columns(self, table: str, model: type[Base], names) -> None:
        columns = self._columns(table, model)
        for name in names:
            if name not in columns:
                raise UnknownColumnError(table, name)

    @staticmethod
    def _to_row(instance: Base) -> Row:
        row = instance.as_row()
        row.pop("id", None)
        return row

    def append_record(self, table: str, fields: Row) -> Row:
        model = self._model(table)
        self._check_columns(table, model, fields)
        instance = model(**fields)
        self._session.add(instance)
        self._session.flush()
        logger.debug("record_appended", extra={"table": table})
        return self._to_row(instance)

    def read_all_records(self, table: str) -> list[Row]:
        model = self._model(table)
        order = [model.created_at] if hasattr(model, "created_at") else []
        rows = self._session.execute(select(model).order_by(*order)).scalars().all()
        return [self._to_row(r) for r in rows]

    def _load(self, table: str, key: str, key_value: Any) -> Base | None:
        model = self._model(table)
        self._check_columns(table, model, [key])
        return self._session.execute(
            select(model)
            .where(getattr(model, key) == key_value)
            .with_for_update()
        ).scalars().first()

    def find_record_by_key(self, table: str, key: str, key_value: Any) -> Row | None:
        instance = self._load(table, key, key_value)
        return self._to_row(instance) if instance is not None else None

    def update_record_by_key(
        self, table: str, key: str, key_value: Any, patch: Row
    ) -> bool:
        model = self._model(table)
        self._check_columns(table, model, patch)
        instance = self._load(table, key, key_value)
        if instance is None:
            logger.warning(
                "record_update_missed",
                extra={"table": table, "key": key, "key_value": key_value},
            )
            return False
        for column, value in patch.items():
            setattr(instance, column, value)
        self._session.flush()
        return True
