"""Record store for bonus and gratuity records.

Key invariants:
1. At most one record per key has a status in the configured active set
   (enforced by the status-scoped unique index the reconciler maintains)
2. Records are never deleted; history is every row for an employee
3. Each write attempt runs in its own transaction, so a rolled-back attempt
   leaves nothing behind
4. An IntegrityError on write means a concurrent writer won the race for the
   key: re-read and retry, up to a bounded count
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from statutory_payroll.config import Settings, get_settings
from statutory_payroll.errors import ConstraintViolationError, RecordNotFoundError
from statutory_payroll.events.types import RecordKindName
from statutory_payroll.models import BonusRecord, GratuityRecord
from statutory_payroll.services.constraint_reconciler import (
    ConstraintTarget,
    bonus_target,
    gratuity_target,
    list_indexes,
)
from statutory_payroll.services.state_machine import (
    BonusStateMachine,
    GratuityStateMachine,
    RecordStateMachine,
)

if TYPE_CHECKING:
    from sqlalchemy import Select

    from statutory_payroll.database import Database

logger = logging.getLogger(__name__)

R = TypeVar("R", BonusRecord, GratuityRecord)


@dataclass(frozen=True)
class RecordKind(Generic[R]):
    """Binds a model to its identity key, state machine and active-status set."""

    name: RecordKindName
    model: type[R]
    key_columns: tuple[str, ...]
    state_machine: type[RecordStateMachine]
    target: ConstraintTarget

    def __post_init__(self) -> None:
        """Validate configuration."""
        unknown = set(self.target.active_statuses) - self.state_machine.all_statuses()
        if unknown:
            raise ValueError(
                f"Unknown {self.name.value} statuses in active set: {sorted(unknown)}"
            )

    @property
    def active_statuses(self) -> tuple[str, ...]:
        return self.target.active_statuses

    @property
    def id_column(self) -> Any:
        return self.model.__mapper__.primary_key[0]

    def key_of(self, record: R) -> dict[str, Any]:
        return {column: getattr(record, column) for column in self.key_columns}

    def normalize_key(self, key: dict[str, Any]) -> dict[str, Any]:
        if set(key) != set(self.key_columns):
            raise ValueError(
                f"{self.name.value} key must have exactly {list(self.key_columns)}, got {sorted(key)}"
            )
        return {column: key[column] for column in self.key_columns}


def bonus_kind(settings: Settings | None = None) -> RecordKind[BonusRecord]:
    settings = settings or get_settings()
    return RecordKind(
        name=RecordKindName.BONUS,
        model=BonusRecord,
        key_columns=("employee_id", "financial_year"),
        state_machine=BonusStateMachine,
        target=bonus_target(settings),
    )


def gratuity_kind(settings: Settings | None = None) -> RecordKind[GratuityRecord]:
    settings = settings or get_settings()
    return RecordKind(
        name=RecordKindName.GRATUITY,
        model=GratuityRecord,
        key_columns=("employee_id",),
        state_machine=GratuityStateMachine,
        target=gratuity_target(settings),
    )


@dataclass(frozen=True)
class UpsertResult(Generic[R]):
    """Result of an upsert.

    ``is_new`` is True when a row was inserted; ``changed`` is False when an
    existing row already held identical values (idempotent resubmission).
    """

    record: R
    is_new: bool
    changed: bool
    attempts: int = 1


ExistingHook = Callable[[Any, dict[str, Any]], dict[str, Any]]


class RecordStore(Generic[R]):
    """CRUD and constrained upsert over one record table."""

    def __init__(self, database: Database, kind: RecordKind[R], max_retries: int = 3):
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        self.database = database
        self.kind = kind
        self.max_retries = max_retries

    @classmethod
    def for_bonus(
        cls, database: Database, settings: Settings | None = None
    ) -> RecordStore[BonusRecord]:
        settings = settings or get_settings()
        return cls(database, bonus_kind(settings), settings.upsert_max_retries)

    @classmethod
    def for_gratuity(
        cls, database: Database, settings: Settings | None = None
    ) -> RecordStore[GratuityRecord]:
        settings = settings or get_settings()
        return cls(database, gratuity_kind(settings), settings.upsert_max_retries)

    def _active_query(self, key: dict[str, Any]) -> Select:
        model = self.kind.model
        query = select(model).where(model.status.in_(self.kind.active_statuses))
        for column, value in key.items():
            query = query.where(getattr(model, column) == value)
        return query.order_by(model.created_at)

    async def find_active(self, key: dict[str, Any]) -> R | None:
        """Return the active record for ``key``, if any."""
        key = self.kind.normalize_key(key)
        async with self.database.session() as session:
            result = await session.execute(self._active_query(key))
            return result.scalars().first()

    async def get(self, record_id: UUID) -> R | None:
        async with self.database.session() as session:
            return await session.get(self.kind.model, record_id)

    async def list_by_employee(self, employee_id: UUID) -> list[R]:
        """Audit trail: every record for the employee, superseded ones included."""
        model = self.kind.model
        async with self.database.session() as session:
            result = await session.execute(
                select(model)
                .where(model.employee_id == employee_id)
                .order_by(model.created_at, self.kind.id_column)
            )
            return list(result.scalars().all())

    async def upsert_active(
        self,
        key: dict[str, Any],
        fields: dict[str, Any],
        on_existing: ExistingHook | None = None,
    ) -> UpsertResult[R]:
        """Insert or update the single active record for ``key``.

        Args:
            key: Identity key columns and values
            fields: Column values to write
            on_existing: Optional hook called with the active record and a
                copy of ``fields`` inside the write transaction; returns the
                fields to apply and may raise to abort the write

        Raises:
            ConstraintViolationError: If concurrent writers kept colliding
                after ``max_retries`` retries
        """
        key = self.kind.normalize_key(key)
        attempts = self.max_retries + 1
        last_error: IntegrityError | None = None

        for attempt in range(1, attempts + 1):
            try:
                async with self.database.session() as session:
                    result = await session.execute(self._active_query(key))
                    existing = result.scalars().first()

                    if existing is None:
                        record = self.kind.model(**key, **fields)
                        session.add(record)
                        await session.flush()
                        return UpsertResult(record=record, is_new=True, changed=True, attempts=attempt)

                    updates = on_existing(existing, dict(fields)) if on_existing else dict(fields)
                    changed = False
                    for name, value in updates.items():
                        if getattr(existing, name) != value:
                            setattr(existing, name, value)
                            changed = True
                    await session.flush()
                    return UpsertResult(record=existing, is_new=False, changed=changed, attempts=attempt)
            except IntegrityError as e:
                last_error = e
                logger.warning(
                    "Active %s record write for %s collided (attempt %d/%d); re-reading",
                    self.kind.name.value,
                    key,
                    attempt,
                    attempts,
                )

        raise ConstraintViolationError(self.kind.name.value, key, attempts) from last_error

    async def transition(self, record_id: UUID, mutate: Callable[[R], None]) -> R:
        """Load a record and apply ``mutate`` to it in a single transaction.

        Raises:
            RecordNotFoundError: If no record has ``record_id``
        """
        async with self.database.session() as session:
            record = await session.get(self.kind.model, record_id, with_for_update=True)
            if record is None:
                raise RecordNotFoundError(self.kind.name.value, record_id)
            mutate(record)
            await session.flush()
            return record

    async def has_active_constraint(self) -> bool:
        """Whether the status-scoped unique index is in place with the configured shape."""
        async with self.database.engine.connect() as conn:
            indexes = await conn.run_sync(list_indexes, self.kind.target.table)
        return self.kind.target.is_satisfied_by(indexes)
