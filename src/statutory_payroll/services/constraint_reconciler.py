"""Constraint reconciler for active-record unique indexes.

Older deployments enforced "one record ever" per key with an absolute unique
index. That blocks a corrected re-run once the first record has been
superseded. The reconciler migrates each table to a status-scoped (partial)
unique index, "one *active* record per key", without touching rows.

Per target:
    1. legacy absolute-unique index present    -> drop it
    2. target index present and correctly shaped -> no-op
    3. target index present but mismatched       -> drop it
    4. target index missing (or dropped)         -> create it

Rules:
    - The full plan is computed before any DDL runs. Anything the reconciler
      does not recognize (another unique index over the same key, a legacy
      name with an unexpected shape, duplicate active rows) halts the run
      with ReconciliationMismatchError and nothing is changed.
    - A second consecutive run plans zero actions.
    - Transactions belong to the caller; run inside ``engine.begin()`` so
      PostgreSQL applies the whole plan atomically.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import bindparam, text

from statutory_payroll.errors import ReconciliationMismatchError

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

    from statutory_payroll.config import Settings

logger = logging.getLogger(__name__)

BONUS_TABLE = "bonus_record"
BONUS_KEY = ("employee_id", "financial_year")
BONUS_LEGACY_INDEX = "bonus_record_employee_fy_unique"
BONUS_ACTIVE_INDEX = "bonus_record_employee_fy_active_unique"

GRATUITY_TABLE = "gratuity_record"
GRATUITY_KEY = ("employee_id",)
GRATUITY_LEGACY_INDEX = "gratuity_record_employee_unique"
GRATUITY_ACTIVE_INDEX = "gratuity_record_employee_active_unique"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_STATUS_RE = re.compile(r"^[A-Z][A-Z0-9_]*$")

_UNIQUE_RE = re.compile(r"^\s*CREATE\s+UNIQUE\s+INDEX\b", re.IGNORECASE)
_COLUMNS_RE = re.compile(
    r"\bON\s+[\w.\"]+\s*(?:USING\s+\w+\s*)?\(([^)]*)\)", re.IGNORECASE
)
_WHERE_RE = re.compile(r"\bWHERE\b(.*)$", re.IGNORECASE | re.DOTALL)
_LITERAL_RE = re.compile(r"'([^']*)'")

_CATALOG_SQL = {
    "sqlite": """
        SELECT name, sql FROM sqlite_master
        WHERE type = 'index' AND tbl_name = :table
        ORDER BY name
    """,
    "postgresql": """
        SELECT indexname, indexdef FROM pg_indexes
        WHERE tablename = :table AND schemaname = current_schema()
        ORDER BY indexname
    """,
}


@dataclass(frozen=True)
class IndexInfo:
    """An index as read back from the database catalog."""

    name: str
    table: str
    columns: tuple[str, ...]
    unique: bool
    where: str | None
    definition: str
    # Backs a table-level UNIQUE or PRIMARY KEY; DROP INDEX cannot remove it
    constraint_backed: bool = False

    @property
    def statuses(self) -> frozenset[str]:
        """Status literals named by the partial filter (empty if none)."""
        if not self.where:
            return frozenset()
        return frozenset(_LITERAL_RE.findall(self.where))

    def describe(self) -> str:
        partial = sorted(self.statuses) if self.where else None
        return (
            f"{self.name} => key={list(self.columns)} unique={self.unique} "
            f"partial={partial}"
        )


def parse_index_definition(name: str, table: str, definition: str) -> IndexInfo:
    """Parse ``CREATE [UNIQUE] INDEX ... ON t (cols) [WHERE ...]`` text.

    Works for both SQLite's stored DDL and PostgreSQL's ``pg_get_indexdef``.
    """
    columns_match = _COLUMNS_RE.search(definition)
    columns: tuple[str, ...] = ()
    if columns_match:
        columns = tuple(
            col.strip().strip('"') for col in columns_match.group(1).split(",") if col.strip()
        )

    where_match = _WHERE_RE.search(definition)
    where = where_match.group(1).strip() if where_match else None

    return IndexInfo(
        name=name,
        table=table,
        columns=columns,
        unique=bool(_UNIQUE_RE.match(definition)),
        where=where or None,
        definition=definition.strip(),
    )


def list_indexes(conn: Connection, table: str) -> list[IndexInfo]:
    """List the indexes on ``table``, including SQLite constraint autoindexes."""
    dialect = conn.dialect.name
    sql = _CATALOG_SQL.get(dialect)
    if sql is None:
        raise NotImplementedError(f"Index catalog not supported for dialect '{dialect}'")

    rows = conn.execute(text(sql), {"table": table}).fetchall()
    return [
        _constraint_index(conn, table, name)
        if definition is None
        else parse_index_definition(name, table, definition)
        for name, definition in rows
    ]


def _constraint_index(conn: Connection, table: str, name: str) -> IndexInfo:
    """Read an SQLite autoindex, which has no stored DDL, via PRAGMA."""
    if not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    columns = tuple(row[2] for row in conn.execute(text(f"PRAGMA index_info({name})")))
    return IndexInfo(
        name=name,
        table=table,
        columns=columns,
        unique=True,
        where=None,
        definition=f"UNIQUE ({', '.join(columns)}) on {table}",
        constraint_backed=True,
    )


@dataclass(frozen=True)
class ConstraintTarget:
    """Expected status-scoped unique index for one table."""

    table: str
    key_columns: tuple[str, ...]
    legacy_index: str
    index_name: str
    active_statuses: tuple[str, ...]
    status_column: str = "status"

    def __post_init__(self) -> None:
        """Validate configuration (identifiers and statuses are inlined into DDL)."""
        identifiers = (
            self.table,
            self.legacy_index,
            self.index_name,
            self.status_column,
            *self.key_columns,
        )
        for identifier in identifiers:
            if not _IDENTIFIER_RE.match(identifier):
                raise ValueError(f"Invalid SQL identifier: {identifier!r}")
        if not self.key_columns:
            raise ValueError("key_columns cannot be empty")
        if not self.active_statuses:
            raise ValueError("active_statuses cannot be empty")
        for status in self.active_statuses:
            if not _STATUS_RE.match(status):
                raise ValueError(f"Invalid status literal: {status!r}")

    def covers_key(self, index: IndexInfo) -> bool:
        return set(index.columns) == set(self.key_columns)

    def is_legacy_shape(self, index: IndexInfo) -> bool:
        """Absolute unique index over the key (no filter)."""
        return index.unique and index.where is None and self.covers_key(index)

    def matches(self, index: IndexInfo) -> bool:
        """Whether ``index`` is exactly the expected partial unique index."""
        return (
            index.name == self.index_name
            and index.unique
            and index.columns == self.key_columns
            and index.where is not None
            and self.status_column in index.where
            and index.statuses == frozenset(self.active_statuses)
        )

    def is_satisfied_by(self, indexes: list[IndexInfo]) -> bool:
        """Expected index present and no absolute unique rule left over the key."""
        if any(self.is_legacy_shape(index) for index in indexes):
            return False
        return any(self.matches(index) for index in indexes)

    def create_sql(self) -> str:
        statuses = ", ".join(f"'{status}'" for status in self.active_statuses)
        return (
            f"CREATE UNIQUE INDEX {self.index_name} ON {self.table} "
            f"({', '.join(self.key_columns)}) "
            f"WHERE {self.status_column} IN ({statuses})"
        )

    def drop_sql(self, index_name: str) -> str:
        return f"DROP INDEX {index_name}"


def bonus_target(settings: Settings) -> ConstraintTarget:
    return ConstraintTarget(
        table=BONUS_TABLE,
        key_columns=BONUS_KEY,
        legacy_index=BONUS_LEGACY_INDEX,
        index_name=BONUS_ACTIVE_INDEX,
        active_statuses=tuple(settings.bonus_active_statuses),
    )


def gratuity_target(settings: Settings) -> ConstraintTarget:
    return ConstraintTarget(
        table=GRATUITY_TABLE,
        key_columns=GRATUITY_KEY,
        legacy_index=GRATUITY_LEGACY_INDEX,
        index_name=GRATUITY_ACTIVE_INDEX,
        active_statuses=tuple(settings.gratuity_active_statuses),
    )


def default_targets(settings: Settings) -> list[ConstraintTarget]:
    """Targets for both record tables, from configuration."""
    return [bonus_target(settings), gratuity_target(settings)]


@dataclass(frozen=True)
class ReconcileAction:
    """A single planned DDL step."""

    action: str  # 'drop' | 'create'
    table: str
    index_name: str
    sql: str
    reason: str


@dataclass
class ReconcileReport:
    """Outcome of a reconciler run, with before/after catalog listings."""

    before: dict[str, list[IndexInfo]] = field(default_factory=dict)
    after: dict[str, list[IndexInfo]] = field(default_factory=dict)
    actions: list[ReconcileAction] = field(default_factory=list)
    dry_run: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.actions) and not self.dry_run

    def format(self) -> str:
        lines: list[str] = []
        for label, listing in (("Existing indexes", self.before), ("Final indexes", self.after)):
            lines.append(f"{label}:")
            for table, indexes in listing.items():
                lines.append(f"  {table}:")
                if not indexes:
                    lines.append("    (none)")
                for index in indexes:
                    lines.append(f"    - {index.describe()}")
        if self.actions:
            prefix = "[DRY RUN] " if self.dry_run else ""
            lines.append(f"{prefix}Actions:")
            for action in self.actions:
                lines.append(f"  - {action.action} {action.table}.{action.index_name}: {action.reason}")
        else:
            lines.append("No changes required.")
        return "\n".join(lines)


class ConstraintReconciler:
    """Migrates absolute unique indexes to status-scoped unique indexes."""

    def __init__(self, conn: Connection, targets: list[ConstraintTarget]):
        self.conn = conn
        self.targets = targets

    def snapshot(self) -> dict[str, list[IndexInfo]]:
        return {target.table: list_indexes(self.conn, target.table) for target in self.targets}

    def plan(self, listing: dict[str, list[IndexInfo]] | None = None) -> list[ReconcileAction]:
        """Compute the DDL needed for every target.

        Raises:
            ReconciliationMismatchError: if any target cannot be reconciled safely.
        """
        listing = listing if listing is not None else self.snapshot()
        actions: list[ReconcileAction] = []
        for target in self.targets:
            actions.extend(self._plan_target(target, listing.get(target.table, [])))
        return actions

    def _plan_target(
        self, target: ConstraintTarget, indexes: list[IndexInfo]
    ) -> list[ReconcileAction]:
        by_name = {index.name: index for index in indexes}
        known = {target.legacy_index, target.index_name}

        for index in indexes:
            if index.constraint_backed and target.is_legacy_shape(index):
                raise ReconciliationMismatchError(
                    target.table,
                    index.name,
                    f"table-level UNIQUE constraint over {list(target.key_columns)}; "
                    "rebuild the table without it",
                )
            if index.name not in known and index.unique and target.covers_key(index):
                raise ReconciliationMismatchError(
                    target.table,
                    index.name,
                    f"unrecognized unique index over {list(target.key_columns)}",
                )

        actions: list[ReconcileAction] = []

        legacy = by_name.get(target.legacy_index)
        if legacy is not None:
            if not target.is_legacy_shape(legacy):
                raise ReconciliationMismatchError(
                    target.table,
                    legacy.name,
                    f"expected absolute unique index over {list(target.key_columns)}, "
                    f"found {legacy.describe()}",
                )
            actions.append(
                ReconcileAction(
                    action="drop",
                    table=target.table,
                    index_name=legacy.name,
                    sql=target.drop_sql(legacy.name),
                    reason="legacy absolute unique index",
                )
            )

        current = by_name.get(target.index_name)
        if current is not None and target.matches(current):
            return actions

        if current is not None:
            actions.append(
                ReconcileAction(
                    action="drop",
                    table=target.table,
                    index_name=current.name,
                    sql=target.drop_sql(current.name),
                    reason=f"does not match expected definition ({current.describe()})",
                )
            )

        duplicates = self._count_duplicate_active_keys(target)
        if duplicates:
            raise ReconciliationMismatchError(
                target.table,
                target.index_name,
                f"{duplicates} key(s) have more than one active row; "
                "supersede the extras before reconciling",
            )

        actions.append(
            ReconcileAction(
                action="create",
                table=target.table,
                index_name=target.index_name,
                sql=target.create_sql(),
                reason=f"partial unique index on status IN {list(target.active_statuses)}",
            )
        )
        return actions

    def _count_duplicate_active_keys(self, target: ConstraintTarget) -> int:
        keys = ", ".join(target.key_columns)
        sql = text(f"""
            SELECT COUNT(*) FROM (
                SELECT {keys} FROM {target.table}
                WHERE {target.status_column} IN :statuses
                GROUP BY {keys}
                HAVING COUNT(*) > 1
            ) AS duplicate_keys
        """).bindparams(bindparam("statuses", expanding=True))
        return int(
            self.conn.execute(sql, {"statuses": list(target.active_statuses)}).scalar() or 0
        )

    def reconcile(self, dry_run: bool = False) -> ReconcileReport:
        """Plan, then apply, all targets. Safe to re-run."""
        before = self.snapshot()
        for table, indexes in before.items():
            logger.info(
                "Existing indexes on %s: %s",
                table,
                ", ".join(index.name for index in indexes) or "(none)",
            )

        actions = self.plan(before)
        report = ReconcileReport(before=before, actions=actions, dry_run=dry_run)

        if not actions:
            logger.info("Active-record indexes already match configuration")
            report.after = before
            return report

        for action in actions:
            if dry_run:
                logger.info("[DRY RUN] Would %s %s.%s", action.action, action.table, action.index_name)
                continue
            logger.info(
                "%s %s.%s (%s)",
                "Dropping" if action.action == "drop" else "Creating",
                action.table,
                action.index_name,
                action.reason,
            )
            self.conn.execute(text(action.sql))

        report.after = before if dry_run else self.snapshot()
        return report
