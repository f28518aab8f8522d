# erapport/services/persistence.py - Replace-by-diff persistence of the whole state in one transaction
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError
from sqlalchemy import Table, and_, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from erapport.core.db import DatabaseManager
from erapport.core.errors import PersistenceError, ValidationFailure
from erapport.models import Module, ModuleTemplate, SchoolYear, StudentReportRow, User
from erapport.schemas.report import AppState
from erapport.services.defaults import TemplateDefaults
from erapport.services.normalization import normalize_state
from erapport.services.reconciliation import new_id
from erapport.services.relational_mapper import RowSet, flatten, hydrate
from erapport.services.status_migration import MigrationState, StatusMigrator

logger = logging.getLogger(__name__)

# Parent tables first so foreign keys resolve while children are written
SYNC_ORDER: List[Tuple[str, Table, Tuple[str, ...]]] = [
    ("users", User.__table__, ("id",)),
    ("school_years", SchoolYear.__table__, ("id",)),
    ("modules", Module.__table__, ("id",)),
    ("module_templates", ModuleTemplate.__table__, ("module_id", "evaluation_type")),
    ("students", StudentReportRow.__table__, ("id",)),
]


def _key_clause(table: Table, key_columns: Sequence[str], key: Tuple[Any, ...]):
    return and_(*(table.c[column] == value for column, value in zip(key_columns, key)))


def sync_table(
    session: Session,
    table: Table,
    desired_rows: Iterable[Dict[str, Any]],
    key_columns: Sequence[str],
) -> Dict[str, int]:
    """
    Make a table hold exactly the desired rows.

    Rows whose key is missing from the desired set are deleted (storage
    cascades take their children), new keys are inserted and existing keys
    are updated in place.

    Args:
        session: Session inside the caller's transaction
        table: Target table
        desired_rows: Complete desired contents as column dicts
        key_columns: Columns identifying a row

    Returns:
        Counts of deleted, inserted and updated rows
    """
    desired_rows = list(desired_rows)
    key_cols = [table.c[column] for column in key_columns]
    existing_keys = {tuple(row) for row in session.execute(select(*key_cols)).all()}
    desired = {tuple(row[column] for column in key_columns): row for row in desired_rows}

    stale = existing_keys - set(desired)
    if stale:
        if len(key_columns) == 1:
            session.execute(delete(table).where(key_cols[0].in_([key[0] for key in stale])))
        else:
            for key in stale:
                session.execute(delete(table).where(_key_clause(table, key_columns, key)))

    new_rows = [row for key, row in desired.items() if key not in existing_keys]
    if new_rows:
        session.execute(insert(table), new_rows)

    updated = 0
    for key, row in desired.items():
        if key in existing_keys:
            values = {column: value for column, value in row.items() if column not in key_columns}
            if values:
                session.execute(update(table).where(_key_clause(table, key_columns, key)).values(**values))
            updated += 1

    return {"deleted": len(stale), "inserted": len(new_rows), "updated": updated}


def load_rows(session: Session) -> RowSet:
    """Read the five state tables in storage order"""

    def fetch(table: Table, *order_by) -> List[Dict[str, Any]]:
        result = session.execute(select(table).order_by(*order_by))
        return [dict(row) for row in result.mappings().all()]

    users = User.__table__
    years = SchoolYear.__table__
    modules = Module.__table__
    templates = ModuleTemplate.__table__
    students = StudentReportRow.__table__

    return RowSet(
        users=fetch(users, users.c.created_at, users.c.id),
        school_years=fetch(years, years.c.position, years.c.label),
        modules=fetch(modules, modules.c.position, modules.c.id),
        module_templates=fetch(templates, templates.c.id),
        students=fetch(students, students.c.position, students.c.id),
    )


def initial_state(defaults: TemplateDefaults) -> AppState:
    """Fresh install: the default school years, nothing else"""
    return normalize_state(
        AppState(school_years=[{"label": label} for label in defaults.school_year_labels]),
        defaults,
    )


class PersistenceCoordinator:
    """Loads and replaces the whole state tree through the relational tables"""

    def __init__(
        self,
        db: DatabaseManager,
        defaults: TemplateDefaults,
        migration_state: Optional[MigrationState] = None,
    ):
        self.db = db
        self.defaults = defaults
        self.migrator = StatusMigrator(migration_state or MigrationState())

    def seed_defaults(self) -> bool:
        """
        Insert the default school years when none exist.

        Returns:
            True if anything was seeded
        """
        with self.db.transaction() as session:
            if session.execute(select(SchoolYear.id).limit(1)).first() is not None:
                return False
            for position, label in enumerate(self.defaults.school_year_labels):
                session.add(SchoolYear(id=new_id(), label=label, position=position))
        logger.info(f"Seeded default school years: {self.defaults.school_year_labels}")
        return True

    def migrate(self) -> int:
        """Run the gated status migration on its own; used at startup"""
        with self.db.transaction() as session:
            return self.migrator.run(session)

    def load_state(self) -> AppState:
        """
        Read every table, upgrade legacy status markers once, and hydrate.

        Stored data that cannot be migrated or hydrated is logged and an
        initial state is returned instead; nothing is written back in that case.

        Raises:
            PersistenceError: the database itself could not be read
        """
        try:
            with self.db.transaction() as session:
                self.migrator.run(session)
                rows = load_rows(session)
        except SQLAlchemyError as e:
            logger.error(f"Failed to read state: {e}")
            raise PersistenceError("Could not read stored state") from e
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"Stored state could not be migrated, starting from an empty state: {e}")
            return initial_state(self.defaults)

        try:
            state = hydrate(rows, self.defaults)
        except (ValidationError, ValidationFailure, ValueError, TypeError, KeyError, AttributeError) as e:
            logger.error(f"Stored state could not be hydrated, starting from an empty state: {e}")
            return initial_state(self.defaults)

        logger.info(f"state-read: {rows.counts()}")
        return state

    def replace_all(self, new_state: AppState) -> AppState:
        """
        Persist a complete state tree in one transaction.

        Tables are synchronized parent first: users, school years, modules,
        module templates, students. Any failure rolls everything back.

        Returns:
            The normalized state as committed

        Raises:
            ValidationFailure: the state is not storable (duplicate labels or emails)
            PersistenceError: the transaction failed and was rolled back
        """
        state = normalize_state(new_state, self.defaults)
        rows = flatten(state)

        try:
            with self.db.transaction() as session:
                summary = {}
                for name, table, key_columns in SYNC_ORDER:
                    summary[name] = sync_table(session, table, getattr(rows, name), key_columns)
        except Exception as e:
            logger.error(f"replace_all rolled back: {e}")
            raise PersistenceError("Could not save state") from e

        logger.info(f"state-write: {rows.counts()}")
        logger.debug(f"state-write details: {summary}")
        return state


__all__ = [
    "SYNC_ORDER",
    "sync_table",
    "load_rows",
    "initial_state",
    "PersistenceCoordinator",
]
