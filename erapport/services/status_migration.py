# erapport/services/status_migration.py - One-time upgrade of the legacy status encoding on stored reports
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from erapport.models.system_settings import SystemSetting
from erapport.models.student import StudentReportRow
from erapport.schemas.report import ReportStatus

logger = logging.getLogger(__name__)

STATUS_ENCODING_KEY = "status_encoding_version"
STATUS_ENCODING_VERSION = 2

# Before version 2, "NOK" meant "needs improvement" and "NA" meant "not assessed"
LEGACY_STATUS_MAP = {
    "NOK": ReportStatus.NEEDS_IMPROVEMENT.value,
    "NA": ReportStatus.NOT_ASSESSED.value,
}


def migrate_status(value: Any) -> Any:
    """Translate one legacy marker; anything else passes through untouched"""
    if isinstance(value, str):
        return LEGACY_STATUS_MAP.get(value, value)
    return value


def migrate_categories(categories: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Upgrade category results and task statuses of a stored competencies document"""
    migrated = []
    for category in categories or []:
        if not isinstance(category, dict):
            migrated.append(category)
            continue
        updated = dict(category)
        if "result" in updated:
            updated["result"] = migrate_status(updated["result"])
        items = []
        for item in category.get("items") or []:
            if isinstance(item, dict) and "status" in item:
                item = {**item, "status": migrate_status(item["status"])}
            items.append(item)
        updated["items"] = items
        migrated.append(updated)
    return migrated


def migrate_overrides(overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {key: migrate_status(value) for key, value in (overrides or {}).items()}


class MigrationState:
    """Reads and writes the stored encoding-version marker"""

    def __init__(self, key: str = STATUS_ENCODING_KEY, target_version: int = STATUS_ENCODING_VERSION):
        self.key = key
        self.target_version = target_version

    def current_version(self, session: Session) -> int:
        setting = session.get(SystemSetting, self.key)
        if setting is None or not isinstance(setting.value, int):
            return 1
        return setting.value

    def is_current(self, session: Session) -> bool:
        return self.current_version(session) >= self.target_version

    def mark_current(self, session: Session) -> None:
        setting = session.get(SystemSetting, self.key)
        if setting is None:
            session.add(
                SystemSetting(
                    key=self.key,
                    value=self.target_version,
                    description="Encoding of report status markers",
                )
            )
        else:
            setting.value = self.target_version


class StatusMigrator:
    """
    Rewrites legacy status markers on every stored student row, at most once.

    The marker is checked and set inside the caller's session so the rewrite
    and the version bump commit together.
    """

    def __init__(self, state: MigrationState):
        self.state = state

    def run(self, session: Session) -> int:
        """
        Migrate stored rows if the marker is behind.

        Returns:
            Number of student rows whose data changed
        """
        if self.state.is_current(session):
            return 0

        changed = 0
        rows = session.execute(select(StudentReportRow)).scalars().all()
        for row in rows:
            competencies = migrate_categories(row.competencies)
            overrides = migrate_overrides(row.competency_summary_overrides)
            if competencies != row.competencies or overrides != row.competency_summary_overrides:
                row.competencies = competencies
                row.competency_summary_overrides = overrides
                changed += 1

        self.state.mark_current(session)
        session.flush()
        logger.info(
            f"Status encoding upgraded to version {self.state.target_version}: {changed} report(s) rewritten"
        )
        return changed


__all__ = [
    "STATUS_ENCODING_KEY",
    "STATUS_ENCODING_VERSION",
    "LEGACY_STATUS_MAP",
    "migrate_status",
    "migrate_categories",
    "migrate_overrides",
    "MigrationState",
    "StatusMigrator",
]
