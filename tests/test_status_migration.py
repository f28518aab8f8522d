# tests/test_status_migration.py - Gated upgrade of legacy status markers
import pytest

from erapport.models import Module, SchoolYear, StudentReportRow, SystemSetting
from erapport.services.persistence import PersistenceCoordinator
from erapport.services.status_migration import (
    STATUS_ENCODING_KEY,
    MigrationState,
    migrate_categories,
    migrate_overrides,
    migrate_status,
)


def legacy_competencies():
    return [
        {
            "category": "DNS",
            "result": "NOK",
            "items": [
                {"task": "Verify name resolution", "status": "NOK", "comment": "slow"},
                {"task": "Check reverse lookup", "status": "NA"},
                {"task": "Configure forwarders", "status": "OK"},
            ],
        }
    ]


@pytest.fixture
def legacy_row(database):
    """A school year, a module and one student row written before the encoding change"""
    with database.transaction() as session:
        session.add(SchoolYear(id="y1", label="2024-2025", position=0))
        session.add(Module(id="m1", school_year_id="y1", title="123 Services", position=0))
        session.flush()
        session.add(
            StudentReportRow(
                id="s1",
                module_id="m1",
                evaluation_type="E1",
                name="Dupont",
                competencies=legacy_competencies(),
                competency_summary_overrides={"OO1": "NA", "OO2": "OK"},
            )
        )
    return "s1"


def stored_row(database, row_id):
    with database.transaction() as session:
        row = session.get(StudentReportRow, row_id)
        return row.competencies, row.competency_summary_overrides


def test_migrate_status_values():
    assert migrate_status("NOK") == "NEEDS_IMPROVEMENT"
    assert migrate_status("NA") == "NOT_ASSESSED"
    assert migrate_status("OK") == "OK"
    assert migrate_status("") == ""
    assert migrate_status(None) is None


def test_migrate_categories_keeps_other_fields():
    migrated = migrate_categories(legacy_competencies())

    assert migrated[0]["result"] == "NEEDS_IMPROVEMENT"
    assert [item["status"] for item in migrated[0]["items"]] == ["NEEDS_IMPROVEMENT", "NOT_ASSESSED", "OK"]
    assert migrated[0]["items"][0]["comment"] == "slow"


def test_migrate_overrides():
    assert migrate_overrides({"OO1": "NOK", "OO2": ""}) == {"OO1": "NEEDS_IMPROVEMENT", "OO2": ""}
    assert migrate_overrides(None) == {}


class TestStatusMigrator:

    def test_load_upgrades_legacy_rows(self, database, defaults, legacy_row):
        state = PersistenceCoordinator(database, defaults).load_state()

        report = state.find_student(legacy_row)
        assert report.competencies[0].result == "NEEDS_IMPROVEMENT"
        assert [item.status for item in report.competencies[0].items] == ["NEEDS_IMPROVEMENT", "NOT_ASSESSED", "OK"]
        assert report.competency_summary_overrides == {"OO1": "NOT_ASSESSED", "OO2": "OK"}

        competencies, _overrides = stored_row(database, legacy_row)
        assert competencies[0]["items"][1]["status"] == "NOT_ASSESSED"

    def test_marker_is_written(self, database, defaults, legacy_row):
        coordinator = PersistenceCoordinator(database, defaults)

        assert coordinator.migrate() == 1

        with database.transaction() as session:
            marker = session.get(SystemSetting, STATUS_ENCODING_KEY)
            assert marker.value == 2
            assert MigrationState().is_current(session)

    def test_runs_only_once(self, database, defaults, legacy_row):
        coordinator = PersistenceCoordinator(database, defaults)
        coordinator.migrate()

        # Written after the upgrade, so never rewritten
        with database.transaction() as session:
            row = session.get(StudentReportRow, legacy_row)
            row.competencies = legacy_competencies()

        assert coordinator.migrate() == 0
        competencies, _overrides = stored_row(database, legacy_row)
        assert competencies[0]["items"][0]["status"] == "NOK"

    def test_empty_database_is_marked(self, database, defaults):
        coordinator = PersistenceCoordinator(database, defaults)

        assert coordinator.migrate() == 0
        with database.transaction() as session:
            assert MigrationState().current_version(session) == 2

    def test_missing_marker_reads_as_version_one(self, database):
        with database.transaction() as session:
            assert MigrationState().current_version(session) == 1
            assert not MigrationState().is_current(session)
