# tests/test_relational_mapper.py - State tree to table rows and back
import pytest

from erapport.core.errors import ValidationFailure
from erapport.schemas.report import AppState, Module, SchoolYear, StudentReport, Template, UserRecord
from erapport.services.normalization import normalize_state
from erapport.services.relational_mapper import TEMPLATE_IDENTITY_FIELDS, flatten, hydrate


@pytest.fixture
def state(defaults):
    template = Template(
        note="5",
        class_name="INF2A",
        competency_options=[{"code": "OO1", "description": "Installer"}],
        competencies=[{"category": "DNS", "items": [{"task": "Verify name resolution", "competencyId": "OO1"}]}],
    )
    raw = AppState(
        users=[UserRecord(id="u1", name="Ada", email="ADA@example.com", password_hash="h", salt="s", token="t")],
        school_years=[
            SchoolYear(
                id="y1",
                label="2025-2026",
                modules=[
                    Module(id="m2", title="157 Projet", templates={"E2": template, "E1": template}),
                    Module(id="m1", title="123 Services"),
                ],
            ),
            SchoolYear(id="y0", label="2024-2025"),
        ],
        students=[
            StudentReport(
                id="s2",
                module_id="m2",
                evaluation_type="E2",
                teacher_id="u1",
                name="Martin",
                competencies=[{"category": "DNS", "items": [{"task": "Verify name resolution", "status": "OK"}]}],
                competency_summary_overrides={"OO1": "OK"},
            ),
            StudentReport(id="s1", module_id="m1", name="Dupont", teacher_id="unknown"),
        ],
    )
    return normalize_state(raw, defaults)


class TestRoundTrip:

    def test_hydrate_of_flatten_is_identity(self, state, defaults):
        assert hydrate(flatten(state), defaults) == state

    def test_order_is_kept(self, state, defaults):
        restored = hydrate(flatten(state), defaults)

        assert [year.label for year in restored.school_years] == ["2025-2026", "2024-2025"]
        assert [module.id for module in restored.school_years[0].modules] == ["m2", "m1"]
        assert [student.id for student in restored.students] == ["s2", "s1"]
        assert list(restored.school_years[0].modules[0].templates) == ["E1", "E2"]


class TestFlatten:

    def test_row_counts(self, state):
        rows = flatten(state)

        assert rows.counts() == {
            "users": 1,
            "school_years": 2,
            "modules": 2,
            "module_templates": 3,
            "students": 2,
        }

    def test_positions_follow_list_order(self, state):
        rows = flatten(state)

        assert [(row["id"], row["position"]) for row in rows.school_years] == [("y1", 0), ("y0", 1)]
        assert [(row["id"], row["position"]) for row in rows.students] == [("s2", 0), ("s1", 1)]

    def test_template_data_has_no_identity(self, state):
        rows = flatten(state)

        for row in rows.module_templates:
            assert not {"moduleId", "moduleTitle", "schoolYear", "evaluationType"} & set(row["data"])
            assert not TEMPLATE_IDENTITY_FIELDS & set(row["data"])
        assert rows.module_templates[0]["data"]["className"] == "INF2A"

    def test_student_rows_do_not_store_display_fields(self, state):
        row = flatten(state).students[0]

        assert "module_title" not in row
        assert "school_year" not in row
        assert row["competencies"][0]["items"][0]["status"] == "OK"


class TestNormalization:

    def test_users_emails_lowercased(self, state):
        assert state.users[0].email == "ada@example.com"

    def test_unknown_teacher_is_cleared(self, state):
        assert state.find_student("s1").teacher_id is None
        assert state.find_student("s2").teacher_id == "u1"

    def test_module_without_templates_gets_default(self, state, defaults):
        module = state.find_module("m1")

        assert list(module.templates) == [defaults.primary_evaluation_type]
        assert module.templates["E1"].module_title == "123 Services"
        assert module.templates["E1"].school_year == "2025-2026"

    def test_display_fields_backfilled(self, state):
        student = state.find_student("s2")

        assert student.module_title == "157 Projet"
        assert student.school_year == "2025-2026"

    def test_orphan_reports_dropped(self, defaults):
        state = normalize_state(
            AppState(school_years=[SchoolYear(label="2025-2026")], students=[StudentReport(module_id="gone")]),
            defaults,
        )

        assert state.students == []

    def test_duplicate_school_year_labels_rejected(self, defaults):
        with pytest.raises(ValidationFailure):
            normalize_state(
                AppState(school_years=[SchoolYear(label="2025-2026"), SchoolYear(label="2025-2026")]),
                defaults,
            )

    def test_overlong_school_year_label_rejected(self, defaults):
        with pytest.raises(ValidationFailure, match="longer than"):
            normalize_state(AppState(school_years=[SchoolYear(label="x" * 33)]), defaults)

    def test_legacy_flat_modules_grouped_by_year(self, defaults):
        legacy = AppState.model_validate({
            "modules": [
                {"id": "m1", "title": "123", "schoolYear": "2023-2024", "template": {"className": "INF1"}},
                {"id": "m2", "title": "157", "schoolYear": "2023-2024"},
            ]
        })

        state = normalize_state(legacy, defaults)

        assert [year.label for year in state.school_years] == ["2023-2024"]
        assert [module.id for module in state.school_years[0].modules] == ["m1", "m2"]
        assert list(state.find_module("m1").templates) == ["E1"]
        assert state.find_module("m1").templates["E1"].class_name == "INF1"

    def test_unknown_evaluation_types_dropped(self, defaults):
        state = normalize_state(
            AppState(school_years=[SchoolYear(label="2025-2026", modules=[Module(id="m1", templates={"X9": Template()})])]),
            defaults,
        )

        assert list(state.find_module("m1").templates) == ["E1"]
