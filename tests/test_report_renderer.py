# tests/test_report_renderer.py - Summary aggregation, file names, PDF documents and the export bundle
import csv
import io
import zipfile

import pytest

from erapport.schemas.report import ReportCategory, StudentReport, UserRecord
from erapport.services.report_renderer import (
    BOM,
    EXPORT_CSV_HEADER,
    aggregate_competency_status,
    build_export_archive,
    coaching_filename,
    competency_summary_rows,
    format_date,
    remediation_value,
    render_coaching,
    render_report,
    report_filename,
    resolve_teacher_name,
    should_include_coaching,
    status_marker,
    summary_rows,
)


@pytest.fixture
def report():
    return StudentReport.model_validate({
        "id": "s1",
        "moduleId": "m1",
        "moduleTitle": "123 Activer les services d'un serveur",
        "evaluationType": "E2",
        "name": "Dupont",
        "firstname": "Léa",
        "email": "lea@example.com",
        "note": "3",
        "className": "INF2A",
        "teacher": "J. Muller",
        "evaluationDate": "2025-11-04",
        "coachingDate": "2025-11-18",
        "operationalCompetence": "Mettre en service les services réseau",
        "remarks": "Revoir le DHCP",
        "competencyOptions": [
            {"code": "OO1", "description": "Installer"},
            {"code": "OO2", "description": "Configurer"},
        ],
        "competencies": [
            {
                "category": "DNS",
                "result": "NEEDS_IMPROVEMENT",
                "items": [
                    {"task": "Verify name resolution", "competencyId": "OO2", "status": "OK"},
                    {"task": "Check reverse lookup", "competencyId": "OO2", "status": "NEEDS_IMPROVEMENT",
                     "comment": "slow"},
                ],
            },
            {
                "category": "DHCP",
                "result": "NOT_ASSESSED",
                "items": [
                    {"task": "Create a scope", "competencyId": "OO1", "status": "NOT_ASSESSED",
                     "evaluationMethod": "Pratique"},
                    {"task": "Reserve an address", "competencyId": "OO9", "status": "OK"},
                ],
            },
        ],
    })


class TestSummary:

    def test_status_markers(self):
        assert status_marker("OK") == "OK"
        assert status_marker("NEEDS_IMPROVEMENT") == "~"
        assert status_marker("NOT_ASSESSED") == "NOK"
        assert status_marker("") == ""

    @pytest.mark.parametrize("statuses, expected", [
        (["OK", "OK"], "OK"),
        (["OK", "NEEDS_IMPROVEMENT"], "NEEDS_IMPROVEMENT"),
        (["NEEDS_IMPROVEMENT", "NOT_ASSESSED", "OK"], "NOT_ASSESSED"),
        (["", "OK"], "OK"),
        (["", ""], ""),
    ])
    def test_aggregation(self, statuses, expected):
        assert aggregate_competency_status(statuses) == expected

    def test_rows_by_category(self, report):
        assert summary_rows(report) == [("DNS", "NEEDS_IMPROVEMENT"), ("DHCP", "NOT_ASSESSED")]

    def test_rows_by_competency(self, report):
        report = report.model_copy(update={"summary_by_competencies": True})

        assert summary_rows(report) == [
            ("OO1 - Installer", "NOT_ASSESSED"),
            ("OO2 - Configurer", "NEEDS_IMPROVEMENT"),
            ("OO9", "OK"),
        ]

    def test_overrides_win(self, report):
        report = report.model_copy(update={"competency_summary_overrides": {"OO2": "OK"}})

        assert dict(competency_summary_rows(report))["OO2 - Configurer"] == "OK"


class TestRemediation:

    def test_methods_of_not_assessed_tasks(self, report):
        assert remediation_value(report.competencies) == "Pratique"

    def test_everything_ok(self):
        categories = [ReportCategory.model_validate({"items": [{"task": "t", "status": "OK"}]})]

        assert remediation_value(categories) == "Aucune remédiation"

    def test_no_tasks(self):
        assert remediation_value([]) == "-"

    def test_methods_are_unique(self):
        categories = [ReportCategory.model_validate({"items": [
            {"task": "a", "status": "NOT_ASSESSED", "evaluationMethod": "Oral"},
            {"task": "b", "status": "NOT_ASSESSED", "evaluationMethod": "Oral"},
            {"task": "c", "status": "NOT_ASSESSED", "evaluationMethod": "Écrit"},
        ]})]

        assert remediation_value(categories) == "Oral + Écrit"


class TestNaming:

    def test_report_filename(self, report):
        assert report_filename(report) == "123-E2-LéaDupont.pdf"
        assert coaching_filename(report) == "123-E2-LéaDupont-coaching.pdf"

    def test_filename_fallbacks(self):
        assert report_filename(StudentReport()) == "module-E1-etudiant.pdf"

    def test_format_date(self):
        assert format_date("2025-11-04") == "04/11/2025"
        assert format_date("next week") == "next week"
        assert format_date("") == ""

    @pytest.mark.parametrize("note, expected", [("1", True), ("3", True), ("3.0", True), ("2.5", False), ("4", False), ("", False)])
    def test_coaching_notes(self, note, expected):
        assert should_include_coaching(StudentReport(note=note)) is expected

    def test_teacher_name_resolution(self, report):
        owner = UserRecord(id="u1", name="Ada Lovelace", email="ada@example.com")
        caller = UserRecord(id="u2", name="", email="alan@example.com")

        assert resolve_teacher_name(report, [owner], caller) == "J. Muller"

        unnamed = report.model_copy(update={"teacher": " ", "teacher_id": "u1"})
        assert resolve_teacher_name(unnamed, [owner], caller) == "Ada Lovelace"

        orphan = report.model_copy(update={"teacher": "", "teacher_id": None})
        assert resolve_teacher_name(orphan, [owner], caller) == "alan@example.com"


class TestDocuments:

    def test_render_report(self, report):
        content = render_report(report)

        assert content.startswith(b"%PDF")

    def test_render_report_with_unicode_text(self, report):
        report = report.model_copy(update={"remarks": "Très bien … “parfait” — 👍"})

        assert render_report(report).startswith(b"%PDF")

    def test_render_coaching(self, report):
        assert render_coaching(report).startswith(b"%PDF")

    def test_export_archive(self, report):
        passing = report.model_copy(update={"id": "s2", "name": "Martin", "firstname": "Paul", "note": "5", "email": ""})

        archive = zipfile.ZipFile(io.BytesIO(build_export_archive([report, passing], "Sujet", "Corps")))

        assert sorted(archive.namelist()) == sorted([
            "123-E2-LéaDupont.pdf",
            "123-E2-LéaDupont-coaching.pdf",
            "123-E2-PaulMartin.pdf",
            "etudiants.csv",
            "mail-subject.txt",
            "mail-body.txt",
            "creer-brouillons-outlook.ps1",
        ])

        text = archive.read("etudiants.csv").decode("utf-8")
        assert text.startswith(BOM)
        rows = list(csv.reader(io.StringIO(text[len(BOM):])))
        assert rows[0] == EXPORT_CSV_HEADER
        assert rows[1] == ["Léa Dupont", "lea@example.com", "123-E2-LéaDupont.pdf", "123-E2-LéaDupont-coaching.pdf"]
        assert rows[2] == ["Paul Martin", "", "123-E2-PaulMartin.pdf", ""]

        assert archive.read("mail-subject.txt").decode("utf-8") == BOM + "Sujet"
        assert archive.read("mail-body.txt").decode("utf-8") == BOM + "Corps"
