# erapport/services/report_renderer.py - PDF evaluation reports, coaching forms and the export-all bundle (fpdf2)
import csv
import io
import logging
import re
import unicodedata
import zipfile
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from fpdf import FPDF
from fpdf.enums import XPos, YPos
from fpdf.fonts import FontFace

from erapport.schemas.report import ReportCategory, ReportStatus, StudentReport, UserRecord

logger = logging.getLogger(__name__)

# Printed markers for stored statuses
STATUS_MARKERS = {
    ReportStatus.OK.value: "OK",
    ReportStatus.NEEDS_IMPROVEMENT.value: "~",
    ReportStatus.NOT_ASSESSED.value: "NOK",
}

STATUS_COLORS = {
    ReportStatus.OK.value: ((220, 252, 231), (22, 163, 74)),
    ReportStatus.NEEDS_IMPROVEMENT.value: ((255, 237, 213), (249, 115, 22)),
    ReportStatus.NOT_ASSESSED.value: ((254, 226, 226), (220, 38, 38)),
}
DEFAULT_STATUS_COLORS = ((248, 250, 252), (15, 23, 42))

HEADER_FILL = (199, 215, 236)
ACCENT_FILL = (217, 242, 217)
COACHING_FILL = (251, 210, 163)
TEXT_COLOR = (15, 23, 42)
MUTED_COLOR = (51, 65, 85)

COACHING_NOTES = {1, 2, 3}
EXPORT_ARCHIVE_NAME = "rapports-evaluation.zip"
EXPORT_CSV_HEADER = ["NomEtudiant", "EmailEtudiant", "FichierRapport", "FichierCoaching"]
BOM = "\ufeff"

OUTLOOK_DRAFT_SCRIPT = """# Crée des brouillons Outlook à partir de etudiants.csv
$csvPath = Join-Path $PSScriptRoot "etudiants.csv"
if (-not (Test-Path $csvPath)) {
  Write-Error "etudiants.csv introuvable dans le même dossier que ce script."
  exit 1
}

$subjectPath = Join-Path $PSScriptRoot "mail-subject.txt"
$bodyPath = Join-Path $PSScriptRoot "mail-body.txt"
$mailSubjectTemplate = ""
$mailBody = ""

if (Test-Path $subjectPath) {
  $mailSubjectTemplate = (Get-Content -Path $subjectPath -Raw -Encoding UTF8).TrimEnd()
}

if (Test-Path $bodyPath) {
  $mailBody = (Get-Content -Path $bodyPath -Raw -Encoding UTF8).TrimEnd()
}

$outlook = New-Object -ComObject Outlook.Application
$students = Import-Csv -Path $csvPath -Encoding UTF8

foreach ($student in $students) {
  if (-not $student.EmailEtudiant) {
    continue
  }

  $mail = $outlook.CreateItem(0)
  $mail.To = $student.EmailEtudiant
  if ($mailSubjectTemplate) {
    $mail.Subject = $mailSubjectTemplate
  } else {
    $mail.Subject = "Rapport d'évaluation - $($student.NomEtudiant)"
  }
  $attachmentPath = Join-Path $PSScriptRoot $student.FichierRapport
  $coachingPath = $null

  if ($mailBody) {
    $mail.Body = $mailBody
  }

  if ($student.FichierCoaching) {
    $coachingPath = Join-Path $PSScriptRoot $student.FichierCoaching
  }

  if (Test-Path $attachmentPath) {
    $null = $mail.Attachments.Add($attachmentPath)
  }

  if ($coachingPath -and (Test-Path $coachingPath)) {
    $null = $mail.Attachments.Add($coachingPath)
  }

  $mail.Save()
}
"""


def _pdf_safe(text: str) -> str:
    """Core fonts only cover latin-1"""
    text = (
        (text or "")
        .replace("’", "'")
        .replace("‘", "'")
        .replace("“", '"')
        .replace("”", '"')
        .replace("—", " - ")
        .replace("–", "-")
        .replace("…", "...")
    )
    return text.encode("latin-1", "replace").decode("latin-1")


# ─── Labels and aggregation ───────────────────────────────────────────────────

def status_marker(status: str) -> str:
    return STATUS_MARKERS.get(status, status or "")


def format_date(value: str) -> str:
    """ISO dates print as dd/mm/yyyy; anything else is printed as typed"""
    if not value:
        return ""
    try:
        return date.fromisoformat(value[:10]).strftime("%d/%m/%Y")
    except ValueError:
        return value


def evaluation_number(evaluation_type: str) -> str:
    match = re.search(r"E(\d+)", (evaluation_type or "").strip().upper())
    return match.group(1) if match else ""


def should_include_coaching(report: StudentReport) -> bool:
    try:
        return float(report.note) in COACHING_NOTES
    except ValueError:
        return False


def remediation_value(categories: Sequence[ReportCategory]) -> str:
    """
    What the student has to rework: evaluation methods of the tasks marked
    not assessed, "Aucune remédiation" when every task is OK.
    """
    items = [item for category in categories for item in category.items]
    if not items:
        return "-"
    if all(item.status == ReportStatus.OK.value for item in items):
        return "Aucune remédiation"

    methods: List[str] = []
    for item in items:
        if item.status == ReportStatus.NOT_ASSESSED.value and item.evaluation_method:
            if item.evaluation_method not in methods:
                methods.append(item.evaluation_method)
    return " + ".join(methods) if methods else "-"


def aggregate_competency_status(statuses: Iterable[str]) -> str:
    """Worst status wins; not assessed outranks needs improvement"""
    marked = [status for status in statuses if status]
    if not marked:
        return ""
    if ReportStatus.NOT_ASSESSED.value in marked:
        return ReportStatus.NOT_ASSESSED.value
    if ReportStatus.NEEDS_IMPROVEMENT.value in marked:
        return ReportStatus.NEEDS_IMPROVEMENT.value
    if all(status == ReportStatus.OK.value for status in marked):
        return ReportStatus.OK.value
    return marked[0]


def competency_summary_rows(report: StudentReport) -> List[Tuple[str, str]]:
    """
    One row per competency code used on the report: declared options first,
    in option order, then codes the options do not list. Overrides replace
    the computed result.
    """
    statuses: Dict[str, List[str]] = {}
    for category in report.competencies:
        for item in category.items:
            if item.competency_id:
                statuses.setdefault(item.competency_id, []).append(item.status)

    overrides = report.competency_summary_overrides
    rows = []
    listed = set()
    for option in report.competency_options:
        if not option.code or option.code not in statuses:
            continue
        listed.add(option.code)
        result = overrides.get(option.code) or aggregate_competency_status(statuses[option.code])
        rows.append((f"{option.code} - {option.description}", result))

    for code, code_statuses in statuses.items():
        if code in listed:
            continue
        rows.append((code, overrides.get(code) or aggregate_competency_status(code_statuses)))
    return rows


def summary_rows(report: StudentReport) -> List[Tuple[str, str]]:
    if report.summary_by_competencies:
        return competency_summary_rows(report)
    return [(category.category, category.result) for category in report.competencies]


# ─── File names ───────────────────────────────────────────────────────────────

def report_token(value: str) -> str:
    """Letters and digits only"""
    normalized = unicodedata.normalize("NFC", value or "").strip()
    return "".join(char for char in normalized if char.isalnum())


def module_number_token(module_title: str) -> str:
    words = (module_title or "").split()
    return report_token(words[0] if words else "") or "module"


def evaluation_label(evaluation_type: str) -> str:
    return report_token((evaluation_type or "").upper()) or "E1"


def student_name_token(report: StudentReport) -> str:
    return f"{report_token(report.firstname)}{report_token(report.name)}" or "etudiant"


def report_filename(report: StudentReport) -> str:
    return (
        f"{module_number_token(report.module_title)}-{evaluation_label(report.evaluation_type)}-"
        f"{student_name_token(report)}.pdf"
    )


def coaching_filename(report: StudentReport) -> str:
    return report_filename(report)[: -len(".pdf")] + "-coaching.pdf"


def resolve_teacher_name(
    report: StudentReport,
    users: Sequence[UserRecord],
    caller: Optional[UserRecord] = None,
) -> str:
    """The report's teacher field, else its owner's name or email, else the caller's"""
    if report.teacher.strip():
        return report.teacher.strip()
    owner_id = report.teacher_id or (caller.id if caller else None)
    owner = next((user for user in users if user.id == owner_id), None)
    for candidate in (owner, caller):
        if candidate is not None and (candidate.name or candidate.email):
            return candidate.name or candidate.email
    return ""


# ─── PDF documents ────────────────────────────────────────────────────────────

class _ReportPdf(FPDF):
    """A4 portrait page with the school banner and a page counter"""

    def __init__(self, title: str, evaluation_date: str):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.report_title = title
        self.evaluation_date = evaluation_date
        self.alias_nb_pages()
        self.set_auto_page_break(auto=True, margin=16)
        self.set_margins(left=14, top=14, right=14)
        self.set_text_color(*TEXT_COLOR)

    def header(self):
        self.set_font("Helvetica", "B", 12)
        self.set_fill_color(*HEADER_FILL)
        self.cell(30, 12, "EMF", border=1, align="C", fill=True)
        self.cell(0, 12, _pdf_safe(self.report_title), border=1, align="C",
                  new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_font("Helvetica", "", 8)
        date_text = format_date(self.evaluation_date)
        if date_text:
            self.cell(0, 6, _pdf_safe(f"Date de l'évaluation : {date_text}"), align="R",
                      new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.ln(2)

    def footer(self):
        self.set_y(-12)
        self.set_font("Helvetica", "I", 7)
        self.cell(0, 6, f"Page {self.page_no()}/{{nb}}", align="C")

    def heading(self, text: str) -> None:
        self.set_font("Helvetica", "B", 9)
        self.set_text_color(*TEXT_COLOR)
        self.cell(0, 6, _pdf_safe(text), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    def paragraph(self, text: str) -> None:
        self.set_font("Helvetica", "", 8)
        self.set_text_color(*MUTED_COLOR)
        self.multi_cell(0, 4, _pdf_safe(text or "-"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.set_text_color(*TEXT_COLOR)
        self.ln(2)

    def identity_table(self, report: StudentReport, extra_rows: Sequence[Tuple[str, str]] = ()) -> None:
        self.set_font("Helvetica", "", 8)
        rows = [
            ("Apprenant(e) - Nom + prénom / classe",
             " / ".join(part for part in (report.display_name, report.class_name) if part) or "-"),
            ("Enseignants - Prénom + nom / signature", report.teacher or "-"),
            *extra_rows,
        ]
        with self.table(col_widths=(60, 122), first_row_as_headings=False, line_height=5) as table:
            for label, value in rows:
                row = table.row()
                row.cell(_pdf_safe(label), style=FontFace(emphasis="BOLD", fill_color=HEADER_FILL))
                row.cell(_pdf_safe(value))
        self.ln(4)

    def status_cell(self, row, status: str) -> None:
        fill, color = STATUS_COLORS.get(status, DEFAULT_STATUS_COLORS)
        row.cell(
            _pdf_safe(status_marker(status)),
            align="C",
            style=FontFace(emphasis="BOLD", color=color, fill_color=fill),
        )

    def to_bytes(self) -> bytes:
        return bytes(self.output())


def render_report(report: StudentReport) -> bytes:
    """Evaluation report: objectives, summary with module note, checklist, remediation and remarks"""
    number = evaluation_number(report.evaluation_type)
    title = "Rapport d'évaluation sommative" + (f" {number}" if number else "")
    pdf = _ReportPdf(title, report.evaluation_date)
    pdf.add_page()

    pdf.set_font("Helvetica", "B", 11)
    pdf.set_fill_color(*ACCENT_FILL)
    pdf.cell(0, 8, _pdf_safe(report.module_title or "Module"), border=1, align="C", fill=True,
             new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)
    pdf.identity_table(report, [("Évaluation", number or "-")])

    pdf.heading("Compétences opérationnelles :")
    pdf.paragraph(report.operational_competence)
    pdf.heading("Objectifs opérationnels")
    pdf.paragraph("\n".join(f"{option.code}: {option.description}" for option in report.competency_options))

    pdf.set_font("Helvetica", "", 8)
    with pdf.table(
        col_widths=(152, 30),
        headings_style=FontFace(emphasis="BOLD", fill_color=HEADER_FILL),
        line_height=5,
    ) as table:
        header = table.row()
        header.cell("Résumé des compétences évaluées")
        header.cell("Résultat", align="C")
        for label, result in summary_rows(report):
            row = table.row()
            row.cell(_pdf_safe(label))
            pdf.status_cell(row, result)
        note_row = table.row()
        note_row.cell("Note du module", style=FontFace(emphasis="BOLD", fill_color=ACCENT_FILL))
        note_row.cell(_pdf_safe(report.note or "-"), align="C",
                      style=FontFace(emphasis="BOLD", fill_color=ACCENT_FILL))
    pdf.ln(4)

    for index, category in enumerate(report.competencies, start=1):
        with pdf.table(
            col_widths=(18, 86, 56, 22),
            headings_style=FontFace(emphasis="BOLD", fill_color=HEADER_FILL),
            line_height=4.5,
        ) as table:
            header = table.row()
            header.cell(str(index), align="C")
            header.cell(_pdf_safe(category.category or "-"))
            header.cell("Commentaire")
            header.cell("Statut", align="C")
            for item in category.items:
                row = table.row()
                row.cell(_pdf_safe(item.competency_id or "-"), align="C")
                row.cell(_pdf_safe(item.task or "-"))
                row.cell(_pdf_safe(item.comment))
                pdf.status_cell(row, item.status)
        pdf.ln(3)

    with pdf.table(col_widths=(30, 152), first_row_as_headings=False, line_height=5) as table:
        row = table.row()
        row.cell("A remédier :", style=FontFace(emphasis="BOLD"))
        row.cell(_pdf_safe(remediation_value(report.competencies)))
        row = table.row()
        row.cell("Remarques :", style=FontFace(emphasis="BOLD"))
        row.cell(_pdf_safe(report.remarks or "-"))

    return pdf.to_bytes()


def render_coaching(report: StudentReport) -> bytes:
    """Coaching request form offered to students with a failing note"""
    pdf = _ReportPdf("Demande de coaching", report.evaluation_date)
    pdf.add_page()

    pdf.set_font("Helvetica", "B", 11)
    pdf.set_fill_color(*COACHING_FILL)
    pdf.cell(0, 8, _pdf_safe(report.module_title or "Module"), border=1, align="C", fill=True,
             new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(2)
    pdf.identity_table(report, [("Note du module", report.note or "-")])

    pdf.set_font("Helvetica", "", 9)
    pdf.multi_cell(
        0, 5,
        _pdf_safe(
            'Un accompagnement pédagogique appelé "coaching" vous est proposé sur une base '
            "volontaire (voir la directive spécifique présentant le concept)."
        ),
        border="LTR", new_x=XPos.LMARGIN, new_y=YPos.NEXT,
    )
    pdf.set_font("Helvetica", "B", 9)
    pdf.cell(130, 8, _pdf_safe("Je suis volontaire pour un coaching (cocher)"), border="L", align="C")
    pdf.cell(0, 8, "[  ] OUI      [  ] NON", border="R", align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font("Helvetica", "", 9)
    pdf.cell(0, 8, _pdf_safe(f"Date du coaching : {format_date(report.coaching_date) or '-'}"),
             border="LR", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.cell(0, 16, "Signature de l'apprenant(e) :", border="LRB", new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    return pdf.to_bytes()


# ─── Export bundle ────────────────────────────────────────────────────────────

def build_export_archive(
    reports: Sequence[StudentReport],
    mail_subject: str = "",
    mail_body: str = "",
) -> bytes:
    """
    Zip every report PDF, the coaching forms that apply, a recipient list
    and the Outlook draft script.
    """
    csv_buffer = io.StringIO()
    writer = csv.writer(csv_buffer, lineterminator="\n")
    writer.writerow(EXPORT_CSV_HEADER)

    archive_buffer = io.BytesIO()
    with zipfile.ZipFile(archive_buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for report in reports:
            report_name = report_filename(report)
            archive.writestr(report_name, render_report(report))

            coaching_name = ""
            if should_include_coaching(report):
                coaching_name = coaching_filename(report)
                archive.writestr(coaching_name, render_coaching(report))

            writer.writerow([report.display_name or "-", report.email, report_name, coaching_name])

        archive.writestr("etudiants.csv", BOM + csv_buffer.getvalue())
        archive.writestr("mail-subject.txt", BOM + mail_subject)
        archive.writestr("mail-body.txt", BOM + mail_body)
        archive.writestr("creer-brouillons-outlook.ps1", BOM + OUTLOOK_DRAFT_SCRIPT)

    logger.info(f"Export archive built for {len(reports)} report(s)")
    return archive_buffer.getvalue()


__all__ = [
    "STATUS_MARKERS",
    "EXPORT_ARCHIVE_NAME",
    "EXPORT_CSV_HEADER",
    "status_marker",
    "format_date",
    "evaluation_number",
    "should_include_coaching",
    "remediation_value",
    "aggregate_competency_status",
    "competency_summary_rows",
    "summary_rows",
    "report_token",
    "report_filename",
    "coaching_filename",
    "resolve_teacher_name",
    "render_report",
    "render_coaching",
    "build_export_archive",
]
