# erapport/api/routers/reports.py - PDF report, coaching form and export-all bundle downloads
from typing import List
from urllib.parse import quote
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from erapport.api.deps.auth import get_current_user
from erapport.api.deps.store import get_store
from erapport.api.errors import to_http
from erapport.core.errors import ERapportError
from erapport.schemas.api import ExportAllIn
from erapport.schemas.report import StudentReport, UserRecord
from erapport.services.report_renderer import (
    EXPORT_ARCHIVE_NAME,
    build_export_archive,
    coaching_filename,
    render_coaching,
    render_report,
    report_filename,
    resolve_teacher_name,
    should_include_coaching,
)
from erapport.services.report_store import ReportStore

logger = logging.getLogger(__name__)
router = APIRouter()


def content_disposition(filename: str) -> str:
    """Plain ASCII name for old clients, RFC 5987 name for accented ones"""
    fallback = filename.encode("ascii", "ignore").decode("ascii") or "rapport.pdf"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def with_teacher_names(
    reports: List[StudentReport],
    user: UserRecord,
    store: ReportStore,
) -> List[StudentReport]:
    users = store.users()
    return [
        report.model_copy(update={"teacher": resolve_teacher_name(report, users, user)})
        for report in reports
    ]


@router.post("")
def download_report(
    report: StudentReport,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    """Evaluation report PDF of the submitted report"""
    try:
        report = with_teacher_names([report], user, store)[0]
    except ERapportError as e:
        raise to_http(e)

    filename = report_filename(report)
    logger.info(f"Rendering report {filename} for {user.email}")
    return Response(
        content=render_report(report),
        media_type="application/pdf",
        headers={"Content-Disposition": content_disposition(filename)},
    )


@router.post("/coaching")
def download_coaching(
    report: StudentReport,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    """Coaching request form; only offered for notes 1 to 3"""
    if not should_include_coaching(report):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No coaching form for this note",
        )
    try:
        report = with_teacher_names([report], user, store)[0]
    except ERapportError as e:
        raise to_http(e)

    filename = coaching_filename(report)
    return Response(
        content=render_coaching(report),
        media_type="application/pdf",
        headers={"Content-Disposition": content_disposition(filename)},
    )


@router.post("/export-all")
def export_all(
    payload: ExportAllIn,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    """ZIP with every report, the applicable coaching forms, a recipient list and mail drafts"""
    if not payload.students:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No students provided for export",
        )
    try:
        reports = with_teacher_names(payload.students, user, store)
    except ERapportError as e:
        raise to_http(e)

    archive = build_export_archive(reports, payload.mail_draft_subject, payload.mail_draft_body)
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": content_disposition(EXPORT_ARCHIVE_NAME)},
    )
