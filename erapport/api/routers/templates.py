# erapport/api/routers/templates.py - Module templates and carrying reports between evaluations
from fastapi import APIRouter, Depends
import logging

from erapport.api.deps.auth import get_current_user
from erapport.api.deps.store import get_store
from erapport.api.errors import to_http
from erapport.core.errors import ERapportError
from erapport.schemas.api import CopyStudentsIn, CopyStudentsOut, TemplateUpdateOut
from erapport.schemas.report import Module, Template, UserRecord
from erapport.services.report_store import ReportStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.put("/{module_id}/templates/{evaluation_type}", response_model=TemplateUpdateOut)
def update_template(
    module_id: str,
    evaluation_type: str,
    template: Template,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    """Replace the template and reconcile every report of that module and evaluation type"""
    try:
        stored, updated = store.update_template(module_id, evaluation_type, template)
    except ERapportError as e:
        raise to_http(e)

    logger.info(f"Template {module_id}/{evaluation_type} updated by {user.email}: {updated} report(s) reconciled")
    return TemplateUpdateOut(template=stored, updated_reports=updated)


@router.delete("/{module_id}/templates/{evaluation_type}", response_model=Module)
def delete_template(
    module_id: str,
    evaluation_type: str,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    try:
        return store.delete_template(module_id, evaluation_type)
    except ERapportError as e:
        raise to_http(e)


@router.post("/{module_id}/copy-students", response_model=CopyStudentsOut)
def copy_students(
    module_id: str,
    payload: CopyStudentsIn,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    """Clone the caller's selected reports into the next evaluation"""
    try:
        students, created = store.copy_students(
            user,
            module_id,
            payload.source_type,
            payload.target_type,
            payload.student_ids,
        )
    except ERapportError as e:
        raise to_http(e)
    return CopyStudentsOut(students=students, template_created=created)
