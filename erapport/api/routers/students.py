# erapport/api/routers/students.py - Student report CRUD and bulk import
from fastapi import APIRouter, Depends, Response, status
import logging

from erapport.api.deps.auth import get_current_user
from erapport.api.deps.store import get_store
from erapport.api.errors import to_http
from erapport.core.errors import ERapportError
from erapport.schemas.api import StudentCreate, StudentImportIn, StudentList
from erapport.schemas.report import StudentReport, UserRecord
from erapport.services.report_store import ReportStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=StudentReport, status_code=status.HTTP_201_CREATED)
def create_student(
    payload: StudentCreate,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    """New report from the current template of the module and evaluation type"""
    try:
        return store.create_student(
            user,
            payload.module_id,
            payload.evaluation_type,
            name=payload.name,
            firstname=payload.firstname,
            email=payload.email,
            group_name=payload.group_name,
        )
    except ERapportError as e:
        raise to_http(e)


@router.post("/import", response_model=StudentList, status_code=status.HTTP_201_CREATED)
def import_students(
    payload: StudentImportIn,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    """One report per tab-separated "name, firstname, email" line"""
    try:
        students = store.import_students(user, payload.module_id, payload.evaluation_type, payload.text)
    except ERapportError as e:
        raise to_http(e)
    return StudentList(students=students)


@router.get("/{student_id}", response_model=StudentReport)
def get_student(
    student_id: str,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    """The report as it looks against its module's current template"""
    try:
        return store.get_student(user, student_id)
    except ERapportError as e:
        raise to_http(e)


@router.put("/{student_id}", response_model=StudentReport)
def update_student(
    student_id: str,
    report: StudentReport,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    try:
        return store.update_student(user, student_id, report)
    except ERapportError as e:
        raise to_http(e)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_student(
    student_id: str,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    try:
        store.delete_student(user, student_id)
    except ERapportError as e:
        raise to_http(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
