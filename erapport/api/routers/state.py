# erapport/api/routers/state.py - Whole-state read and replace for the signed-in instructor
from fastapi import APIRouter, Depends
import logging

from erapport.api.deps.auth import get_current_user
from erapport.api.deps.store import get_store
from erapport.api.errors import to_http
from erapport.core.errors import ERapportError
from erapport.schemas.api import StateIn, StateOut
from erapport.schemas.report import UserRecord
from erapport.services.report_store import ReportStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=StateOut)
def read_state(
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    """School years with their modules and templates, plus the caller's reports"""
    try:
        school_years, students = store.state_for(user)
    except ERapportError as e:
        raise to_http(e)
    return StateOut(school_years=school_years, students=students)


@router.put("", response_model=StateOut)
def replace_state(
    payload: StateIn,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    """
    Replace the school-year tree and the caller's reports.
    Reports of other instructors are left as stored.
    """
    try:
        school_years, students = store.replace_for(user, payload.school_years, payload.students)
    except ERapportError as e:
        raise to_http(e)
    return StateOut(school_years=school_years, students=students)
