# erapport/api/routers/school_years.py - School years and their modules
from fastapi import APIRouter, Depends, status
import logging

from erapport.api.deps.auth import get_current_user
from erapport.api.deps.store import get_store
from erapport.api.errors import to_http
from erapport.core.errors import ERapportError
from erapport.schemas.api import ModuleCreate, SchoolYearCreate
from erapport.schemas.report import Module, SchoolYear, UserRecord
from erapport.services.report_store import ReportStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=SchoolYear, status_code=status.HTTP_201_CREATED)
def create_school_year(
    payload: SchoolYearCreate,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    try:
        return store.create_school_year(payload.label)
    except ERapportError as e:
        raise to_http(e)


@router.post("/{school_year_id}/modules", response_model=Module, status_code=status.HTTP_201_CREATED)
def create_module(
    school_year_id: str,
    payload: ModuleCreate,
    user: UserRecord = Depends(get_current_user),
    store: ReportStore = Depends(get_store),
):
    """New module with the default template for the first evaluation type"""
    try:
        return store.create_module(school_year_id, payload.title)
    except ERapportError as e:
        raise to_http(e)
