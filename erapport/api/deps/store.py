# erapport/api/deps/store.py - Database, defaults and report store dependencies
from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from erapport.core.db import DatabaseManager
from erapport.services.defaults import TemplateDefaults
from erapport.services.persistence import PersistenceCoordinator
from erapport.services.report_store import ReportStore


def get_database(request: Request) -> DatabaseManager:
    """Database manager the application was started with"""
    return request.app.state.db


def get_template_defaults(request: Request) -> TemplateDefaults:
    return request.app.state.defaults


def get_db(manager: DatabaseManager = Depends(get_database)) -> Generator[Session, None, None]:
    yield from manager.get_session()


def get_persistence(
    manager: DatabaseManager = Depends(get_database),
    defaults: TemplateDefaults = Depends(get_template_defaults),
) -> PersistenceCoordinator:
    return PersistenceCoordinator(manager, defaults)


def get_store(
    persistence: PersistenceCoordinator = Depends(get_persistence),
    defaults: TemplateDefaults = Depends(get_template_defaults),
) -> ReportStore:
    return ReportStore(persistence, defaults)
