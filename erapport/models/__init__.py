# erapport/models/__init__.py - Import all models so SQLAlchemy can discover them

from erapport.models.base import Base, JSONDocument

from erapport.models.user import User
from erapport.models.school_year import SchoolYear, Module
from erapport.models.module_template import ModuleTemplate
from erapport.models.student import StudentReportRow
from erapport.models.system_settings import SystemSetting

__all__ = [
    "Base",
    "JSONDocument",
    "User",
    "SchoolYear",
    "Module",
    "ModuleTemplate",
    "StudentReportRow",
    "SystemSetting",
]
