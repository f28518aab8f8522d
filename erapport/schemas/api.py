# erapport/schemas/api.py - Request and response bodies of the state, template, student and report routes
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from erapport.models.school_year import LABEL_MAX_LENGTH
from erapport.schemas.report import CamelModel, SchoolYear, StudentReport, Template, coerce_text


class StateIn(CamelModel):
    # Omitted school years leave the stored ones untouched
    school_years: Optional[List[SchoolYear]] = None
    students: List[StudentReport] = Field(default_factory=list)

    @field_validator("students", mode="before")
    @classmethod
    def null_students(cls, v):
        return v or []


class StateOut(CamelModel):
    school_years: List[SchoolYear] = Field(default_factory=list)
    students: List[StudentReport] = Field(default_factory=list)


class SchoolYearCreate(CamelModel):
    label: str

    @field_validator("label")
    @classmethod
    def label_not_blank(cls, v):
        if not v.strip():
            raise ValueError("label must not be empty")
        if len(v.strip()) > LABEL_MAX_LENGTH:
            raise ValueError(f"label must be at most {LABEL_MAX_LENGTH} characters")
        return v.strip()


class ModuleCreate(CamelModel):
    title: str = ""


class TemplateUpdateOut(CamelModel):
    template: Template
    updated_reports: int = 0


class CopyStudentsIn(CamelModel):
    source_type: str
    target_type: str
    # None selects every report with a numeric note below 4
    student_ids: Optional[List[str]] = None


class CopyStudentsOut(CamelModel):
    students: List[StudentReport] = Field(default_factory=list)
    template_created: bool = False


class StudentCreate(CamelModel):
    module_id: str
    evaluation_type: str = ""
    name: str = ""
    firstname: str = ""
    email: str = ""
    group_name: str = ""

    @field_validator("name", "firstname", "email", "group_name", mode="before")
    @classmethod
    def text_fields(cls, v):
        return coerce_text(v).strip()


class StudentImportIn(CamelModel):
    module_id: str
    evaluation_type: str = ""
    text: str = ""


class StudentList(CamelModel):
    students: List[StudentReport] = Field(default_factory=list)


class ExportAllIn(CamelModel):
    students: List[StudentReport] = Field(default_factory=list)
    mail_draft_subject: str = ""
    mail_draft_body: str = ""

    @field_validator("mail_draft_subject", "mail_draft_body", mode="before")
    @classmethod
    def text_only(cls, v):
        return v if isinstance(v, str) else ""


class ClientLogIn(CamelModel):
    event: str = "unknown"
    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("event", mode="before")
    @classmethod
    def event_name(cls, v):
        return coerce_text(v) or "unknown"

    @field_validator("payload", mode="before")
    @classmethod
    def payload_mapping(cls, v):
        return v if isinstance(v, dict) else {}


class StatusOut(CamelModel):
    status: str = "ok"
