# erapport/schemas/report.py - Template, module, school year and student report shapes
import enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer, model_validator
from pydantic.alias_generators import to_camel


class ReportStatus(str, enum.Enum):
    """Assessment markers stored on report tasks and category results"""
    UNSET = ""
    OK = "OK"
    NEEDS_IMPROVEMENT = "NEEDS_IMPROVEMENT"
    NOT_ASSESSED = "NOT_ASSESSED"


def coerce_text(value: Any) -> str:
    """Free-form inputs arrive as null, numbers or strings; store text"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else ""
    return str(value)


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class CompetencyOption(CamelModel):
    code: str = ""
    description: str = ""

    @field_validator("code", "description", mode="before")
    @classmethod
    def text_fields(cls, v):
        return coerce_text(v)


class TemplateTaskItem(CamelModel):
    task: str = ""
    competency_id: str = ""
    evaluation_method: str = ""

    @model_validator(mode="before")
    @classmethod
    def accept_plain_string(cls, data):
        # Older templates stored bare task strings
        if isinstance(data, str):
            return {"task": data}
        return data

    @field_validator("task", "competency_id", "evaluation_method", mode="before")
    @classmethod
    def text_fields(cls, v):
        return coerce_text(v)


class ReportTaskItem(TemplateTaskItem):
    status: str = ""
    comment: str = ""
    # Legacy records keyed tasks by "label"; both keys are matched on reconciliation
    label: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def task_from_label(cls, data):
        if isinstance(data, dict) and not data.get("task") and data.get("label"):
            data = {**data, "task": data["label"]}
        return data

    @field_validator("status", "comment", mode="before")
    @classmethod
    def report_text_fields(cls, v):
        return coerce_text(v)

    @field_validator("label", mode="before")
    @classmethod
    def legacy_label(cls, v):
        return coerce_text(v) or None

    @model_serializer(mode="wrap")
    def drop_missing_label(self, handler):
        data = handler(self)
        if self.label is None:
            data.pop("label", None)
        return data

    def matches(self, task: str) -> bool:
        return self.task == task or self.label == task


class CompetencyCategory(CamelModel):
    category: str = ""
    group_evaluation: bool = False
    items: List[TemplateTaskItem] = Field(default_factory=list)

    @field_validator("category", mode="before")
    @classmethod
    def text_fields(cls, v):
        return coerce_text(v)

    @field_validator("items", mode="before")
    @classmethod
    def null_items(cls, v):
        return v or []


class ReportCategory(CamelModel):
    category: str = ""
    group_evaluation: bool = False
    result: str = ""
    items: List[ReportTaskItem] = Field(default_factory=list)

    @field_validator("category", "result", mode="before")
    @classmethod
    def text_fields(cls, v):
        return coerce_text(v)

    @field_validator("items", mode="before")
    @classmethod
    def null_items(cls, v):
        return v or []


class Template(CamelModel):
    """
    Shared report structure for one (module, evaluation type) pair.

    competency_options / competencies are None when the stored or submitted
    template never carried them; normalization fills in the built-in defaults.
    """
    module_id: str = ""
    module_title: str = ""
    school_year: str = ""
    evaluation_type: str = ""
    note: str = ""
    group_feature_enabled: bool = False
    class_name: str = ""
    teacher: str = ""
    evaluation_date: str = ""
    coaching_date: str = ""
    operational_competence: str = ""
    competency_options: Optional[List[CompetencyOption]] = None
    competencies: Optional[List[CompetencyCategory]] = None

    @field_validator(
        "module_id", "module_title", "school_year", "evaluation_type", "note",
        "class_name", "teacher", "evaluation_date", "coaching_date",
        "operational_competence",
        mode="before",
    )
    @classmethod
    def text_fields(cls, v):
        return coerce_text(v)

    @field_validator("group_feature_enabled", mode="before")
    @classmethod
    def truthy_flag(cls, v):
        return bool(v)


class Module(CamelModel):
    id: str = ""
    title: str = ""
    school_year: str = ""
    templates: Dict[str, Template] = Field(default_factory=dict)
    # Single-template modules from before evaluation types existed
    template: Optional[Template] = Field(default=None, exclude=True)

    @field_validator("id", "title", "school_year", mode="before")
    @classmethod
    def text_fields(cls, v):
        return coerce_text(v)

    @field_validator("templates", mode="before")
    @classmethod
    def mapping_only(cls, v):
        return v if isinstance(v, dict) else {}


class SchoolYear(CamelModel):
    id: str = ""
    label: str = ""
    modules: List[Module] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def legacy_label(cls, data):
        if isinstance(data, dict) and not data.get("label"):
            legacy = data.get("schoolYear") or data.get("year")
            if legacy:
                data = {**data, "label": legacy}
        return data

    @field_validator("id", "label", mode="before")
    @classmethod
    def text_fields(cls, v):
        return coerce_text(v)

    @field_validator("modules", mode="before")
    @classmethod
    def null_modules(cls, v):
        return v or []


class StudentReport(CamelModel):
    id: str = ""
    module_id: str = ""
    evaluation_type: str = ""
    teacher_id: Optional[str] = None

    name: str = ""
    firstname: str = ""
    email: str = ""
    note: str = ""
    remarks: str = ""
    group_name: str = ""

    class_name: str = ""
    teacher: str = ""
    evaluation_date: str = ""
    coaching_date: str = ""
    operational_competence: str = ""
    competency_options: List[CompetencyOption] = Field(default_factory=list)
    competencies: List[ReportCategory] = Field(default_factory=list)

    summary_by_competencies: bool = False
    competency_summary_overrides: Dict[str, str] = Field(default_factory=dict)

    # Display fields resolved from the owning template, never stored on the row
    module_title: str = ""
    school_year: str = ""

    @field_validator(
        "id", "module_id", "evaluation_type", "name", "firstname", "email", "note",
        "remarks", "group_name", "class_name", "teacher", "evaluation_date",
        "coaching_date", "operational_competence", "module_title", "school_year",
        mode="before",
    )
    @classmethod
    def text_fields(cls, v):
        return coerce_text(v)

    @field_validator("teacher_id", mode="before")
    @classmethod
    def blank_teacher_id(cls, v):
        return str(v) if v else None

    @field_validator("competency_options", "competencies", mode="before")
    @classmethod
    def null_lists(cls, v):
        return v or []

    @field_validator("competency_summary_overrides", mode="before")
    @classmethod
    def overrides_mapping(cls, v):
        if not isinstance(v, dict):
            return {}
        return {str(key): coerce_text(value) for key, value in v.items()}

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.firstname.strip(), self.name.strip()) if part)


class UserRecord(CamelModel):
    """Account row as carried through the state tree; never sent to clients"""
    id: str = ""
    name: str = ""
    email: str = ""
    password_hash: str = ""
    salt: str = ""
    token: str = ""

    @field_validator("id", "name", "email", "password_hash", "salt", "token", mode="before")
    @classmethod
    def text_fields(cls, v):
        return coerce_text(v)


class AppState(CamelModel):
    school_years: List[SchoolYear] = Field(default_factory=list)
    students: List[StudentReport] = Field(default_factory=list)
    users: List[UserRecord] = Field(default_factory=list)
    # Flat module list from before school years existed, grouped on normalization
    modules: Optional[List[Module]] = Field(default=None, exclude=True)

    @field_validator("school_years", "students", "users", mode="before")
    @classmethod
    def null_lists(cls, v):
        return v or []

    def find_module(self, module_id: str) -> Optional[Module]:
        for year in self.school_years:
            for module in year.modules:
                if module.id == module_id:
                    return module
        return None

    def find_school_year(self, school_year_id: str) -> Optional[SchoolYear]:
        return next((year for year in self.school_years if year.id == school_year_id), None)

    def find_student(self, student_id: str) -> Optional[StudentReport]:
        return next((student for student in self.students if student.id == student_id), None)
