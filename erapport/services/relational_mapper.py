# erapport/services/relational_mapper.py - Map the nested state tree to table rows and back
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from erapport.schemas.report import (
    AppState,
    Module,
    SchoolYear,
    StudentReport,
    Template,
    UserRecord,
)
from erapport.services.defaults import TemplateDefaults
from erapport.services.normalization import normalize_state

logger = logging.getLogger(__name__)

# Derived from the owning module and school year rows, never stored in template data
TEMPLATE_IDENTITY_FIELDS = {"module_id", "module_title", "school_year", "evaluation_type"}

Row = Dict[str, Any]


@dataclass
class RowSet:
    """Desired (or loaded) contents of the five state tables, in table order"""
    users: List[Row] = field(default_factory=list)
    school_years: List[Row] = field(default_factory=list)
    modules: List[Row] = field(default_factory=list)
    module_templates: List[Row] = field(default_factory=list)
    students: List[Row] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {
            "users": len(self.users),
            "school_years": len(self.school_years),
            "modules": len(self.modules),
            "module_templates": len(self.module_templates),
            "students": len(self.students),
        }


def user_row(user: UserRecord) -> Row:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "password_hash": user.password_hash,
        "salt": user.salt,
        "token": user.token,
    }


def template_data(template: Template) -> Dict[str, Any]:
    return template.model_dump(mode="json", by_alias=True, exclude=TEMPLATE_IDENTITY_FIELDS)


def student_row(student: StudentReport, position: int) -> Row:
    return {
        "id": student.id,
        "module_id": student.module_id,
        "evaluation_type": student.evaluation_type,
        "teacher_id": student.teacher_id,
        "name": student.name,
        "firstname": student.firstname,
        "email": student.email,
        "note": student.note,
        "remarks": student.remarks,
        "group_name": student.group_name,
        "class_name": student.class_name,
        "teacher": student.teacher,
        "evaluation_date": student.evaluation_date,
        "coaching_date": student.coaching_date,
        "operational_competence": student.operational_competence,
        "competency_options": [option.model_dump(mode="json", by_alias=True) for option in student.competency_options],
        "competencies": [category.model_dump(mode="json", by_alias=True) for category in student.competencies],
        "summary_by_competencies": student.summary_by_competencies,
        "competency_summary_overrides": dict(student.competency_summary_overrides),
        "position": position,
    }


def flatten(state: AppState) -> RowSet:
    """
    Turn a normalized state tree into table rows.

    List order becomes the position column so a later hydrate returns
    school years, modules and students in the same order.
    """
    rows = RowSet(users=[user_row(user) for user in state.users])

    for year_position, year in enumerate(state.school_years):
        rows.school_years.append({"id": year.id, "label": year.label, "position": year_position})
        for module_position, module in enumerate(year.modules):
            rows.modules.append({
                "school_year_id": year.id,
                "id": module.id,
                "title": module.title,
                "position": module_position,
            })
            for evaluation_type, template in module.templates.items():
                rows.module_templates.append({
                    "module_id": module.id,
                    "evaluation_type": evaluation_type,
                    "data": template_data(template),
                })

    rows.students = [student_row(student, position) for position, student in enumerate(state.students)]
    return rows


def hydrate(rows: RowSet, defaults: TemplateDefaults) -> AppState:
    """
    Rebuild the state tree from table rows.

    Rows are expected in storage order (position, users by creation time).
    Templates are keyed by evaluation type under their module, and every
    report's display fields are backfilled from its effective template.
    """
    templates_by_module: Dict[str, Dict[str, Template]] = {}
    for row in rows.module_templates:
        data = dict(row.get("data") or {})
        templates_by_module.setdefault(row["module_id"], {})[row["evaluation_type"]] = Template.model_validate(data)

    modules_by_year: Dict[str, List[Module]] = {}
    for row in rows.modules:
        templates = templates_by_module.get(row["id"], {})
        ordered = dict(sorted(templates.items(), key=lambda item: defaults.type_index(item[0])))
        modules_by_year.setdefault(row["school_year_id"], []).append(
            Module(id=row["id"], title=row.get("title") or "", templates=ordered)
        )

    school_years = [
        SchoolYear(id=row["id"], label=row["label"], modules=modules_by_year.get(row["id"], []))
        for row in rows.school_years
    ]

    students = [
        StudentReport.model_validate({key: value for key, value in row.items() if key != "position"})
        for row in rows.students
    ]
    users = [UserRecord.model_validate(row) for row in rows.users]

    state = normalize_state(AppState(school_years=school_years, students=students, users=users), defaults)
    logger.debug(f"Hydrated state: {rows.counts()}")
    return state


__all__ = [
    "TEMPLATE_IDENTITY_FIELDS",
    "RowSet",
    "flatten",
    "hydrate",
    "template_data",
    "student_row",
    "user_row",
]
