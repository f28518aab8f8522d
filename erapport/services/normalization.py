# erapport/services/normalization.py - Fill ids and defaults, upgrade legacy shapes of the state tree
import logging
from typing import Dict, List, Optional

from erapport.core.errors import ValidationFailure
from erapport.models.school_year import LABEL_MAX_LENGTH
from erapport.schemas.report import (
    AppState,
    Module,
    SchoolYear,
    StudentReport,
    Template,
    UserRecord,
)
from erapport.services.defaults import TemplateDefaults
from erapport.services.reconciliation import new_id, resolve_effective_template

logger = logging.getLogger(__name__)


def normalize_template(
    template: Optional[Template],
    module: Module,
    school_year_label: str,
    evaluation_type: str,
    defaults: TemplateDefaults,
) -> Template:
    """
    Complete a template and bind it to its owner.

    Identity fields always follow the owning module and school year; missing
    option and checklist lists fall back to the built-in ones.
    """
    base = template.model_copy(deep=True) if template is not None else Template()
    fallback = defaults.template
    if base.competency_options is None:
        base.competency_options = [option.model_copy() for option in fallback.competency_options or []]
    if base.competencies is None:
        base.competencies = [category.model_copy(deep=True) for category in fallback.competencies or []]

    base.module_id = module.id
    base.module_title = module.title
    base.school_year = school_year_label
    base.evaluation_type = evaluation_type or base.evaluation_type or defaults.primary_evaluation_type
    return base


def normalize_module_templates(
    module: Module,
    school_year_label: str,
    defaults: TemplateDefaults,
) -> Dict[str, Template]:
    templates = dict(module.templates)
    if not templates and module.template is not None:
        templates[defaults.primary_evaluation_type] = module.template

    known_types = [evaluation_type for evaluation_type in defaults.evaluation_types if evaluation_type in templates]
    dropped = set(templates) - set(known_types)
    if dropped:
        logger.warning(f"Module {module.id}: ignoring templates for unknown evaluation types {sorted(dropped)}")

    if not known_types:
        primary = defaults.primary_evaluation_type
        return {primary: normalize_template(None, module, school_year_label, primary, defaults)}

    return {
        evaluation_type: normalize_template(templates[evaluation_type], module, school_year_label, evaluation_type, defaults)
        for evaluation_type in known_types
    }


def normalize_module(module: Module, school_year_label: str, defaults: TemplateDefaults) -> Module:
    normalized = Module(
        id=module.id or new_id(),
        title=module.title,
        school_year=school_year_label,
    )
    normalized.templates = normalize_module_templates(
        module.model_copy(update={"id": normalized.id}),
        school_year_label,
        defaults,
    )
    return normalized


def normalize_school_years(
    school_years: List[SchoolYear],
    legacy_modules: Optional[List[Module]],
    defaults: TemplateDefaults,
) -> List[SchoolYear]:
    if not school_years and legacy_modules:
        grouped: Dict[str, List[Module]] = {}
        for module in legacy_modules:
            grouped.setdefault(module.school_year or defaults.default_school_year, []).append(module)
        school_years = [SchoolYear(label=label, modules=modules) for label, modules in grouped.items()]

    normalized = []
    seen_labels = set()
    for year in school_years:
        label = year.label or defaults.default_school_year
        if len(label) > LABEL_MAX_LENGTH:
            raise ValidationFailure(f"School year label '{label}' is longer than {LABEL_MAX_LENGTH} characters")
        if label in seen_labels:
            raise ValidationFailure(f"Duplicate school year label '{label}'")
        seen_labels.add(label)
        normalized.append(
            SchoolYear(
                id=year.id or new_id(),
                label=label,
                modules=[normalize_module(module, label, defaults) for module in year.modules],
            )
        )
    return normalized


def normalize_users(users: List[UserRecord]) -> List[UserRecord]:
    normalized = []
    seen_emails = set()
    for user in users:
        email = user.email.strip().lower()
        if email in seen_emails:
            raise ValidationFailure(f"Duplicate user email '{email}'")
        seen_emails.add(email)
        normalized.append(user.model_copy(update={"id": user.id or new_id(), "email": email}))
    return normalized


def normalize_students(
    students: List[StudentReport],
    school_years: List[SchoolYear],
    users: List[UserRecord],
    defaults: TemplateDefaults,
) -> List[StudentReport]:
    """
    Fill ids and evaluation types, backfill display fields from the effective
    template, and drop reports whose module no longer exists.
    """
    modules = {module.id: module for year in school_years for module in year.modules}
    user_ids = {user.id for user in users}

    normalized = []
    seen_ids = set()
    pruned = 0
    for student in students:
        module = modules.get(student.module_id)
        if module is None:
            pruned += 1
            continue

        student_id = student.id or new_id()
        if student_id in seen_ids:
            logger.warning(f"Duplicate report id {student_id}; keeping the first occurrence")
            continue
        seen_ids.add(student_id)

        evaluation_type = student.evaluation_type or defaults.primary_evaluation_type
        template = resolve_effective_template(module, evaluation_type, defaults)
        teacher_id = student.teacher_id if student.teacher_id in user_ids else None

        normalized.append(
            student.model_copy(
                update={
                    "id": student_id,
                    "evaluation_type": evaluation_type,
                    "teacher_id": teacher_id,
                    "module_title": template.module_title,
                    "school_year": template.school_year,
                },
                deep=True,
            )
        )

    if pruned:
        logger.warning(f"Dropped {pruned} report(s) whose module no longer exists")
    return normalized


def normalize_state(state: AppState, defaults: TemplateDefaults) -> AppState:
    """
    Canonical form of a state tree: what a save followed by a load returns.

    Raises:
        ValidationFailure: duplicate school year labels or user emails
    """
    users = normalize_users(state.users)
    school_years = normalize_school_years(state.school_years, state.modules, defaults)
    students = normalize_students(state.students, school_years, users, defaults)
    return AppState(school_years=school_years, students=students, users=users)


__all__ = [
    "normalize_template",
    "normalize_module_templates",
    "normalize_module",
    "normalize_school_years",
    "normalize_users",
    "normalize_students",
    "normalize_state",
]
