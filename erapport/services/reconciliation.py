# erapport/services/reconciliation.py - Re-apply templates onto student reports without losing assessments
import logging
import uuid
from typing import Iterable, List, Optional, Sequence

from erapport.schemas.report import (
    CompetencyCategory,
    Module,
    ReportCategory,
    ReportStatus,
    ReportTaskItem,
    StudentReport,
    Template,
)
from erapport.services.defaults import TemplateDefaults

logger = logging.getLogger(__name__)

# Fields copied from the template on every application; everything else on a report is report-owned
STRUCTURAL_FIELDS = (
    "module_id",
    "module_title",
    "school_year",
    "evaluation_type",
    "class_name",
    "teacher",
    "evaluation_date",
    "coaching_date",
    "operational_competence",
)

# Which evaluation follows which when reports are carried forward
NEXT_EVALUATION = {"E1": "E2", "E2": "E3"}


def new_id() -> str:
    return str(uuid.uuid4())


def _find_category(categories: Sequence[ReportCategory], label: str) -> Optional[ReportCategory]:
    return next((category for category in categories if category.category == label), None)


def _find_task(items: Sequence[ReportTaskItem], task: str) -> Optional[ReportTaskItem]:
    return next((item for item in items if item.matches(task)), None)


def reconcile(
    template_categories: Optional[Sequence[CompetencyCategory]],
    existing_categories: Optional[Sequence[ReportCategory]] = None,
) -> List[ReportCategory]:
    """
    Rebuild a report's checklist from the template while keeping its assessments.

    The template is the only source of structure: output categories and tasks
    appear exactly as in the template and in template order. A prior category
    is matched by equal label (first match wins) and a prior task by equal
    text within that category; matched entries keep their status and comment,
    unmatched ones start blank. Anything the template no longer lists is dropped.

    Args:
        template_categories: Categories of the current template
        existing_categories: Categories currently stored on the report

    Returns:
        New list of report categories; inputs are not modified
    """
    existing_categories = existing_categories or []
    reconciled = []

    for section in template_categories or []:
        prior_section = _find_category(existing_categories, section.category)
        prior_items = prior_section.items if prior_section else []

        items = []
        for item in section.items:
            prior_item = _find_task(prior_items, item.task)
            items.append(
                ReportTaskItem(
                    task=item.task,
                    competency_id=item.competency_id,
                    evaluation_method=item.evaluation_method,
                    status=prior_item.status if prior_item else ReportStatus.UNSET.value,
                    comment=prior_item.comment if prior_item else "",
                )
            )

        reconciled.append(
            ReportCategory(
                category=section.category,
                group_evaluation=section.group_evaluation,
                result=prior_section.result if prior_section else ReportStatus.UNSET.value,
                items=items,
            )
        )

    return reconciled


def apply_template(template: Template, report: StudentReport) -> StudentReport:
    """
    Bring a report in line with its template.

    Structural fields and the competency option list come from the template,
    the checklist is reconciled, and report-owned fields (identity, note,
    remarks, group, owner, summary settings) are left as they are.
    """
    updates = {field: getattr(template, field) for field in STRUCTURAL_FIELDS}
    updates["competency_options"] = [
        option.model_copy() for option in template.competency_options or []
    ]
    updates["competencies"] = reconcile(template.competencies, report.competencies)
    return report.model_copy(update=updates, deep=True)


def resolve_effective_template(
    module: Optional[Module],
    evaluation_type: str,
    defaults: TemplateDefaults,
) -> Template:
    """
    Template a report of this module and evaluation type is governed by:
    the module's template for that type, else its first template, else the built-in default.
    """
    if module is not None:
        template = module.templates.get(evaluation_type)
        if template is not None:
            return template
        if module.templates:
            # Borrowed structure; the report keeps its own evaluation type
            template = next(iter(module.templates.values()))
            if evaluation_type:
                return template.model_copy(update={"evaluation_type": evaluation_type})
            return template
    fallback = defaults.fresh_template()
    if evaluation_type:
        fallback.evaluation_type = evaluation_type
    return fallback


def apply_template_to_reports(
    template: Template,
    reports: Iterable[StudentReport],
) -> List[StudentReport]:
    """
    Reconcile every report belonging to the template's module and evaluation type.
    Other reports are returned unchanged, in their original order.
    """
    result = []
    touched = 0
    for report in reports:
        if report.module_id == template.module_id and report.evaluation_type == template.evaluation_type:
            result.append(apply_template(template, report))
            touched += 1
        else:
            result.append(report)

    logger.info(
        f"Applied template {template.module_id}/{template.evaluation_type} to {touched} report(s)"
    )
    return result


def open_report(report: StudentReport, module: Optional[Module], defaults: TemplateDefaults) -> StudentReport:
    """Lazy sync: the report as it looks against its current template"""
    template = resolve_effective_template(module, report.evaluation_type, defaults)
    return apply_template(template, report)


def build_report(template: Template, teacher_id: Optional[str] = None, **identity) -> StudentReport:
    """
    Start a new report from the current template snapshot.

    Args:
        template: Template the report is created under
        teacher_id: Owning instructor
        **identity: name, firstname, email, group_name, ...

    Returns:
        Report with a fresh id, the template's note and a blank checklist
    """
    report = StudentReport(
        id=new_id(),
        teacher_id=teacher_id,
        note=template.note,
        **identity,
    )
    return apply_template(template, report)


def sync_group_evaluations(report: StudentReport, pool: Iterable[StudentReport]) -> StudentReport:
    """
    Copy group-graded categories from the first peer of the same group.

    A peer shares module, evaluation type and group name. Categories flagged
    as group evaluations take the peer's result and, position by position,
    its task statuses and comments. Nothing happens without a group name or a peer.
    """
    group_name = report.group_name.strip()
    if not group_name:
        return report

    peer = next(
        (
            candidate for candidate in pool
            if candidate.id != report.id
            and candidate.module_id == report.module_id
            and candidate.evaluation_type == report.evaluation_type
            and candidate.group_name.strip() == group_name
        ),
        None,
    )
    if peer is None:
        return report

    categories = []
    for index, section in enumerate(report.competencies):
        peer_section = peer.competencies[index] if index < len(peer.competencies) else None
        if not section.group_evaluation or peer_section is None:
            categories.append(section)
            continue

        items = []
        for item_index, item in enumerate(section.items):
            if item_index < len(peer_section.items):
                peer_item = peer_section.items[item_index]
                item = item.model_copy(update={"status": peer_item.status, "comment": peer_item.comment})
            items.append(item)
        categories.append(section.model_copy(update={"result": peer_section.result, "items": items}))

    logger.debug(f"Report {report.id} synced with group '{group_name}' peer {peer.id}")
    return report.model_copy(update={"competencies": categories})


def clone_report(report: StudentReport, evaluation_type: str) -> StudentReport:
    """Deep copy of a report under a new id for another evaluation"""
    return report.model_copy(update={"id": new_id(), "evaluation_type": evaluation_type}, deep=True)


__all__ = [
    "STRUCTURAL_FIELDS",
    "NEXT_EVALUATION",
    "new_id",
    "reconcile",
    "apply_template",
    "resolve_effective_template",
    "apply_template_to_reports",
    "open_report",
    "build_report",
    "sync_group_evaluations",
    "clone_report",
]
