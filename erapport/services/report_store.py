# erapport/services/report_store.py - Request-scoped access to the state tree: load, mutate, reconcile, save
import logging
from typing import List, Optional, Tuple

from erapport.core.errors import ConflictError, NotFoundError, ValidationFailure
from erapport.schemas.report import (
    AppState,
    Module,
    SchoolYear,
    StudentReport,
    Template,
    UserRecord,
)
from erapport.services.defaults import TemplateDefaults
from erapport.services.normalization import normalize_module, normalize_state, normalize_template
from erapport.services.persistence import PersistenceCoordinator
from erapport.services.reconciliation import (
    NEXT_EVALUATION,
    apply_template,
    apply_template_to_reports,
    build_report,
    clone_report,
    new_id,
    open_report,
    resolve_effective_template,
    sync_group_evaluations,
)

logger = logging.getLogger(__name__)


def parse_import_lines(text: str) -> List[Tuple[str, str, str]]:
    """
    Tab-separated "name, firstname[, email]" rows pasted from a spreadsheet.
    A first row naming "nom" and "prenom" is treated as a header.
    """
    rows = [line.strip() for line in (text or "").splitlines() if line.strip()]
    if not rows:
        return []

    header = rows[0].lower()
    if "nom" in header and "prenom" in header:
        rows = rows[1:]

    parsed = []
    for row in rows:
        columns = [value.strip() for value in row.split("\t")]
        if len(columns) < 2:
            continue
        email = columns[2] if len(columns) > 2 else ""
        parsed.append((columns[0], columns[1], email))
    return parsed


def default_copy_selection(report: StudentReport) -> bool:
    """Reports with a numeric note below 4 are carried to the next evaluation by default"""
    try:
        return report.note != "" and float(report.note) < 4
    except ValueError:
        return False


class ReportStore:
    """
    Operations behind the HTTP routes. Each one loads the whole state,
    applies its change and persists it through replace_all.
    """

    def __init__(self, persistence: PersistenceCoordinator, defaults: TemplateDefaults):
        self.persistence = persistence
        self.defaults = defaults

    # ─── Helpers ──────────────────────────────────────────────────────────

    def _load(self) -> AppState:
        return self.persistence.load_state()

    def _save(self, state: AppState) -> AppState:
        return self.persistence.replace_all(state)

    def _check_evaluation_type(self, evaluation_type: str) -> str:
        evaluation_type = (evaluation_type or "").strip().upper()
        if not self.defaults.is_known_type(evaluation_type):
            raise ValidationFailure(
                f"Unknown evaluation type '{evaluation_type}'; expected one of {self.defaults.evaluation_types}"
            )
        return evaluation_type

    @staticmethod
    def _require_module(state: AppState, module_id: str) -> Module:
        module = state.find_module(module_id)
        if module is None:
            raise NotFoundError(f"Module {module_id} not found")
        return module

    @staticmethod
    def _owned(state: AppState, user_id: str) -> List[StudentReport]:
        return [student for student in state.students if student.teacher_id == user_id]

    @staticmethod
    def _require_owned_student(state: AppState, student_id: str, user_id: str) -> StudentReport:
        student = state.find_student(student_id)
        if student is None or student.teacher_id != user_id:
            raise NotFoundError(f"Report {student_id} not found")
        return student

    @staticmethod
    def _school_year_label(state: AppState, module: Module) -> str:
        for year in state.school_years:
            if any(candidate.id == module.id for candidate in year.modules):
                return year.label
        return module.school_year

    def _finalize(self, report: StudentReport, state: AppState) -> StudentReport:
        """Reconcile against the effective template, then copy group grades when enabled"""
        module = state.find_module(report.module_id)
        template = resolve_effective_template(module, report.evaluation_type, self.defaults)
        report = apply_template(template, report)
        if template.group_feature_enabled:
            report = sync_group_evaluations(report, state.students)
        return report

    def _reconcile_changed_templates(self, previous: AppState, state: AppState) -> int:
        """Re-apply the effective template to every report whose template differs from the stored one"""
        reconciled = 0
        students = []
        for student in state.students:
            before = resolve_effective_template(
                previous.find_module(student.module_id), student.evaluation_type, self.defaults
            )
            after = resolve_effective_template(
                state.find_module(student.module_id), student.evaluation_type, self.defaults
            )
            if before != after:
                student = apply_template(after, student)
                reconciled += 1
            students.append(student)
        state.students = students
        return reconciled

    # ─── State ────────────────────────────────────────────────────────────

    def state_for(self, user: UserRecord) -> Tuple[List[SchoolYear], List[StudentReport]]:
        state = self._load()
        students = self._owned(state, user.id)
        logger.info(
            f"state-read: user={user.id} total_students={len(state.students)} "
            f"filtered_students={len(students)} school_years={len(state.school_years)}"
        )
        return state.school_years, students

    def replace_for(
        self,
        user: UserRecord,
        school_years: Optional[List[SchoolYear]],
        students: List[StudentReport],
    ) -> Tuple[List[SchoolYear], List[StudentReport]]:
        """
        Replace the school-year tree and the caller's reports.

        Reports owned by other instructors are kept, but any report whose
        effective template changed is reconciled against the new one. The
        caller's reports are always reconciled and group-synced.
        """
        state = self._load()
        incoming = [student.model_copy(update={"teacher_id": user.id}) for student in students]
        others = [student for student in state.students if student.teacher_id != user.id]

        next_state = normalize_state(
            AppState(
                school_years=school_years if school_years is not None else state.school_years,
                students=others + incoming,
                users=state.users,
            ),
            self.defaults,
        )
        reconciled = self._reconcile_changed_templates(state, next_state)
        next_state.students = [
            self._finalize(student, next_state) if student.teacher_id == user.id else student
            for student in next_state.students
        ]

        saved = self._save(next_state)
        owned = self._owned(saved, user.id)
        logger.info(
            f"state-write: user={user.id} incoming_students={len(students)} "
            f"total_students={len(saved.students)} filtered_students={len(owned)} "
            f"reconciled_students={reconciled} school_years={len(saved.school_years)}"
        )
        return saved.school_years, owned

    # ─── School years and modules ─────────────────────────────────────────

    def create_school_year(self, label: str) -> SchoolYear:
        label = label.strip()
        if not label:
            raise ValidationFailure("School year label must not be empty")

        state = self._load()
        if any(year.label == label for year in state.school_years):
            raise ConflictError(f"School year '{label}' already exists")

        year = SchoolYear(id=new_id(), label=label)
        state.school_years.append(year)
        saved = self._save(state)
        logger.info(f"School year created: {label}")
        return saved.find_school_year(year.id)

    def create_module(self, school_year_id: str, title: str = "") -> Module:
        state = self._load()
        year = state.find_school_year(school_year_id)
        if year is None:
            raise NotFoundError(f"School year {school_year_id} not found")

        module = normalize_module(
            Module(id=new_id(), title=title or self.defaults.template.module_title),
            year.label,
            self.defaults,
        )
        year.modules.append(module)
        saved = self._save(state)
        logger.info(f"Module created: {module.title} in {year.label}")
        return saved.find_module(module.id)

    # ─── Templates ────────────────────────────────────────────────────────

    def update_template(self, module_id: str, evaluation_type: str, template: Template) -> Tuple[Template, int]:
        """
        Store a module's template for one evaluation type and reconcile every
        report under that module and type, whoever owns it.

        Returns:
            (stored template, number of reconciled reports)
        """
        evaluation_type = self._check_evaluation_type(evaluation_type)
        state = self._load()
        module = self._require_module(state, module_id)
        if template.module_title:
            module.title = template.module_title

        stored = normalize_template(
            template,
            module,
            self._school_year_label(state, module),
            evaluation_type,
            self.defaults,
        )
        codes = [option.code for option in stored.competency_options or []]
        if len(codes) != len(set(codes)):
            raise ValidationFailure("Competency option codes must be unique within a template")

        module.templates[evaluation_type] = stored
        module.templates = {
            key: module.templates[key]
            for key in self.defaults.evaluation_types if key in module.templates
        }

        affected = sum(
            1 for student in state.students
            if student.module_id == module.id and student.evaluation_type == evaluation_type
        )
        state.students = apply_template_to_reports(stored, state.students)
        saved = self._save(state)
        return saved.find_module(module.id).templates[evaluation_type], affected

    def delete_template(self, module_id: str, evaluation_type: str) -> Module:
        evaluation_type = self._check_evaluation_type(evaluation_type)
        state = self._load()
        module = self._require_module(state, module_id)
        if evaluation_type not in module.templates:
            raise NotFoundError(f"Module {module_id} has no {evaluation_type} template")
        if len(module.templates) == 1:
            raise ValidationFailure("A module keeps at least one template")

        del module.templates[evaluation_type]
        saved = self._save(state)
        logger.info(f"Template {evaluation_type} removed from module {module_id}")
        return saved.find_module(module.id)

    def copy_students(
        self,
        user: UserRecord,
        module_id: str,
        source_type: str,
        target_type: str,
        student_ids: Optional[List[str]] = None,
    ) -> Tuple[List[StudentReport], bool]:
        """
        Carry the caller's reports of one evaluation into the next one.

        When the module has no template for the target type yet, it gets a
        copy of the source template.

        Returns:
            (new reports, whether a target template was created)
        """
        source_type = self._check_evaluation_type(source_type)
        target_type = self._check_evaluation_type(target_type)
        if source_type == target_type:
            raise ValidationFailure("Source and target evaluation types must differ")
        if NEXT_EVALUATION.get(source_type) != target_type:
            logger.warning(f"Copying reports from {source_type} to non-consecutive {target_type}")

        state = self._load()
        module = self._require_module(state, module_id)
        sources = [
            student for student in self._owned(state, user.id)
            if student.module_id == module.id and student.evaluation_type == source_type
        ]
        if student_ids is None:
            selected = [student for student in sources if default_copy_selection(student)]
        else:
            wanted = set(student_ids)
            selected = [student for student in sources if student.id in wanted]
        if not selected:
            raise ValidationFailure("No reports selected for copy")

        template_created = target_type not in module.templates
        if template_created:
            source_template = resolve_effective_template(module, source_type, self.defaults)
            module.templates[target_type] = normalize_template(
                source_template,
                module,
                self._school_year_label(state, module),
                target_type,
                self.defaults,
            )
            module.templates = {
                key: module.templates[key]
                for key in self.defaults.evaluation_types if key in module.templates
            }

        target_template = module.templates[target_type]
        copies = [apply_template(target_template, clone_report(student, target_type)) for student in selected]
        state.students.extend(copies)
        saved = self._save(state)
        logger.info(f"Copied {len(copies)} report(s) from {source_type} to {target_type} in module {module_id}")
        return [saved.find_student(copy.id) for copy in copies], template_created

    # ─── Student reports ──────────────────────────────────────────────────

    def _template_for_new_report(self, state: AppState, module_id: str, evaluation_type: str) -> Template:
        module = self._require_module(state, module_id)
        evaluation_type = evaluation_type or self.defaults.primary_evaluation_type
        self._check_evaluation_type(evaluation_type)
        return resolve_effective_template(module, evaluation_type.upper(), self.defaults)

    def create_student(
        self,
        user: UserRecord,
        module_id: str,
        evaluation_type: str = "",
        name: str = "",
        firstname: str = "",
        email: str = "",
        group_name: str = "",
    ) -> StudentReport:
        if not name.strip() and not firstname.strip():
            raise ValidationFailure("A report needs a name or a firstname")

        state = self._load()
        template = self._template_for_new_report(state, module_id, evaluation_type)
        report = build_report(
            template,
            user.id,
            name=name,
            firstname=firstname,
            email=email,
            group_name=group_name,
        )
        report = self._finalize(report, state)
        state.students.append(report)
        saved = self._save(state)
        logger.info(f"Report created: {report.display_name} ({report.evaluation_type}) by {user.email}")
        return saved.find_student(report.id)

    def import_students(self, user: UserRecord, module_id: str, evaluation_type: str, text: str) -> List[StudentReport]:
        rows = parse_import_lines(text)
        if not rows:
            raise ValidationFailure("Paste at least one line with a name and a firstname")

        state = self._load()
        template = self._template_for_new_report(state, module_id, evaluation_type)
        reports = [
            build_report(template, user.id, name=name, firstname=firstname, email=email)
            for name, firstname, email in rows
        ]
        state.students.extend(reports)
        saved = self._save(state)
        logger.info(f"Imported {len(reports)} report(s) into module {module_id}")
        return [saved.find_student(report.id) for report in reports]

    def get_student(self, user: UserRecord, student_id: str) -> StudentReport:
        """The stored report reconciled against its current template; nothing is saved"""
        state = self._load()
        student = self._require_owned_student(state, student_id, user.id)
        return open_report(student, state.find_module(student.module_id), self.defaults)

    def update_student(self, user: UserRecord, student_id: str, report: StudentReport) -> StudentReport:
        state = self._load()
        current = self._require_owned_student(state, student_id, user.id)

        module_id = report.module_id or current.module_id
        self._require_module(state, module_id)
        evaluation_type = report.evaluation_type or current.evaluation_type

        updated = report.model_copy(
            update={
                "id": current.id,
                "teacher_id": user.id,
                "module_id": module_id,
                "evaluation_type": evaluation_type,
            }
        )
        updated = self._finalize(updated, state)
        state.students = [updated if student.id == current.id else student for student in state.students]
        saved = self._save(state)
        return saved.find_student(current.id)

    def delete_student(self, user: UserRecord, student_id: str) -> None:
        state = self._load()
        current = self._require_owned_student(state, student_id, user.id)
        state.students = [student for student in state.students if student.id != current.id]
        self._save(state)
        logger.info(f"Report {student_id} deleted by {user.email}")

    def users(self) -> List[UserRecord]:
        return self._load().users


__all__ = [
    "parse_import_lines",
    "default_copy_selection",
    "ReportStore",
]
