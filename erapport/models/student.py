# erapport/models/student.py - Student report rows
from __future__ import annotations
from typing import Any
from sqlalchemy import String, Integer, Boolean, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from erapport.models.base import Base, JSONDocument


class StudentReportRow(Base):
    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    module_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("modules.id", ondelete="CASCADE"),
        index=True,
        nullable=False
    )
    evaluation_type: Mapped[str] = mapped_column(String(8), nullable=False, default="E1")
    teacher_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
        nullable=True
    )

    # Identity and report-owned fields
    name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    firstname: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    note: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    remarks: Mapped[str] = mapped_column(Text, nullable=False, default="")
    group_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")

    # Copied from the template at the last reconciliation
    class_name: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    teacher: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    evaluation_date: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    coaching_date: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    operational_competence: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Point-in-time snapshots, not live relations to the template
    competency_options: Mapped[list[Any]] = mapped_column(JSONDocument, nullable=False, default=list)
    competencies: Mapped[list[Any]] = mapped_column(JSONDocument, nullable=False, default=list)

    summary_by_competencies: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    competency_summary_overrides: Mapped[dict[str, Any]] = mapped_column(JSONDocument, nullable=False, default=dict)

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    module: Mapped["Module"] = relationship("Module", back_populates="students")
    teacher_user: Mapped["User | None"] = relationship("User", back_populates="students")

    def __repr__(self):
        return f"<StudentReportRow(id={self.id}, name='{self.firstname} {self.name}')>"
