# erapport/models/school_year.py - School years and the modules they own
from __future__ import annotations
from sqlalchemy import String, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from erapport.models.base import Base

LABEL_MAX_LENGTH = 32


class SchoolYear(Base):
    __tablename__ = "school_years"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    label: Mapped[str] = mapped_column(String(LABEL_MAX_LENGTH), unique=True, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    modules: Mapped[list["Module"]] = relationship(
        "Module",
        back_populates="school_year",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<SchoolYear(id={self.id}, label='{self.label}')>"


class Module(Base):
    __tablename__ = "modules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    school_year_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("school_years.id", ondelete="CASCADE"),
        index=True,
        nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    school_year: Mapped["SchoolYear"] = relationship("SchoolYear", back_populates="modules")
    templates: Mapped[list["ModuleTemplate"]] = relationship(
        "ModuleTemplate",
        back_populates="module",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    students: Mapped[list["StudentReportRow"]] = relationship(
        "StudentReportRow",
        back_populates="module",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Module(id={self.id}, title='{self.title}')>"
