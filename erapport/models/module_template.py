# erapport/models/module_template.py - One template per (module, evaluation type)
from __future__ import annotations
from typing import Any
from sqlalchemy import String, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from erapport.models.base import Base, JSONDocument


class ModuleTemplate(Base):
    __tablename__ = "module_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    module_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("modules.id", ondelete="CASCADE"),
        index=True,
        nullable=False
    )
    evaluation_type: Mapped[str] = mapped_column(String(8), nullable=False)

    # Whole template body (options, competencies, note, dates, ...), read and written as one value
    data: Mapped[dict[str, Any]] = mapped_column(JSONDocument, nullable=False, default=dict)

    module: Mapped["Module"] = relationship("Module", back_populates="templates")

    __table_args__ = (
        UniqueConstraint("module_id", "evaluation_type", name="uq_module_template_type"),
    )

    def __repr__(self):
        return f"<ModuleTemplate(module_id={self.module_id}, evaluation_type='{self.evaluation_type}')>"
