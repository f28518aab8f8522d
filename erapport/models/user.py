# erapport/models/user.py - Instructor accounts
from __future__ import annotations
from datetime import datetime
from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from erapport.models.base import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)

    # Credential material; see erapport.core.security
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    salt: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    token: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=func.now())

    students: Mapped[list["StudentReportRow"]] = relationship("StudentReportRow", back_populates="teacher_user")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
