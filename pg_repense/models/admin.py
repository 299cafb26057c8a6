# pg_repense/models/admin.py - Administrator accounts
from __future__ import annotations
import uuid
import enum
from datetime import datetime
from sqlalchemy import String, DateTime, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from pg_repense.models.base import Base, utcnow


class AdminRole(str, enum.Enum):
    """Administrative roles"""
    ADMIN = "admin"              # Manages classes, students and facilitators
    SUPERADMIN = "superadmin"    # Admin plus audit log access


class Admin(Base):
    __tablename__ = "admins"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    nome: Mapped[str | None] = mapped_column(String(255))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=AdminRole.ADMIN.value)

    criado_em: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("role IN ('admin','superadmin')", name="ck_admin_role"),
    )

    def is_superadmin(self) -> bool:
        return self.role == AdminRole.SUPERADMIN.value
