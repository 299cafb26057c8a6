# pg_repense/models/student.py - Registrants and priority-list placement
from __future__ import annotations
import uuid
from datetime import date, datetime
from sqlalchemy import String, Date, DateTime, Boolean, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from pg_repense.models.base import Base, utcnow


class Student(Base):
    """
    Students are created on public registration or priority-list signup and
    are never hard-deleted. The priority flags describe a waitlist entry,
    which holds no class capacity.
    """
    __tablename__ = "students"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    nome: Mapped[str] = mapped_column(String(255), nullable=False)
    cpf: Mapped[str] = mapped_column(String(11), unique=True, index=True, nullable=False)
    telefone: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, index=True)

    genero: Mapped[str | None] = mapped_column(String(32))
    estado_civil: Mapped[str | None] = mapped_column(String(32))
    nascimento: Mapped[date | None] = mapped_column(Date)
    cidade_preferencia: Mapped[str | None] = mapped_column(String(32))

    # Waitlist placement
    priority_list: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    priority_list_course_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True
    )
    priority_list_added_at: Mapped[datetime | None] = mapped_column(DateTime)

    criado_em: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    enrollments: Mapped[list["Enrollment"]] = relationship("Enrollment", back_populates="student")

    def clear_priority_list(self) -> None:
        self.priority_list = False
        self.priority_list_course_id = None
        self.priority_list_added_at = None
