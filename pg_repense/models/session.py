# pg_repense/models/session.py - Class sessions and attendance check-in
from __future__ import annotations
import uuid
import enum
from datetime import date, datetime
from sqlalchemy import String, Integer, Date, DateTime, Boolean, Text, ForeignKey, CheckConstraint, Index, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from pg_repense.models.base import Base, utcnow


class SessionStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class ClassSession(Base):
    """
    One meeting of a class. Sessions are numbered per class and move
    open -> closed exactly once; a teacher may hold a single open session.
    """
    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    class_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("teachers.id", ondelete="RESTRICT"), nullable=False, index=True)
    numero_sessao: Mapped[int] = mapped_column(Integer, nullable=False)
    data_sessao: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)

    status: Mapped[str] = mapped_column(String(8), nullable=False, default=SessionStatus.OPEN.value)
    relatorio: Mapped[str | None] = mapped_column(Text)
    encerrada_em: Mapped[datetime | None] = mapped_column(DateTime)

    criado_em: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    class_: Mapped["Class"] = relationship("Class", back_populates="sessions")
    attendance: Mapped[list["Attendance"]] = relationship(
        "Attendance", back_populates="session", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("class_id", "numero_sessao", name="uq_session_class_numero"),
        # Single open session per teacher, enforced by the store
        Index(
            "uq_session_open_per_teacher",
            "teacher_id",
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
        CheckConstraint("status IN ('open','closed')", name="ck_session_status"),
    )

    @property
    def is_open(self) -> bool:
        return self.status == SessionStatus.OPEN.value


class Attendance(Base):
    """Per (session, student) presence flag with an optional observation"""
    __tablename__ = "attendance"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    enrollment_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True)

    presente: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    observacao: Mapped[str | None] = mapped_column(Text)
    lida_por_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    lida_em: Mapped[datetime | None] = mapped_column(DateTime)

    criado_em: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    atualizado_em: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    session: Mapped["ClassSession"] = relationship("ClassSession", back_populates="attendance")
    student: Mapped["Student"] = relationship("Student")
    enrollment: Mapped["Enrollment"] = relationship("Enrollment", back_populates="attendance")

    __table_args__ = (
        UniqueConstraint("session_id", "student_id", name="uq_attendance_session_student"),
    )
