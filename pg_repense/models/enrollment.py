# pg_repense/models/enrollment.py - Student x Class enrollment lifecycle
from __future__ import annotations
import uuid
import enum
from datetime import datetime
from sqlalchemy import String, DateTime, ForeignKey, CheckConstraint, Index, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from pg_repense.models.base import Base, utcnow


class EnrollmentStatus(str, enum.Enum):
    ATIVO = "ativo"
    CONCLUIDO = "concluido"
    CANCELADO = "cancelado"
    TRANSFERIDO = "transferido"


class Enrollment(Base):
    """
    Enrollment links a student to a class. Only `ativo` rows hold capacity;
    every other status is terminal. A transfer never reactivates a row, it
    closes the source as `transferido` and opens a new one at the destination.
    """
    __tablename__ = "enrollments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    class_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default=EnrollmentStatus.ATIVO.value)
    transferido_de_class_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True
    )

    criado_em: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    concluido_em: Mapped[datetime | None] = mapped_column(DateTime)
    cancelado_em: Mapped[datetime | None] = mapped_column(DateTime)
    transferido_em: Mapped[datetime | None] = mapped_column(DateTime)

    student: Mapped["Student"] = relationship("Student", back_populates="enrollments")
    class_: Mapped["Class"] = relationship("Class", back_populates="enrollments", foreign_keys=[class_id])
    attendance: Mapped[list["Attendance"]] = relationship("Attendance", back_populates="enrollment")

    __table_args__ = (
        # At most one active enrollment per (student, class)
        Index(
            "uq_enrollment_active_student_class",
            "student_id", "class_id",
            unique=True,
            sqlite_where=text("status = 'ativo'"),
            postgresql_where=text("status = 'ativo'"),
        ),
        CheckConstraint("status IN ('ativo','concluido','cancelado','transferido')", name="ck_enrollment_status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ATIVO.value
