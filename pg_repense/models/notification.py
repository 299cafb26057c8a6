# pg_repense/models/notification.py - Per-recipient notification read state
from __future__ import annotations
import uuid
import enum
from datetime import datetime
from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from pg_repense.models.base import Base, utcnow


class NotificationType(str, enum.Enum):
    """Notification categories. `reference_id` points at the entity named here."""
    STUDENT_OBSERVATION = "student_observation"  # -> attendance.id
    SESSION_REPORT = "session_report"            # -> sessions.id
    FINAL_REPORT = "final_report"                # -> classes.id
    TEACHER_MESSAGE = "teacher_message"          # -> conversations.id
    LEADER_MESSAGE = "leader_message"            # -> conversations.id (teacher side)


ADMIN_NOTIFICATION_TYPES = [
    NotificationType.STUDENT_OBSERVATION.value,
    NotificationType.SESSION_REPORT.value,
    NotificationType.FINAL_REPORT.value,
    NotificationType.TEACHER_MESSAGE.value,
]

TEACHER_NOTIFICATION_TYPES = [NotificationType.LEADER_MESSAGE.value]


class AdminNotification(Base):
    """One row per (admin, type, reference). `read_at` is null while unread."""
    __tablename__ = "notification_reads"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    admin_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("admins.id", ondelete="CASCADE"), nullable=False)
    notification_type: Mapped[str] = mapped_column(String(32), nullable=False)
    reference_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime)
    criado_em: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("admin_id", "notification_type", "reference_id", name="uq_notification_admin_ref"),
        Index("ix_notification_reads_admin_unread", "admin_id", "read_at"),
    )

    @property
    def is_read(self) -> bool:
        return self.read_at is not None


class TeacherNotification(Base):
    __tablename__ = "teacher_notification_reads"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    teacher_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False)
    notification_type: Mapped[str] = mapped_column(String(32), nullable=False)
    reference_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime)
    criado_em: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("teacher_id", "notification_type", "reference_id", name="uq_notification_teacher_ref"),
        Index("ix_teacher_notification_reads_unread", "teacher_id", "read_at"),
    )

    @property
    def is_read(self) -> bool:
        return self.read_at is not None
