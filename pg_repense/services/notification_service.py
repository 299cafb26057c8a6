# pg_repense/services/notification_service.py - Unread items for admins and facilitators
from sqlalchemy.orm import Session
from sqlalchemy import select, update, func
from typing import Optional, Dict, Any, List
from uuid import UUID
import logging

from pg_repense.core.config import settings
from pg_repense.core.errors import NotificationError
from pg_repense.models.base import utcnow
from pg_repense.models.admin import Admin
from pg_repense.models.class_model import Class
from pg_repense.models.session import ClassSession, Attendance
from pg_repense.models.conversation import Conversation, Message
from pg_repense.models.notification import (
    AdminNotification,
    TeacherNotification,
    NotificationType,
    ADMIN_NOTIFICATION_TYPES,
    TEACHER_NOTIFICATION_TYPES,
)

logger = logging.getLogger(__name__)


def preview(text: Optional[str], length: Optional[int] = None) -> str:
    length = length or settings.NOTIFICATION_PREVIEW_LENGTH
    text = text or ""
    return text[:length] + ("..." if len(text) > length else "")


def class_ref(klass: Class) -> Dict[str, Any]:
    return {"id": klass.id, "grupo_repense": klass.grupo_repense, "horario": klass.horario, "cidade": klass.cidade}


class NotificationService:
    """
    Read-state rows are keyed by (recipient, type, reference). Creating a
    notification never commits; the caller commits it together with the
    change that produced it. Marking read is monotonic: rows that are
    already read are left untouched and never cause an error.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def notify_admins(self, notification_type: str, reference_id: UUID, reset_read: bool = False) -> int:
        """Create an unread row per admin. With `reset_read`, existing rows become unread again."""
        admin_ids = self.db.execute(select(Admin.id)).scalars().all()
        created = 0
        for admin_id in admin_ids:
            row = self.db.execute(
                select(AdminNotification).where(
                    AdminNotification.admin_id == admin_id,
                    AdminNotification.notification_type == notification_type,
                    AdminNotification.reference_id == reference_id,
                )
            ).scalar_one_or_none()
            if row is None:
                self.db.add(AdminNotification(
                    admin_id=admin_id,
                    notification_type=notification_type,
                    reference_id=reference_id,
                ))
                created += 1
            elif reset_read and row.read_at is not None:
                row.read_at = None
                row.criado_em = utcnow()
        self.db.flush()
        logger.debug(f"Admin notifications {notification_type}:{reference_id} created for {created} admins")
        return created

    def notify_teacher(self, teacher_id: UUID, reference_id: UUID) -> None:
        """Leader message for a facilitator; an existing row is marked unread again"""
        notification_type = NotificationType.LEADER_MESSAGE.value
        row = self.db.execute(
            select(TeacherNotification).where(
                TeacherNotification.teacher_id == teacher_id,
                TeacherNotification.notification_type == notification_type,
                TeacherNotification.reference_id == reference_id,
            )
        ).scalar_one_or_none()
        if row is None:
            self.db.add(TeacherNotification(
                teacher_id=teacher_id,
                notification_type=notification_type,
                reference_id=reference_id,
            ))
        else:
            row.read_at = None
            row.criado_em = utcnow()
        self.db.flush()

    # ------------------------------------------------------------------
    # Admin side
    # ------------------------------------------------------------------

    def _hydrate_admin(self, row: AdminNotification) -> Optional[Dict[str, Any]]:
        """Attach the referenced entity; None when it no longer exists or is empty"""
        base = {
            "id": row.id,
            "type": row.notification_type,
            "reference_id": row.reference_id,
            "created_at": row.criado_em,
        }

        if row.notification_type == NotificationType.STUDENT_OBSERVATION.value:
            attendance = self.db.get(Attendance, row.reference_id)
            if not attendance or not attendance.observacao:
                return None
            session = attendance.session
            base.update({
                "student": {"id": attendance.student.id, "nome": attendance.student.nome},
                "session": {"id": session.id, "numero_sessao": session.numero_sessao, "data_sessao": session.data_sessao},
                "class": class_ref(session.class_),
                "preview": preview(attendance.observacao),
                "full_text": attendance.observacao,
            })
            return base

        if row.notification_type == NotificationType.SESSION_REPORT.value:
            session = self.db.get(ClassSession, row.reference_id)
            if not session or not session.relatorio:
                return None
            base.update({
                "session": {"id": session.id, "numero_sessao": session.numero_sessao, "data_sessao": session.data_sessao},
                "class": class_ref(session.class_),
                "preview": preview(session.relatorio),
                "full_text": session.relatorio,
            })
            return base

        if row.notification_type == NotificationType.FINAL_REPORT.value:
            klass = self.db.get(Class, row.reference_id)
            if not klass or not klass.final_report:
                return None
            base.update({
                "class": class_ref(klass),
                "teacher": {"id": klass.teacher.id, "nome": klass.teacher.nome} if klass.teacher else None,
                "preview": preview(klass.final_report),
                "full_text": klass.final_report,
            })
            return base

        if row.notification_type == NotificationType.TEACHER_MESSAGE.value:
            return self._hydrate_conversation(base, row.reference_id)

        return None

    def _hydrate_conversation(self, base: Dict[str, Any], conversation_id: UUID, length: int = 80) -> Optional[Dict[str, Any]]:
        conversation = self.db.get(Conversation, conversation_id)
        if not conversation:
            return None
        last = self.db.execute(
            select(Message)
            .where(Message.conversation_id == conversation.id)
            .order_by(Message.criado_em.desc())
            .limit(1)
        ).scalar_one_or_none()
        base.update({
            "conversation_id": conversation.id,
            "class": class_ref(conversation.class_),
            "student": {"id": conversation.student.id, "nome": conversation.student.nome} if conversation.student else None,
            "preview": preview(last.body, length) if last else "",
        })
        return base

    def list_admin(self, admin_id: UUID, notification_type: Optional[str] = None) -> List[Dict[str, Any]]:
        stmt = select(AdminNotification).where(
            AdminNotification.admin_id == admin_id,
            AdminNotification.read_at.is_(None),
        )
        if notification_type in ADMIN_NOTIFICATION_TYPES:
            stmt = stmt.where(AdminNotification.notification_type == notification_type)
        stmt = stmt.order_by(AdminNotification.criado_em.desc()).limit(settings.NOTIFICATION_LIST_LIMIT)

        notifications = []
        for row in self.db.execute(stmt).scalars().all():
            item = self._hydrate_admin(row)
            if item is not None:
                notifications.append(item)
        return notifications

    def count_admin(self, admin_id: UUID) -> Dict[str, int]:
        rows = self.db.execute(
            select(AdminNotification.notification_type, func.count(AdminNotification.id))
            .where(AdminNotification.admin_id == admin_id, AdminNotification.read_at.is_(None))
            .group_by(AdminNotification.notification_type)
        ).all()
        counts = {t: 0 for t in ADMIN_NOTIFICATION_TYPES}
        for notification_type, count in rows:
            if notification_type in counts:
                counts[notification_type] = count
        counts["total"] = sum(counts.values())
        return counts

    def _resolve_filters(self, notification_ids, notification_type, reference_id, allowed_types):
        if notification_ids:
            return "ids"
        if notification_type and reference_id:
            if notification_type not in allowed_types:
                raise NotificationError("Tipo de notificação inválido", "INVALID_NOTIFICATION_TYPE", 400)
            return "reference"
        raise NotificationError(
            "Informe notification_ids ou type e reference_id",
            "INVALID_MARK_READ_REQUEST",
            400,
        )

    def mark_admin_read(
        self,
        admin_id: UUID,
        notification_ids: Optional[List[UUID]] = None,
        notification_type: Optional[str] = None,
        reference_id: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        mode = self._resolve_filters(notification_ids, notification_type, reference_id, ADMIN_NOTIFICATION_TYPES)

        criteria = [AdminNotification.admin_id == admin_id]
        if mode == "ids":
            criteria.append(AdminNotification.id.in_(notification_ids))
        else:
            criteria.extend([
                AdminNotification.notification_type == notification_type,
                AdminNotification.reference_id == reference_id,
            ])

        now = utcnow()
        try:
            result = self.db.execute(
                update(AdminNotification)
                .where(*criteria, AdminNotification.read_at.is_(None))
                .values(read_at=now)
                .execution_options(synchronize_session=False)
            )

            # Observations carry their own read flag shown on the student history
            observation_ids = self.db.execute(
                select(AdminNotification.reference_id).where(
                    *criteria,
                    AdminNotification.notification_type == NotificationType.STUDENT_OBSERVATION.value,
                )
            ).scalars().all()
            if observation_ids:
                self._set_observations_read(observation_ids, now)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.expire_all()
        logger.info(f"Admin {admin_id} marked {result.rowcount} notification(s) read")
        return {"success": True, "count": result.rowcount}

    def _set_observations_read(self, attendance_ids, when) -> int:
        result = self.db.execute(
            update(Attendance)
            .where(
                Attendance.id.in_(list(attendance_ids)),
                Attendance.observacao.is_not(None),
                Attendance.lida_por_admin.is_(False),
            )
            .values(lida_por_admin=True, lida_em=when)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def mark_observations_read(self, attendance_ids: List[UUID]) -> int:
        try:
            count = self._set_observations_read(attendance_ids, utcnow())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.expire_all()
        logger.info(f"{count} observation(s) marked read")
        return count

    # ------------------------------------------------------------------
    # Facilitator side
    # ------------------------------------------------------------------

    def list_teacher(self, teacher_id: UUID) -> List[Dict[str, Any]]:
        rows = self.db.execute(
            select(TeacherNotification)
            .where(TeacherNotification.teacher_id == teacher_id, TeacherNotification.read_at.is_(None))
            .order_by(TeacherNotification.criado_em.desc())
            .limit(settings.NOTIFICATION_LIST_LIMIT)
        ).scalars().all()

        notifications = []
        for row in rows:
            base = {
                "id": row.id,
                "type": row.notification_type,
                "reference_id": row.reference_id,
                "created_at": row.criado_em,
            }
            item = self._hydrate_conversation(base, row.reference_id)
            if item is not None:
                notifications.append(item)
        return notifications

    def count_teacher(self, teacher_id: UUID) -> Dict[str, int]:
        count = self.db.execute(
            select(func.count(TeacherNotification.id)).where(
                TeacherNotification.teacher_id == teacher_id,
                TeacherNotification.read_at.is_(None),
            )
        ).scalar_one()
        return {NotificationType.LEADER_MESSAGE.value: count, "total": count}

    def mark_teacher_read(
        self,
        teacher_id: UUID,
        notification_ids: Optional[List[UUID]] = None,
        notification_type: Optional[str] = None,
        reference_id: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        mode = self._resolve_filters(notification_ids, notification_type, reference_id, TEACHER_NOTIFICATION_TYPES)

        criteria = [TeacherNotification.teacher_id == teacher_id, TeacherNotification.read_at.is_(None)]
        if mode == "ids":
            criteria.append(TeacherNotification.id.in_(notification_ids))
        else:
            criteria.extend([
                TeacherNotification.notification_type == notification_type,
                TeacherNotification.reference_id == reference_id,
            ])

        try:
            result = self.db.execute(
                update(TeacherNotification)
                .where(*criteria)
                .values(read_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.expire_all()
        logger.info(f"Facilitator {teacher_id} marked {result.rowcount} notification(s) read")
        return {"success": True, "count": result.rowcount}
