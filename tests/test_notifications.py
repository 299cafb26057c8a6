# tests/test_notifications.py - Notification read state and conversations
import uuid

import pytest
from sqlalchemy import select

from pg_repense.core.errors import NotificationError, ConversationError
from pg_repense.models import Attendance, AdminNotification
from pg_repense.services.notification_service import NotificationService, preview
from pg_repense.services.session_service import SessionService
from pg_repense.services.conversation_service import ConversationService


@pytest.fixture
def observed(db, make_admin, make_teacher, make_class, make_student, enroll):
    """An admin plus one attendance row carrying an observation"""
    admin = make_admin()
    teacher = make_teacher()
    klass = make_class(teacher=teacher)
    student = make_student()
    enroll(student, klass)
    service = SessionService(db)
    session, _ = service.open_session(teacher, klass.id)
    service.save_attendance(teacher, session.id, [
        {"student_id": student.id, "presente": False, "observacao": "Avisou que estava doente"},
    ])
    row = db.execute(select(Attendance).where(Attendance.session_id == session.id)).scalar_one()
    return admin, teacher, klass, row


def test_preview_truncates():
    assert preview("abc", 5) == "abc"
    assert preview("abcdefgh", 5) == "abcde..."
    assert preview(None, 5) == ""


def test_list_and_count_unread(db, observed):
    admin, _, klass, row = observed
    service = NotificationService(db)

    items = service.list_admin(admin.id)
    counts = service.count_admin(admin.id)

    assert len(items) == 1
    assert items[0]["type"] == "student_observation"
    assert items[0]["full_text"] == "Avisou que estava doente"
    assert items[0]["class"]["id"] == klass.id
    assert counts["student_observation"] == 1
    assert counts["total"] == 1
    assert service.list_admin(admin.id, notification_type="final_report") == []


def test_mark_read_is_idempotent_and_flags_observation(db, observed):
    admin, _, _, row = observed
    service = NotificationService(db)

    first = service.mark_admin_read(admin.id, notification_type="student_observation", reference_id=row.id)
    second = service.mark_admin_read(admin.id, notification_type="student_observation", reference_id=row.id)

    assert first == {"success": True, "count": 1}
    assert second == {"success": True, "count": 0}
    assert service.count_admin(admin.id)["total"] == 0
    attendance = db.get(Attendance, row.id)
    assert attendance.lida_por_admin is True
    assert attendance.lida_em is not None


def test_mark_read_only_touches_own_rows(db, observed, make_admin):
    admin, _, _, row = observed
    other = make_admin()
    NotificationService(db).notify_admins("student_observation", row.id)
    db.commit()
    other_row = db.execute(
        select(AdminNotification).where(AdminNotification.admin_id == other.id)
    ).scalar_one()

    result = NotificationService(db).mark_admin_read(admin.id, notification_ids=[other_row.id])

    assert result["count"] == 0
    assert NotificationService(db).count_admin(other.id)["total"] == 1


def test_mark_read_validates_request(db, observed):
    admin, _, _, row = observed
    service = NotificationService(db)

    with pytest.raises(NotificationError) as exc:
        service.mark_admin_read(admin.id)
    assert exc.value.code == "INVALID_MARK_READ_REQUEST"

    with pytest.raises(NotificationError) as exc:
        service.mark_admin_read(admin.id, notification_type="leader_message", reference_id=row.id)
    assert exc.value.code == "INVALID_NOTIFICATION_TYPE"


def test_edited_observation_becomes_unread_again(db, observed):
    admin, teacher, _, row = observed
    service = NotificationService(db)
    service.mark_admin_read(admin.id, notification_type="student_observation", reference_id=row.id)

    SessionService(db).save_attendance(teacher, row.session_id, [
        {"student_id": row.student_id, "presente": False, "observacao": "Vai faltar mais uma semana"},
    ])

    assert service.count_admin(admin.id)["student_observation"] == 1
    db.expire_all()
    assert db.get(Attendance, row.id).lida_por_admin is False


def test_mark_observations_read(db, observed):
    _, _, _, row = observed
    service = NotificationService(db)

    assert service.mark_observations_read([row.id]) == 1
    assert service.mark_observations_read([row.id, uuid.uuid4()]) == 0


def test_cleared_observation_drops_from_listing(db, observed):
    admin, teacher, _, row = observed

    SessionService(db).save_attendance(teacher, row.session_id, [
        {"student_id": row.student_id, "presente": True, "observacao": ""},
    ])

    assert NotificationService(db).list_admin(admin.id) == []


def test_conversation_round_trip(db, make_admin, make_teacher, make_class):
    admin = make_admin()
    teacher = make_teacher()
    klass = make_class(teacher=teacher)
    conversations = ConversationService(db)
    notifications = NotificationService(db)

    conversation = conversations.open_for_teacher(teacher, klass.id)
    assert conversations.open_for_teacher(teacher, klass.id).id == conversation.id

    conversations.post_as_teacher(teacher, conversation.id, "Preciso de material extra")
    assert notifications.count_admin(admin.id)["teacher_message"] == 1

    conversations.post_as_admin(admin, conversation.id, "Enviamos amanhã")
    assert notifications.count_teacher(teacher.id) == {"leader_message": 1, "total": 1}
    listed = notifications.list_teacher(teacher.id)
    assert listed[0]["preview"] == "Enviamos amanhã"

    messages = conversations.teacher_messages(teacher, conversation.id)
    assert [m["sender_type"] for m in messages] == ["teacher", "admin"]

    notifications.mark_teacher_read(teacher.id, notification_type="leader_message", reference_id=conversation.id)
    assert notifications.count_teacher(teacher.id)["total"] == 0


def test_conversation_rules(db, make_teacher, make_class):
    owner, intruder = make_teacher(), make_teacher()
    klass = make_class(teacher=owner)
    service = ConversationService(db)
    conversation = service.open_for_teacher(owner, klass.id)

    with pytest.raises(ConversationError) as exc:
        service.teacher_messages(intruder, conversation.id)
    assert exc.value.status_code == 403

    with pytest.raises(ConversationError) as exc:
        service.post_as_teacher(owner, conversation.id, "   ")
    assert exc.value.code == "MESSAGE_EMPTY"

    with pytest.raises(ConversationError) as exc:
        service.post_as_teacher(owner, conversation.id, "x" * 1001)
    assert exc.value.code == "MESSAGE_TOO_LONG"
