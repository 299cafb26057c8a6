# tests/test_class_service.py
import uuid

import pytest

from pg_repense.core.errors import ClassError
from pg_repense.models import Teacher
from pg_repense.services.class_service import ClassService, capacity_status, capacity_percentage
from pg_repense.services.session_service import SessionService


@pytest.mark.parametrize("enrolled,capacity,expected", [
    (0, 10, "ok"),
    (7, 10, "warning_70"),
    (8, 10, "warning_80"),
    (9, 10, "warning_90"),
    (10, 10, "full"),
])
def test_capacity_status(enrolled, capacity, expected):
    assert capacity_status(enrolled, capacity) == expected


def test_capacity_percentage_rounds():
    assert capacity_percentage(1, 3) == 33
    assert capacity_percentage(0, 0) == 0


def run_sessions(db, teacher, klass, students, count):
    service = SessionService(db)
    for _ in range(count):
        session, _ = service.open_session(teacher, klass.id)
        service.save_attendance(teacher, session.id, [
            {"student_id": s.id, "presente": True} for s in students
        ])
        service.finalize(teacher, session.id)


def test_create_rejects_second_active_class_for_teacher(db, make_teacher):
    teacher = make_teacher()
    service = ClassService(db)
    data = {"grupo_repense": "Igreja", "modelo": "online", "capacidade": 5, "teacher_id": teacher.id}
    service.create(dict(data))

    with pytest.raises(ClassError) as exc:
        service.create(dict(data))
    assert exc.value.code == "TEACHER_HAS_ACTIVE_CLASS"

    # An inactive class does not count against the limit
    service.create(dict(data, eh_ativo=False))


def test_create_rejects_duplicate_whatsapp_link(db):
    service = ClassService(db)
    link = "https://chat.whatsapp.com/abc"
    service.create({"grupo_repense": "Igreja", "modelo": "online", "capacidade": 5, "link_whatsapp": link})

    with pytest.raises(ClassError) as exc:
        service.create({"grupo_repense": "Evangelho", "modelo": "online", "capacidade": 5, "link_whatsapp": link})
    assert exc.value.code == "WHATSAPP_LINK_TAKEN"


def test_update_capacity_cannot_drop_below_enrolled(db, make_class, make_student, enroll):
    klass = make_class(capacidade=3)
    enroll(make_student(), klass)
    enroll(make_student(), klass)

    with pytest.raises(ClassError) as exc:
        ClassService(db).update(klass.id, {"capacidade": 1})
    assert exc.value.code == "CAPACITY_BELOW_ENROLLED"

    updated = ClassService(db).update(klass.id, {"capacidade": 2, "horario": ""})
    assert updated.capacidade == 2
    assert updated.horario is None


def test_archive_blocked_while_session_open(db, make_teacher, make_class, make_student, enroll):
    teacher = make_teacher()
    klass = make_class(teacher=teacher)
    enroll(make_student(), klass)
    SessionService(db).open_session(teacher, klass.id)

    with pytest.raises(ClassError) as exc:
        ClassService(db).toggle_archive(klass.id)
    assert exc.value.code == "SESSION_OPEN"


def test_archive_requires_final_report_after_all_sessions(db, make_teacher, make_class, make_student, enroll):
    teacher = make_teacher()
    klass = make_class(teacher=teacher, numero_sessoes=2)
    student = make_student()
    enroll(student, klass)
    run_sessions(db, teacher, klass, [student], 2)
    service = ClassService(db)

    with pytest.raises(ClassError) as exc:
        service.toggle_archive(klass.id)
    assert exc.value.code == "FINAL_REPORT_REQUIRED"

    SessionService(db).submit_final_report(teacher, klass.id, "Encerramento com todos presentes")
    archived = service.toggle_archive(klass.id)

    assert archived.arquivada is True
    assert archived.eh_ativo is False
    db.expire_all()
    assert db.get(Teacher, teacher.id).eh_ativo is False


def test_archive_before_target_needs_no_report(db, make_teacher, make_class, make_student, enroll):
    teacher = make_teacher()
    klass = make_class(teacher=teacher, numero_sessoes=5)
    student = make_student()
    enroll(student, klass)
    run_sessions(db, teacher, klass, [student], 1)

    archived = ClassService(db).archive(klass.id)

    assert archived.arquivada is True


def test_archived_class_refuses_reactivation_until_unarchived(db, make_class):
    klass = make_class()
    service = ClassService(db)
    service.toggle_archive(klass.id)

    with pytest.raises(ClassError) as exc:
        service.update(klass.id, {"eh_ativo": True})
    assert exc.value.code == "CLASS_ARCHIVED"

    restored = service.toggle_archive(klass.id)
    assert restored.arquivada is False
    assert restored.eh_ativo is False

    assert service.update(klass.id, {"eh_ativo": True}).eh_ativo is True


def test_batch_archive_reports_skipped(db, make_teacher, make_class, make_student, enroll):
    teacher = make_teacher()
    busy = make_class(teacher=teacher)
    enroll(make_student(), busy)
    SessionService(db).open_session(teacher, busy.id)
    idle = make_class()
    missing = uuid.uuid4()

    result = ClassService(db).batch_archive([busy.id, idle.id, missing])

    assert result["archived"] == [str(idle.id)]
    assert {item["code"] for item in result["skipped"]} == {"SESSION_OPEN", "CLASS_NOT_FOUND"}
    assert result["count"] == 1


def test_sync_teacher_status(db, make_teacher, make_class):
    leading = make_teacher(eh_ativo=False)
    idle = make_teacher(eh_ativo=False)
    make_class(teacher=leading)

    result = ClassService(db).sync_teachers_active_status()
    db.commit()

    assert result == {"activated_count": 1, "deactivated_count": 0}
    db.expire_all()
    assert db.get(Teacher, leading.id).eh_ativo is True
    # No classes at all: flag left as is
    assert db.get(Teacher, idle.id).eh_ativo is False
