# tests/test_session_service.py
import pytest
from sqlalchemy import select, func

from pg_repense.core.errors import SessionError
from pg_repense.models import ClassSession, Attendance, AdminNotification
from pg_repense.services.enrollment_service import EnrollmentService
from pg_repense.services.session_service import SessionService, attendance_stats


@pytest.fixture
def roster(make_teacher, make_class, make_student, enroll):
    teacher = make_teacher()
    klass = make_class(teacher=teacher)
    students = [make_student(nome=f"Aluna {letter} Silva") for letter in "ABC"]
    for student in students:
        enroll(student, klass)
    return teacher, klass, students


def check_in(service, teacher, session, students, presente=True, observacao=None):
    return service.save_attendance(teacher, session.id, [
        {"student_id": s.id, "presente": presente, "observacao": observacao} for s in students
    ])


def test_attendance_stats():
    assert attendance_stats(0, []) == {
        "total": 0, "presentes": 0, "ausentes": 0, "nao_registrado": 0, "percentual": 0,
    }


def test_open_numbers_sessions_and_reuses_open_one(db, roster):
    teacher, klass, _ = roster
    service = SessionService(db)

    session, reused = service.open_session(teacher, klass.id)
    assert reused is False
    assert session.numero_sessao == 1

    again, reused = service.open_session(teacher, klass.id)
    assert reused is True
    assert again.id == session.id


def test_one_open_session_per_teacher(db, roster, make_class):
    teacher, klass, _ = roster
    other = make_class(teacher=teacher, grupo_repense="Evangelho")
    service = SessionService(db)
    first, _ = service.open_session(teacher, klass.id)

    with pytest.raises(SessionError) as exc:
        service.open_session(teacher, other.id)

    assert exc.value.code == "ACTIVE_SESSION_EXISTS"
    assert exc.value.to_dict()["active_session"]["id"] == first.id


def test_open_rejects_foreign_and_inactive_classes(db, roster, make_teacher, make_class):
    teacher, klass, _ = roster
    intruder = make_teacher()
    service = SessionService(db)

    with pytest.raises(SessionError) as exc:
        service.open_session(intruder, klass.id)
    assert exc.value.status_code == 403

    inactive = make_class(teacher=intruder, eh_ativo=False)
    with pytest.raises(SessionError) as exc:
        service.open_session(intruder, inactive.id)
    assert exc.value.code == "CLASS_INACTIVE"


def test_finalize_requires_full_check_in(db, roster):
    teacher, klass, students = roster
    service = SessionService(db)
    session, _ = service.open_session(teacher, klass.id)
    check_in(service, teacher, session, students[:2])

    with pytest.raises(SessionError) as exc:
        service.finalize(teacher, session.id, "Boa conversa")

    assert exc.value.code == "CHECK_IN_REQUIRED"
    assert exc.value.to_dict()["missing_student_ids"] == [str(students[2].id)]
    db.expire_all()
    assert db.get(ClassSession, session.id).status == "open"


def test_finalize_closes_and_next_session_increments(db, roster):
    teacher, klass, students = roster
    service = SessionService(db)
    session, _ = service.open_session(teacher, klass.id)
    check_in(service, teacher, session, students)

    closed = service.finalize(teacher, session.id, "  ")

    assert closed.status == "closed"
    assert closed.relatorio is None
    assert closed.encerrada_em is not None

    with pytest.raises(SessionError) as exc:
        service.finalize(teacher, session.id)
    assert exc.value.code == "SESSION_CLOSED"

    with pytest.raises(SessionError) as exc:
        check_in(service, teacher, session, students)
    assert exc.value.code == "SESSION_CLOSED"

    second, reused = service.open_session(teacher, klass.id)
    assert reused is False
    assert second.numero_sessao == 2


def test_save_attendance_upserts(db, roster):
    teacher, klass, students = roster
    service = SessionService(db)
    session, _ = service.open_session(teacher, klass.id)

    check_in(service, teacher, session, students, presente=False)
    result = check_in(service, teacher, session, students[:1], presente=True)

    assert result["stats"]["presentes"] == 1
    assert result["stats"]["ausentes"] == 2
    rows = db.execute(
        select(func.count(Attendance.id)).where(Attendance.session_id == session.id)
    ).scalar_one()
    assert rows == 3


def test_save_attendance_rejects_students_outside_class(db, roster, make_student):
    teacher, klass, students = roster
    service = SessionService(db)
    session, _ = service.open_session(teacher, klass.id)
    stranger = make_student()

    with pytest.raises(SessionError) as exc:
        check_in(service, teacher, session, [students[0], stranger])

    assert exc.value.code == "INVALID_STUDENTS"
    assert exc.value.to_dict()["invalid_student_ids"] == [str(stranger.id)]
    assert db.execute(select(func.count(Attendance.id))).scalar_one() == 0


def test_transferred_student_starts_with_no_attendance(db, roster, make_class):
    teacher, klass, students = roster
    destination = make_class()
    service = SessionService(db)
    session, _ = service.open_session(teacher, klass.id)
    check_in(service, teacher, session, students, presente=False)

    moved = EnrollmentService(db).transfer_enrolled(students[0].id, klass.id, destination.id)

    count = db.execute(
        select(func.count(Attendance.id)).where(Attendance.enrollment_id == moved.id)
    ).scalar_one()
    assert count == 0
    # The moved student leaves the source roster
    detail = service.get_session(session.id)
    assert students[0].id not in {s["student_id"] for s in detail["students"]}
    assert detail["stats"]["total"] == 2


def test_returning_student_is_credited_to_current_enrollment(db, roster, make_class):
    teacher, klass, students = roster
    other = make_class()
    service = SessionService(db)
    enrollments = EnrollmentService(db)
    session, _ = service.open_session(teacher, klass.id)
    check_in(service, teacher, session, students[:1], presente=False)

    enrollments.transfer_enrolled(students[0].id, klass.id, other.id)
    returned = enrollments.transfer_enrolled(students[0].id, other.id, klass.id)
    check_in(service, teacher, session, students[:1])

    rows = db.execute(
        select(Attendance).where(Attendance.session_id == session.id, Attendance.student_id == students[0].id)
    ).scalars().all()
    assert len(rows) == 1
    assert rows[0].enrollment_id == returned.id
    assert rows[0].presente is True


def test_observation_notifies_admins(db, roster, make_admin):
    teacher, klass, students = roster
    admin = make_admin()
    service = SessionService(db)
    session, _ = service.open_session(teacher, klass.id)

    check_in(service, teacher, session, students[:1], observacao="Chegou atrasada")
    check_in(service, teacher, session, students[:1], observacao="Chegou atrasada")

    rows = db.execute(
        select(AdminNotification).where(AdminNotification.admin_id == admin.id)
    ).scalars().all()
    assert len(rows) == 1
    assert rows[0].notification_type == "student_observation"


def test_at_risk_students(db, roster):
    teacher, klass, students = roster
    service = SessionService(db)
    for _ in range(3):
        session, _ = service.open_session(teacher, klass.id)
        service.save_attendance(teacher, session.id, [
            {"student_id": students[0].id, "presente": False},
            {"student_id": students[1].id, "presente": True},
            {"student_id": students[2].id, "presente": True},
        ])
        service.finalize(teacher, session.id)

    at_risk = service.at_risk_students(teacher)

    assert [s["student_id"] for s in at_risk] == [students[0].id]
    assert at_risk[0]["faltas"] == 3


def test_final_report(db, roster, make_admin):
    teacher, klass, _ = roster
    make_admin()
    service = SessionService(db)

    with pytest.raises(SessionError) as exc:
        service.submit_final_report(teacher, klass.id, "   ")
    assert exc.value.code == "FINAL_REPORT_EMPTY"

    service.submit_final_report(teacher, klass.id, "Turma muito participativa")
    report = service.get_final_report(teacher, klass.id)

    assert report["final_report"] == "Turma muito participativa"
    assert report["final_report_em"] is not None
    assert report["numero_sessoes"] == 9


def test_at_risk_threshold_zero_is_respected(db, roster):
    teacher, klass, students = roster
    service = SessionService(db)
    session, _ = service.open_session(teacher, klass.id)
    service.save_attendance(teacher, session.id, [
        {"student_id": students[0].id, "presente": False},
        {"student_id": students[1].id, "presente": True},
        {"student_id": students[2].id, "presente": True},
    ])

    assert service.at_risk_students(teacher) == []
    at_risk = service.at_risk_students(teacher, threshold=0)
    assert [s["student_id"] for s in at_risk] == [students[0].id]
