# tests/test_enrollment_service.py
import uuid

import pytest
from sqlalchemy import select, func

from pg_repense.core.errors import EnrollmentError
from pg_repense.models import Class, Enrollment
from pg_repense.services.enrollment_service import EnrollmentService


def active_count(db, klass):
    return db.execute(
        select(func.count(Enrollment.id)).where(Enrollment.class_id == klass.id, Enrollment.status == "ativo")
    ).scalar_one()


def assert_counter_matches(db, *classes):
    db.expire_all()
    for klass in classes:
        refreshed = db.get(Class, klass.id)
        assert refreshed.numero_inscritos == active_count(db, klass)


def test_create_increments_counter(db, make_class, make_student):
    klass = make_class()
    student = make_student()

    enrollment = EnrollmentService(db).create(student.id, klass.id)

    assert enrollment.status == "ativo"
    assert_counter_matches(db, klass)
    assert db.get(Class, klass.id).numero_inscritos == 1


def test_capacity_one_rejects_second_student(db, make_class, make_student):
    klass = make_class(capacidade=1)
    first, second = make_student(), make_student()
    service = EnrollmentService(db)

    service.create(first.id, klass.id)
    with pytest.raises(EnrollmentError) as exc:
        service.create(second.id, klass.id)

    assert exc.value.code == "CLASS_FULL"
    assert exc.value.status_code == 409
    assert_counter_matches(db, klass)
    assert db.get(Class, klass.id).numero_inscritos == 1


def test_cancel_frees_a_seat(db, make_class, make_student):
    klass = make_class(capacidade=1)
    first, second = make_student(), make_student()
    service = EnrollmentService(db)

    enrollment = service.create(first.id, klass.id)
    service.cancel(enrollment.id)
    service.create(second.id, klass.id)

    assert_counter_matches(db, klass)


def test_complete_and_cancel_require_active_enrollment(db, make_class, make_student):
    klass = make_class()
    student = make_student()
    service = EnrollmentService(db)
    enrollment = service.create(student.id, klass.id)
    service.complete(enrollment.id)

    with pytest.raises(EnrollmentError) as exc:
        service.complete(enrollment.id)
    assert exc.value.code == "ENROLLMENT_NOT_ACTIVE"

    with pytest.raises(EnrollmentError) as exc:
        service.cancel(enrollment.id)
    assert exc.value.code == "ENROLLMENT_NOT_ACTIVE"

    db.expire_all()
    assert db.get(Enrollment, enrollment.id).status == "concluido"
    assert_counter_matches(db, klass)


def test_unknown_student_and_class(db, make_class, make_student):
    service = EnrollmentService(db)
    with pytest.raises(EnrollmentError) as exc:
        service.create(uuid.uuid4(), make_class().id)
    assert exc.value.code == "STUDENT_NOT_FOUND"

    with pytest.raises(EnrollmentError) as exc:
        service.create(make_student().id, uuid.uuid4())
    assert exc.value.code == "CLASS_NOT_FOUND"


def test_same_group_rules(db, make_class, make_student):
    igreja_a = make_class()
    igreja_b = make_class()
    evangelho = make_class(grupo_repense="Evangelho")
    student = make_student()
    service = EnrollmentService(db)

    enrollment = service.create(student.id, igreja_a.id)

    with pytest.raises(EnrollmentError) as exc:
        service.create(student.id, igreja_b.id)
    assert exc.value.code == "ALREADY_ENROLLED"

    # A different group is allowed alongside
    service.create(student.id, evangelho.id)

    service.complete(enrollment.id)
    with pytest.raises(EnrollmentError) as exc:
        service.create(student.id, igreja_b.id)
    assert exc.value.code == "ALREADY_COMPLETED"


def test_reenrollment_after_cancel_needs_confirmation(db, make_class, make_student):
    klass = make_class()
    student = make_student()
    service = EnrollmentService(db)
    service.cancel(service.create(student.id, klass.id).id)

    with pytest.raises(EnrollmentError) as exc:
        service.create(student.id, klass.id)
    assert exc.value.code == "PREVIOUSLY_CANCELLED"
    assert exc.value.to_dict()["requires_confirmation"] is True

    enrollment = service.create(student.id, klass.id, confirm_reenrollment=True)
    assert enrollment.status == "ativo"
    assert_counter_matches(db, klass)


def test_duplicate_active_enrollment_caught_by_constraint(db, make_class, make_student, monkeypatch):
    klass = make_class()
    student = make_student()
    service = EnrollmentService(db)
    service.create(student.id, klass.id)
    # Both requests passed the eligibility read before either one inserted
    monkeypatch.setattr(EnrollmentService, "_check_eligibility", lambda self, *args, **kwargs: None)

    with pytest.raises(EnrollmentError) as exc:
        service.create(student.id, klass.id)

    assert exc.value.code == "ALREADY_ENROLLED"
    assert exc.value.status_code == 409
    assert_counter_matches(db, klass)
    assert db.get(Class, klass.id).numero_inscritos == 1


def test_inactive_and_women_only_classes(db, make_class, make_student):
    service = EnrollmentService(db)
    inactive = make_class(eh_ativo=False)
    women = make_class(grupo_repense="Espiritualidade", eh_mulheres=True)
    man = make_student(genero="Masculino")

    with pytest.raises(EnrollmentError) as exc:
        service.create(man.id, inactive.id)
    assert exc.value.code == "CLASS_INACTIVE"

    with pytest.raises(EnrollmentError) as exc:
        service.create(man.id, women.id)
    assert exc.value.code == "WOMEN_ONLY_CLASS"


def test_validate_never_mutates(db, make_class, make_student):
    klass = make_class(capacidade=1)
    student = make_student()
    service = EnrollmentService(db)

    result = service.validate(student.id, klass.id)

    assert result["can_enroll"] is True
    assert_counter_matches(db, klass)
    assert db.get(Class, klass.id).numero_inscritos == 0


def test_validate_reports_previous_cancellation(db, make_class, make_student):
    klass = make_class()
    student = make_student()
    service = EnrollmentService(db)
    service.cancel(service.create(student.id, klass.id).id)

    result = service.validate(student.id, klass.id)

    assert result["can_enroll"] is False
    assert result["code"] == "PREVIOUSLY_CANCELLED"
    assert result["requires_confirmation"] is True
    assert result["previous_enrollment"]["class_id"] == str(klass.id)


def test_transfer_moves_seat_between_classes(db, make_class, make_student):
    source = make_class()
    destination = make_class()
    student = make_student()
    service = EnrollmentService(db)
    source_enrollment = service.create(student.id, source.id)

    moved = service.transfer_enrolled(student.id, source.id, destination.id)

    db.expire_all()
    assert db.get(Enrollment, source_enrollment.id).status == "transferido"
    assert moved.status == "ativo"
    assert moved.class_id == destination.id
    assert moved.transferido_de_class_id == source.id
    assert_counter_matches(db, source, destination)


def test_transfer_into_full_class_changes_nothing(db, make_class, make_student):
    source = make_class()
    destination = make_class(capacidade=1)
    student, other = make_student(), make_student()
    service = EnrollmentService(db)
    source_enrollment = service.create(student.id, source.id)
    service.create(other.id, destination.id)

    with pytest.raises(EnrollmentError) as exc:
        service.transfer_enrolled(student.id, source.id, destination.id)

    assert exc.value.code == "CLASS_FULL"
    db.expire_all()
    assert db.get(Enrollment, source_enrollment.id).status == "ativo"
    assert_counter_matches(db, source, destination)


def test_transfer_to_same_class_rejected(db, make_class, make_student):
    klass = make_class()
    student = make_student()
    service = EnrollmentService(db)
    service.create(student.id, klass.id)

    with pytest.raises(EnrollmentError) as exc:
        service.transfer_enrolled(student.id, klass.id, klass.id)
    assert exc.value.code == "SAME_CLASS"


def test_priority_list_roundtrip(db, make_class):
    full = make_class(capacidade=1)
    later = make_class(cidade="Itu")
    service = EnrollmentService(db)
    data = {
        "nome": "Joana Souza",
        "cpf": "52998224725",
        "telefone": "11987654321",
        "genero": "Feminino",
    }

    student = service.add_to_priority_list(data, full.id)
    assert student.priority_list is True
    assert student.priority_list_course_id == full.id
    assert_counter_matches(db, full)

    enrollment = service.transfer_from_priority_list(student.id, later.id)

    db.expire_all()
    refreshed = db.get(type(student), student.id)
    assert enrollment.class_id == later.id
    assert refreshed.priority_list is False
    assert refreshed.priority_list_course_id is None
    assert refreshed.cidade_preferencia == "Itu"
    assert_counter_matches(db, later)


def test_priority_placement_requires_waitlisted_student(db, make_class, make_student):
    with pytest.raises(EnrollmentError) as exc:
        EnrollmentService(db).transfer_from_priority_list(make_student().id, make_class().id)
    assert exc.value.code == "NOT_ON_PRIORITY_LIST"


def test_register_existing_student_gets_course_change_proposal(db, make_class, make_student):
    current = make_class()
    wanted = make_class(horario="20:00")
    student = make_student(cpf="52998224725", telefone="11987654321")
    service = EnrollmentService(db)
    existing = service.create(student.id, current.id)

    result = service.register(
        {"nome": student.nome, "cpf": "529.982.247-25", "telefone": "11987654321"}, wanted.id
    )

    assert result["requires_course_change"] is True
    assert result["existing_enrollment"]["id"] == str(existing.id)
    assert result["new_course"]["id"] == str(wanted.id)
    # Nothing changed yet
    assert_counter_matches(db, current, wanted)
    assert db.get(Class, wanted.id).numero_inscritos == 0

    confirmed = service.change_course("52998224725", student.id, existing.id, wanted.id)

    assert confirmed["action"] == "transferred"
    db.expire_all()
    assert db.get(Enrollment, existing.id).status == "transferido"
    assert_counter_matches(db, current, wanted)


def test_change_course_across_groups_cancels_old(db, make_class, make_student):
    current = make_class()
    other_group = make_class(grupo_repense="Evangelho")
    student = make_student(cpf="52998224725")
    service = EnrollmentService(db)
    existing = service.create(student.id, current.id)

    result = service.change_course("52998224725", student.id, existing.id, other_group.id)

    assert result["action"] == "cancelled_and_enrolled"
    db.expire_all()
    assert db.get(Enrollment, existing.id).status == "cancelado"
    assert_counter_matches(db, current, other_group)


def test_change_course_rejects_wrong_cpf(db, make_class, make_student):
    current, wanted = make_class(), make_class()
    student = make_student(cpf="52998224725")
    service = EnrollmentService(db)
    existing = service.create(student.id, current.id)

    with pytest.raises(EnrollmentError) as exc:
        service.change_course("11144477735", student.id, existing.id, wanted.id)
    assert exc.value.code == "CPF_MISMATCH"
    assert exc.value.status_code == 403


def test_available_classes_hide_taken_groups_and_women_only(db, make_class, make_student):
    igreja = make_class()
    make_class(grupo_repense="Evangelho", eh_mulheres=True)
    make_class(grupo_repense="Espiritualidade", cidade="Itu")
    make_class(grupo_repense="Espiritualidade", arquivada=True, eh_ativo=False)
    man = make_student(genero="Masculino")
    EnrollmentService(db).create(man.id, igreja.id)

    grouped = EnrollmentService(db).available_classes(student_id=man.id)

    assert set(grouped) == {"Espiritualidade"}
    assert list(grouped["Espiritualidade"]) == ["Itu"]
    assert len(grouped["Espiritualidade"]["Itu"]) == 1
