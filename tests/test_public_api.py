# tests/test_public_api.py - Registration page endpoints
from sqlalchemy import select

from pg_repense.models import Class, Student


def registration(class_id, **overrides):
    payload = {
        "nome": "maria DA silva",
        "cpf": "529.982.247-25",
        "telefone": "(11) 98765-4321",
        "email": "Maria.Silva@Email.com",
        "genero": "Feminino",
        "nascimento": "25-12-1990",
        "cidade_preferencia": "Indaiatuba",
        "class_id": str(class_id),
    }
    payload.update(overrides)
    return payload


def test_register_creates_student_and_enrollment(client, db, make_class):
    klass = make_class()

    response = client.post("/api/register", json=registration(klass.id))

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    db.expire_all()
    student = db.execute(select(Student).where(Student.cpf == "52998224725")).scalar_one()
    assert student.nome == "Maria da Silva"
    assert student.email == "maria.silva@email.com"
    assert student.telefone == "11987654321"
    assert student.nascimento.isoformat() == "1990-12-25"
    assert db.get(Class, klass.id).numero_inscritos == 1


def test_register_validation_errors(client, make_class):
    klass = make_class()

    response = client.post("/api/register", json=registration(klass.id, cpf="123.456.789-00", nome="Maria"))

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Dados inválidos"
    fields = {detail["field"] for detail in body["details"]}
    assert {"cpf", "nome"} <= fields


def test_register_full_class(client, make_class):
    klass = make_class(capacidade=1)
    client.post("/api/register", json=registration(klass.id))

    response = client.post(
        "/api/register",
        json=registration(klass.id, cpf="111.444.777-35", telefone="11912345678", email=None),
    )

    assert response.status_code == 409
    assert response.json()["code"] == "CLASS_FULL"


def test_register_again_proposes_course_change(client, db, make_class):
    current = make_class()
    wanted = make_class(horario="20:00")
    created = client.post("/api/register", json=registration(current.id)).json()

    proposal = client.post("/api/register", json=registration(wanted.id))

    assert proposal.status_code == 200
    body = proposal.json()
    assert body["requires_course_change"] is True
    assert body["existing_enrollment"]["id"] == created["enrollment_id"]

    confirmed = client.post("/api/register/change-course", json={
        "cpf": "52998224725",
        "student_id": created["student_id"],
        "old_enrollment_id": created["enrollment_id"],
        "new_class_id": str(wanted.id),
    })

    assert confirmed.status_code == 200
    assert confirmed.json()["action"] == "transferred"
    db.expire_all()
    assert db.get(Class, current.id).numero_inscritos == 0
    assert db.get(Class, wanted.id).numero_inscritos == 1


def test_same_class_twice_is_rejected(client, make_class):
    klass = make_class()
    client.post("/api/register", json=registration(klass.id))

    response = client.post("/api/register", json=registration(klass.id))

    assert response.status_code == 409
    assert response.json()["code"] == "ALREADY_ENROLLED"


def test_phone_owned_by_someone_else(client, make_class, make_student):
    make_student(telefone="11987654321")

    response = client.post("/api/register", json=registration(make_class().id))

    assert response.status_code == 409
    assert response.json()["code"] == "PHONE_TAKEN"


def test_courses_grouped_by_group_and_city(client, make_class):
    make_class()
    make_class(cidade="Itu")
    make_class(grupo_repense="Evangelho", eh_mulheres=True)
    make_class(grupo_repense="Espiritualidade", eh_ativo=False)

    body = client.get("/api/courses", params={"genero": "Masculino"}).json()

    assert set(body) == {"Igreja"}
    assert set(body["Igreja"]) == {"Indaiatuba", "Itu"}
    course = body["Igreja"]["Itu"][0]
    assert course["vagas_disponiveis"] == 10


def test_priority_list_signup(client, db, make_class):
    klass = make_class(capacidade=1)

    response = client.post("/api/students/priority-list", json=registration(klass.id))

    assert response.status_code == 201
    db.expire_all()
    student = db.execute(select(Student).where(Student.cpf == "52998224725")).scalar_one()
    assert student.priority_list is True
    assert str(student.priority_list_course_id) == str(klass.id)
    assert db.get(Class, klass.id).numero_inscritos == 0


def test_validate_enrollment(client, make_class, make_student):
    student = make_student()
    klass = make_class()

    body = client.post(
        "/api/enrollment/validate", json={"student_id": str(student.id), "class_id": str(klass.id)}
    ).json()

    assert body["can_enroll"] is True
