# tests/test_admin_teacher_api.py - Admin management and the facilitator session flow over HTTP
from pg_repense.models import Class


def test_admin_class_lifecycle(client, db, admin_headers, make_teacher):
    teacher = make_teacher()

    created = client.post("/api/admin/classes", headers=admin_headers, json={
        "grupo_repense": "Evangelho",
        "modelo": "presencial",
        "cidade": "Itu",
        "capacidade": 10,
        "horario": "19:30",
        "teacher_id": str(teacher.id),
    })
    assert created.status_code == 201
    klass = created.json()
    assert klass["capacity_status"] == "ok"
    assert klass["vagas_disponiveis"] == 10

    invalid = client.put(f"/api/admin/classes/{klass['id']}", headers=admin_headers, json={"horario": "7pm"})
    assert invalid.status_code == 400

    detail = client.get(f"/api/admin/classes/{klass['id']}", headers=admin_headers).json()
    assert detail["sessions_count"] == 0

    archived = client.delete(f"/api/admin/classes/{klass['id']}", headers=admin_headers)
    assert archived.status_code == 200
    listed = client.get("/api/admin/classes", headers=admin_headers).json()
    assert klass["id"] not in {c["id"] for c in listed}


def test_admin_enrollment_endpoints(client, db, admin_headers, make_class, make_student):
    klass = make_class(capacidade=1)
    student, other = make_student(), make_student()

    created = client.post("/api/admin/enrollments", headers=admin_headers, json={
        "student_id": str(student.id), "class_id": str(klass.id),
    })
    assert created.status_code == 201

    full = client.post("/api/admin/enrollments", headers=admin_headers, json={
        "student_id": str(other.id), "class_id": str(klass.id),
    })
    assert full.status_code == 409
    assert full.json() == {"error": "Grupo lotado", "code": "CLASS_FULL"}

    enrollment_id = created.json()["id"]
    cancelled = client.post(f"/api/admin/enrollments/{enrollment_id}/cancel", headers=admin_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelado"

    again = client.post(f"/api/admin/enrollments/{enrollment_id}/complete", headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["code"] == "ENROLLMENT_NOT_ACTIVE"

    db.expire_all()
    assert db.get(Class, klass.id).numero_inscritos == 0


def test_admin_moves_student(client, admin_headers, make_class, make_student, enroll):
    source, destination = make_class(), make_class()
    student = make_student()
    enroll(student, source)

    response = client.post(f"/api/admin/classes/{source.id}/move-student", headers=admin_headers, json={
        "student_id": str(student.id), "to_class_id": str(destination.id),
    })

    assert response.status_code == 200
    assert response.json()["class_id"] == str(destination.id)
    roster = client.get(f"/api/admin/classes/{destination.id}/students", headers=admin_headers).json()
    assert [row["student"]["id"] for row in roster] == [str(student.id)]
    moved = client.get(
        f"/api/admin/classes/{source.id}/students", headers=admin_headers, params={"status": "transferido"}
    ).json()
    assert len(moved) == 1


def test_admin_creates_teacher_with_generated_password(client, admin_headers):
    response = client.post("/api/admin/teachers", headers=admin_headers, json={
        "nome": "Paulo Lima", "email": "paulo@repense.org",
    })

    assert response.status_code == 201
    password = response.json()["password"]
    login = client.post("/api/auth/teacher/login", json={"email": "paulo@repense.org", "password": password})
    assert login.status_code == 200

    duplicate = client.post("/api/admin/teachers", headers=admin_headers, json={
        "nome": "Paulo Lima", "email": "paulo@repense.org",
    })
    assert duplicate.status_code == 409


def test_facilitator_session_flow(client, admin_headers, headers_for, make_teacher, make_class, make_student, enroll):
    teacher = make_teacher()
    headers = headers_for(teacher)
    klass = make_class(teacher=teacher)
    students = [make_student(), make_student()]
    for student in students:
        enroll(student, klass)

    opened = client.post("/api/teacher/sessions", headers=headers, json={"class_id": str(klass.id)})
    assert opened.status_code == 201
    session_id = opened.json()["session"]["id"]
    assert opened.json()["reused"] is False

    reopened = client.post("/api/teacher/sessions", headers=headers, json={"class_id": str(klass.id)})
    assert reopened.status_code == 200
    assert reopened.json()["reused"] is True

    active = client.get("/api/teacher/sessions/active", headers=headers).json()
    assert active["session"]["id"] == session_id
    assert len(active["students"]) == 2

    partial = client.post(f"/api/teacher/sessions/{session_id}/attendance", headers=headers, json={
        "records": [{"student_id": str(students[0].id), "presente": True, "observacao": "Muito participativa"}],
    })
    assert partial.status_code == 200

    blocked = client.put(f"/api/teacher/sessions/{session_id}", headers=headers, json={"relatorio": "Ok"})
    assert blocked.status_code == 400
    assert blocked.json()["code"] == "CHECK_IN_REQUIRED"
    assert blocked.json()["missing_student_ids"] == [str(students[1].id)]

    client.post(f"/api/teacher/sessions/{session_id}/attendance", headers=headers, json={
        "records": [{"student_id": str(students[1].id), "presente": False}],
    })
    closed = client.put(f"/api/teacher/sessions/{session_id}", headers=headers, json={"relatorio": "Encontro bom"})
    assert closed.status_code == 200
    assert closed.json()["session"]["status"] == "closed"

    assert client.get("/api/teacher/sessions/active", headers=headers).json() == {"session": None}

    counts = client.get("/api/admin/notifications/count", headers=admin_headers).json()
    assert counts["student_observation"] == 1
    assert counts["session_report"] == 1

    notifications = client.get("/api/admin/notifications", headers=admin_headers).json()
    assert notifications["count"] == 2
    marked = client.post("/api/admin/notifications/mark-read", headers=admin_headers, json={
        "notification_ids": [n["id"] for n in notifications["notifications"]],
    })
    assert marked.json() == {"success": True, "count": 2}


def test_facilitator_cannot_touch_other_classes(client, headers_for, make_teacher, make_class):
    owner, intruder = make_teacher(), make_teacher()
    klass = make_class(teacher=owner)

    response = client.post("/api/teacher/sessions", headers=headers_for(intruder), json={"class_id": str(klass.id)})

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_stats(client, admin_headers, make_class, make_student, enroll):
    klass = make_class()
    enroll(make_student(), klass)

    stats = client.get("/api/admin/stats", headers=admin_headers).json()

    assert stats["classes"]["active"] == 1
    assert stats["classes"]["enrolled"] == 1
    assert stats["enrollments"]["ativo"] == 1
