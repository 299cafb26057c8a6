# tests/test_auth_api.py - Login, tokens and role checks
from pg_repense.core.security import token_manager

DEFAULT_PASSWORD = "senha1234"


def test_admin_login_and_me(client, make_admin):
    admin = make_admin()

    response = client.post("/api/auth/admin/login", json={"email": admin.email, "password": DEFAULT_PASSWORD})

    assert response.status_code == 200
    token = response.json()["access_token"]
    claims = token_manager.decode_token(token)
    assert claims["role"] == "admin"
    assert claims["sub"] == str(admin.id)

    me = client.get("/api/auth/admin/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == admin.email


def test_admin_login_wrong_password(client, make_admin):
    admin = make_admin()

    response = client.post("/api/auth/admin/login", json={"email": admin.email, "password": "errada123"})

    assert response.status_code == 401
    assert "error" in response.json()


def test_teacher_login(client, make_teacher):
    teacher = make_teacher()

    response = client.post("/api/auth/teacher/login", json={"email": teacher.email, "password": DEFAULT_PASSWORD})

    assert response.status_code == 200
    assert token_manager.decode_token(response.json()["access_token"])["role"] == "teacher"


def test_inactive_teacher_cannot_log_in(client, make_teacher):
    teacher = make_teacher(eh_ativo=False)

    response = client.post("/api/auth/teacher/login", json={"email": teacher.email, "password": DEFAULT_PASSWORD})

    assert response.status_code == 403
    assert response.json()["code"] == "TEACHER_INACTIVE"


def test_missing_and_invalid_tokens(client):
    assert client.get("/api/admin/classes").status_code == 401

    response = client.get("/api/admin/classes", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_roles_are_enforced(client, make_teacher, admin_headers, headers_for):
    teacher = make_teacher()

    assert client.get("/api/admin/classes", headers=headers_for(teacher)).status_code == 403
    assert client.get("/api/teacher/classes", headers=admin_headers).status_code == 403
    assert client.get("/api/superadmin/audit-logs", headers=admin_headers).status_code == 403


def test_superadmin_reads_audit_log(client, make_admin, headers_for):
    superadmin = make_admin(role="superadmin")
    headers = headers_for(superadmin)
    client.post("/api/admin/classes", headers=headers, json={
        "grupo_repense": "Igreja", "modelo": "online", "capacidade": 12,
    })

    response = client.get("/api/superadmin/audit-logs", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["logs"][0]["event_type"] == "class.create"
    assert body["logs"][0]["actor_id"] == str(superadmin.id)


def test_teacher_changes_password(client, make_teacher, headers_for):
    teacher = make_teacher()
    headers = headers_for(teacher)

    weak = client.post("/api/auth/teacher/change-password", headers=headers, json={
        "current_password": DEFAULT_PASSWORD, "new_password": "curta",
    })
    assert weak.status_code == 400
    assert weak.json()["code"] == "WEAK_PASSWORD"

    wrong = client.post("/api/auth/teacher/change-password", headers=headers, json={
        "current_password": "outra1234", "new_password": "NovaSenha2024",
    })
    assert wrong.status_code == 400
    assert wrong.json()["code"] == "INVALID_PASSWORD"

    ok = client.post("/api/auth/teacher/change-password", headers=headers, json={
        "current_password": DEFAULT_PASSWORD, "new_password": "NovaSenha2024",
    })
    assert ok.status_code == 200

    login = client.post("/api/auth/teacher/login", json={"email": teacher.email, "password": "NovaSenha2024"})
    assert login.status_code == 200
