from io import BytesIO

import pytest


@pytest.fixture
def clerk(client, login):
    """A plain user created through the admin surface; the session ends up as the clerk."""
    login()
    response = client.post("/users", json={
        "email": "clerk@x.com", "password": "clerkpass1", "confirmPassword": "clerkpass1",
    })
    assert response.status_code == 201
    login("clerk@x.com", "clerkpass1")
    return "clerk@x.com"


def _add_student(client, roll="R001", **overrides):
    payload = {"name": "Amit Kumar", "rollNumber": roll, "class": "10", "grade": "A", "totalFees": 50000}
    payload.update(overrides)
    return client.post("/students", json=payload)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["ok"] is True


def test_login_and_me(client, login):
    assert client.get("/auth/me").status_code == 401
    body = login().get_json()
    assert body["user"]["email"] == "admin@x.com"
    assert "passwordHash" not in body["user"]
    me = client.get("/auth/me").get_json()
    assert me["user"]["role"] == "admin"


def test_bad_login_is_401(client):
    for creds in ({"email": "admin@x.com", "password": "nope"}, {"email": "ghost@x.com", "password": "x"}):
        response = client.post("/auth/login", json=creds)
        assert response.status_code == 401
        assert response.get_json()["code"] == "invalid_credentials"


def test_logout(client, login):
    login()
    assert client.post("/auth/logout").status_code == 200
    assert client.get("/students").status_code == 401


def test_change_password_flow(client, login):
    login()
    mismatch = client.post("/auth/password", json={
        "currentPassword": "adminpassword", "newPassword": "brandnew123", "confirmPassword": "other",
    })
    assert mismatch.status_code == 400
    wrong = client.post("/auth/password", json={"currentPassword": "nope", "newPassword": "brandnew123"})
    assert wrong.get_json()["code"] == "wrong_password"
    ok = client.post("/auth/password", json={
        "currentPassword": "adminpassword", "newPassword": "brandnew123", "confirmPassword": "brandnew123",
    })
    assert ok.status_code == 200
    login("admin@x.com", "brandnew123")


def test_student_crud(client, login):
    login()
    created = _add_student(client)
    assert created.status_code == 201
    student_id = created.get_json()["student"]["id"]

    assert _add_student(client, roll="r001").status_code == 409
    assert _add_student(client, roll="R002", totalFees=0).status_code == 400

    edited = client.put(f"/students/{student_id}", json={"name": "Amit K."})
    assert edited.status_code == 200
    assert edited.get_json()["student"]["name"] == "Amit K."

    detail = client.get(f"/students/{student_id}").get_json()["student"]
    assert detail["remainingBalance"] == 50000

    listing = client.get("/students?search=amit").get_json()
    assert [s["id"] for s in listing["students"]] == [student_id]
    assert listing["classes"] == ["10"]

    assert client.delete(f"/students/{student_id}").status_code == 200
    assert client.get(f"/students/{student_id}").status_code == 404


def test_payments_and_discounts(client, login):
    login()
    student_id = _add_student(client).get_json()["student"]["id"]

    paid = client.post(f"/students/{student_id}/payments", json={"amount": 20000, "remarks": "First Installment"})
    assert paid.status_code == 201
    payment_id = paid.get_json()["payment"]["id"]
    assert client.post(f"/students/{student_id}/payments", json={"amount": -1}).status_code == 400

    disc = client.post(f"/students/{student_id}/discounts", json={"amount": 2000, "reason": "Sibling Discount"})
    assert disc.status_code == 201
    discount_id = disc.get_json()["discount"]["id"]
    assert client.post(f"/students/{student_id}/discounts", json={"amount": 100}).status_code == 400

    detail = client.get(f"/students/{student_id}").get_json()["student"]
    assert detail["totalPaid"] == 20000
    assert detail["remainingBalance"] == 28000

    assert client.put(f"/students/{student_id}/payments/{payment_id}", json={"amount": 25000}).status_code == 200
    assert client.delete(f"/students/{student_id}/discounts/{discount_id}").status_code == 200
    detail = client.get(f"/students/{student_id}").get_json()["student"]
    assert detail["remainingBalance"] == 25000

    assert client.delete(f"/students/{student_id}/payments/{payment_id}").status_code == 200
    assert client.delete(f"/students/{student_id}/payments/{payment_id}").status_code == 404


def test_default_user_is_read_only(client, clerk):
    assert client.get("/students").status_code == 200
    assert client.get("/reports/dashboard").status_code == 200
    forbidden = _add_student(client)
    assert forbidden.status_code == 403
    assert forbidden.get_json()["code"] == "forbidden"
    assert client.get("/reports/summary").status_code == 403
    assert client.get("/users").status_code == 403
    assert client.get("/students/export.xlsx").status_code == 403


def test_granted_permission_takes_effect(client, login, clerk):
    login()
    response = client.put(f"/users/{clerk}/permissions", json={
        "permissions": {"canViewStudents": True, "canAddStudents": True},
    })
    assert response.status_code == 200
    assert response.get_json()["user"]["permissions"]["canAddStudents"] is True
    login("clerk@x.com", "clerkpass1")
    assert _add_student(client).status_code == 201
    assert client.get("/reports/dashboard").status_code == 403


def test_user_admin_rules(client, login, clerk):
    login()
    listing = client.get("/users").get_json()["users"]
    assert {u["email"] for u in listing} == {"admin@x.com", "clerk@x.com"}
    assert all("passwordHash" not in u for u in listing)

    dup = client.post("/users", json={"email": "CLERK@x.com", "password": "x"})
    assert dup.status_code == 409
    mismatch = client.post("/users", json={"email": "n@x.com", "password": "a", "confirmPassword": "b"})
    assert mismatch.status_code == 400

    assert client.put("/users/admin@x.com/role", json={"role": "user"}).get_json()["code"] == "last_admin"
    assert client.delete("/users/admin@x.com").get_json()["code"] == "self_delete"
    assert client.put("/users/admin@x.com/permissions", json={"permissions": "all"}).status_code == 400

    promoted = client.put(f"/users/{clerk}/role", json={"role": "admin"})
    assert promoted.status_code == 200
    assert promoted.get_json()["user"]["permissions"]["canManageUsers"] is True
    assert client.delete(f"/users/{clerk}").status_code == 200
    assert client.delete(f"/users/{clerk}").status_code == 404


def test_reports(client, login):
    login()
    student_id = _add_student(client).get_json()["student"]["id"]
    client.post(f"/students/{student_id}/payments", json={"amount": 5000, "date": "2024-07-15T10:30:00Z"})
    client.post(f"/students/{student_id}/discounts",
                json={"amount": 1000, "reason": "Early Bird", "date": "2024-07-05T10:00:00Z"})

    summary = client.get("/reports/summary").get_json()
    assert summary["overview"]["totalPending"] == 44000
    assert summary["classWisePending"] == [{"name": "Class 10", "pending": 44000}]
    assert summary["currency"] == "INR"

    dashboard = client.get("/reports/dashboard").get_json()["summary"]
    assert "chart" not in dashboard
    assert dashboard["totalPaid"] == 5000

    monthly = client.get("/reports/monthly?year=2024&month=7").get_json()["report"]
    assert monthly["totalCollected"] == 5000
    assert monthly["totalDiscounted"] == 1000
    assert client.get("/reports/monthly?year=2024&month=13").status_code == 400

    pdf = client.get("/reports/monthly.pdf?year=2024&month=7")
    assert pdf.status_code == 200
    assert pdf.data.startswith(b"%PDF")
    assert "July-2024" in pdf.headers["Content-Disposition"]
    assert client.get("/reports/monthly.xlsx?year=2023&month=1").status_code == 400

    daily = client.get("/reports/daily?date=2024-07-15").get_json()["report"]
    assert daily["transactionCount"] == 1
    assert client.get("/reports/daily?date=15-07-2024").status_code == 400

    xlsx = client.get("/reports/transactions.xlsx?start=2024-07-01&end=2024-07-31")
    assert xlsx.status_code == 200
    assert client.get("/reports/transactions.xlsx").status_code == 400


def test_import_and_export(client, login):
    login()
    student_id = _add_student(client).get_json()["student"]["id"]
    client.post(f"/students/{student_id}/payments", json={"amount": 5000})

    csv_data = (
        "Name,Roll Number,Class,Grade,Total Fees\n"
        "Amit Kumar,r001,11,B,52000\n"
        "Priya Sharma,R002,12,B,60000\n"
        ",R003,12,B,60000\n"
    ).encode("utf-8")
    response = client.post(
        "/students/import",
        data={"file": (BytesIO(csv_data), "students.csv")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    body = response.get_json()
    assert (body["newCount"], body["updatedCount"], body["skipped"]) == (1, 1, 1)

    amit = client.get(f"/students/{student_id}").get_json()["student"]
    assert amit["class"] == "11"
    assert amit["totalPaid"] == 5000

    no_file = client.post("/students/import", data={}, content_type="multipart/form-data")
    assert no_file.status_code == 400

    export = client.get("/students/export.csv")
    assert export.status_code == 200
    assert export.mimetype == "text/csv"
    assert b"Priya Sharma" in export.data
    assert client.get("/students/export.xlsx").status_code == 200


def test_export_with_no_students(client, login):
    login()
    response = client.get("/students/export.xlsx")
    assert response.status_code == 400
    assert response.get_json()["message"] == "No data to export."


def test_unknown_route_is_json_404(client):
    response = client.get("/nowhere")
    assert response.status_code == 404
    assert response.get_json()["code"] == "not_found"


def test_login_only_authorizes_the_client_that_signed_in(app, client, login):
    login()
    other = app.test_client()
    assert other.get("/users").status_code == 401
    assert other.get("/auth/me").status_code == 401
    created = other.post("/users", json={"email": "intruder@x.com", "password": "intruder1"})
    assert created.status_code == 401
    assert other.delete("/users/admin@x.com").status_code == 401
    assert other.get("/students").status_code == 401
    assert client.get("/users").status_code == 200
    assert {u["email"] for u in client.get("/users").get_json()["users"]} == {"admin@x.com"}


def test_logout_from_other_client_keeps_login(app, client, login):
    login()
    other = app.test_client()
    assert other.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 200


def test_newer_login_replaces_older_client(app, client, login):
    login()
    other = app.test_client()
    response = other.post("/auth/login", json={"email": "admin@x.com", "password": "adminpassword"})
    assert response.status_code == 200
    assert other.get("/auth/me").status_code == 200
    # Same account, so the first cookie still matches the stored login
    assert client.get("/auth/me").status_code == 200
    assert other.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_permission_flags_must_be_booleans(client, login, clerk):
    login()
    for value in ("false", "true", 1, 0, None):
        response = client.put(f"/users/{clerk}/permissions", json={"permissions": {"canManageUsers": value}})
        assert response.status_code == 400
        assert response.get_json()["code"] == "validation"
    users = {u["email"]: u for u in client.get("/users").get_json()["users"]}
    assert users[clerk]["permissions"]["canManageUsers"] is False


def test_json_keys_keep_insertion_order(client):
    body = client.get("/health").get_data(as_text=True)
    assert body.index('"ok"') < body.index('"app"')
