# tests/test_api.py - HTTP surface: authentication, state, templates, students and downloads
import io
import zipfile

from tests.conftest import register


def first_school_year(client, headers):
    response = client.get("/api/state", headers=headers)
    assert response.status_code == 200
    return response.json()["schoolYears"][0]


def create_module(client, headers, title="123 Services réseau"):
    year = first_school_year(client, headers)
    response = client.post(f"/api/school-years/{year['id']}/modules", json={"title": title}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def create_student(client, headers, module_id, **fields):
    body = {"moduleId": module_id, "evaluationType": "E1", "name": "Dupont", "firstname": "Léa", **fields}
    response = client.post("/api/students", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestStatus:

    def test_status_ok(self, client):
        response = client.get("/status")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["db"]["ok"] is True
        assert "version" in body


class TestAuth:

    def test_register_returns_token(self, client):
        response = client.post(
            "/api/auth/register",
            json={"name": "Ada Lovelace", "email": "Ada@Example.com", "password": "secret-pass"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["token"]
        assert body["user"]["email"] == "ada@example.com"
        assert "passwordHash" not in body["user"]

    def test_duplicate_email(self, client, auth_headers):
        response = client.post(
            "/api/auth/register",
            json={"name": "Other", "email": "ada@example.com", "password": "another-pass"},
        )

        assert response.status_code == 409

    def test_invalid_payload(self, client):
        response = client.post("/api/auth/register", json={"name": "", "email": "not-an-email", "password": "x"})

        assert response.status_code == 422

    def test_login(self, client, auth_headers):
        response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "secret-pass"})

        assert response.status_code == 200
        assert response.json()["token"]

    def test_wrong_password(self, client, auth_headers):
        response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "wrong"})

        assert response.status_code == 401

    def test_login_revokes_previous_token(self, client, auth_headers):
        client.post("/api/auth/login", json={"email": "ada@example.com", "password": "secret-pass"})

        assert client.get("/api/state", headers=auth_headers).status_code == 401

    def test_missing_token(self, client):
        assert client.get("/api/state").status_code == 401

    def test_garbage_token(self, client):
        response = client.get("/api/state", headers={"Authorization": "Bearer not-a-token"})

        assert response.status_code == 401


class TestState:

    def test_initial_state(self, client, auth_headers):
        response = client.get("/api/state", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert [year["label"] for year in body["schoolYears"]] == ["2024-2025", "2025-2026"]
        assert body["students"] == []

    def test_put_state_round_trip(self, client, auth_headers):
        module = create_module(client, auth_headers)
        state = client.get("/api/state", headers=auth_headers).json()
        state["students"] = [{"moduleId": module["id"], "name": "Martin", "firstname": "Paul"}]

        response = client.put("/api/state", json=state, headers=auth_headers)

        assert response.status_code == 200
        saved = response.json()
        assert saved["students"][0]["name"] == "Martin"
        assert saved["students"][0]["evaluationType"] == "E1"
        assert client.get("/api/state", headers=auth_headers).json() == saved

    def test_students_filtered_by_owner(self, client, auth_headers):
        module = create_module(client, auth_headers)
        create_student(client, auth_headers, module["id"])
        other = register(client, email="alan@example.com", name="Alan Turing")

        assert client.get("/api/state", headers=other).json()["students"] == []

        # Replacing the other instructor's view leaves Ada's reports alone
        client.put("/api/state", json={"students": []}, headers=other)
        assert len(client.get("/api/state", headers=auth_headers).json()["students"]) == 1

    def test_template_edit_through_state_reaches_other_teachers(self, client, auth_headers):
        module = create_module(client, auth_headers)
        other = register(client, email="alan@example.com", name="Alan Turing")
        create_student(client, other, module["id"], name="Martin", firstname="Paul")

        state = client.get("/api/state", headers=auth_headers).json()
        for year in state["schoolYears"]:
            for candidate in year["modules"]:
                if candidate["id"] == module["id"]:
                    candidate["templates"]["E1"]["competencies"] = [
                        {"category": "DNS", "items": [{"task": "Verify name resolution"}]}
                    ]
        response = client.put("/api/state", json=state, headers=auth_headers)
        assert response.status_code == 200

        report = client.get("/api/state", headers=other).json()["students"][0]
        assert [c["category"] for c in report["competencies"]] == ["DNS"]
        assert [i["task"] for i in report["competencies"][0]["items"]] == ["Verify name resolution"]

    def test_duplicate_school_year_labels(self, client, auth_headers):
        state = client.get("/api/state", headers=auth_headers).json()
        state["schoolYears"].append({"label": state["schoolYears"][0]["label"]})

        response = client.put("/api/state", json=state, headers=auth_headers)

        assert response.status_code == 422


class TestSchoolYears:

    def test_create(self, client, auth_headers):
        response = client.post("/api/school-years", json={"label": "2026-2027"}, headers=auth_headers)

        assert response.status_code == 201
        assert response.json()["label"] == "2026-2027"

    def test_duplicate(self, client, auth_headers):
        response = client.post("/api/school-years", json={"label": "2025-2026"}, headers=auth_headers)

        assert response.status_code == 409

    def test_blank_label(self, client, auth_headers):
        response = client.post("/api/school-years", json={"label": "  "}, headers=auth_headers)

        assert response.status_code == 422

    def test_label_too_long(self, client, auth_headers):
        response = client.post("/api/school-years", json={"label": "x" * 33}, headers=auth_headers)

        assert response.status_code == 422

    def test_module_in_unknown_year(self, client, auth_headers):
        response = client.post("/api/school-years/missing/modules", json={"title": "x"}, headers=auth_headers)

        assert response.status_code == 404


class TestTemplates:

    def test_update_reconciles_reports(self, client, auth_headers):
        module = create_module(client, auth_headers)
        student = create_student(client, auth_headers, module["id"])
        template = {
            "moduleTitle": module["title"],
            "competencyOptions": [{"code": "OO2", "description": "Configurer"}],
            "competencies": [{"category": "DNS", "items": [{"task": "Verify name resolution", "competencyId": "OO2"}]}],
        }

        response = client.put(f"/api/modules/{module['id']}/templates/E1", json=template, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["updatedReports"] == 1
        assert body["template"]["moduleId"] == module["id"]

        report = client.get(f"/api/students/{student['id']}", headers=auth_headers).json()
        assert [c["category"] for c in report["competencies"]] == ["DNS"]
        assert report["competencyOptions"] == [{"code": "OO2", "description": "Configurer"}]

    def test_unknown_type(self, client, auth_headers):
        module = create_module(client, auth_headers)

        response = client.put(f"/api/modules/{module['id']}/templates/E7", json={}, headers=auth_headers)

        assert response.status_code == 422

    def test_unknown_module(self, client, auth_headers):
        response = client.put("/api/modules/missing/templates/E1", json={}, headers=auth_headers)

        assert response.status_code == 404

    def test_delete_last_template(self, client, auth_headers):
        module = create_module(client, auth_headers)

        response = client.delete(f"/api/modules/{module['id']}/templates/E1", headers=auth_headers)

        assert response.status_code == 422

    def test_copy_students(self, client, auth_headers):
        module = create_module(client, auth_headers)
        student = create_student(client, auth_headers, module["id"])

        response = client.post(
            f"/api/modules/{module['id']}/copy-students",
            json={"sourceType": "E1", "targetType": "E2", "studentIds": [student["id"]]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["templateCreated"] is True
        assert body["students"][0]["evaluationType"] == "E2"
        assert body["students"][0]["id"] != student["id"]


class TestStudents:

    def test_create_and_read(self, client, auth_headers):
        module = create_module(client, auth_headers)
        student = create_student(client, auth_headers, module["id"], groupName="G1")

        response = client.get(f"/api/students/{student['id']}", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["groupName"] == "G1"
        assert body["moduleTitle"] == "123 Services réseau"

    def test_create_requires_name(self, client, auth_headers):
        module = create_module(client, auth_headers)

        response = client.post(
            "/api/students",
            json={"moduleId": module["id"], "name": "", "firstname": ""},
            headers=auth_headers,
        )

        assert response.status_code == 422

    def test_import(self, client, auth_headers):
        module = create_module(client, auth_headers)

        response = client.post(
            "/api/students/import",
            json={"moduleId": module["id"], "evaluationType": "E1", "text": "Nom\tPrenom\nDupont\tLéa\nMartin\tPaul"},
            headers=auth_headers,
        )

        assert response.status_code == 201
        assert [s["name"] for s in response.json()["students"]] == ["Dupont", "Martin"]

    def test_update(self, client, auth_headers):
        module = create_module(client, auth_headers)
        student = create_student(client, auth_headers, module["id"])
        student["note"] = "4.5"
        student["competencies"][0]["items"][0]["status"] = "OK"

        response = client.put(f"/api/students/{student['id']}", json=student, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["note"] == "4.5"
        assert response.json()["competencies"][0]["items"][0]["status"] == "OK"

    def test_delete(self, client, auth_headers):
        module = create_module(client, auth_headers)
        student = create_student(client, auth_headers, module["id"])

        assert client.delete(f"/api/students/{student['id']}", headers=auth_headers).status_code == 204
        assert client.get(f"/api/students/{student['id']}", headers=auth_headers).status_code == 404

    def test_other_teacher_cannot_read(self, client, auth_headers):
        module = create_module(client, auth_headers)
        student = create_student(client, auth_headers, module["id"])
        other = register(client, email="alan@example.com", name="Alan Turing")

        assert client.get(f"/api/students/{student['id']}", headers=other).status_code == 404


class TestDownloads:

    def test_report_pdf(self, client, auth_headers):
        module = create_module(client, auth_headers)
        student = create_student(client, auth_headers, module["id"])

        response = client.post("/api/report", json=student, headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")
        assert "123-E1-L%C3%A9aDupont.pdf" in response.headers["content-disposition"]

    def test_coaching_only_for_low_notes(self, client, auth_headers):
        module = create_module(client, auth_headers)
        student = create_student(client, auth_headers, module["id"])

        student["note"] = "5"
        assert client.post("/api/report/coaching", json=student, headers=auth_headers).status_code == 400

        student["note"] = "2"
        response = client.post("/api/report/coaching", json=student, headers=auth_headers)
        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")

    def test_export_all(self, client, auth_headers):
        module = create_module(client, auth_headers)
        student = dict(create_student(client, auth_headers, module["id"]), note="3")

        response = client.post(
            "/api/report/export-all",
            json={"students": [student], "mailDraftSubject": "Rapport", "mailDraftBody": "Bonjour"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        names = zipfile.ZipFile(io.BytesIO(response.content)).namelist()
        assert "etudiants.csv" in names
        assert "creer-brouillons-outlook.ps1" in names
        assert "123-E1-LéaDupont-coaching.pdf" in names

    def test_export_all_empty(self, client, auth_headers):
        response = client.post("/api/report/export-all", json={"students": []}, headers=auth_headers)

        assert response.status_code == 400


def test_client_log(client, auth_headers):
    response = client.post(
        "/api/logs",
        json={"event": "ui-error", "payload": {"message": "boom"}},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
