"""
Tests for the HTTP API — grading, results, upload and report endpoints.
"""

import os
import sys

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import settings
from main import app

SAMPLE_CSV = os.path.join(os.path.dirname(__file__), "..", "sample_data", "sample_form4_marks.csv")

FORM4_MARKS = [
    {"subject_id": sid, "marks_obtained": m}
    for sid, m in [("MATH", 78), ("ENG", 60), ("PHY", 45), ("CHEM", 72),
                   ("BIO", 55), ("GEO", 40), ("HIST", 68), ("KISW", 82)]
]


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def class_payload():
    return {
        "exam_id": "TERM1",
        "class_id": "F4A",
        "curriculum": "O_LEVEL",
        "students": [
            {"student_id": "S1", "name": "Amina", "marks": FORM4_MARKS},
            {"student_id": "S2", "name": "Baraka", "marks": [{"subject_id": "MATH", "marks_obtained": 90}]},
        ],
    }


class TestMeta:

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_config(self, client):
        body = client.get("/api/config").json()
        assert body["rank_by"] in ("average_marks", "total_points")
        assert "school_name" in body

    def test_config_reflects_settings(self, client):
        body = client.get("/api/config").json()
        assert body["rank_by"] == settings.RANK_BY
        assert body["school_name"] == settings.SCHOOL_NAME


class TestGradingRoutes:

    def test_scales(self, client):
        body = client.get("/api/grading/scales").json()
        assert set(body) == {"O_LEVEL", "A_LEVEL"}
        assert body["A_LEVEL"]["grades"][5]["grade"] == "S"

    def test_grade(self, client):
        response = client.post("/api/grading/grade", json={"marks": 65, "curriculum": "O_LEVEL"})
        assert response.status_code == 200
        assert response.json() == {"grade": "B", "points": 2, "remarks": "Very Good"}

    def test_invalid_marks(self, client):
        response = client.post("/api/grading/grade", json={"marks": 101, "curriculum": "O_LEVEL"})
        assert response.status_code == 400

    def test_unknown_curriculum(self, client):
        response = client.post("/api/grading/grade", json={"marks": 50, "curriculum": "PRIMARY"})
        assert response.status_code == 400

    def test_division(self, client):
        body = client.post("/api/grading/division", json={"points": 10, "curriculum": "A_LEVEL"}).json()
        assert body["division"] == "II"

    def test_division_non_numeric_points(self, client):
        body = client.post("/api/grading/division", json={"points": "n/a", "curriculum": "O_LEVEL"}).json()
        assert body["division"] == "0"


class TestResultsRoutes:

    def test_student(self, client):
        response = client.post("/api/results/student", json={
            "student_id": "S1", "curriculum": "O_LEVEL", "marks": FORM4_MARKS,
        })
        assert response.status_code == 200
        body = response.json()
        assert body["total_points"] == 16
        assert body["division"] == "I"
        assert body["average_marks"] == 62.5

    def test_student_invalid_marks(self, client):
        response = client.post("/api/results/student", json={
            "student_id": "S1", "curriculum": "O_LEVEL",
            "marks": [{"subject_id": "MATH", "marks_obtained": "seventy"}],
        })
        assert response.status_code == 400

    def test_student_missing_fields(self, client):
        assert client.post("/api/results/student", json={"curriculum": "O_LEVEL"}).status_code == 400

    def test_class(self, client, class_payload):
        body = client.post("/api/results/class", json=class_payload).json()
        assert [s["student_id"] for s in body["students"]] == ["S2", "S1"]
        assert body["students"][0]["rank"] == 1
        assert body["division_distribution"]["I"] == 1

    def test_class_rank_by_points(self, client, class_payload):
        class_payload["rank_by"] = "total_points"
        body = client.post("/api/results/class", json=class_payload).json()
        # One A in a single subject is 1 point, below the best-seven total of S1
        assert body["students"][0]["student_id"] == "S2"
        assert body["rank_by"] == "total_points"

    def test_class_bad_metric(self, client, class_payload):
        class_payload["rank_by"] = "height"
        assert client.post("/api/results/class", json=class_payload).status_code == 400

    def test_subject_positions(self, client):
        body = client.post("/api/results/subject-positions", json={
            "results": [{"student_id": "S1", "points": 3}, {"student_id": "S2", "points": 1}],
        }).json()
        assert [r["subject_position"] for r in body["results"]] == [2, 1]

    def test_check(self, client):
        body = client.post("/api/results/check", json={
            "curriculum": "O_LEVEL",
            "results": [
                {"subject_id": "ENG", "marks_obtained": 60, "grade": "C", "points": 3},
                {"subject_id": "PHY", "marks_obtained": 45, "grade": "C", "points": 3},
            ],
        }).json()
        assert body["checked"] == 2
        assert body["inconsistent"] == 1
        assert body["issues"][0]["subject_id"] == "PHY"

    @pytest.mark.parametrize("students", [
        [{"student_id": "S1", "marks": [75]}],
        ["S1"],
        [{"student_id": "S1", "marks": "MATH=75"}],
    ])
    def test_class_rejects_non_object_entries(self, client, students):
        response = client.post("/api/results/class", json={"curriculum": "O_LEVEL", "students": students})
        assert response.status_code == 400

    def test_student_rejects_non_object_marks(self, client):
        response = client.post("/api/results/student", json={
            "student_id": "S1", "curriculum": "O_LEVEL", "marks": [75],
        })
        assert response.status_code == 400

    def test_subject_positions_rejects_non_object_results(self, client):
        response = client.post("/api/results/subject-positions", json={"results": [3]})
        assert response.status_code == 400
        assert "results[0]" in response.json()["detail"]

    def test_check_rejects_non_object_results(self, client):
        response = client.post("/api/results/check", json={"curriculum": "O_LEVEL", "results": [3]})
        assert response.status_code == 400

    def test_report_rejects_non_object_students(self, client):
        response = client.post("/api/reports/class-pdf", json={"curriculum": "O_LEVEL", "students": ["S1"]})
        assert response.status_code == 400

    def test_edit(self, client):
        body = client.post("/api/results/edit", json={
            "curriculum": "O_LEVEL",
            "result": {"subject_id": "PHY", "marks_obtained": 45, "grade": "D", "points": 4},
            "new_marks": 52,
            "user_id": "hod-7",
        }).json()
        assert body["result"]["grade"] == "C"
        assert body["history"]["change_type"] == "UPDATE"
        assert body["history"]["user_id"] == "hod-7"

    def test_edit_invalid_marks(self, client):
        response = client.post("/api/results/edit", json={
            "curriculum": "O_LEVEL",
            "result": {"subject_id": "PHY", "marks_obtained": 45},
            "new_marks": -5,
        })
        assert response.status_code == 400


class TestUploadRoutes:

    def test_upload_csv(self, client):
        with open(SAMPLE_CSV, "rb") as f:
            response = client.post("/api/upload/marks", files={"file": ("form4.csv", f, "text/csv")})
        assert response.status_code == 200
        body = response.json()
        assert body["layout"] == "wide"
        assert len(body["students"]) == 6
        assert body["cleaning_report"]["cleaned_rows"] == 53

    def test_upload_unsupported(self, client):
        response = client.post("/api/upload/marks", files={"file": ("marks.txt", b"hello", "text/plain")})
        assert response.status_code == 400

    def test_upload_feeds_class_results(self, client):
        with open(SAMPLE_CSV, "rb") as f:
            students = client.post("/api/upload/marks", files={"file": ("form4.csv", f, "text/csv")}).json()["students"]
        body = client.post("/api/results/class", json={
            "exam_id": "TERM1", "class_id": "F4A", "curriculum": "O_LEVEL", "students": students,
        }).json()
        assert body["students"][0]["student_id"] == "F4-003"
        assert body["students"][0]["student_name"] == "Chausiku Said"

    def test_sample_form6(self, client):
        body = client.get("/api/upload/sample/form6").json()
        assert len(body["students"]) == 4
        flags = {m["subject_id"]: m["is_principal"] for m in body["students"][0]["marks"]}
        assert flags["Advanced Mathematics"] is True
        assert flags["General Studies"] is False

    def test_unknown_sample(self, client):
        assert client.get("/api/upload/sample/nope").status_code == 404


class TestReportRoutes:

    def test_class_excel(self, client, class_payload):
        response = client.post("/api/reports/class-excel", json=class_payload)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )

    def test_class_pdf(self, client, class_payload):
        response = client.post("/api/reports/class-pdf", json=class_payload)
        assert response.status_code == 200
        assert response.content[:4] == b"%PDF"

    def test_student_pdf(self, client, class_payload):
        response = client.post("/api/reports/student-pdf", json=dict(class_payload, student_id="S1"))
        assert response.status_code == 200
        assert response.content[:4] == b"%PDF"

    def test_student_pdf_unknown_student(self, client, class_payload):
        response = client.post("/api/reports/student-pdf", json=dict(class_payload, student_id="S99"))
        assert response.status_code == 404
