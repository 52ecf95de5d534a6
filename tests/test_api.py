"""
Tests for LaTeX Test Generator API endpoints.

Uses pytest and FastAPI's TestClient for testing.
"""

import httpx
import pytest
from fastapi.testclient import TestClient
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api.index import build_generation_service, create_app
from lib.config import Settings
from lib.languages import BUSY_MESSAGES


SOURCE_LATEX = (
    "\\documentclass{article}\n\\begin{document}\n"
    "\\begin{enumerate}\\item $2+2=?$\\end{enumerate}\n"
    "\\end{document}"
)


def _body(**overrides) -> dict:
    body = {
        "existingTestLatex": SOURCE_LATEX,
        "numExercises": 3,
        "difficulty": "medium",
        "language": "English",
    }
    body.update(overrides)
    return body


def _gemini_response(text: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={"candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": "STOP"}]},
    )


@pytest.fixture
def settings():
    return Settings(retry_base_delay_ms=0)


@pytest.fixture
def client(settings):
    """Create a test client for the FastAPI app."""
    return TestClient(create_app(settings))


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_returns_200(self, client):
        response = client.get("/health")
        assert response.status_code == 200

    def test_health_returns_status(self, client):
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["service"] == "latex-test-generator"
        assert "version" in data


class TestGenerateValidation:
    """Input validation on /api/generate happens before any model call."""

    @pytest.mark.parametrize("count", [0, 31, -1, 2.5, "3", True, None])
    def test_exercise_count_out_of_range(self, client, count):
        response = client.post("/api/generate", json=_body(numExercises=count))
        assert response.status_code == 400
        assert response.json()["error"] == "numExercises must be between 1 and 30."

    def test_integral_float_count_accepted(self, client):
        response = client.post("/api/generate?mode=mock", json=_body(numExercises=2.0))
        assert response.status_code == 200
        assert len(response.json()["answerKey"]) == 2

    @pytest.mark.parametrize("source", ["", "   ", None, 5])
    def test_empty_source(self, client, source):
        response = client.post("/api/generate", json=_body(existingTestLatex=source))
        assert response.status_code == 400
        assert response.json()["error"] == "existingTestLatex must be a non-empty string."

    def test_missing_difficulty(self, client):
        body = _body()
        del body["difficulty"]
        response = client.post("/api/generate", json=body)
        assert response.status_code == 400
        assert response.json()["error"] == "difficulty must be provided."

    def test_missing_language(self, client):
        response = client.post("/api/generate", json=_body(language=" "))
        assert response.status_code == 400
        assert response.json()["error"] == "language must be provided."

    def test_body_must_be_object(self, client):
        response = client.post("/api/generate", json=["not", "an", "object"])
        assert response.status_code == 400
        assert "error" in response.json()

    def test_invalid_mode(self, client):
        response = client.post("/api/generate?mode=invalid", json=_body())
        assert response.status_code == 400

    def test_custom_exercise_limit(self):
        client = TestClient(create_app(Settings(max_exercises=5)))
        response = client.post("/api/generate", json=_body(numExercises=6))
        assert response.status_code == 400
        assert response.json()["error"] == "numExercises must be between 1 and 5."


class TestGenerateMockMode:
    """End-to-end through retry, postprocessing and response shaping with canned output."""

    def test_default_scenario(self, client):
        response = client.post("/api/generate?mode=mock", json=_body())
        assert response.status_code == 200
        data = response.json()
        assert data["latex"].startswith("\\documentclass{article}\n")
        assert data["latex"].count("\\begin{document}") == 1
        assert data["latex"].endswith("\\end{document}\n")
        assert "ANSWER_KEY" not in data["latex"]
        assert data["answerKey"] == [
            {"questionNumber": 1, "correctAnswer": "a"},
            {"questionNumber": 2, "correctAnswer": "b"},
            {"questionNumber": 3, "correctAnswer": "c"},
        ]

    def test_fenced_output(self, client):
        response = client.post(
            "/api/generate?mode=mock", json=_body(), headers={"X-Mock-Scenario": "fenced"}
        )
        assert response.status_code == 200
        assert "```" not in response.json()["latex"]

    def test_malformed_answer_key_degrades(self, client):
        response = client.post(
            "/api/generate?mode=mock", json=_body(), headers={"X-Mock-Scenario": "malformed_answer_key"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["answerKey"] == []
        assert "ANSWER_KEY" not in data["latex"]

    def test_empty_output(self, client):
        response = client.post(
            "/api/generate?mode=mock", json=_body(), headers={"X-Mock-Scenario": "empty"}
        )
        assert response.status_code == 500
        assert response.json()["code"] == "malformed_output"

    def test_busy_upstream(self, client):
        response = client.post(
            "/api/generate?mode=mock",
            json=_body(language="Ukrainian"),
            headers={"X-Mock-Scenario": "rate_limit"},
        )
        assert response.status_code == 500
        data = response.json()
        assert data["error"] == BUSY_MESSAGES["ukrainian"]
        assert data["code"] == "upstream_busy"
        assert response.headers["Retry-After"] == "60"

    def test_rejected_upstream(self, client):
        response = client.post(
            "/api/generate?mode=mock", json=_body(), headers={"X-Mock-Scenario": "auth_failed"}
        )
        assert response.status_code == 500
        data = response.json()
        assert data["error"].startswith("Failed to generate test: ")
        assert data["code"] == "upstream_error"


class TestGenerateProdMode:
    """Real code path against a fake Gemini endpoint."""

    def test_missing_credentials(self, client):
        response = client.post("/api/generate", json=_body())
        assert response.status_code == 500
        assert response.json()["error"] == "Server is missing the Gemini API key."

    def test_rotates_keys_and_normalizes(self):
        seen_keys = []

        def gemini(request: httpx.Request) -> httpx.Response:
            key = request.headers["x-goog-api-key"]
            seen_keys.append(key)
            if key == "key-1":
                return httpx.Response(503, json={"error": {"code": 503, "status": "UNAVAILABLE", "message": "overloaded"}})
            return _gemini_response(
                "```latex\n\\section{New}\n\\begin{enumerate}\\item $3+3$\\end{enumerate}\n```\n"
                'ANSWER_KEY: [{"questionNumber": 1, "correctAnswer": "d"}]'
            )

        settings = Settings(api_keys=["key-1", "key-2"], max_retries=2, retry_base_delay_ms=0)
        service = build_generation_service(settings)
        service.router._transport = httpx.MockTransport(gemini)
        client = TestClient(create_app(settings, service))

        response = client.post("/api/generate", json=_body(numExercises=1))

        assert response.status_code == 200
        assert seen_keys == ["key-1", "key-1", "key-2"]
        data = response.json()
        assert data["latex"] == (
            "\\documentclass{article}\n\\begin{document}\n\\section{New}\n"
            "\\begin{enumerate}\\item $3+3$\\end{enumerate}\n\\end{document}\n"
        )
        assert data["answerKey"] == [{"questionNumber": 1, "correctAnswer": "d"}]


class TestPreviewEndpoint:
    """Tests for /api/preview endpoint."""

    def test_preview_inlines_choices(self, client):
        latex = (
            "\\usepackage{fontspec}\n\\begin{enumerate}\n\\item Q\\\\\n"
            "\\begin{choices}\\item 1\\item 2\\end{choices}\n"
        )
        response = client.post("/api/preview", json={"latex": latex, "language": "Georgian"})
        assert response.status_code == 200
        result = response.json()["latex"]
        assert "ა) 1 \\quad ბ) 2" in result
        assert "fontspec" not in result
        assert result.count("\\begin{enumerate}") == result.count("\\end{enumerate}")

    def test_preview_empty(self, client):
        response = client.post("/api/preview", json={"latex": ""})
        assert response.status_code == 200
        assert response.json()["latex"] == ""


class TestScoreEndpoint:
    """Tests for /api/score endpoint."""

    ANSWER_KEY = [
        {"questionNumber": 1, "correctAnswer": "a"},
        {"questionNumber": 2, "correctAnswer": "c"},
        {"questionNumber": 3, "correctAnswer": "b"},
    ]

    def test_scores_answer_sheet(self, client):
        response = client.post(
            "/api/score",
            json={"answerKey": self.ANSWER_KEY, "responses": {"1": "a", "2": " C ", "3": "d"}},
        )
        assert response.status_code == 200
        assert response.json() == {"correct": 2, "total": 3, "percentage": 67}

    def test_unanswered_questions_count_as_wrong(self, client):
        response = client.post("/api/score", json={"answerKey": self.ANSWER_KEY})
        assert response.status_code == 200
        assert response.json() == {"correct": 0, "total": 3, "percentage": 0}

    def test_empty_key(self, client):
        response = client.post("/api/score", json={"answerKey": [], "responses": {"1": "a"}})
        assert response.json() == {"correct": 0, "total": 0, "percentage": 0}

    def test_malformed_key_rejected(self, client):
        response = client.post(
            "/api/score",
            json={"answerKey": [{"questionNumber": 1, "correctAnswer": "A1"}]},
        )
        assert response.status_code == 400
        assert "error" in response.json()


class TestOriginCheck:
    """Origin allow-list enforcement."""

    @pytest.fixture
    def settings(self):
        return Settings(allowed_origins=["https://tests.example.com"], retry_base_delay_ms=0)

    def test_disallowed_origin_rejected(self, client):
        response = client.post(
            "/api/generate?mode=mock", json=_body(), headers={"Origin": "https://evil.example.com"}
        )
        assert response.status_code == 403
        assert response.json() == {"error": "Origin not allowed by CORS policy"}

    def test_disallowed_preflight_rejected(self, client):
        response = client.options(
            "/api/generate",
            headers={"Origin": "https://evil.example.com", "Access-Control-Request-Method": "POST"},
        )
        assert response.status_code == 403

    def test_allowed_origin(self, client):
        response = client.get("/health", headers={"Origin": "https://tests.example.com"})
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "https://tests.example.com"

    def test_no_origin_header_passes(self, client):
        assert client.get("/health").status_code == 200


class TestLogsEndpoint:
    """Tests for /logs endpoint."""

    def test_logs_record_generation(self, client):
        client.post("/api/generate?mode=mock", json=_body())

        response = client.get("/logs")
        assert response.status_code == 200
        logs = response.json()["logs"]
        assert logs[0]["endpoint"] == "/api/generate"
        assert logs[0]["mode"] == "mock"
        assert logs[0]["status"] == "success"
        assert logs[0]["answer_key_size"] == 3

    def test_logs_limit_parameter(self, client):
        for _ in range(3):
            client.post("/api/generate?mode=mock", json=_body())
        response = client.get("/logs?limit=2")
        assert response.status_code == 200
        assert len(response.json()["logs"]) == 2

    def test_logs_limit_bounds(self, client):
        assert client.get("/logs?limit=0").status_code == 400
        assert client.get("/logs?limit=1001").status_code == 400
