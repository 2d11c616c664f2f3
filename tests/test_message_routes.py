"""Integration tests for send-text and send-media endpoints."""

from __future__ import annotations

import io
import zipfile
from unittest.mock import patch

import pytest

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


@pytest.fixture
def auth(valid_api_key_headers):
    return valid_api_key_headers


@pytest.fixture
def ready(client, auth, client_factory):
    """A registered session in ``ready`` state."""
    client.post("/api/sessions", json={"session_id": "sales01"}, headers=auth)
    fake = client_factory.clients["sales01"]
    fake.make_ready()
    return fake


class TestSendText:
    def test_sends_and_returns_message_id(self, client, auth, ready) -> None:
        response = client.post(
            "/api/sessions/sales01/send-text",
            json={"to": "+55 (11) 91234-5678", "message": "Hello!"},
            headers=auth,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Message sent successfully"
        assert body["data"] == {
            "message_id": "true_5511912345678@c.us_1",
            "to": "5511912345678@c.us",
        }
        assert ready.calls[-1] == ("send_text", "5511912345678@c.us", "Hello!")

    @pytest.mark.parametrize(
        ("payload", "fragment"),
        [
            ({"to": "123", "message": "hi"}, "Must be 7-15 digits"),
            ({"to": "0011234567", "message": "hi"}, "Invalid country code"),
            ({"to": "5511912345678", "message": ""}, "message"),
            ({"to": "5511912345678", "message": "x" * 4097}, "message"),
            ({"message": "hi"}, "to"),
        ],
    )
    def test_validation(self, client, auth, ready, payload, fragment) -> None:
        response = client.post("/api/sessions/sales01/send-text", json=payload, headers=auth)

        assert response.status_code == 400
        assert fragment in response.json()["error"]["message"]

    def test_unknown_session_returns_404(self, client, auth) -> None:
        response = client.post(
            "/api/sessions/ghost1/send-text",
            json={"to": "5511912345678", "message": "hi"},
            headers=auth,
        )

        assert response.status_code == 404

    def test_not_ready_returns_409(self, client, auth) -> None:
        client.post("/api/sessions", json={"session_id": "sales01"}, headers=auth)

        response = client.post(
            "/api/sessions/sales01/send-text",
            json={"to": "5511912345678", "message": "hi"},
            headers=auth,
        )

        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Session not ready"

    def test_delivery_failure_returns_502(self, client, auth, ready) -> None:
        ready.fail_on.add("send_text")

        response = client.post(
            "/api/sessions/sales01/send-text",
            json={"to": "5511912345678", "message": "hi"},
            headers=auth,
        )

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "send_failed"

    def test_requires_api_key(self, client, ready) -> None:
        response = client.post(
            "/api/sessions/sales01/send-text",
            json={"to": "5511912345678", "message": "hi"},
        )

        assert response.status_code == 401


class TestSendTextPacing:
    @pytest.fixture
    def send_limiter(self):
        from unittest.mock import Mock

        from app.services.rate_limit_service import SendRateLimiter

        return SendRateLimiter(
            enabled=True,
            message_delay_ms=30000,
            max_messages_per_hour=50,
            random_delay_min_ms=0,
            random_delay_max_ms=0,
            clock=Mock(return_value=5000.0),
        )

    def test_second_message_returns_429(self, client, auth, ready) -> None:
        payload = {"to": "5511912345678", "message": "hi"}
        assert client.post("/api/sessions/sales01/send-text", json=payload, headers=auth).status_code == 200

        response = client.post("/api/sessions/sales01/send-text", json=payload, headers=auth)

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "30"
        error = response.json()["error"]
        assert error["code"] == "send_rate_limited"
        assert error["details"]["delay_ms"] == 30000

    def test_reset_endpoint_clears_pacing(self, client, auth, ready) -> None:
        payload = {"to": "5511912345678", "message": "hi"}
        client.post("/api/sessions/sales01/send-text", json=payload, headers=auth)

        reset = client.post("/api/health/rate-limits/sales01/reset", headers=auth)

        assert reset.status_code == 200
        assert reset.json()["message"] == "Rate limits reset for session sales01"
        assert client.post("/api/sessions/sales01/send-text", json=payload, headers=auth).status_code == 200


class TestSendMedia:
    def test_sends_png(self, client, auth, ready) -> None:
        response = client.post(
            "/api/sessions/sales01/send-media",
            data={"to": "5511912345678", "caption": "Our new catalogue"},
            files={"file": ("catalogue.png", PNG_BYTES, "image/png")},
            headers=auth,
        )

        assert response.status_code == 200
        assert ready.calls[-1] == ("send_media", "5511912345678@c.us", "image/png", "Our new catalogue")

    def test_caption_optional(self, client, auth, ready) -> None:
        response = client.post(
            "/api/sessions/sales01/send-media",
            data={"to": "5511912345678"},
            files={"file": ("catalogue.png", PNG_BYTES, "image/png")},
            headers=auth,
        )

        assert response.status_code == 200
        assert ready.calls[-1][-1] is None

    def test_disallowed_type_returns_415(self, client, auth, ready) -> None:
        response = client.post(
            "/api/sessions/sales01/send-media",
            data={"to": "5511912345678"},
            files={"file": ("setup.exe", b"MZ\x90\x00", "application/x-msdownload")},
            headers=auth,
        )

        assert response.status_code == 415
        assert response.json()["error"]["message"] == "File type application/x-msdownload not allowed"

    def test_signature_mismatch_returns_415(self, client, auth, ready) -> None:
        response = client.post(
            "/api/sessions/sales01/send-media",
            data={"to": "5511912345678"},
            files={"file": ("fake.png", b"MZ\x90\x00 not a png", "image/png")},
            headers=auth,
        )

        assert response.status_code == 415
        assert response.json()["error"]["code"] == "media_signature_mismatch"

    def test_empty_file_returns_400(self, client, auth, ready) -> None:
        response = client.post(
            "/api/sessions/sales01/send-media",
            data={"to": "5511912345678"},
            files={"file": ("empty.png", b"", "image/png")},
            headers=auth,
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "No file uploaded"

    def test_zip_bomb_returns_400(self, client, auth, ready) -> None:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("word/document.xml", "A" * 5_000_000)

        response = client.post(
            "/api/sessions/sales01/send-media",
            data={"to": "5511912345678"},
            files={"file": ("report.docx", buffer.getvalue(), DOCX)},
            headers=auth,
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "unsafe_archive"

    def test_oversized_file_returns_413(self, client, auth, ready) -> None:
        with patch("app.core.file_validation.settings") as mock_settings:
            mock_settings.app.max_upload_size_mb = 1
            response = client.post(
                "/api/sessions/sales01/send-media",
                data={"to": "5511912345678"},
                files={"file": ("big.png", PNG_BYTES + b"\x00" * (1024 * 1024), "image/png")},
                headers=auth,
            )

        assert response.status_code == 413
        assert response.json()["error"]["message"] == "File too large. Maximum size is 1MB"

    def test_invalid_recipient_returns_400(self, client, auth, ready) -> None:
        response = client.post(
            "/api/sessions/sales01/send-media",
            data={"to": "12"},
            files={"file": ("catalogue.png", PNG_BYTES, "image/png")},
            headers=auth,
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"].startswith("Validation failed: to:")

    def test_caption_too_long_returns_400(self, client, auth, ready) -> None:
        response = client.post(
            "/api/sessions/sales01/send-media",
            data={"to": "5511912345678", "caption": "c" * 1025},
            files={"file": ("catalogue.png", PNG_BYTES, "image/png")},
            headers=auth,
        )

        assert response.status_code == 400
        assert "caption" in response.json()["error"]["message"]

    def test_missing_file_returns_400(self, client, auth, ready) -> None:
        response = client.post(
            "/api/sessions/sales01/send-media",
            data={"to": "5511912345678"},
            headers=auth,
        )

        assert response.status_code == 400
