"""
Integration tests for the relay HTTP surface.

The application context is overridden with a fake Telethon client, so no test
reaches Telegram.
"""

from telethon.errors import FloodWaitError

from fakes import make_message, make_sender, message_ids
from RelayBackend.services.active_window import ActiveWindow


class TestHealth:
    def test_health_reports_configuration(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "Telegram Auto Forwarder"
        assert data["active_hours"] == "00:00 to 24:00 IST"
        assert data["currently_active"] is True
        assert data["check_interval"] == "300 seconds"
        assert data["timezone"] == "Asia/Kolkata"
        assert data["current_time_ist"].endswith("IST")
        assert data["environment"] == {
            "api_id_set": True,
            "api_hash_set": True,
            "phone_number_set": True,
            "target_group_set": True,
            "session_set": True,
        }

    def test_health_without_session(self, make_client, make_config):
        client = make_client(make_config(USER_STRING_SESSION=""))
        assert client.get("/health").json()["environment"]["session_set"] is False

    def test_health_does_not_touch_telegram(self, client, telegram_client):
        client.get("/health")
        telegram_client.get_messages.assert_not_called()
        telegram_client.is_user_authorized.assert_not_called()

    def test_serverless_path_alias(self, client):
        assert client.get("/api/health").status_code == 200

    def test_metrics_endpoint(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "relay_http_requests_total" in response.text


class TestCors:
    def test_cors_headers_on_responses(self, client):
        response = client.get("/health")
        assert response.headers["access-control-allow-origin"] == "*"
        assert "POST" in response.headers["access-control-allow-methods"]
        assert response.headers["access-control-allow-headers"] == "Content-Type"

    def test_options_returns_empty_200(self, client):
        for path in ("/health", "/check-messages", "/setup-session"):
            response = client.options(path)
            assert response.status_code == 200
            assert response.content == b""
            assert response.headers["access-control-allow-origin"] == "*"

    def test_browser_preflight_gets_empty_200(self, client):
        response = client.options(
            "/check-messages",
            headers={
                "Origin": "https://scheduler.example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )
        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"
        assert "POST" in response.headers["access-control-allow-methods"]

    def test_unsupported_method(self, client):
        response = client.delete("/check-messages")
        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}
        assert response.headers["access-control-allow-origin"] == "*"

    def test_get_on_setup_is_not_allowed(self, client):
        response = client.get("/setup-session")
        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}


class TestCheckMessages:
    def test_forwards_bot_messages(self, client, telegram_client):
        telegram_client.get_messages.return_value = [make_message(11), make_message(12, minutes_ago=60)]
        telegram_client.get_entity.return_value = make_sender(bot=True, username="alerts_bot")

        response = client.post("/check-messages")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["active"] is True
        assert data["forwarded"] == 1
        assert data["skipped"] == 1
        assert message_ids(data["messages"]) == [11]
        assert data["messages"][0]["from"] == "alerts_bot"
        assert data["skipped_details"][0]["reason"] == "too_old"
        assert data["settings"]["lookback_minutes"] == 15
        assert data["active_hours"] == "00:00 to 24:00 IST"
        assert data["next_check_ist"].endswith("IST")
        assert "next_check" in data
        telegram_client.forward_messages.assert_awaited_once_with(-1001234567890, 11, from_peer="me")

    def test_get_is_accepted(self, client):
        assert client.get("/check-messages").status_code == 200

    def test_second_check_within_interval_is_rate_limited(self, client, telegram_client):
        assert client.get("/check-messages").status_code == 200

        response = client.get("/check-messages")

        assert response.status_code == 429
        data = response.json()
        assert data["error"] == "Rate limited"
        assert 299 <= data["wait_seconds"] <= 300
        assert data["message"] == f"Please wait {data['wait_seconds']} seconds before checking again"
        assert telegram_client.get_messages.await_count == 1

    def test_outside_active_hours(self, client, telegram_client, monkeypatch):
        monkeypatch.setattr(ActiveWindow, "is_within_active_hours", lambda self, now=None: False)

        response = client.get("/check-messages")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["active"] is False
        assert data["message"].startswith("Outside active hours (00:00 to 24:00 IST). Current time: ")
        assert data["message"].endswith("No messages processed.")
        assert "forwarded" not in data
        telegram_client.get_messages.assert_not_called()

    def test_inactive_checks_do_not_consume_the_interval(self, client, monkeypatch):
        with monkeypatch.context() as m:
            m.setattr(ActiveWindow, "is_within_active_hours", lambda self, now=None: False)
            client.get("/check-messages")
        assert client.get("/check-messages").status_code == 200

    def test_flood_wait_from_error_text(self, client, telegram_client):
        telegram_client.get_messages.side_effect = Exception("FLOOD_WAIT_42")

        response = client.get("/check-messages")

        assert response.status_code == 429
        data = response.json()
        assert data["error"] == "Telegram rate limit"
        assert data["wait_seconds"] == 42
        assert data["message"] == "Telegram requires waiting 42 seconds"

    def test_flood_wait_from_telethon(self, client, telegram_client):
        telegram_client.get_messages.side_effect = FloodWaitError(request=None, capture=42)

        response = client.get("/check-messages")

        assert response.status_code == 429
        assert response.json()["wait_seconds"] == 42

    def test_unexpected_failure(self, client, telegram_client):
        telegram_client.get_messages.side_effect = RuntimeError("socket closed")

        response = client.get("/check-messages")

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Failed to process messages"
        assert data["details"] == "socket closed"
        assert data["current_time_ist"].endswith("IST")

    def test_missing_target_group(self, make_client, make_config):
        client = make_client(make_config(TARGET_GROUP_CHAT_ID=""))

        response = client.get("/check-messages")

        assert response.status_code == 500
        assert "TARGET_GROUP_CHAT_ID" in response.json()["details"]

    def test_api_alias(self, client):
        assert client.post("/api/check-messages").status_code == 200


class TestSetupSession:
    def test_missing_api_credentials(self, make_client, make_config):
        client = make_client(make_config(API_ID="", API_HASH=""))

        response = client.post("/setup-session", json={"phoneCode": "12345"})

        assert response.status_code == 400
        assert response.json() == {
            "error": "Missing API credentials",
            "message": "Please set API_ID and API_HASH environment variables",
        }

    def test_without_code_requests_one(self, client, telegram_client):
        response = client.post("/setup-session")

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "Session setup failed"
        assert data["message"] == "Phone code is required for setup"
        telegram_client.send_code_request.assert_awaited_once_with("+911234567890")

    def test_code_completes_setup(self, client, telegram_client):
        client.post("/setup-session", json={})

        response = client.post("/setup-session", json={"phoneCode": "12345"})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["session"] == "1Anew-session-string"
        assert "USER_STRING_SESSION" in data["message"]
        telegram_client.sign_in.assert_awaited_once_with(phone="+911234567890", code="12345")
        assert telegram_client.send_code_request.await_count == 1

    def test_numeric_code_completes_pending_login(self, client, telegram_client):
        client.post("/setup-session", json={})

        response = client.post("/setup-session", json={"phoneCode": 12345})

        assert response.status_code == 200
        assert response.json()["session"] == "1Anew-session-string"
        assert telegram_client.send_code_request.await_count == 1
        telegram_client.sign_in.assert_awaited_once_with(phone="+911234567890", code="12345")

    def test_snake_case_code_is_accepted(self, client):
        response = client.post("/setup-session", json={"phone_code": "12345"})
        assert response.status_code == 200

    def test_invalid_json_is_treated_as_empty(self, client):
        response = client.post(
            "/setup-session",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 500
        assert response.json()["message"] == "Phone code is required for setup"

    def test_invalid_code_message(self, client, telegram_client):
        telegram_client.sign_in.side_effect = Exception("PHONE_CODE_INVALID")

        response = client.post("/setup-session", json={"phoneCode": "00000"})

        assert response.status_code == 500
        data = response.json()
        assert data["message"] == "Invalid phone code. Please check and try again."
        assert data["details"] == "PHONE_CODE_INVALID"

    def test_two_factor_message(self, client, telegram_client):
        telegram_client.sign_in.side_effect = Exception("SESSION_PASSWORD_NEEDED")

        response = client.post("/setup-session", json={"phoneCode": "12345"})

        assert response.json()["message"] == "2FA password required. Set PASSWORD environment variable."
