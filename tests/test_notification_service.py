import pytest
import requests

from savings_tracker.config import NotificationConfig
from savings_tracker.services.notification_service import Notifier


class FakeResponse:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse(200)
        self.error = error
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def config():
    return NotificationConfig(
        enabled=True,
        supervisor_token="secret",
        services={"alex": "mobile_app_pixel"},
        default_service="mobile_app_family",
    )


def test_sends_to_the_users_service(config):
    session = FakeSession()
    result = Notifier(config, session=session).send_notification("Alex", "Savings Updated", "hi")

    assert result == {"success": True, "status_code": 200}
    call = session.calls[0]
    assert call["url"] == "http://supervisor/core/api/services/notify/mobile_app_pixel"
    assert call["headers"]["Authorization"] == "Bearer secret"
    assert call["json"]["data"]["tag"] == "savings-tracker"


def test_unknown_user_uses_default_service(config):
    session = FakeSession()
    Notifier(config, session=session).send_notification("beth", "t", "m")
    assert session.calls[0]["url"].endswith("/notify/mobile_app_family")


def test_no_service_for_user(config):
    config.default_service = None
    session = FakeSession()
    result = Notifier(config, session=session).send_notification("beth", "t", "m")
    assert result == {"success": False, "reason": "no_service"}
    assert session.calls == []


def test_disabled_notifier_sends_nothing(config):
    config.enabled = False
    session = FakeSession()
    notifier = Notifier(config, session=session)

    assert notifier.send_notification("alex", "t", "m")["reason"] == "disabled"
    assert notifier.test_notification("alex")["reason"] == "notifications_disabled"
    assert session.calls == []


def test_request_error_is_reported(config, caplog):
    session = FakeSession(error=requests.ConnectionError("unreachable"))
    result = Notifier(config, session=session).send_notification("alex", "t", "m")

    assert result["success"] is False
    assert "unreachable" in result["error"]
    assert "HA request error" in caplog.text


def test_non_2xx_is_a_failure(config):
    session = FakeSession(response=FakeResponse(401, "Unauthorized"))
    result = Notifier(config, session=session).send_notification("alex", "t", "m")
    assert result == {"success": False, "status_code": 401, "error": "Unauthorized"}


def test_send_to_all_reaches_each_service_once(config):
    config.services["beth"] = "mobile_app_family"
    session = FakeSession()
    results = Notifier(config, session=session).send_notification_to_all("t", "m")
    assert [r["service"] for r in results] == ["mobile_app_family", "mobile_app_pixel"]


def test_describe_hides_token(config):
    summary = Notifier(config, session=FakeSession()).describe()
    assert summary == {
        "enabled": True,
        "has_token": True,
        "services": ["alex"],
        "default_service": "mobile_app_family",
    }
