import json

from savings_tracker.config import DEFAULT_CRON, DEFAULT_USERS, load_config, validate_cron


def test_defaults_from_empty_environment():
    config = load_config({})

    assert config.scheduler.enabled is True
    assert config.scheduler.cron == DEFAULT_CRON
    assert config.notifications.enabled is False
    assert config.database_path == "savings.duckdb"
    assert config.seed_users == DEFAULT_USERS


def test_invalid_cron_falls_back_to_default(caplog):
    assert validate_cron("every morning") == DEFAULT_CRON
    assert validate_cron("61 8 * * *") == DEFAULT_CRON
    assert "Invalid cron expression" in caplog.text
    assert validate_cron("*/15 * * * *") == "*/15 * * * *"


def test_scheduler_can_be_disabled():
    config = load_config({"SCHEDULER_ENABLED": "false", "SCHEDULER_CRON": "30 6 * * 1"})
    assert config.scheduler.enabled is False
    assert config.scheduler.cron == "30 6 * * 1"


def test_notifications_need_flag_token_and_service():
    env = {
        "NOTIFICATIONS_ENABLED": "true",
        "SUPERVISOR_TOKEN": "secret",
        "NOTIFICATION_SERVICES": json.dumps({"Alex": "mobile_app_pixel"}),
    }
    config = load_config(env)
    assert config.notifications.enabled is True
    assert config.notifications.services == {"alex": "mobile_app_pixel"}

    assert load_config({**env, "SUPERVISOR_TOKEN": ""}).notifications.enabled is False
    assert load_config({**env, "NOTIFICATIONS_ENABLED": "no"}).notifications.enabled is False
    assert load_config({**env, "NOTIFICATION_SERVICES": ""}).notifications.enabled is False


def test_malformed_notification_services_are_ignored(caplog):
    config = load_config({"NOTIFICATION_SERVICES": "{not json"})
    assert config.notifications.services == {}
    assert "NOTIFICATION_SERVICES" in caplog.text

    assert load_config({"NOTIFICATION_SERVICES": "[1, 2]"}).notifications.services == {}


def test_seed_users_from_environment():
    raw = json.dumps([{"id": "Chris", "name": "Chris"}, {"name": "no id"}])
    users = load_config({"SEED_USERS": raw}).seed_users
    assert users == [{"id": "chris", "name": "Chris", "email": "chris@example.com"}]


def test_malformed_seed_users_fall_back_to_defaults():
    assert load_config({"SEED_USERS": "nope"}).seed_users == DEFAULT_USERS


def test_supervisor_url_trailing_slash_is_trimmed():
    config = load_config({"SUPERVISOR_URL": "http://ha.local:8123/"})
    assert config.notifications.base_url == "http://ha.local:8123"
