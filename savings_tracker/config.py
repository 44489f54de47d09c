"""
Application configuration.

Built once at startup by ``load_config`` and handed to the scheduler, the
notifier and the routes. Malformed values never stop startup: they are
logged and replaced by defaults.
"""
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from apscheduler.triggers.cron import CronTrigger

DEFAULT_CRON = "0 8 * * *"
DEFAULT_DB_PATH = "savings.duckdb"
DEFAULT_SUPERVISOR_URL = "http://supervisor"

DEFAULT_USERS = [
    {"id": "alex", "name": "Alex", "email": "alex@example.com"},
    {"id": "beth", "name": "Beth", "email": "beth@example.com"},
]


@dataclass
class SchedulerConfig:
    enabled: bool = True
    cron: str = DEFAULT_CRON


@dataclass
class NotificationConfig:
    enabled: bool = False
    supervisor_token: Optional[str] = None
    services: Dict[str, str] = field(default_factory=dict)
    default_service: Optional[str] = None
    base_url: str = DEFAULT_SUPERVISOR_URL
    timeout: float = 10.0


@dataclass
class AppConfig:
    database_path: str = DEFAULT_DB_PATH
    log_level: str = "INFO"
    log_file: Optional[str] = None
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    seed_users: List[dict] = field(default_factory=lambda: [dict(u) for u in DEFAULT_USERS])


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def validate_cron(expression: Optional[str]) -> str:
    """Return ``expression`` if it is a valid 5-field crontab, else the default."""
    if not expression:
        return DEFAULT_CRON
    try:
        CronTrigger.from_crontab(expression)
    except ValueError as e:
        logging.warning(f"Invalid cron expression {expression!r} ({e}); using default {DEFAULT_CRON!r}")
        return DEFAULT_CRON
    return expression


def _parse_services(raw: Optional[str]) -> Dict[str, str]:
    # Format: {"alex": "mobile_app_pixel_9a", "beth": "mobile_app_iphone"}
    if not raw:
        return {}
    try:
        services = json.loads(raw)
    except json.JSONDecodeError as e:
        logging.error(f"Error parsing NOTIFICATION_SERVICES: {e}")
        return {}
    if not isinstance(services, dict):
        logging.error("NOTIFICATION_SERVICES must be a JSON object of user id -> service")
        return {}
    return {str(k).lower(): str(v) for k, v in services.items() if v}


def _parse_users(raw: Optional[str]) -> List[dict]:
    if raw:
        try:
            configured = json.loads(raw)
        except json.JSONDecodeError as e:
            logging.error(f"Error parsing SEED_USERS configuration: {e}")
            configured = None
        if isinstance(configured, list) and configured:
            users = []
            for user in configured:
                if not isinstance(user, dict) or not user.get("id"):
                    logging.warning(f"Ignoring malformed SEED_USERS entry: {user!r}")
                    continue
                user_id = str(user["id"]).lower()
                users.append({
                    "id": user_id,
                    "name": user.get("name") or user_id,
                    "email": user.get("email") or f"{user_id}@example.com",
                })
            if users:
                logging.info(f"Using {len(users)} user(s) from configuration")
                return users

    logging.info("Using default users (alex, beth)")
    return [dict(u) for u in DEFAULT_USERS]


def load_config(environ: Mapping[str, str] = None) -> AppConfig:
    env = os.environ if environ is None else environ

    scheduler = SchedulerConfig(
        enabled=(env.get("SCHEDULER_ENABLED", "true").strip().lower() != "false"),
        cron=validate_cron(env.get("SCHEDULER_CRON")),
    )

    notifications = NotificationConfig(
        supervisor_token=env.get("SUPERVISOR_TOKEN") or None,
        services=_parse_services(env.get("NOTIFICATION_SERVICES")),
        default_service=env.get("DEFAULT_NOTIFICATION_SERVICE") or None,
        base_url=(env.get("SUPERVISOR_URL") or DEFAULT_SUPERVISOR_URL).rstrip("/"),
    )
    notifications.enabled = bool(
        _flag(env.get("NOTIFICATIONS_ENABLED"))
        and notifications.supervisor_token
        and (notifications.services or notifications.default_service)
    )

    return AppConfig(
        database_path=env.get("DATABASE_PATH") or DEFAULT_DB_PATH,
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        log_file=env.get("LOG_FILE") or None,
        scheduler=scheduler,
        notifications=notifications,
        seed_users=_parse_users(env.get("SEED_USERS")),
    )
