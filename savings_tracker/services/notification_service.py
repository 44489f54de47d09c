"""
Home Assistant notifications.

Messages go out through the Supervisor API's ``notify`` services. Delivery
is best effort: every failure is logged and reported in the return value,
nothing is raised and nothing is retried.
"""
import logging

import requests

from savings_tracker.config import NotificationConfig


class Notifier:
    def __init__(self, config: NotificationConfig, session=None):
        self.config = config
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def service_for(self, user_id):
        if user_id is not None:
            service = self.config.services.get(str(user_id).lower())
            if service:
                return service
        return self.config.default_service

    def call_service(self, domain, service, data):
        url = f"{self.config.base_url}/core/api/services/{domain}/{service}"
        try:
            r = self.session.post(
                url,
                json=data,
                headers={
                    "Authorization": f"Bearer {self.config.supervisor_token}",
                    "Content-Type": "application/json",
                },
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            logging.error(f"HA request error for {domain}.{service}: {e}")
            return {"success": False, "error": str(e)}

        if 200 <= r.status_code < 300:
            logging.info(f"HA service call successful: {domain}.{service}")
            return {"success": True, "status_code": r.status_code}

        logging.error(f"HA service call failed: {r.status_code} - {r.text}")
        return {"success": False, "status_code": r.status_code, "error": r.text}

    def send_notification(self, user_id, title, message, extra_data=None):
        if not self.enabled:
            logging.info(f"Notifications disabled, would have sent to {user_id}: {title} | {message}")
            return {"success": False, "reason": "disabled"}

        service = self.service_for(user_id)
        if not service:
            logging.info(f"No notification service configured for user: {user_id}")
            return {"success": False, "reason": "no_service"}

        logging.info(f"Sending notification to {user_id} via {service}")
        payload = {
            "title": title,
            "message": message,
            "data": {
                "tag": "savings-tracker",
                "group": "savings-tracker",
                "importance": "default",
                **(extra_data or {}),
            },
        }
        return self.call_service("notify", service, payload)

    def send_notification_to_all(self, title, message, extra_data=None):
        results = []
        services = set(self.config.services.values())
        if self.config.default_service:
            services.add(self.config.default_service)
        services = sorted(services)
        for service in services:
            if not self.enabled:
                results.append({"service": service, "success": False, "reason": "disabled"})
                continue
            payload = {"title": title, "message": message, "data": dict(extra_data or {})}
            results.append({"service": service, **self.call_service("notify", service, payload)})
        return results

    def test_notification(self, user_id):
        if not self.enabled:
            return {"success": False, "reason": "notifications_disabled", "config": self.describe()}
        return self.send_notification(
            user_id,
            "Savings Tracker Test",
            "If you see this, notifications are working correctly!",
            {"test": True},
        )

    def describe(self):
        """Configuration summary without the token."""
        return {
            "enabled": self.enabled,
            "has_token": bool(self.config.supervisor_token),
            "services": sorted(self.config.services),
            "default_service": self.config.default_service,
        }
