from __future__ import annotations

import json
import os
from typing import Optional, Tuple

PUSH_TIMEOUT_SEC = float(os.getenv("NOTIFICATIONS_PUSH_TIMEOUT_SEC", "10"))


class PushDeliveryError(RuntimeError):
    pass


class PushProvider:
    def send(
        self,
        *,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        metadata: dict,
        correlation_id: Optional[str],
    ) -> None:
        raise NotImplementedError


class NoopProvider(PushProvider):
    def send(
        self,
        *,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        metadata: dict,
        correlation_id: Optional[str],
    ) -> None:
        return None


class WebhookPushProvider(PushProvider):
    """POSTs the notification as JSON to a push gateway."""

    def __init__(self, url: str, *, timeout: float = PUSH_TIMEOUT_SEC) -> None:
        self.url = url
        self.timeout = timeout

    def _post(self, body: dict) -> Tuple[int, str]:
        import urllib.request

        data = json.dumps(body).encode("utf-8")
        req = urllib.request.Request(self.url, data=data, method="POST")
        req.add_header("Content-Type", "application/json")
        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            return resp.status, resp.read().decode("utf-8")

    def send(
        self,
        *,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        metadata: dict,
        correlation_id: Optional[str],
    ) -> None:
        status_code, body = self._post(
            {
                "user_id": user_id,
                "type": notification_type,
                "title": title,
                "message": message,
                "metadata": metadata,
                "correlation_id": correlation_id,
            }
        )
        if not 200 <= status_code < 300:
            raise PushDeliveryError(f"Push gateway returned {status_code}: {body[:200]}")


def get_push_provider() -> Tuple[PushProvider, bool]:
    provider_name = (os.getenv("NOTIFICATIONS_PUSH_PROVIDER") or "").strip().lower()
    if not provider_name or provider_name in {"none", "noop", "disabled"}:
        return NoopProvider(), False
    if provider_name == "webhook":
        url = os.getenv("NOTIFICATIONS_PUSH_WEBHOOK_URL")
        if not url:
            raise ValueError("NOTIFICATIONS_PUSH_WEBHOOK_URL is required for the webhook push provider")
        return WebhookPushProvider(url), True
    raise ValueError(f"Unsupported push provider: {provider_name}")
