"""
Billing trigger: signals that a billable task has been completed.

Invoices are produced by a separate billing system. The tracker only tells
it that a billable task crossed into ``done``:
- LoggingBillingTrigger: writes the signal to the log (default)
- WebhookBillingTrigger: POSTs an HMAC-signed JSON payload with httpx,
  in the background, without holding up the request
"""
from __future__ import annotations
from typing import Any
import asyncio
import hashlib
import hmac
import json
import logging
import uuid

import httpx

from core.events import TrackerEvent
from patterns.domain_config import BillingConfig

logger = logging.getLogger(__name__)

BILLING_EVENT = TrackerEvent.TASK_COMPLETED.value


class BillingTrigger:
    """Interface for billable-completion signals."""

    async def notify_task_completed(self, task: dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingBillingTrigger(BillingTrigger):
    async def notify_task_completed(self, task: dict[str, Any]) -> None:
        logger.info(
            "Billable task %s (project %s) completed: %s",
            task.get("id"), task.get("projectId"), task.get("title"),
        )


class WebhookBillingTrigger(BillingTrigger):
    """Fire-and-forget webhook delivery of billing signals."""

    def __init__(self, url: str, secret: str | None = None, timeout: float = 10.0,
                 client: httpx.AsyncClient | None = None):
        self.url = url
        self.secret = secret
        self.timeout = timeout
        self._client = client
        self._pending: set[asyncio.Task] = set()

    def _sign_payload(self, body: str) -> str:
        """Generate HMAC-SHA256 signature for a payload."""
        return hmac.new(
            self.secret.encode("utf-8"),
            body.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def _build_request(self, task: dict[str, Any]) -> tuple[str, dict[str, str]]:
        body = json.dumps(
            {"event": BILLING_EVENT, "task": task}, default=str, sort_keys=True
        )
        headers = {
            "Content-Type": "application/json",
            "X-Tracker-Event": BILLING_EVENT,
            "X-Tracker-Delivery": str(uuid.uuid4()),
        }
        if self.secret:
            headers["X-Tracker-Signature"] = f"sha256={self._sign_payload(body)}"
        return body, headers

    async def notify_task_completed(self, task: dict[str, Any]) -> None:
        delivery = asyncio.create_task(self._deliver(task))
        self._pending.add(delivery)
        delivery.add_done_callback(self._pending.discard)

    async def _deliver(self, task: dict[str, Any]) -> bool:
        body, headers = self._build_request(task)
        try:
            if self._client is not None:
                resp = await self._client.post(
                    self.url, content=body, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.post(
                        self.url, content=body, headers=headers, timeout=self.timeout
                    )
        except httpx.HTTPError as exc:
            logger.error("Billing webhook for task %s failed: %s", task.get("id"), exc)
            return False
        except Exception:
            # Detached delivery: log, never raise.
            logger.exception("Billing webhook for task %s raised", task.get("id"))
            return False

        if not 200 <= resp.status_code < 300:
            logger.error(
                "Billing webhook for task %s answered HTTP %d", task.get("id"), resp.status_code
            )
            return False
        logger.info("Billing webhook delivered for task %s", task.get("id"))
        return True

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def build_billing_trigger(config: BillingConfig) -> BillingTrigger:
    if config.enabled:
        return WebhookBillingTrigger(
            config.webhook_url, config.webhook_secret, timeout=config.timeout_seconds
        )
    return LoggingBillingTrigger()
