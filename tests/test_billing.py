"""Test billing triggers and their configuration."""
import hashlib
import hmac
import json

import httpx
import pytest

from patterns.domain_config import BillingConfig, TrackerConfig
from verticals.construction.billing import (
    LoggingBillingTrigger,
    WebhookBillingTrigger,
    build_billing_trigger,
)

TASK = {"id": 7, "projectId": 2, "title": "Install windows", "isBillable": True}


def _recording_client(requests, status_code=200):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_webhook_posts_signed_payload():
    requests = []
    async with _recording_client(requests) as client:
        trigger = WebhookBillingTrigger("https://billing.test/hooks", secret="s3cret", client=client)
        await trigger.notify_task_completed(TASK)
        await trigger.drain()

    assert len(requests) == 1
    request = requests[0]
    body = request.content.decode()
    assert json.loads(body) == {"event": "task.completed", "task": TASK}
    assert request.headers["X-Tracker-Event"] == "task.completed"
    expected = hmac.new(b"s3cret", body.encode(), hashlib.sha256).hexdigest()
    assert request.headers["X-Tracker-Signature"] == f"sha256={expected}"


@pytest.mark.asyncio
async def test_webhook_without_secret_is_unsigned():
    requests = []
    async with _recording_client(requests) as client:
        trigger = WebhookBillingTrigger("https://billing.test/hooks", client=client)
        assert await trigger._deliver(TASK)

    assert "X-Tracker-Signature" not in requests[0].headers


@pytest.mark.asyncio
async def test_webhook_failure_is_reported_not_raised():
    requests = []
    async with _recording_client(requests, status_code=503) as client:
        trigger = WebhookBillingTrigger("https://billing.test/hooks", client=client)
        assert await trigger._deliver(TASK) is False


@pytest.mark.asyncio
async def test_webhook_transport_error_is_reported_not_raised():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        trigger = WebhookBillingTrigger("https://billing.test/hooks", client=client)
        assert await trigger._deliver(TASK) is False


def test_build_trigger_defaults_to_logging():
    assert isinstance(build_billing_trigger(BillingConfig()), LoggingBillingTrigger)


def test_build_trigger_uses_webhook_when_configured():
    trigger = build_billing_trigger(
        BillingConfig(webhook_url="https://billing.test/hooks", webhook_secret="k")
    )
    assert isinstance(trigger, WebhookBillingTrigger)
    assert trigger.secret == "k"


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("TRACKER_IMPORT_MAX_ITEMS", "25")
    monkeypatch.setenv("TRACKER_BILLING_WEBHOOK_URL", "https://billing.test/hooks")
    monkeypatch.setenv("TRACKER_AUTO_CREATE_TABLES", "false")

    config = TrackerConfig.from_env()
    assert config.imports.max_items == 25
    assert config.billing.enabled
    assert config.auto_create_tables is False


def test_config_ignores_garbage_numbers(monkeypatch):
    monkeypatch.setenv("TRACKER_IMPORT_MAX_ITEMS", "lots")
    assert TrackerConfig.from_env().imports.max_items == 500


@pytest.mark.asyncio
async def test_background_delivery_swallows_unexpected_errors():
    def handler(request):
        raise ValueError("unexpected client failure")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        trigger = WebhookBillingTrigger("https://billing.test/hooks", client=client)
        assert await trigger._deliver(TASK) is False

        await trigger.notify_task_completed(TASK)
        await trigger.drain()
        assert not trigger._pending
