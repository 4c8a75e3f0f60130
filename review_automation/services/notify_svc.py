"""Notification delivery: SendGrid email, Slack and generic webhooks.

Senders never raise. Every failure, including a timeout, comes back as a
``SendResult`` with ``ok=False`` so one bad recipient cannot sink a workflow.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from ..config import settings

log = logging.getLogger(__name__)


@dataclass
class SendResult:
    recipient: str
    ok: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"recipient": self.recipient, "success": self.ok}
        if self.error:
            data["error"] = self.error
        return data


class Sender(Protocol):
    async def send(
        self, recipient: str, subject: str, message: str, priority: str = "normal"
    ) -> SendResult: ...


class EmailSender:
    """Sends plain notification emails through SendGrid."""

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout or settings.notification_timeout_seconds

    async def send(
        self, recipient: str, subject: str, message: str, priority: str = "normal"
    ) -> SendResult:
        if not settings.sendgrid_configured:
            return SendResult(recipient, False, "SendGrid is not configured")

        import sendgrid
        from sendgrid.helpers.mail import Content, Email, Mail, To

        if priority == "high":
            subject = f"[High Priority] {subject}"
        mail = Mail(
            from_email=Email(settings.sendgrid_from_email, settings.sendgrid_from_name),
            to_emails=To(recipient),
            subject=subject,
            plain_text_content=Content("text/plain", message),
        )
        client = sendgrid.SendGridAPIClient(api_key=settings.sendgrid_api_key)
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(client.send, mail), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            log.warning("SendGrid timed out sending to %s", recipient)
            return SendResult(recipient, False, "Timed out")
        except Exception as exc:
            log.warning("SendGrid send to %s failed: %s", recipient, exc)
            return SendResult(recipient, False, str(exc))

        if response.status_code >= 400:
            return SendResult(recipient, False, f"SendGrid returned {response.status_code}")
        return SendResult(recipient, True)


async def _post_json(url: str, payload: dict, timeout: float) -> str | None:
    """POST ``payload``; returns an error string, or None on success."""
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(url, json=payload)
            resp.raise_for_status()
    except httpx.TimeoutException:
        return "Timed out"
    except httpx.HTTPStatusError as exc:
        return f"HTTP {exc.response.status_code}"
    except httpx.HTTPError as exc:
        return str(exc) or exc.__class__.__name__
    return None


class SlackSender:
    """Posts to a Slack incoming webhook.

    A recipient that is itself a URL is used as the webhook; anything else
    (a channel name) goes through the configured default webhook.
    """

    def __init__(self, webhook_url: str | None = None, timeout: float | None = None):
        self.webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self.timeout = timeout or settings.notification_timeout_seconds

    async def send(
        self, recipient: str, subject: str, message: str, priority: str = "normal"
    ) -> SendResult:
        url = recipient if recipient.startswith(("http://", "https://")) else self.webhook_url
        if not url:
            return SendResult(recipient, False, "Slack webhook is not configured")
        prefix = ":rotating_light: " if priority == "high" else ""
        payload: dict[str, Any] = {"text": f"{prefix}*{subject}*\n{message}"}
        if url == self.webhook_url and recipient != url:
            payload["channel"] = recipient
        error = await _post_json(url, payload, self.timeout)
        if error:
            log.warning("Slack notification to %s failed: %s", recipient, error)
            return SendResult(recipient, False, error)
        return SendResult(recipient, True)


class WebhookSender:
    """Delivers a JSON payload to an arbitrary webhook URL."""

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout or settings.notification_timeout_seconds

    async def send_payload(self, url: str, payload: dict[str, Any]) -> SendResult:
        error = await _post_json(url, payload, self.timeout)
        if error:
            log.warning("Webhook delivery to %s failed: %s", url, error)
            return SendResult(url, False, error)
        return SendResult(url, True)

    async def send(
        self, recipient: str, subject: str, message: str, priority: str = "normal"
    ) -> SendResult:
        return await self.send_payload(
            recipient, {"subject": subject, "message": message, "priority": priority}
        )
