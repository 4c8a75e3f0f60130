"""Async test fixtures for review automation tests using SQLite."""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from review_automation.actions.base import ActionServices
from review_automation.database import enable_sqlite_savepoints
from review_automation.engine.registry import build_default_registry
from review_automation.models import Base, Location, Review, Tenant, TenantMember, User, AutomationWorkflow
from review_automation.services.ai_svc import AIAutomationService
from review_automation.services.llm_client import FAILURE_UNAVAILABLE, Completion
from review_automation.services.notify_svc import SendResult
from review_automation.services.report_svc import ReportGenerator


class FakeChatClient:
    """Returns queued completions in order and records every call."""

    def __init__(self, *replies, configured: bool = True):
        self.replies = list(replies)
        self._configured = configured
        self.calls: list[dict] = []

    @property
    def configured(self) -> bool:
        return self._configured

    async def complete(self, *, system, prompt, temperature, max_tokens, timeout):
        self.calls.append(
            {
                "system": system,
                "prompt": prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "timeout": timeout,
            }
        )
        if not self._configured:
            return Completion(failure=FAILURE_UNAVAILABLE, error="not configured")
        if not self.replies:
            return Completion(failure=FAILURE_UNAVAILABLE, error="no reply queued")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, Completion):
            return reply
        return Completion(text=reply)


class FakeSender:
    def __init__(self, fail_for: set[str] | None = None):
        self.fail_for = fail_for or set()
        self.sent: list[dict] = []

    async def send(self, recipient, subject, message, priority="normal"):
        self.sent.append(
            {"recipient": recipient, "subject": subject, "message": message, "priority": priority}
        )
        if recipient in self.fail_for:
            return SendResult(recipient, False, "rejected")
        return SendResult(recipient, True)


class FakeWebhookSender(FakeSender):
    async def send_payload(self, url, payload):
        self.sent.append({"recipient": url, "payload": payload})
        return SendResult(url, url not in self.fail_for, None if url not in self.fail_for else "HTTP 500")


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture
async def engine():
    eng = enable_sqlite_savepoints(create_async_engine("sqlite+aiosqlite:///:memory:", echo=False))
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


# ── Collaborators ─────────────────────────────────────────────────────────


@pytest.fixture
def chat():
    """Unconfigured by default: every AI call fails open."""
    return FakeChatClient(configured=False)


@pytest.fixture
def email_sender():
    return FakeSender()


@pytest.fixture
def slack_sender():
    return FakeSender()


@pytest.fixture
def webhook_sender():
    return FakeWebhookSender()


@pytest.fixture
def services(chat, email_sender, slack_sender, webhook_sender):
    return ActionServices(
        ai=AIAutomationService(chat),
        email=email_sender,
        slack=slack_sender,
        webhook=webhook_sender,
        reports=ReportGenerator(),
    )


@pytest.fixture
def registry(services):
    return build_default_registry(services)


# ── Domain data ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def tenant(db):
    t = Tenant(name="Acme Dental", slug="acme-dental")
    db.add(t)
    await db.commit()
    return t


@pytest_asyncio.fixture
async def owner(db, tenant):
    user = User(name="Olivia Owner", email="owner@acme.test")
    db.add(user)
    await db.flush()
    db.add(TenantMember(tenant_id=tenant.id, user_id=user.id, role="owner"))
    await db.commit()
    return user


@pytest_asyncio.fixture
async def staff(db, tenant):
    user = User(name="Sam Staff", email="staff@acme.test")
    db.add(user)
    await db.flush()
    db.add(TenantMember(tenant_id=tenant.id, user_id=user.id, role="member"))
    await db.commit()
    return user


@pytest_asyncio.fixture
async def location(db, tenant):
    loc = Location(tenant_id=tenant.id, name="Acme Downtown", address="1 Main St")
    db.add(loc)
    await db.commit()
    return loc


@pytest.fixture
def make_review(db, location):
    async def _make(rating: int = 5, content: str = "Great service, friendly staff!", **kwargs):
        review = Review(
            location_id=location.id,
            platform=kwargs.pop("platform", "google"),
            author_name=kwargs.pop("author_name", "Pat Customer"),
            rating=rating,
            content=content,
            **kwargs,
        )
        db.add(review)
        await db.commit()
        return review

    return _make


@pytest.fixture
def make_workflow(db, tenant, owner):
    """Insert a workflow row directly, bypassing save-time validation."""

    async def _make(**kwargs):
        workflow = AutomationWorkflow(
            tenant_id=tenant.id,
            created_by=kwargs.pop("created_by", owner.id),
            name=kwargs.pop("name", "Test workflow"),
            trigger_type=kwargs.pop("trigger_type", "review_received"),
            trigger_config=kwargs.pop("trigger_config", {}),
            conditions=kwargs.pop("conditions", []),
            actions=kwargs.pop("actions", [{"type": "add_tag", "config": {"tags": ["seen"]}}]),
            is_active=kwargs.pop("is_active", True),
            priority=kwargs.pop("priority", 0),
            ai_enabled=kwargs.pop("ai_enabled", False),
            ai_config=kwargs.pop("ai_config", {}),
            execution_count=0,
            **kwargs,
        )
        db.add(workflow)
        await db.commit()
        return workflow

    return _make
