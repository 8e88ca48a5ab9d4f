"""Shared fixtures: in-memory database, stub push provider, API client."""
from __future__ import annotations

from typing import Callable, Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shiftpush.database import Base, build_engine, get_db
from shiftpush.deps import CurrentUser, get_current_user
from shiftpush.main import app
from shiftpush.services.dispatcher import DispatchService, get_dispatch_service, get_token_registry
from shiftpush.services.providers import ADDRESS_TOKENS, PushMessage, PushProvider, SendResult, is_expo_push_token
from shiftpush.services.token_registry import TokenRegistry


@pytest.fixture
def anyio_backend():
    return "asyncio"


class StubProvider(PushProvider):
    """Push provider that answers from a callable instead of a vendor."""

    name = "stub"

    def __init__(
        self,
        responder: Optional[Callable[[PushMessage], SendResult]] = None,
        configured: bool = True,
        addressing: str = ADDRESS_TOKENS,
        max_batch_size: int = 100,
    ) -> None:
        super().__init__()
        self.responder = responder or (lambda m: SendResult(token=m.to, ok=True, provider_id=f"ticket-{m.to}"))
        self._configured = configured
        self.addressing = addressing
        self.max_batch_size = max_batch_size
        self.calls: List[List[PushMessage]] = []
        self.receipts: Dict[str, str] = {}

    @property
    def configured(self) -> bool:
        return self._configured

    def is_valid_token(self, token: str) -> bool:
        return is_expo_push_token(token)

    async def _send_chunk(self, chunk):
        self.calls.append(list(chunk))
        return [self.responder(m) for m in chunk]

    async def check_receipts(self, ticket_ids):
        return {t: self.receipts[t] for t in ticket_ids if t in self.receipts}


@pytest.fixture
def make_provider():
    return StubProvider


@pytest.fixture
def stub_provider() -> StubProvider:
    return StubProvider()


@pytest.fixture
def registry() -> TokenRegistry:
    return TokenRegistry(is_expo_push_token)


@pytest.fixture
async def session():
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as db:
        yield db

    await engine.dispose()


@pytest.fixture
def current_user() -> CurrentUser:
    return CurrentUser(id="provider-1", role="service_provider")


@pytest.fixture
async def api_client(session, registry, stub_provider, current_user):
    async def _get_db():
        yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.dependency_overrides[get_token_registry] = lambda: registry
    app.dependency_overrides[get_dispatch_service] = lambda: DispatchService(registry, stub_provider)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
