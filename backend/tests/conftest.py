import asyncio

import pytest
from fastapi.testclient import TestClient

from app.main import app as fastapi_app
from app.services.api_forwarder import APIRequestForwarder
from app.services.live_relay import Channel, ChannelClosed, ConnectionRole, ConnectionState, RelayConfig
from app.services.static_assets import StaticAssetProvider

# ---------------------------------------------------------------------------
# In-memory connection leg
# ---------------------------------------------------------------------------


class FakeChannel(Channel):
    """Channel driven by the test: push frames/closes in, inspect what was sent."""

    def __init__(self, role: ConnectionRole = ConnectionRole.CLIENT, fail_sends: bool = False) -> None:
        super().__init__(role)
        self.state = ConnectionState.OPEN
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.sent: list = []
        self.closed_with: tuple[int, str] | None = None
        self.fail_sends = fail_sends

    def push(self, frame) -> None:
        self.inbox.put_nowait(frame)

    def remote_close(self, code: int, reason: str = "") -> None:
        self.inbox.put_nowait(ChannelClosed(code, reason))

    async def receive(self):
        item = await self.inbox.get()
        if isinstance(item, BaseException):
            self.state = ConnectionState.CLOSED
            raise item
        return item

    async def send(self, data) -> None:
        if self.fail_sends:
            raise ConnectionError("socket write failed")
        self.sent.append(data)

    async def close(self, code: int, reason: str = "") -> None:
        if self.closed_with is not None:
            return
        self.closed_with = (code, reason)
        self.state = ConnectionState.CLOSED
        # Unblock our own reader the way a real close handshake would.
        self.inbox.put_nowait(ChannelClosed(code, reason))


@pytest.fixture
def make_channel():
    """Factory for FakeChannel legs."""

    def _make(role: ConnectionRole = ConnectionRole.CLIENT, fail_sends: bool = False) -> FakeChannel:
        return FakeChannel(role=role, fail_sends=fail_sends)

    return _make


# ---------------------------------------------------------------------------
# App client
# ---------------------------------------------------------------------------


@pytest.fixture
def relay_config():
    return RelayConfig(upstream_base_url="wss://upstream.test", fallback_api_key="")


@pytest.fixture
def client(relay_config, tmp_path):
    """TestClient with app.state collaborators replaced after startup."""
    (tmp_path / "index.html").write_text("<h1>console</h1>")
    with TestClient(fastapi_app) as test_client:
        fastapi_app.state.relay_config = relay_config
        fastapi_app.state.asset_provider = StaticAssetProvider(tmp_path)
        fastapi_app.state.api_forwarder = APIRequestForwarder(base_url="")
        yield test_client
