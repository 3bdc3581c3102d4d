import pytest
import pytest_asyncio

from pipchat.auth.oauth import OAuthBootstrap
from pipchat.auth.state_store import MemoryStateStore
from pipchat.auth.validator import static_nickname
from pipchat.logging_config import error_aggregator
from pipchat.session.manager import SessionManager
from tests.fixtures.fakes import FakeOAuthProvider, FakePeer, FakeUpstream


@pytest.fixture(autouse=True)
def _reset_error_aggregator():
    yield
    error_aggregator.reset()


@pytest.fixture
def oauth_provider():
    return FakeOAuthProvider()


@pytest.fixture
def state_store():
    return MemoryStateStore()


@pytest.fixture
def upstreams():
    """Every upstream connection handed out by the manager's factory."""
    return []


@pytest_asyncio.fixture
async def manager(oauth_provider, state_store, upstreams):
    def factory():
        upstream = FakeUpstream()
        upstreams.append(upstream)
        return upstream

    oauth = OAuthBootstrap(
        client_id="client-id",
        redirect_uri="http://localhost",
        provider=oauth_provider,
        state_store=state_store,
        timeout=1.0,
    )
    mgr = SessionManager(
        factory, oauth, static_nickname("Viewer"), auth_timeout=1.0
    )
    yield mgr
    await mgr.shutdown()


@pytest.fixture
def peer():
    return FakePeer("peer-1")
