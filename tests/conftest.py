"""
Shared pytest fixtures for content blocker tests.
"""
import pytest

from tests._feed_fakes import FakeFeedSource


@pytest.fixture
def thread_manager():
    """Create ThreadManager instance for testing."""
    from core.threading.manager import ThreadManager
    manager = ThreadManager()
    yield manager
    manager.shutdown(wait=True)


@pytest.fixture
def event_system():
    """Create EventSystem instance for testing."""
    from core.events import EventSystem
    system = EventSystem()
    yield system
    system.clear()


@pytest.fixture
def data_dir(tmp_path):
    """Empty data directory for file-backed stores."""
    path = tmp_path / "content_blocker"
    path.mkdir()
    return path


@pytest.fixture
def feed_source():
    return FakeFeedSource()
