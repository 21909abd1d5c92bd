"""
Pytest configuration for hookkit tests.

Every test gets an isolated client directory and a clean environment, and
the git collector is replaced with a fake unless a test asks for real git.
"""
import pytest

from hookkit import HookManager, HookOptions
from hookkit.hook_utils.transcript import clear_cache

HOOK_ENV_VARS = (
    "CLAUDE_PROJECT_DIR",
    "HOOK_CLIENT_ID",
    "HOOK_DEBUG",
    "HOOK_LOG_EVENTS",
    "HOOK_FAILURE_QUEUE",
    "HOOK_BLOCK_ON_FAILURE",
    "HANDLER_TIMEOUT",
)


class FakeGit:
    """Stands in for collect_git_metadata; tests mutate ``metadata``."""

    def __init__(self, metadata=None):
        self.metadata = metadata
        self.calls = []

    def __call__(self, cwd=None):
        self.calls.append(cwd)
        return dict(self.metadata) if self.metadata is not None else None


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in HOOK_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def fake_git():
    return FakeGit({
        "toplevel": "/repo",
        "branch": "main",
        "commit": "abc123",
        "dirty": False,
        "user": "Test User",
        "email": "test@example.com",
        "repo": "git@example.com:org/repo.git",
    })


@pytest.fixture
def client_dir(tmp_path):
    return tmp_path / "client"


@pytest.fixture
def make_manager(client_dir):
    """Build a HookManager rooted in the test's client directory, without git."""
    def factory(**overrides):
        options = HookOptions(log_dir=client_dir)
        manager = HookManager(options, **overrides)
        if manager.context_store is not None:
            manager.context_store.git_collector = lambda cwd=None: None
        return manager
    return factory


@pytest.fixture
def transcript(tmp_path):
    """Write a JSONL transcript and return its path."""
    def write(*lines):
        path = tmp_path / "transcript.jsonl"
        path.write_text("".join(line + "\n" for line in lines))
        return str(path)
    return write
