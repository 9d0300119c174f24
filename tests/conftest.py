"""Pytest fixtures for Mova widget tests."""

from __future__ import annotations

import tempfile
from collections.abc import Generator, Iterable, Mapping
from pathlib import Path

import pytest

from mova_widget.adapters.file_store import JsonFileStore
from mova_widget.config import Settings, override_settings, reset_settings
from mova_widget.core.models import Credentials, SubmissionOutcome
from mova_widget.core.process_lock import ProcessLockManager
from mova_widget.services.credentials import CredentialStore
from mova_widget.services.pending_queue import PendingQueue
from mova_widget.services.retry import Sleeper

SERVER_URL = "https://todo.example.com"
USERNAME = "alice"
PASSWORD = "s3cret-pw"


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class ScriptedClient:
    """Submission client that replays scripted outcomes.

    ``outcomes`` is consumed one per ``submit_once`` call; once it runs out
    the last outcome repeats. ``per_text`` pins the outcome for specific
    texts and takes precedence.
    """

    def __init__(
        self,
        outcomes: Iterable[SubmissionOutcome] = (),
        per_text: Mapping[str, SubmissionOutcome] | None = None,
        restart_result: bool = True,
    ) -> None:
        self.outcomes = list(outcomes) or [SubmissionOutcome.success()]
        self.per_text = dict(per_text or {})
        self.restart_result = restart_result
        self.submit_calls: list[tuple[str, str, str, str]] = []
        self.restart_calls: list[tuple[str, str, str]] = []

    def submit_once(
        self, server_url: str, username: str, password: str, text: str
    ) -> SubmissionOutcome:
        self.submit_calls.append((server_url, username, password, text))
        if text in self.per_text:
            return self.per_text[text]
        index = min(len(self.submit_calls), len(self.outcomes)) - 1
        return self.outcomes[index]

    def request_restart(self, server_url: str, username: str, password: str) -> bool:
        self.restart_calls.append((server_url, username, password))
        return self.restart_result

    @property
    def submitted_texts(self) -> list[str]:
        return [call[3] for call in self.submit_calls]


class RecordingSleeper(Sleeper):
    """Sleeper that records each requested wait instead of blocking.

    ``refuse_after`` makes every wait after that many granted ones fail,
    as if the invocation budget ran out.
    """

    def __init__(self, refuse_after: int | None = None) -> None:
        super().__init__()
        self.waits: list[float] = []
        self._refuse_after = refuse_after

    def sleep(self, seconds: float) -> bool:
        if self.cancelled:
            return False
        if self._refuse_after is not None and len(self.waits) >= self._refuse_after:
            return False
        self.waits.append(seconds)
        return True


# ---------------------------------------------------------------------------
# Basic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def temp_storage() -> Generator[Path, None, None]:
    """Provide temporary storage directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings(temp_storage: Path) -> Generator[Settings, None, None]:
    """Provide test settings with temp storage and no real waiting."""
    settings = Settings(
        storage_path=temp_storage / "mova",
        backoff_base_seconds=0.0,
        restart_wait_seconds=0.0,
        lock_timeout_seconds=2.0,
        log_level="DEBUG",
    )
    override_settings(settings)
    yield settings
    reset_settings()


@pytest.fixture
def store_path(temp_storage: Path) -> Path:
    return temp_storage / "mova_widget_prefs.json"


@pytest.fixture
def store(store_path: Path) -> JsonFileStore:
    """Provide a file store with a fast-polling lock."""
    lock = ProcessLockManager(
        store_path.with_name(store_path.name + ".lock"),
        timeout=5.0,
        poll_interval=0.01,
    )
    return JsonFileStore(store_path, lock=lock)


@pytest.fixture
def credential_store(store: JsonFileStore) -> CredentialStore:
    return CredentialStore(store)


@pytest.fixture
def pending_queue(store: JsonFileStore) -> PendingQueue:
    return PendingQueue(store)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(server_url=SERVER_URL, username=USERNAME, password=PASSWORD)


@pytest.fixture
def logged_in(credential_store: CredentialStore, credentials: Credentials) -> Credentials:
    """Store a complete login, as the app does after sign-in."""
    credential_store.set(SERVER_URL, USERNAME, PASSWORD)
    return credentials


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def scripted_client() -> type[ScriptedClient]:
    """Expose the scripted client class so tests can build their own script."""
    return ScriptedClient


@pytest.fixture
def recording_sleeper() -> type[RecordingSleeper]:
    """Expose the recording sleeper class for tests needing a refusal point."""
    return RecordingSleeper
