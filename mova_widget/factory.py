"""Service factory for dependency injection and initialization.

Builds everything one process needs from ``Settings``: the shared store,
the credential store and pending queue on top of it, the HTTP client and
the dispatcher. Both the main app (credentials) and the widget task
(dispatcher) construct their services through here, so they agree on
file locations and locking.

Usage:
    from mova_widget.factory import ServiceFactory

    services = ServiceFactory(settings).create_all()
    result = services.dispatcher.handle("RETRY_PENDING")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mova_widget.adapters.file_store import JsonFileStore
from mova_widget.adapters.http_client import HttpSubmissionClient
from mova_widget.config import Settings
from mova_widget.core.process_lock import ProcessLockManager
from mova_widget.core.retry_machine import RetryPolicy
from mova_widget.services.credentials import CredentialStore
from mova_widget.services.pending_queue import PendingQueue
from mova_widget.services.retry import RetryOrchestrator, Sleeper
from mova_widget.tasks.dispatcher import WidgetTaskDispatcher

if TYPE_CHECKING:
    from mova_widget.ports.client import SubmissionClientProtocol
    from mova_widget.ports.storage import KeyValueStoreProtocol

logger = logging.getLogger(__name__)


@dataclass
class WidgetServices:
    """Container for all initialized services.

    Attributes:
        store: Shared key/value store.
        credentials: Credential store over ``store``.
        queue: Pending queue over ``store``.
        client: Remote API client.
        policy: Retry policy derived from settings.
        dispatcher: Host entry point.
    """

    store: KeyValueStoreProtocol
    credentials: CredentialStore
    queue: PendingQueue
    client: SubmissionClientProtocol
    policy: RetryPolicy
    dispatcher: WidgetTaskDispatcher


class ServiceFactory:
    """Factory for creating and wiring all services.

    Example:
        factory = ServiceFactory(settings)
        services = factory.create_all()
    """

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStoreProtocol | None = None,
        client: SubmissionClientProtocol | None = None,
    ) -> None:
        """Initialize the factory.

        Args:
            settings: Application settings.
            store: Optional store override for testing.
            client: Optional API client override for testing.
        """
        self._settings = settings
        self._injected_store = store
        self._injected_client = client

    def create_store(self) -> KeyValueStoreProtocol:
        if self._injected_store is not None:
            return self._injected_store
        path = self._settings.store_file
        lock = ProcessLockManager(
            path.with_name(path.name + ".lock"),
            timeout=self._settings.lock_timeout_seconds,
            enabled=self._settings.lock_enabled,
        )
        return JsonFileStore(path, lock=lock)

    def create_task_lock(self) -> ProcessLockManager:
        return ProcessLockManager(
            self._settings.task_lock_file,
            timeout=self._settings.lock_timeout_seconds,
            enabled=self._settings.lock_enabled,
        )

    def create_client(self) -> SubmissionClientProtocol:
        if self._injected_client is not None:
            return self._injected_client
        return HttpSubmissionClient(timeout_seconds=self._settings.request_timeout_seconds)

    def create_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self._settings.max_retries,
            backoff_base_seconds=self._settings.backoff_base_seconds,
            restart_wait_seconds=self._settings.restart_wait_seconds,
        )

    def create_dispatcher(
        self,
        credentials: CredentialStore,
        queue: PendingQueue,
        client: SubmissionClientProtocol,
        policy: RetryPolicy,
    ) -> WidgetTaskDispatcher:
        budget = self._settings.task_budget_seconds

        def _orchestrator() -> RetryOrchestrator:
            return RetryOrchestrator(client, policy, Sleeper.with_budget(budget))

        return WidgetTaskDispatcher(
            credentials,
            queue,
            _orchestrator,
            max_retries=self._settings.max_retries,
            exhausted_ttl_days=self._settings.exhausted_ttl_days,
            task_lock=self.create_task_lock(),
        )

    def create_all(self) -> WidgetServices:
        """Create and wire all services.

        Returns:
            WidgetServices container with every service.
        """
        store = self.create_store()
        credentials = CredentialStore(store)
        queue = PendingQueue(store)
        client = self.create_client()
        policy = self.create_policy()
        dispatcher = self.create_dispatcher(credentials, queue, client, policy)
        logger.debug("Widget services created (store=%s)", self._settings.store_file)
        return WidgetServices(
            store=store,
            credentials=credentials,
            queue=queue,
            client=client,
            policy=policy,
            dispatcher=dispatcher,
        )
