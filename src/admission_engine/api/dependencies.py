"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from collections.abc import Generator  # noqa: TC003
from typing import Annotated

from fastapi import Depends, Header

from admission_engine.admission import (
    Actor,
    AdmissionStateMachine,
    CourseCatalog,
    IdentityRequiredError,
)
from admission_engine.config import Settings
from admission_engine.matching import JobMatchingService, MatchScorer
from admission_engine.notifications import StoreNotificationSink
from admission_engine.state_store import StateStore

# Global StateStore instance (initialized on app startup)
_state_store: StateStore | None = None


def init_state_store(settings: Settings) -> StateStore:
    """Initialize the global StateStore instance."""
    global _state_store  # noqa: PLW0603
    _state_store = StateStore.from_settings(settings.store)
    return _state_store


def close_state_store() -> None:
    """Close the global StateStore instance."""
    global _state_store  # noqa: PLW0603
    if _state_store is not None:
        _state_store.close()
        _state_store = None


def get_state_store() -> Generator[StateStore, None, None]:
    """Dependency that provides the StateStore instance."""
    if _state_store is None:
        raise RuntimeError("StateStore not initialized. Call init_state_store() first.")
    yield _state_store


# Type alias for dependency injection
StateStoreDep = Annotated[StateStore, Depends(get_state_store)]

# Global engine services (initialized on app startup)
_state_machine: AdmissionStateMachine | None = None
_catalog: CourseCatalog | None = None
_matching: JobMatchingService | None = None


def init_services(store: StateStore, settings: Settings) -> None:
    """Build the engine services around a store."""
    global _state_machine, _catalog, _matching  # noqa: PLW0603
    sink = StoreNotificationSink(store)
    _state_machine = AdmissionStateMachine(
        state_store=store,
        notification_sink=sink,
        settings=settings.admission,
    )
    _catalog = CourseCatalog(store)
    _matching = JobMatchingService(
        state_store=store,
        scorer=MatchScorer(settings.matching),
        notification_sink=sink,
    )


def close_services() -> None:
    """Drop the engine services."""
    global _state_machine, _catalog, _matching  # noqa: PLW0603
    _state_machine = None
    _catalog = None
    _matching = None


def get_state_machine() -> Generator[AdmissionStateMachine, None, None]:
    """Dependency that provides the AdmissionStateMachine instance."""
    if _state_machine is None:
        raise RuntimeError("Services not initialized. Call init_services() first.")
    yield _state_machine


def get_catalog() -> Generator[CourseCatalog, None, None]:
    """Dependency that provides the CourseCatalog instance."""
    if _catalog is None:
        raise RuntimeError("Services not initialized. Call init_services() first.")
    yield _catalog


def get_matching_service() -> Generator[JobMatchingService, None, None]:
    """Dependency that provides the JobMatchingService instance."""
    if _matching is None:
        raise RuntimeError("Services not initialized. Call init_services() first.")
    yield _matching


StateMachineDep = Annotated[AdmissionStateMachine, Depends(get_state_machine)]
CatalogDep = Annotated[CourseCatalog, Depends(get_catalog)]
MatchingDep = Annotated[JobMatchingService, Depends(get_matching_service)]


def get_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
) -> Actor:
    """Identity of the caller, set by the upstream authentication layer.

    Raises:
        IdentityRequiredError: If either header is missing.
        ValidationError: If the role is unknown.
    """
    if not x_actor_id or not x_actor_role:
        raise IdentityRequiredError("X-Actor-Id and X-Actor-Role headers are required")
    return Actor.parse(x_actor_id, x_actor_role)


ActorDep = Annotated[Actor, Depends(get_actor)]
