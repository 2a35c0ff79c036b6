"""Collaborator factory.

Provides get_collaborators() / set_collaborators() to swap implementations:
- in-memory adapters for development and testing (default)
- HTTP/queue adapters for the real platform services in production
"""

from dataclasses import dataclass

from ordering.collaborators.memory import (
    InMemoryAddressBook,
    InMemoryCartStore,
    InMemoryCatalog,
    RecordingMailer,
    RecordingNotifier,
    RecordingRealtimeChannel,
)
from ordering.collaborators.ports import AddressBook, CartStore, Catalog, Mailer, Notifier, RealtimeChannel


@dataclass
class Collaborators:
    carts: CartStore
    catalog: Catalog
    addresses: AddressBook
    notifier: Notifier
    mailer: Mailer
    realtime: RealtimeChannel


def in_memory_collaborators() -> Collaborators:
    return Collaborators(
        carts=InMemoryCartStore(),
        catalog=InMemoryCatalog(),
        addresses=InMemoryAddressBook(),
        notifier=RecordingNotifier(),
        mailer=RecordingMailer(),
        realtime=RecordingRealtimeChannel(),
    )


_current: Collaborators | None = None


def get_collaborators() -> Collaborators:
    """Return the active collaborators. Defaults to the in-memory adapters."""
    global _current
    if _current is None:
        _current = in_memory_collaborators()
    return _current


def set_collaborators(collaborators: Collaborators) -> None:
    """Override the active collaborators (useful for tests)."""
    global _current
    _current = collaborators


def reset_collaborators() -> None:
    """Reset to the default in-memory collaborators."""
    global _current
    _current = None
