"""
vaultaws/secrets/interfaces.py

Abstract collaborators the credential core talks to:
  - LeaseManager: keeps registered secrets alive and emits LeaseEvents.
  - NotificationSink: receives RebindAwsStsEvents (fire-and-forget).
  - SecretSource: reads, renews and revokes leased secrets (e.g. Vault).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Optional

from vaultaws.models.lease import (
    Lease,
    LeasedSecret,
    LeaseEvent,
    RebindAwsStsEvent,
    RequestedSecret,
)

if TYPE_CHECKING:
    from vaultaws.models.aws_credentials import CredentialMetadata

LeaseListener = Callable[[LeaseEvent], None]


class LeaseManager(ABC):
    """Registers secret requests and notifies listeners about their leases."""

    @abstractmethod
    def register(self, metadata: CredentialMetadata) -> RequestedSecret:
        """Register a credential request and return its handle."""

    @abstractmethod
    def add_lease_listener(
        self, listener: LeaseListener, request: Optional[RequestedSecret] = None
    ) -> None:
        """
        Add a listener receiving every LeaseEvent.

        When `request` is given the listener is dropped once that request is
        deregistered.
        """

    @abstractmethod
    def remove_lease_listener(self, listener: LeaseListener) -> None:
        """Remove a listener; unknown listeners are ignored."""


class NotificationSink(ABC):
    """Application-level receiver of rebind notifications."""

    @abstractmethod
    def publish(self, event: RebindAwsStsEvent) -> None:
        """Publish without blocking; the return value is never observed."""


class NoOpNotificationSink(NotificationSink):
    def publish(self, event: RebindAwsStsEvent) -> None:
        return None


class SecretSource(ABC):
    """Backend issuing leased secrets."""

    @abstractmethod
    async def read_lease(self, path: str) -> LeasedSecret:
        """Read (and thereby issue) the secret at `path`."""

    @abstractmethod
    async def renew_lease(self, lease_id: str, increment: Optional[float] = None) -> Lease:
        """Extend a lease; returns the renewed lease."""

    @abstractmethod
    async def revoke_lease(self, lease_id: str) -> None:
        """Revoke a lease."""
