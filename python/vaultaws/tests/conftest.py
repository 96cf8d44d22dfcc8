"""Shared fakes for the vaultaws tests: a lease manager, a sink and a secret source."""

from __future__ import annotations

import asyncio
import threading
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pytest

from vaultaws.models.aws_credentials import CredentialDescriptor, CredentialMetadata
from vaultaws.models.lease import (
    Lease,
    LeasedSecret,
    LeaseEvent,
    RebindAwsStsEvent,
    RequestedSecret,
)
from vaultaws.secrets.interfaces import (
    LeaseListener,
    LeaseManager,
    NotificationSink,
    SecretSource,
)


class RecordingSink(NotificationSink):
    def __init__(self) -> None:
        self.events: List[RebindAwsStsEvent] = []
        self._lock = threading.Lock()

    def publish(self, event: RebindAwsStsEvent) -> None:
        with self._lock:
            self.events.append(event)


class RecordingLeaseManager(LeaseManager):
    """Lease manager that only records listeners and lets tests emit events."""

    def __init__(self) -> None:
        self.listeners: List[Tuple[LeaseListener, Optional[RequestedSecret]]] = []

    def register(self, metadata: CredentialMetadata) -> RequestedSecret:
        return RequestedSecret(path=metadata.path, mode=metadata.lease_mode)

    def add_lease_listener(
        self, listener: LeaseListener, request: Optional[RequestedSecret] = None
    ) -> None:
        self.listeners.append((listener, request))

    def remove_lease_listener(self, listener: LeaseListener) -> None:
        self.listeners = [(l_, r) for l_, r in self.listeners if l_ != listener]

    def emit(self, event: LeaseEvent) -> None:
        for listener, _ in list(self.listeners):
            listener(event)


Response = Union[LeasedSecret, Exception]


class FakeSecretSource(SecretSource):
    """
    Serves queued responses per path. The last queued response is repeated once
    the queue is down to one entry.
    """

    def __init__(
        self,
        responses: Dict[str, Sequence[Response]],
        renewals: Sequence[Union[Lease, Exception]] = (),
        read_delay: float = 0.0,
    ) -> None:
        self._responses = {path: list(items) for path, items in responses.items()}
        self._renewals = list(renewals)
        self._read_delay = read_delay
        self.reads: List[str] = []
        self.renewed: List[Tuple[str, Optional[float]]] = []
        self.revoked: List[str] = []

    async def read_lease(self, path: str) -> LeasedSecret:
        self.reads.append(path)
        if self._read_delay:
            await asyncio.sleep(self._read_delay)
        queue = self._responses[path]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def renew_lease(self, lease_id: str, increment: Optional[float] = None) -> Lease:
        self.renewed.append((lease_id, increment))
        item = self._renewals.pop(0) if len(self._renewals) > 1 else self._renewals[0]
        if isinstance(item, Exception):
            raise item
        return item

    async def revoke_lease(self, lease_id: str) -> None:
        self.revoked.append(lease_id)


def sts_secret(lease_id: str = "aws/sts/deploy/abc", duration: float = 3600.0) -> LeasedSecret:
    return LeasedSecret(
        lease=Lease(lease_id=lease_id, lease_duration=duration, renewable=True),
        data={"access_key": "AKIA1", "secret_key": "SECRET1", "security_token": "TOKEN1"},
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def manager() -> RecordingLeaseManager:
    return RecordingLeaseManager()


@pytest.fixture
def iam_descriptor() -> CredentialDescriptor:
    return CredentialDescriptor(
        backend="aws",
        role="readonly",
        credential_type="iam_user",
        access_key_property="cloud.aws.credentials.accessKey",
        secret_key_property="cloud.aws.credentials.secretKey",
    )


@pytest.fixture
def assumed_role_descriptor() -> CredentialDescriptor:
    return CredentialDescriptor(
        backend="aws",
        role="deploy",
        credential_type="assumed_role",
        session_token_key_property="cloud.aws.credentials.sessionToken",
    )


@pytest.fixture
def federation_descriptor() -> CredentialDescriptor:
    return CredentialDescriptor(
        backend="aws", role="federated", credential_type="federation_token"
    )
