"""
vaultaws/secrets/lease_container.py

An asyncio lease manager for registered credential requests:
  - fetches every registered secret on start (CREATED),
  - renews RENEW leases shortly before they expire (RENEWED), rotating instead
    when the lease is not renewable or renewal fails,
  - re-reads ROTATE secrets shortly before they expire (ROTATED),
  - revokes leases on deregistration (REVOKED).

Failures are reported as ERROR events and retried after `min_renewal_seconds`.
All events are delivered on the container's event loop; register/deregister
after start() must be called from that loop as well.

Usage example:
    async with AsyncVaultClient(settings) as client:
        container = SecretLeaseContainer(client)
        request = container.register(metadata)
        async with container:
            creds = container.properties(request)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple, Type

from vaultaws.models.aws_credentials import CredentialMetadata, LeaseMode
from vaultaws.models.lease import (
    Lease,
    LeasedSecret,
    LeaseEvent,
    LeaseEventKind,
    RequestedSecret,
)
from vaultaws.secrets.interfaces import LeaseListener, LeaseManager, SecretSource
from vaultaws.secrets.key_remapper import transform_properties
from vaultaws.secrets.lease_bridge import LeaseRenewalBridge, attach_renewal_bridge

logger = logging.getLogger(__name__)


class _Registration:
    """Mutable per-request state owned by the container."""

    def __init__(self, request: RequestedSecret, metadata: CredentialMetadata) -> None:
        self.request = request
        self.metadata = metadata
        self.secret: Optional[LeasedSecret] = None
        self.task: Optional[asyncio.Task[None]] = None
        self.bridge: Optional[LeaseRenewalBridge] = None
        # Set once the first read attempt finished or the task was cancelled.
        self.settled = asyncio.Event()


class SecretLeaseContainer(LeaseManager):
    """Keeps registered secrets alive and broadcasts their LeaseEvents."""

    def __init__(
        self,
        source: SecretSource,
        *,
        expiry_threshold_seconds: float = 60.0,
        min_renewal_seconds: float = 10.0,
    ) -> None:
        """
        Args:
            source (SecretSource): Issues, renews and revokes secrets (usually
                AsyncVaultClient).
            expiry_threshold_seconds (float): Refresh this many seconds before a
                lease expires; a renewal granting less than this is treated as
                exhausted and the secret is rotated.
            min_renewal_seconds (float): Lower bound between refreshes, also the
                retry delay after failures.
        """
        self._source = source
        self._expiry_threshold_seconds = expiry_threshold_seconds
        self._min_renewal_seconds = min_renewal_seconds
        self._registrations: Dict[str, _Registration] = {}
        self._listeners: List[Tuple[LeaseListener, Optional[RequestedSecret]]] = []
        self._started = False

    async def __aenter__(self) -> SecretLeaseContainer:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        await self.stop()

    @property
    def listeners(self) -> List[LeaseListener]:
        return [listener for listener, _ in self._listeners]

    @property
    def requests(self) -> List[RequestedSecret]:
        return [reg.request for reg in self._registrations.values()]

    # ------------------------------
    # LeaseManager
    # ------------------------------
    def register(self, metadata: CredentialMetadata) -> RequestedSecret:
        """Register metadata, attaching a renewal bridge for STS credentials."""
        request = RequestedSecret(path=metadata.path, mode=metadata.lease_mode)
        reg = _Registration(request, metadata)
        self._registrations[request.request_id] = reg
        reg.bridge = attach_renewal_bridge(metadata, request, self)
        logger.info(
            "Registered '%s' at '%s' (lease mode %s)",
            metadata.name,
            metadata.path,
            metadata.lease_mode.value,
        )

        if self._started:
            reg.task = asyncio.get_running_loop().create_task(self._maintain(reg))
        return request

    def add_lease_listener(
        self, listener: LeaseListener, request: Optional[RequestedSecret] = None
    ) -> None:
        self._listeners.append((listener, request))

    def remove_lease_listener(self, listener: LeaseListener) -> None:
        self._listeners = [
            (existing, scope)
            for existing, scope in self._listeners
            if existing != listener
        ]

    # ------------------------------
    # Lifecycle
    # ------------------------------
    async def start(self) -> None:
        """
        Start maintaining every pending request and wait until each has made its
        first read attempt (or was deregistered meanwhile).
        """
        self._started = True
        pending = [reg for reg in self._registrations.values() if reg.task is None]
        loop = asyncio.get_running_loop()
        for reg in pending:
            reg.task = loop.create_task(self._maintain(reg))
        await asyncio.gather(*(reg.settled.wait() for reg in pending))

    async def stop(self) -> None:
        """Deregister every request, revoking their leases."""
        await asyncio.gather(*(self.deregister(request) for request in self.requests))
        self._started = False

    async def deregister(self, request: RequestedSecret) -> None:
        """
        Stop maintaining `request`, revoke its lease and drop listeners scoped to it.
        Unknown requests are ignored.
        """
        reg = self._registrations.pop(request.request_id, None)
        if reg is None:
            return

        if reg.task is not None:
            reg.task.cancel()
            await asyncio.gather(reg.task, return_exceptions=True)
        reg.settled.set()

        request = reg.request
        lease = reg.secret.lease if reg.secret is not None else None
        if lease is not None and lease.is_leased:
            try:
                await self._source.revoke_lease(lease.lease_id)
            except Exception as exc:
                logger.warning("Revoking lease of '%s' failed: %s", request.path, exc)
                self._emit(
                    LeaseEvent(source=request, kind=LeaseEventKind.ERROR, error=str(exc))
                )

        self._emit(LeaseEvent(source=request, kind=LeaseEventKind.REVOKED, lease=lease))
        if reg.bridge is not None:
            reg.bridge.close()
        self._listeners = [
            (listener, scope)
            for listener, scope in self._listeners
            if scope is not request
        ]
        logger.info("Deregistered '%s'", reg.metadata.name)

    # ------------------------------
    # Access
    # ------------------------------
    def get_secret(self, request: RequestedSecret) -> Optional[LeasedSecret]:
        reg = self._registrations.get(request.request_id)
        return reg.secret if reg is not None else None

    def properties(self, request: RequestedSecret) -> Dict[str, Any]:
        """Current secret data, renamed through the request's key transformer."""
        reg = self._registrations.get(request.request_id)
        if reg is None or reg.secret is None:
            return {}
        return transform_properties(reg.secret.data, reg.metadata.key_transformer)

    # ------------------------------
    # Internals
    # ------------------------------
    def _emit(self, event: LeaseEvent) -> None:
        for listener, _ in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Lease listener %r failed on %s event for '%s'",
                    listener,
                    event.kind.value,
                    event.source.path,
                )

    async def _issue(self, reg: _Registration, kind: LeaseEventKind) -> bool:
        """Read a fresh secret for `reg` and emit `kind`; emits ERROR on failure."""
        try:
            secret = await self._source.read_lease(reg.request.path)
        except Exception as exc:
            logger.warning("Reading '%s' failed: %s", reg.request.path, exc)
            self._emit(
                LeaseEvent(source=reg.request, kind=LeaseEventKind.ERROR, error=str(exc))
            )
            return False

        reg.secret = secret
        logger.info(
            "Secret '%s' %s (lease %ss)",
            reg.request.path,
            kind.value,
            secret.lease.lease_duration,
        )
        self._emit(LeaseEvent(source=reg.request, kind=kind, lease=secret.lease))
        return True

    async def _issue_until_success(self, reg: _Registration, kind: LeaseEventKind) -> None:
        while not await self._issue(reg, kind):
            await asyncio.sleep(self._min_renewal_seconds)

    async def _renew(self, reg: _Registration) -> bool:
        """Renew the lease of `reg`; False means the secret should be rotated."""
        assert reg.secret is not None
        current = reg.secret.lease
        try:
            renewed = await self._source.renew_lease(
                current.lease_id, increment=current.lease_duration
            )
        except Exception as exc:
            logger.warning("Renewing lease of '%s' failed: %s", reg.request.path, exc)
            self._emit(
                LeaseEvent(source=reg.request, kind=LeaseEventKind.ERROR, error=str(exc))
            )
            return False

        if renewed.lease_duration < self._expiry_threshold_seconds:
            logger.info(
                "Lease of '%s' renewed for %ss only, rotating instead",
                reg.request.path,
                renewed.lease_duration,
            )
            return False

        reg.secret = reg.secret.model_copy(update={"lease": renewed})
        self._emit(LeaseEvent(source=reg.request, kind=LeaseEventKind.RENEWED, lease=renewed))
        return True

    def _needs_refresh(self, reg: _Registration) -> bool:
        return (
            reg.metadata.lease_mode is not LeaseMode.NONE
            and reg.secret is not None
            and reg.secret.lease.is_leased
        )

    def _refresh_delay(self, lease: Lease) -> float:
        return max(
            lease.lease_duration - self._expiry_threshold_seconds,
            self._min_renewal_seconds,
        )

    async def _maintain(self, reg: _Registration) -> None:
        issued = await self._issue(reg, LeaseEventKind.CREATED)
        reg.settled.set()
        if not issued:
            await asyncio.sleep(self._min_renewal_seconds)
            await self._issue_until_success(reg, LeaseEventKind.CREATED)

        while self._needs_refresh(reg):
            assert reg.secret is not None
            await asyncio.sleep(self._refresh_delay(reg.secret.lease))
            if (
                reg.metadata.lease_mode is LeaseMode.RENEW
                and reg.secret.lease.renewable
                and await self._renew(reg)
            ):
                continue
            await self._issue_until_success(reg, LeaseEventKind.ROTATED)
