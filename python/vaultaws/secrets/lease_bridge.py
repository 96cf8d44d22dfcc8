"""
vaultaws/secrets/lease_bridge.py

Forwards lease creation events for one registered STS credential request to the
application as RebindAwsStsEvents.
"""

from __future__ import annotations

import logging
from typing import Optional

from vaultaws.models.aws_credentials import (
    CredentialMetadata,
    IamUserMetadata,
    LeasingCredentialMetadata,
)
from vaultaws.models.lease import LeaseEvent, RebindAwsStsEvent, RequestedSecret
from vaultaws.secrets.interfaces import LeaseManager

logger = logging.getLogger(__name__)


class LeaseRenewalBridge:
    """
    Subscription tying one RequestedSecret to the rebind publisher of its metadata.

    Every CREATED or ROTATED event whose source is this bridge's request (by
    identity) yields exactly one RebindAwsStsEvent. Events of other requests and
    all other event kinds are ignored. The bridge only reads the immutable
    request and metadata it owns, so it needs no locking when events arrive on
    another thread.
    """

    def __init__(
        self,
        request: RequestedSecret,
        metadata: LeasingCredentialMetadata,
        manager: LeaseManager,
    ) -> None:
        self._request = request
        self._metadata = metadata
        self._manager = manager
        self._attached = False

    @property
    def request(self) -> RequestedSecret:
        return self._request

    @property
    def metadata(self) -> LeasingCredentialMetadata:
        return self._metadata

    @property
    def attached(self) -> bool:
        return self._attached

    def attach(self) -> LeaseRenewalBridge:
        """Start listening on the lease manager. Calling it twice is a no-op."""
        if not self._attached:
            self._manager.add_lease_listener(self.on_lease_event, request=self._request)
            self._attached = True
        return self

    def close(self) -> None:
        """Stop listening. Calling it twice is a no-op."""
        if self._attached:
            self._manager.remove_lease_listener(self.on_lease_event)
            self._attached = False

    def on_lease_event(self, event: LeaseEvent) -> None:
        if event.source is not self._request or not event.kind.is_creation:
            return

        logger.debug(
            "Publishing a RebindAwsStsEvent for '%s' (%s)",
            self._metadata.name,
            event.kind.value,
        )
        self._metadata.publish(
            RebindAwsStsEvent(
                request=self._request,
                name=self._metadata.name,
                path=self._metadata.path,
                credential_type=self._metadata.credential_type,
            )
        )


def attach_renewal_bridge(
    metadata: CredentialMetadata, request: RequestedSecret, manager: LeaseManager
) -> Optional[LeaseRenewalBridge]:
    """
    Run the metadata's after-registration hook.

    Returns:
        Optional[LeaseRenewalBridge]: The attached bridge, or None for iam_user
        metadata, which is never renewed or rotated.
    """
    if isinstance(metadata, IamUserMetadata):
        return None
    return metadata.after_registration(request, manager)
