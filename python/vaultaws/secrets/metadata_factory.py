"""
vaultaws/secrets/metadata_factory.py

Builds CredentialMetadata for a CredentialDescriptor through a dispatch table
keyed by credential type.

Usage example:
    from vaultaws.secrets.metadata_factory import LeaseMetadataFactory

    factory = LeaseMetadataFactory(sink=my_sink)
    metadata = factory.create(
        CredentialDescriptor(role="deploy", credential_type="assumed_role")
    )
    metadata.path  # "aws/sts/deploy"
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Union

from vaultaws.errors import CredentialValidationError
from vaultaws.models.aws_credentials import (
    AssumedRoleMetadata,
    AwsCredentialType,
    CredentialDescriptor,
    CredentialMetadata,
    FederationTokenMetadata,
    IamUserMetadata,
)
from vaultaws.models.vault_settings import VaultAwsSettings
from vaultaws.secrets.credential_types import (
    parse_credential_type,
    required_lease_mode,
    validate,
)
from vaultaws.secrets.interfaces import NoOpNotificationSink, NotificationSink
from vaultaws.secrets.key_remapper import build_transformer
from vaultaws.secrets.paths import build_name, build_path, build_variables

logger = logging.getLogger(__name__)

Publisher = Callable[[Any], None]
MetadataBuilder = Callable[[CredentialDescriptor, Publisher], CredentialMetadata]


def _common_fields(descriptor: CredentialDescriptor) -> Dict[str, Any]:
    backend, role, credential_type = (
        descriptor.backend,
        descriptor.role,
        descriptor.credential_type,
    )
    return {
        "name": build_name(backend, role),
        "path": build_path(backend, role, credential_type),
        "key_transformer": tuple(build_transformer(descriptor)),
        "variables": build_variables(backend, role, credential_type),
        "lease_mode": required_lease_mode(credential_type),
    }


def _iam_user(descriptor: CredentialDescriptor, publish: Publisher) -> CredentialMetadata:
    return IamUserMetadata(**_common_fields(descriptor))


def _assumed_role(
    descriptor: CredentialDescriptor, publish: Publisher
) -> CredentialMetadata:
    return AssumedRoleMetadata(publish=publish, **_common_fields(descriptor))


def _federation_token(
    descriptor: CredentialDescriptor, publish: Publisher
) -> CredentialMetadata:
    return FederationTokenMetadata(publish=publish, **_common_fields(descriptor))


METADATA_BUILDERS: Dict[AwsCredentialType, MetadataBuilder] = {
    AwsCredentialType.iam_user: _iam_user,
    AwsCredentialType.assumed_role: _assumed_role,
    AwsCredentialType.federation_token: _federation_token,
}


class LeaseMetadataFactory:
    """
    Creates CredentialMetadata for the credential types this factory accepts.

    A factory accepting only some types rejects descriptors of the others with
    CredentialValidationError instead of silently building another variant.
    """

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        credential_types: Optional[Iterable[AwsCredentialType]] = None,
    ) -> None:
        """
        Args:
            sink (Optional[NotificationSink]): Receives rebind notifications of
                STS metadata. Defaults to a no-op sink.
            credential_types (Optional[Iterable[AwsCredentialType]]): Accepted
                types. Defaults to all of them.
        """
        self._sink: NotificationSink = sink or NoOpNotificationSink()
        self._credential_types: FrozenSet[AwsCredentialType] = frozenset(
            credential_types if credential_types is not None else AwsCredentialType
        )

    @property
    def sink(self) -> NotificationSink:
        return self._sink

    @property
    def credential_types(self) -> FrozenSet[AwsCredentialType]:
        return self._credential_types

    def supports(self, descriptor: Any) -> bool:
        return (
            isinstance(descriptor, CredentialDescriptor)
            and descriptor.credential_type in self._credential_types
        )

    def create(
        self, descriptor: Union[CredentialDescriptor, Mapping[str, Any]]
    ) -> CredentialMetadata:
        """
        Validate the descriptor and build the metadata variant for its type.

        Raises:
            UnsupportedCredentialTypeError: Unknown credential type.
            InvalidArgumentError: A required field is empty.
            CredentialValidationError: Inconsistent fields, or a credential type
                this factory does not accept.
        """
        validated = validate(descriptor)
        credential_type = validated.credential_type
        if credential_type not in self._credential_types:
            accepted = ", ".join(sorted(t.value for t in self._credential_types))
            raise CredentialValidationError(
                f"credential-type '{credential_type.value}' is not accepted by this "
                f"factory (expected: {accepted})"
            )

        metadata = METADATA_BUILDERS[credential_type](validated, self._sink.publish)
        logger.debug(
            "Created %s metadata '%s' for path '%s'",
            credential_type.value,
            metadata.name,
            metadata.path,
        )
        return metadata


def create_metadata(
    descriptor: Union[CredentialDescriptor, Mapping[str, Any]],
    sink: Optional[NotificationSink] = None,
) -> CredentialMetadata:
    """Build metadata for any supported credential type."""
    return LeaseMetadataFactory(sink).create(descriptor)


def metadata_factory_for(
    settings: VaultAwsSettings, sink: Optional[NotificationSink] = None
) -> LeaseMetadataFactory:
    """
    Select the factory for the configured credential-type.

    Raises:
        UnsupportedCredentialTypeError: If settings.credential_type is unknown.
    """
    credential_type = parse_credential_type(settings.credential_type)
    return LeaseMetadataFactory(sink, credential_types=[credential_type])
