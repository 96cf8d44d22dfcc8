"""Tests for LeaseMetadataFactory and factory selection from settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from vaultaws.errors import CredentialValidationError, UnsupportedCredentialTypeError
from vaultaws.models.aws_credentials import (
    AssumedRoleMetadata,
    AwsCredentialType,
    CredentialDescriptor,
    CredentialMetadata,
    FederationTokenMetadata,
    IamUserMetadata,
    LeaseMode,
)
from vaultaws.models.validator import validate_type
from vaultaws.models.vault_settings import VaultAwsSettings
from vaultaws.secrets.metadata_factory import (
    METADATA_BUILDERS,
    LeaseMetadataFactory,
    create_metadata,
    metadata_factory_for,
)

if TYPE_CHECKING:
    from conftest import RecordingSink


class TestCreateMetadata:
    def test_iam_user(self, iam_descriptor: CredentialDescriptor) -> None:
        metadata = create_metadata(iam_descriptor)

        assert isinstance(metadata, IamUserMetadata)
        assert metadata.name == "aws with Role readonly"
        assert metadata.path == "aws/creds/readonly"
        assert metadata.variables == {"backend": "aws", "key": "creds/readonly"}
        assert metadata.lease_mode is LeaseMode.NONE
        assert metadata.key_transformer == (
            ("access_key", "cloud.aws.credentials.accessKey"),
            ("secret_key", "cloud.aws.credentials.secretKey"),
        )

    def test_assumed_role(
        self, assumed_role_descriptor: CredentialDescriptor, sink: RecordingSink
    ) -> None:
        metadata = create_metadata(assumed_role_descriptor, sink)

        assert isinstance(metadata, AssumedRoleMetadata)
        assert metadata.path == "aws/sts/deploy"
        assert metadata.variables == {"backend": "aws", "key": "sts/deploy"}
        assert metadata.lease_mode is LeaseMode.RENEW
        assert ("security_token", "cloud.aws.credentials.sessionToken") in (
            metadata.key_transformer
        )
        assert metadata.publish == sink.publish

    def test_federation_token(self, federation_descriptor: CredentialDescriptor) -> None:
        metadata = create_metadata(federation_descriptor)

        assert isinstance(metadata, FederationTokenMetadata)
        assert metadata.path == "aws/sts/federated"
        assert metadata.lease_mode is LeaseMode.ROTATE
        assert metadata.key_transformer[-1][0] == "security_token"

    def test_accepts_property_mappings(self) -> None:
        metadata = create_metadata({"role": "deploy", "credential-type": "assumed_role"})
        assert isinstance(metadata, AssumedRoleMetadata)

    def test_unsupported_type_builds_nothing(self) -> None:
        with pytest.raises(UnsupportedCredentialTypeError):
            create_metadata({"role": "deploy", "credential-type": "bogus"})

    def test_unvalidated_descriptor_is_revalidated(self) -> None:
        descriptor = CredentialDescriptor.model_construct(
            role="deploy", credential_type="bogus"
        )
        with pytest.raises(UnsupportedCredentialTypeError):
            create_metadata(descriptor)

    def test_metadata_is_immutable(self, iam_descriptor: CredentialDescriptor) -> None:
        metadata = create_metadata(iam_descriptor)
        with pytest.raises(ValidationError):
            metadata.path = "aws/creds/other"  # type: ignore[misc]

    def test_variables_are_read_only(self, iam_descriptor: CredentialDescriptor) -> None:
        metadata = create_metadata(iam_descriptor)
        with pytest.raises(TypeError):
            metadata.variables["key"] = "sts/other"  # type: ignore[index]

        assert metadata.variables["key"] == "creds/readonly"
        assert metadata.path == f"aws/{metadata.variables['key']}"
        assert metadata.model_dump(mode="json")["variables"] == {
            "backend": "aws",
            "key": "creds/readonly",
        }

    def test_publisher_is_not_serialized(
        self, assumed_role_descriptor: CredentialDescriptor, sink: RecordingSink
    ) -> None:
        dumped = create_metadata(assumed_role_descriptor, sink).model_dump()

        assert "publish" not in dumped
        assert dumped["credential_type"] == AwsCredentialType.assumed_role

    def test_every_credential_type_has_a_builder(self) -> None:
        assert set(METADATA_BUILDERS) == set(AwsCredentialType)

    def test_union_dispatches_on_credential_type(self) -> None:
        metadata = validate_type(
            {
                "name": "aws with Role federated",
                "path": "aws/sts/federated",
                "key_transformer": [["access_key", "a"], ["secret_key", "b"]],
                "variables": {"backend": "aws", "key": "sts/federated"},
                "credential_type": AwsCredentialType.federation_token,
            },
            CredentialMetadata,  # type: ignore[arg-type]
        )
        assert isinstance(metadata, FederationTokenMetadata)
        assert metadata.key_transformer == (("access_key", "a"), ("secret_key", "b"))


class TestFactorySelection:
    def test_default_factory_supports_all_types(
        self,
        iam_descriptor: CredentialDescriptor,
        federation_descriptor: CredentialDescriptor,
    ) -> None:
        factory = LeaseMetadataFactory()

        assert factory.supports(iam_descriptor)
        assert factory.supports(federation_descriptor)
        assert not factory.supports({"role": "deploy"})

    def test_restricted_factory_rejects_other_types(
        self, iam_descriptor: CredentialDescriptor
    ) -> None:
        factory = LeaseMetadataFactory(
            credential_types=[AwsCredentialType.assumed_role]
        )

        assert not factory.supports(iam_descriptor)
        with pytest.raises(CredentialValidationError):
            factory.create(iam_descriptor)

    @pytest.mark.parametrize("credential_type", list(AwsCredentialType))
    def test_factory_for_settings(
        self, credential_type: AwsCredentialType, sink: RecordingSink
    ) -> None:
        settings = VaultAwsSettings(role="deploy", credential_type=credential_type.value)
        factory = metadata_factory_for(settings, sink)

        assert factory.credential_types == frozenset({credential_type})
        assert factory.sink is sink
        assert factory.create(settings.to_descriptor()).credential_type is credential_type

    def test_factory_for_unknown_setting(self) -> None:
        with pytest.raises(UnsupportedCredentialTypeError):
            metadata_factory_for(VaultAwsSettings(role="deploy", credential_type="bogus"))
