"""
vaultaws/secrets/key_remapper.py

Maps the AWS secrets engine response keys onto application property names.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from vaultaws.errors import InvalidArgumentError
from vaultaws.models.aws_credentials import AwsCredentialType, CredentialDescriptor

ACCESS_KEY = "access_key"
SECRET_KEY = "secret_key"
SECURITY_TOKEN = "security_token"


def build_transformer(descriptor: CredentialDescriptor) -> List[Tuple[str, str]]:
    """
    Build the ordered (source_key, target_key) rename table for a descriptor.

    access_key and secret_key are always mapped; security_token only for the STS
    credential types, which are the only ones returning a session token.

    Raises:
        InvalidArgumentError: If any target property name is empty.
    """
    entries: List[Tuple[str, Optional[str], str]] = [
        (ACCESS_KEY, descriptor.access_key_property, "access_key_property"),
        (SECRET_KEY, descriptor.secret_key_property, "secret_key_property"),
    ]
    if descriptor.credential_type is not AwsCredentialType.iam_user:
        entries.append(
            (
                SECURITY_TOKEN,
                descriptor.session_token_key_property,
                "session_token_key_property",
            )
        )

    empty = next((field for _, target, field in entries if not target), None)
    if empty is not None:
        raise InvalidArgumentError(empty)
    return [(source, str(target)) for source, target, _ in entries]


def transform_properties(
    data: Mapping[str, Any], transformer: Sequence[Tuple[str, str]]
) -> Dict[str, Any]:
    """
    Rename keys of a raw secret response according to `transformer`.

    Keys without an entry are passed through unchanged. Entries are applied in
    transformer order, so if two keys end up under the same target the later
    entry wins whatever the order of `data`.
    """
    sources = {source for source, _ in transformer}
    result = {key: value for key, value in data.items() if key not in sources}
    for source, target in transformer:
        if source in data:
            result[target] = data[source]
    return result
