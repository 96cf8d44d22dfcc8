#!/usr/bin/env python3
"""
vaultaws/cli/aws.py

CLI for AWS secrets engine credential requests:
  - describe: print the request metadata (name, path, key transformer, variables,
    lease mode) for a backend/role/credential-type combination.
  - fetch: read credentials once from Vault and print them under their
    application property names.

Usage example:
  python -m vaultaws.cli.aws describe --role deploy --credential-type assumed_role

  python -m vaultaws.cli.aws fetch --role readonly \
      --vault-token s.xxxx --vault-addr http://127.0.0.1:8200
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Callable, Coroutine, Dict

import aiohttp

from vaultaws.errors import CredentialConfigError, VaultRequestError
from vaultaws.models.aws_credentials import (
    DEFAULT_ACCESS_KEY_PROPERTY,
    DEFAULT_SECRET_KEY_PROPERTY,
    DEFAULT_SESSION_TOKEN_KEY_PROPERTY,
    CredentialDescriptor,
    CredentialMetadata,
)
from vaultaws.models.vault import VaultSettings
from vaultaws.secrets.key_remapper import transform_properties
from vaultaws.secrets.metadata_factory import create_metadata
from vaultaws.secrets.vault_client import AsyncVaultClient


#
# Subcommand handlers
#
async def run_describe(args: argparse.Namespace) -> None:
    """Print the metadata JSON for the requested credentials."""
    metadata = _build_metadata(args)
    print(json.dumps(metadata.model_dump(mode="json"), indent=2))


async def run_fetch(args: argparse.Namespace) -> None:
    """
    Read the credentials once and print them as JSON, keyed by property name.

    Secret values are masked unless --show-secrets is given.
    """
    metadata = _build_metadata(args)
    vault_settings = _build_vault_settings(args)
    try:
        async with AsyncVaultClient(vault_settings) as vault:
            secret = await vault.read_lease(metadata.path)
    except (VaultRequestError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
        reason = str(exc) or type(exc).__name__
        print(f"Error: cannot read '{metadata.path}': {reason}", file=sys.stderr)
        sys.exit(1)

    properties = transform_properties(secret.data, metadata.key_transformer)
    if not args.show_secrets:
        properties = {key: _mask(value) for key, value in properties.items()}
    output: Dict[str, Any] = {
        "name": metadata.name,
        "lease": secret.lease.model_dump(),
        "properties": properties,
    }
    print(json.dumps(output, indent=2))


#
# Helpers
#
def _mask(value: Any) -> Any:
    if isinstance(value, str) and len(value) > 4:
        return value[:4] + "*" * (len(value) - 4)
    return value


def _build_metadata(args: argparse.Namespace) -> CredentialMetadata:
    """Build metadata from CLI arguments, exiting on configuration errors."""
    try:
        descriptor = CredentialDescriptor(
            backend=args.backend,
            role=args.role,
            credential_type=args.credential_type,
            access_key_property=args.access_key_property,
            secret_key_property=args.secret_key_property,
            session_token_key_property=args.session_token_key_property,
        )
        return create_metadata(descriptor)
    except CredentialConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)


def _build_vault_settings(args: argparse.Namespace) -> VaultSettings:
    """
    Construct a VaultSettings object from CLI arguments.
    """
    return VaultSettings(
        vault_addr=args.vault_addr,
        vault_role_name=None if args.vault_token else args.vault_role_name,
        direct_vault_token=args.vault_token,
        token_path=args.vault_token_path,
        verify_ssl=not args.no_verify_ssl,
    )


def _add_credential_args(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        "--backend", default="aws", help="AWS secrets engine mount (default: aws)."
    )
    subparser.add_argument("--role", required=True, help="Vault role name.")
    subparser.add_argument(
        "--credential-type",
        default="iam_user",
        help="iam_user, assumed_role or federation_token (default: iam_user).",
    )
    subparser.add_argument(
        "--access-key-property",
        default=DEFAULT_ACCESS_KEY_PROPERTY,
        help=f"Property name for the access key (default: {DEFAULT_ACCESS_KEY_PROPERTY}).",
    )
    subparser.add_argument(
        "--secret-key-property",
        default=DEFAULT_SECRET_KEY_PROPERTY,
        help=f"Property name for the secret key (default: {DEFAULT_SECRET_KEY_PROPERTY}).",
    )
    subparser.add_argument(
        "--session-token-key-property",
        default=DEFAULT_SESSION_TOKEN_KEY_PROPERTY,
        help=(
            "Property name for the STS session token "
            f"(default: {DEFAULT_SESSION_TOKEN_KEY_PROPERTY})."
        ),
    )


def _add_vault_cli_args(subparser: argparse.ArgumentParser) -> None:
    """
    Add Vault-related arguments, supporting either K8s auth or direct token.
    """
    group = subparser.add_mutually_exclusive_group()
    group.add_argument(
        "--vault-role-name",
        help="Vault K8s auth role name (mutually exclusive with --vault-token).",
    )
    group.add_argument(
        "--vault-token",
        help="Direct Vault token (mutually exclusive with --vault-role-name).",
    )
    subparser.add_argument(
        "--vault-addr",
        default="http://vault.vault.svc.cluster.local:8200",
        help="Vault address (default: http://vault.vault.svc.cluster.local:8200).",
    )
    subparser.add_argument(
        "--vault-token-path",
        default="/var/run/secrets/kubernetes.io/serviceaccount/token",
        help=(
            "Path to JWT token for K8s auth. "
            "(default: /var/run/secrets/kubernetes.io/serviceaccount/token)."
        ),
    )
    subparser.add_argument(
        "--no-verify-ssl",
        action="store_true",
        default=False,
        help="Disable SSL certificate verification (default: verify SSL).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vaultaws.cli.aws",
        description="Describe and fetch AWS credentials from the Vault AWS secrets engine.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    describe_parser = subparsers.add_parser(
        "describe", help="Print the request metadata for a role."
    )
    _add_credential_args(describe_parser)
    describe_parser.set_defaults(func=run_describe)

    fetch_parser = subparsers.add_parser(
        "fetch", help="Read credentials once and print them by property name."
    )
    _add_credential_args(fetch_parser)
    _add_vault_cli_args(fetch_parser)
    fetch_parser.add_argument(
        "--show-secrets",
        action="store_true",
        default=False,
        help="Print secret values unmasked.",
    )
    fetch_parser.set_defaults(func=run_fetch)
    return parser


def main() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()
    func: Callable[[argparse.Namespace], Coroutine[Any, Any, None]] = args.func
    asyncio.run(func(args))


if __name__ == "__main__":
    main()
