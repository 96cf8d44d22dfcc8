"""
An asynchronous Vault client for leased secrets: reading dynamic credentials,
renewing and revoking their leases, with Kubernetes or direct-token auth.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Tuple, Type

import aiofiles
import aiohttp

from vaultaws.errors import VaultRequestError
from vaultaws.models.lease import Lease, LeasedSecret
from vaultaws.models.validator import validate_type
from vaultaws.models.vault import VaultSettings
from vaultaws.secrets.interfaces import SecretSource
from vaultaws.utils.async_retry import async_retry

logger = logging.getLogger(__name__)


async def _vault_body(
    resp: aiohttp.ClientResponse, action: str, ok: Tuple[int, ...] = (200,)
) -> Dict[str, Any]:
    """
    Decode a Vault JSON response.

    Raises:
        VaultRequestError: If the status is not in `ok`, or a successful response
            is not a JSON object. Empty 204 responses decode to {}.
    """
    if resp.status == 204 and resp.status in ok:
        return {}
    try:
        body: Optional[Dict[str, Any]] = validate_type(
            await resp.json(content_type=None), Dict[str, Any]
        )
    except ValueError:
        body = None

    if resp.status not in ok:
        errors = body.get("errors", body) if body is not None else await resp.text()
        raise VaultRequestError(f"{action} failed: {resp.status}, {errors}", resp.status)
    if body is None:
        raise VaultRequestError(f"{action}: Vault returned a malformed body", resp.status)
    return body


def _lease_from(body: Dict[str, Any], default_id: str = "") -> Lease:
    return Lease(
        lease_id=body.get("lease_id") or default_id,
        lease_duration=body.get("lease_duration") or 0,
        renewable=bool(body.get("renewable")),
    )


class AsyncVaultClient(SecretSource):
    """Vault client for the AWS secrets engine.

    Authenticates with a direct token or a Kubernetes service account JWT, keeps
    the token fresh, and reads, renews and revokes leased credentials.
    """

    def __init__(self, settings: VaultSettings) -> None:
        self._vault_addr = settings.vault_addr.rstrip("/")
        self._vault_role_name = settings.vault_role_name
        self._token_path = settings.token_path
        self._verify_ssl = settings.verify_ssl
        self._renew_threshold_seconds = settings.renew_threshold_seconds
        self._check_interval_seconds = settings.check_interval_seconds
        self._direct_token = settings.direct_vault_token
        self._read_retries = settings.read_retries
        self._read_retry_delay = settings.read_retry_delay_seconds

        self._session: Optional[aiohttp.ClientSession] = None
        self._client_token: Optional[str] = self._direct_token
        self._last_token_check: float = 0.0

    async def __aenter__(self) -> AsyncVaultClient:
        self._session = aiohttp.ClientSession()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        if self._session:
            await self._session.close()
        self._session = None

    async def ensure_session(self) -> aiohttp.ClientSession:
        """Return the open session, creating one when used outside `async with`."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    def _url(self, path: str) -> str:
        return f"{self._vault_addr}/v1/{path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        if not self._client_token:
            raise VaultRequestError("Vault token unavailable.")
        return {"X-Vault-Token": self._client_token}

    # ------------------------------
    # Authentication
    # ------------------------------
    async def ensure_valid_token(self) -> None:
        """
        Make sure a usable token is held before a request.

        Direct tokens are used as given. Kubernetes tokens are looked up at most
        once per `check_interval_seconds` and renewed when their TTL falls below
        `renew_threshold_seconds`; a rejected or unreadable token triggers a new
        login.

        Raises:
            VaultRequestError: If login or renewal fails.
        """
        if self._direct_token is not None:
            return
        if self._client_token is None:
            await self._kubernetes_login()
            return

        now = time.time()
        if now - self._last_token_check < self._check_interval_seconds:
            return
        self._last_token_check = now

        try:
            ttl = (await self._lookup_self()).get("ttl")
        except VaultRequestError as exc:
            if exc.status != 403:
                raise
            ttl = None

        if not isinstance(ttl, int):
            await self._kubernetes_login()
        elif ttl < self._renew_threshold_seconds:
            await self._renew_self()

    async def _kubernetes_login(self) -> None:
        """
        Exchange the service account JWT for a Vault token.

        Raises:
            VaultRequestError: If no role is configured or Vault rejects the login.
        """
        if not self._vault_role_name:
            raise VaultRequestError("Cannot login via K8s: vault_role_name not set.")

        async with aiofiles.open(self._token_path, "r") as f:
            jwt = (await f.read()).strip()

        session = await self.ensure_session()
        async with session.post(
            self._url("auth/kubernetes/login"),
            json={"jwt": jwt, "role": self._vault_role_name},
            ssl=self._verify_ssl,
        ) as resp:
            body = await _vault_body(resp, "Vault login")

        self._client_token = self._token_from(body)
        self._last_token_check = time.time()
        logger.info("Logged into Vault with Kubernetes role '%s'", self._vault_role_name)

    async def _renew_self(self) -> None:
        session = await self.ensure_session()
        async with session.post(
            self._url("auth/token/renew-self"),
            headers=self._headers(),
            ssl=self._verify_ssl,
        ) as resp:
            try:
                self._client_token = self._token_from(
                    await _vault_body(resp, "Token renewal")
                )
                return
            except VaultRequestError as exc:
                logger.warning("%s, logging in again", exc)
        await self._kubernetes_login()

    async def _lookup_self(self) -> Dict[str, Any]:
        session = await self.ensure_session()
        async with session.get(
            self._url("auth/token/lookup-self"),
            headers=self._headers(),
            ssl=self._verify_ssl,
        ) as resp:
            body = await _vault_body(resp, "Token lookup")
        data = body.get("data")
        if not isinstance(data, dict):
            raise VaultRequestError("Token lookup did not return 'data'")
        return data

    @staticmethod
    def _token_from(body: Dict[str, Any]) -> str:
        auth = body.get("auth")
        if not isinstance(auth, dict) or not auth.get("client_token"):
            raise VaultRequestError("Vault did not return a valid client_token.")
        return str(auth["client_token"])

    # ------------------------------
    # Lease Methods
    # ------------------------------
    async def read_lease(self, path: str) -> LeasedSecret:
        """Read the secret at '/v1/{path}', retrying on connection failures.

        Raises:
            VaultRequestError: If Vault answers with a non-200 status.
        """
        reader = async_retry(
            retries=self._read_retries,
            delay=self._read_retry_delay,
            retry_on=(aiohttp.ClientError, asyncio.TimeoutError),
            noisy=True,
        )(self._read_lease_once)
        return await reader(path)

    async def _read_lease_once(self, path: str) -> LeasedSecret:
        await self.ensure_valid_token()
        session = await self.ensure_session()
        async with session.get(
            self._url(path), headers=self._headers(), ssl=self._verify_ssl
        ) as resp:
            body = await _vault_body(resp, f"Reading secret at '{path}'")

        data = body.get("data")
        return LeasedSecret(
            lease=_lease_from(body), data=data if isinstance(data, dict) else {}
        )

    async def renew_lease(self, lease_id: str, increment: Optional[float] = None) -> Lease:
        """Renew a lease via 'sys/leases/renew'.

        Raises:
            VaultRequestError: If the renewal is refused.
        """
        await self.ensure_valid_token()
        session = await self.ensure_session()

        payload: Dict[str, Any] = {"lease_id": lease_id}
        if increment is not None:
            payload["increment"] = int(increment)
        async with session.put(
            self._url("sys/leases/renew"),
            json=payload,
            headers=self._headers(),
            ssl=self._verify_ssl,
        ) as resp:
            body = await _vault_body(resp, f"Renewing lease '{lease_id}'")
        return _lease_from(body, default_id=lease_id)

    async def revoke_lease(self, lease_id: str) -> None:
        """Revoke a lease via 'sys/leases/revoke'."""
        await self.ensure_valid_token()
        session = await self.ensure_session()
        async with session.put(
            self._url("sys/leases/revoke"),
            json={"lease_id": lease_id},
            headers=self._headers(),
            ssl=self._verify_ssl,
        ) as resp:
            await _vault_body(resp, f"Revoking lease '{lease_id}'", ok=(200, 204))
