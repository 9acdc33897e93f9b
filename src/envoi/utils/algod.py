"""Chain lookups against an Algorand-compatible node (algod REST API).

Two lookups back the resolver:

- **Box read** (reverse lookups): ``GET /v2/applications/{id}/box`` with
  the box name passed as ``b64:<key>``. The JSON ``value`` field holds the
  base64 box contents.
- **ARC-72 ownership** (forward lookups): ``arc72_ownerOf(uint256)address``
  evaluated with ``POST /v2/transactions/simulate``. The call is built with
  ``algosdk`` as an unsigned application call from ``query_address`` and
  sent msgpack-encoded, so nothing is ever submitted. The ABI return value
  is the last log line carrying the ARC-4 return prefix.

Both lookups return ``None`` when the node answers but has nothing
(HTTP 404, failed simulation, zero owner). Transport problems raise
[ChainLookupError][envoi.core.exceptions.ChainLookupError] after the
configured retries.

See Also:
    [ChainResolver][envoi.services.common.chain.ChainResolver]: Turns
        these raw answers into names and addresses.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import os
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Final, Protocol

import aiohttp
from algosdk import abi, encoding, error, transaction
from algosdk.atomic_transaction_composer import ABI_RETURN_HASH
from algosdk.v2client.models import SimulateRequest, SimulateRequestTransactionGroup
from pydantic import BaseModel, Field, SecretStr, ValidationInfo, field_validator, model_validator

from envoi.core.exceptions import ChainLookupError, ChainTimeoutError
from envoi.models.address import ZERO_ADDRESS, is_address

from .http import DEFAULT_MAX_RESPONSE_SIZE, read_bounded_json, read_bounded_msgpack


if TYPE_CHECKING:
    from types import TracebackType


logger = logging.getLogger(__name__)

OWNER_OF: Final[abi.Method] = abi.Method.from_signature("arc72_ownerOf(uint256)address")
VALIDITY_WINDOW: Final[int] = 1000
MSGPACK_HEADERS: Final[dict[str, str]] = {"Content-Type": "application/msgpack"}
HTTP_CLIENT_ERROR: Final[int] = 400
HTTP_NOT_FOUND: Final[int] = 404
HTTP_SERVER_ERROR: Final[int] = 500

_BodyReader = Callable[[aiohttp.ClientResponse, int], Awaitable[Any]]


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


# ---------------------------------------------------------------------------
# Lookup Protocol
# ---------------------------------------------------------------------------


class ChainLookup(Protocol):
    """What [ChainResolver][envoi.services.common.chain.ChainResolver] needs from a chain."""

    async def get_by_storage_key(self, app_id: int, key: bytes) -> bytes | None: ...

    async def get_owner_of_digest(self, app_id: int, digest: int) -> str | None: ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ChainRetryConfig(BaseModel):
    """Retries for transport failures. ``max_attempts=2`` means one retry."""

    max_attempts: int = Field(default=2, ge=1, le=5, description="Attempts per lookup")
    initial_delay: float = Field(default=0.5, ge=0.0, description="Initial retry delay")
    max_delay: float = Field(default=5.0, ge=0.0, description="Maximum retry delay")

    @field_validator("max_delay")
    @classmethod
    def validate_max_delay(cls, v: float, info: ValidationInfo) -> float:
        initial_delay = info.data.get("initial_delay", 0.5)
        if v < initial_delay:
            raise ValueError(f"max_delay ({v}) must be >= initial_delay ({initial_delay})")
        return v

    def delay(self, attempt: int) -> float:
        return float(min(self.initial_delay * (2**attempt), self.max_delay))


def _from_env(data: dict[str, Any], field: str, env_var: str) -> None:
    if data.get(field) is None and os.getenv(env_var):
        data[field] = os.environ[env_var]


class ChainConfig(BaseModel):
    """Node endpoint and the on-chain applications that hold the registry.

    ``resolver_app_id``, ``registry_app_id`` and ``query_address`` have no
    defaults; when omitted from YAML they are read from
    ``ENVOI_RESOLVER_APP_ID``, ``ENVOI_REGISTRY_APP_ID`` and
    ``ENVOI_QUERY_ADDRESS``. The API token is read from the variable named
    by ``token_env`` and may be absent for public nodes.
    """

    url: str = Field(default="http://localhost:8080", min_length=1, description="algod base URL")
    token_env: str = Field(
        default="ALGOD_TOKEN", min_length=1, description="Environment variable with the API token"
    )
    token: SecretStr | None = Field(default=None, description="API token (loaded from token_env)")
    resolver_app_id: int = Field(ge=1, description="Application holding reverse records")
    registry_app_id: int = Field(ge=1, description="ARC-72 application holding name tokens")
    query_address: str = Field(description="Sender used for simulated calls")
    timeout: float = Field(default=10.0, ge=0.1, le=120.0, description="Per-request timeout")
    max_response_size: int = Field(default=DEFAULT_MAX_RESPONSE_SIZE, ge=1024)
    retry: ChainRetryConfig = Field(default_factory=ChainRetryConfig)

    @model_validator(mode="before")
    @classmethod
    def _load_env(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        _from_env(data, "resolver_app_id", "ENVOI_RESOLVER_APP_ID")
        _from_env(data, "registry_app_id", "ENVOI_REGISTRY_APP_ID")
        _from_env(data, "query_address", "ENVOI_QUERY_ADDRESS")
        if data.get("token") is None:
            value = os.getenv(data.get("token_env", "ALGOD_TOKEN"))
            if value:
                data["token"] = SecretStr(value)
        return data

    @field_validator("url")
    @classmethod
    def _strip_url(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("query_address")
    @classmethod
    def _check_query_address(cls, v: str) -> str:
        if not is_address(v):
            raise ValueError(f"query_address is not an address: {v!r}")
        return v


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class AlgodClient:
    """[ChainLookup][envoi.utils.algod.ChainLookup] over the algod REST API.

    Owns a single ``aiohttp.ClientSession`` opened on entry and closed on
    exit. A session may also be injected, in which case the caller owns it.

    Examples:
        ```python
        async with AlgodClient(config) as algod:
            raw = await algod.get_by_storage_key(config.resolver_app_id, key)
        ```
    """

    def __init__(self, config: ChainConfig, session: aiohttp.ClientSession | None = None) -> None:
        self._config = config
        self._session = session
        self._owns_session = session is None

    @property
    def config(self) -> ChainConfig:
        return self._config

    async def open(self) -> None:
        if self._session is not None:
            return
        headers = {}
        if self._config.token is not None:
            headers["X-Algo-API-Token"] = self._config.token.get_secret_value()
        self._session = aiohttp.ClientSession(
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self._config.timeout),
        )
        self._owns_session = True

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> AlgodClient:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _request_once(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None,
        data: bytes | None,
        read_body: _BodyReader,
    ) -> Any:
        if self._session is None:
            raise RuntimeError("AlgodClient is not open. Use 'async with' or call open().")

        headers = MSGPACK_HEADERS if data is not None else None
        async with self._session.request(
            method, f"{self._config.url}{path}", params=params, data=data, headers=headers
        ) as response:
            if response.status == HTTP_NOT_FOUND:
                return None
            if response.status >= HTTP_SERVER_ERROR:
                raise aiohttp.ClientResponseError(
                    response.request_info,
                    response.history,
                    status=response.status,
                    message=response.reason or "",
                )
            payload = await read_body(response, self._config.max_response_size)
            if response.status >= HTTP_CLIENT_ERROR:
                message = payload.get("message") if isinstance(payload, dict) else None
                raise ChainLookupError(f"{method} {path} returned {response.status}: {message}")
            return payload

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        data: bytes | None = None,
        read_body: _BodyReader = read_bounded_json,
    ) -> Any:
        """Issue a request, retrying transport failures; ``None`` on HTTP 404.

        Raises:
            ChainTimeoutError: If the last attempt timed out.
            ChainLookupError: On any other failure.
        """
        retry = self._config.retry
        for attempt in range(retry.max_attempts):
            try:
                return await self._request_once(method, path, params, data, read_body)
            except (aiohttp.ClientError, TimeoutError) as e:
                if attempt + 1 >= retry.max_attempts:
                    if isinstance(e, TimeoutError):
                        raise ChainTimeoutError(
                            f"{method} {path} timed out after {attempt + 1} attempts"
                        ) from e
                    raise ChainLookupError(
                        f"{method} {path} failed after {attempt + 1} attempts: {e}"
                    ) from e
                delay = retry.delay(attempt)
                logger.warning(
                    "algod_request_retry path=%s attempt=%d delay=%.2f error=%s",
                    path,
                    attempt + 1,
                    delay,
                    e,
                )
                await asyncio.sleep(delay)
            except ValueError as e:
                raise ChainLookupError(f"{method} {path} returned an unreadable body: {e}") from e

        raise RuntimeError("retry loop exited without a result")

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def get_by_storage_key(self, app_id: int, key: bytes) -> bytes | None:
        """Read box *key* of application *app_id*; ``None`` if the box does not exist."""
        data = await self._request(
            "GET", f"/v2/applications/{app_id}/box", params={"name": f"b64:{_b64(key)}"}
        )
        if data is None:
            return None
        try:
            return base64.b64decode(data["value"])
        except (KeyError, TypeError, ValueError) as e:
            raise ChainLookupError(f"malformed box response for app {app_id}: {e}") from e

    async def suggested_params(self) -> transaction.SuggestedParams:
        """Fetch fee and validity parameters for building a transaction.

        The fee is flat at the network minimum and the validity window
        starts at the node's last round.
        """
        params = await self._request("GET", "/v2/transactions/params")
        if not isinstance(params, dict):
            raise ChainLookupError("node returned no transaction parameters")
        try:
            last_round = int(params["last-round"])
            min_fee = int(params.get("min-fee", 1000))
            return transaction.SuggestedParams(
                fee=min_fee,
                first=last_round,
                last=last_round + VALIDITY_WINDOW,
                gh=params["genesis-hash"],
                gen=params.get("genesis-id"),
                flat_fee=True,
                consensus_version=params.get("consensus-version"),
                min_fee=min_fee,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ChainLookupError(f"malformed transaction parameters: {e}") from e

    def build_owner_query(
        self, app_id: int, digest: int, params: transaction.SuggestedParams
    ) -> bytes:
        """Encode a simulate request evaluating ``arc72_ownerOf(digest)`` on *app_id*.

        Raises:
            ChainLookupError: If *digest* does not fit a ``uint256``.
        """
        try:
            token_id = OWNER_OF.args[0].type.encode(digest)
        except error.ABIEncodingError as e:
            raise ChainLookupError(f"cannot encode token id {digest}: {e}") from e

        txn = transaction.ApplicationNoOpTxn(
            self._config.query_address,
            params,
            app_id,
            app_args=[OWNER_OF.get_selector(), token_id],
        )
        request = SimulateRequest(
            txn_groups=[
                SimulateRequestTransactionGroup(txns=[transaction.SignedTransaction(txn, None)])
            ],
            allow_empty_signatures=True,
            allow_unnamed_resources=True,
        )
        return base64.b64decode(encoding.msgpack_encode(request))

    async def get_owner_of_digest(self, app_id: int, digest: int) -> str | None:
        """Return the ARC-72 owner of token *digest*, or ``None`` if unowned.

        Raises:
            ChainLookupError: On transport failure or an unparseable
                simulate response.
        """
        params = await self.suggested_params()
        result = await self._request(
            "POST",
            "/v2/transactions/simulate",
            params={"format": "msgpack"},
            data=self.build_owner_query(app_id, digest, params),
            read_body=read_bounded_msgpack,
        )
        if result is None:
            return None

        owner = self._parse_abi_return(result, app_id)
        if owner is None or owner == ZERO_ADDRESS:
            return None
        return owner

    @staticmethod
    def _parse_abi_return(result: Any, app_id: int) -> str | None:
        try:
            group = result["txn-groups"][0]
            if group.get("failure-message"):
                logger.debug(
                    "simulate_failed app_id=%d message=%s", app_id, group["failure-message"]
                )
                return None
            logs = group["txn-results"][0]["txn-result"].get("logs") or []
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ChainLookupError(f"malformed simulate response for app {app_id}: {e}") from e

        return_type = OWNER_OF.returns.type
        for line in reversed(logs):
            if isinstance(line, bytes) and line.startswith(ABI_RETURN_HASH):
                value = line[len(ABI_RETURN_HASH) :]
                if len(value) < return_type.byte_len():
                    raise ChainLookupError(f"short ABI return from app {app_id}")
                try:
                    owner: str = return_type.decode(value[: return_type.byte_len()])
                except error.ABIEncodingError as e:
                    raise ChainLookupError(f"undecodable ABI return from app {app_id}") from e
                return owner
        return None
