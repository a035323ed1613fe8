"""
Merkle Eligibility Service client.

Fetches per-voter membership proofs and triggers snapshot tree generation on
the external Merkle-tree service. The client never retries on its own: wrap
calls with `shared.retry.with_retry` (or HTTP_RETRY_CONFIG) when a bounded
retry is wanted. Only TransportException and OperationTimeoutException are
retryable.
"""

import asyncio
from typing import Any, List, Optional, Sequence
from urllib.parse import quote

import httpx
from eth_utils import is_address, to_checksum_address

from zkdao_toolkit.proofs.types import EligibilityProof
from zkdao_toolkit.shared.constants import ServiceConstants
from zkdao_toolkit.shared.exceptions import (
    MalformedResponseException,
    OperationTimeoutException,
    ServiceRejectedException,
    TransportException,
)
from zkdao_toolkit.shared.logging import get_logger, redact
from zkdao_toolkit.shared.results import Result
from zkdao_toolkit.shared.services.http_client import build_async_client


class MerkleEligibilityClient:
    """Async client for the eligibility (Merkle tree) service."""

    MAX_CONCURRENT_REQUESTS = 10

    def __init__(
        self,
        base_url: str = ServiceConstants.MERKLE_API_URL,
        timeout: float = ServiceConstants.HTTP_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or build_async_client(timeout=timeout)
        self._log = get_logger(__name__)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "MerkleEligibilityClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException:
            raise OperationTimeoutException(f"{method} {path}", self.timeout) from None
        except httpx.TransportError as e:
            raise TransportException(
                f"Eligibility service unreachable: {type(e).__name__}"
            ) from e

        if not response.is_success:
            raise ServiceRejectedException(
                response.status_code, response.reason_phrase
            )

        try:
            return response.json()
        except ValueError:
            raise MalformedResponseException(
                "Eligibility service returned a non-JSON body"
            ) from None

    async def get_proof(
        self, space_id: str, proposal_id: Any, voter: str
    ) -> EligibilityProof:
        """Membership proof of `voter` in the snapshot of `proposal_id`."""
        if not is_address(voter):
            raise ValueError(f"Invalid voter address: {voter}")
        address = to_checksum_address(voter)

        path = ServiceConstants.PROOF_PATH.format(
            space=quote(str(space_id), safe=""),
            proposal_id=quote(str(proposal_id), safe=""),
            address=address,
        )
        self._log.debug(
            "Fetching eligibility proof space=%s proposal=%s voter=%s",
            space_id,
            redact(proposal_id),
            redact(address),
        )
        payload = await self._request("GET", path)
        return EligibilityProof.from_api(payload)

    async def get_proofs(
        self, space_id: str, proposal_id: Any, voters: Sequence[str]
    ) -> List[Result[EligibilityProof]]:
        """Fetch proofs for many voters; one Result per voter, in order."""
        semaphore = asyncio.Semaphore(self.MAX_CONCURRENT_REQUESTS)

        async def fetch_one(voter: str) -> Result[EligibilityProof]:
            async with semaphore:
                try:
                    return Result.ok(
                        await self.get_proof(space_id, proposal_id, voter)
                    )
                except (
                    TransportException,
                    OperationTimeoutException,
                    ServiceRejectedException,
                    MalformedResponseException,
                    ValueError,
                ) as e:
                    return Result.from_exception(
                        "eligibility_proof",
                        e,
                        context={"space": space_id, "voter": voter},
                    )

        return list(await asyncio.gather(*(fetch_one(v) for v in voters)))

    async def generate_snapshot(
        self,
        descriptors: Sequence[str],
        result_keys: Sequence[str] = ServiceConstants.SNAPSHOT_RESULT_KEYS,
    ) -> List[str]:
        """
        Build the trees for `descriptors`; returns one identifier each, taken
        from the first of `result_keys` present in the response.
        """
        if not descriptors:
            raise ValueError("At least one proposal descriptor is required")

        payload = await self._request(
            "POST",
            ServiceConstants.GENERATE_TREES_PATH,
            json={"proposals": list(descriptors)},
        )
        if not isinstance(payload, dict):
            raise MalformedResponseException("Snapshot response is not a JSON object")

        for key in result_keys:
            if key in payload:
                values = payload[key]
                break
        else:
            raise MalformedResponseException(
                "Snapshot response has none of " + ", ".join(result_keys)
            )

        if not isinstance(values, list) or not all(
            isinstance(v, (str, int)) and not isinstance(v, bool) for v in values
        ):
            raise MalformedResponseException(
                "Snapshot identifiers must be a list of strings"
            )
        if len(values) != len(descriptors):
            raise MalformedResponseException(
                f"Expected {len(descriptors)} snapshot identifiers, got {len(values)}"
            )

        self._log.info("Generated %d snapshot trees", len(values))
        return [str(v) for v in values]
