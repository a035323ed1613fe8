"""
Chainlink Functions request building and routers.

A FunctionsRequest carries the JavaScript job, its args (proposal
descriptors), the subscription, gas limit and DON id. Routers accept a
request, return a request id and later call `fulfill_request` on the consumer
as themselves.

Both request kinds call the one tree endpoint of the eligibility service,
which answers with the roots and the content ids of the trees. They differ in
which collection the job returns: snapshot jobs read `merkleRoots` first, CID
jobs read `cids` first.

LocalFunctionsRouter is a development DON: instead of shipping the JS job to
a decentralized network it runs the same HTTP call through
MerkleEligibilityClient and encodes the answer the way
`Functions.encodeString(result)` does (array joined with commas).
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, Tuple

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from zkdao_toolkit.proofs.eligibility_client import MerkleEligibilityClient
from zkdao_toolkit.shared.chains import ChainConfig
from zkdao_toolkit.shared.constants import FunctionsConstants, ServiceConstants
from zkdao_toolkit.shared.exceptions import (
    NonRetryableException,
    RetryableException,
)
from zkdao_toolkit.shared.logging import get_logger, redact

_logger = get_logger(__name__)

_SOURCE_TEMPLATE = """
const url = "__URL__";

const response = await Functions.makeHttpRequest({
  url: url,
  method: "POST",
  headers: { "Content-Type": "application/json" },
  data: { proposals: args },
});

if (response.error) {
  console.error(
    response.response
      ? `${response.response.status},${response.response.statusText}`
      : ""
  );
  throw Error("Request failed");
}

const result = response.data.__KEY__ || response.data.__FALLBACK__;
if (!result) {
  throw Error("No merkle trees found in the response");
}

return Functions.encodeString(result);
"""


def build_snapshot_source(
    url: str = FunctionsConstants.SNAPSHOT_JOB_URL,
    result_key: str = "merkleRoots",
    fallback_key: str = "cids",
) -> str:
    """JavaScript job that POSTs the descriptors and returns the roots."""
    if '"' in url or "\n" in url:
        raise ValueError("Job URL must not contain quotes or newlines")
    return (
        _SOURCE_TEMPLATE.replace("__URL__", url)
        .replace("__KEY__", result_key)
        .replace("__FALLBACK__", fallback_key)
    )


def build_cid_source(url: str = FunctionsConstants.SNAPSHOT_JOB_URL) -> str:
    """JavaScript job that returns the content ids of the proposals' trees."""
    result_key, fallback_key = ServiceConstants.CID_RESULT_KEYS
    return build_snapshot_source(url, result_key, fallback_key)


@dataclass(frozen=True)
class FunctionsRequest:
    source: str
    args: Tuple[str, ...]
    subscription_id: int
    gas_limit: int
    don_id: bytes
    # Collection the job reads from the service response, in order
    result_keys: Tuple[str, ...] = ServiceConstants.SNAPSHOT_RESULT_KEYS

    @classmethod
    def for_chain(
        cls,
        chain: ChainConfig,
        source: str,
        args,
        gas_limit: int = FunctionsConstants.GAS_LIMIT,
        result_keys: Tuple[str, ...] = ServiceConstants.SNAPSHOT_RESULT_KEYS,
    ) -> "FunctionsRequest":
        return cls(
            source=source,
            args=tuple(str(a) for a in args),
            subscription_id=int(chain.require("functions_subscription_id")),
            gas_limit=gas_limit,
            don_id=chain.don_id_bytes,
            result_keys=tuple(result_keys),
        )

    def to_dict(self) -> Dict:
        return {
            "source": self.source,
            "args": list(self.args),
            "subscriptionId": self.subscription_id,
            "gasLimit": self.gas_limit,
            "donId": "0x" + self.don_id.hex(),
        }


class FulfillmentConsumer(Protocol):
    def fulfill_request(
        self, caller: str, request_id: str, response: bytes, err: bytes
    ): ...


class FunctionsRouter(Protocol):
    address: str

    def send_request(
        self, consumer: FulfillmentConsumer, request: FunctionsRequest
    ) -> str: ...


@dataclass
class _Job:
    consumer: FulfillmentConsumer
    request: FunctionsRequest


@dataclass
class LocalFunctionsRouter:
    """Runs snapshot and CID jobs against the eligibility service directly."""

    client: MerkleEligibilityClient
    address: str = "0x000000000000000000000000000000000000F0AC"
    _nonce: int = 0
    _jobs: Dict[str, _Job] = field(default_factory=dict)

    def __post_init__(self):
        self.address = to_checksum_address(self.address)

    def send_request(
        self, consumer: FulfillmentConsumer, request: FunctionsRequest
    ) -> str:
        self._nonce += 1
        request_id = "0x" + keccak(
            encode(["address", "uint256"], [self.address, self._nonce])
        ).hex()
        self._jobs[request_id] = _Job(consumer=consumer, request=request)
        _logger.info(
            "Queued Functions request %s (%d args)",
            redact(request_id),
            len(request.args),
        )
        return request_id

    @property
    def pending(self) -> Tuple[str, ...]:
        return tuple(self._jobs)

    async def run_job(self, request_id: str):
        """Execute one queued job and deliver the callback."""
        job = self._jobs.pop(request_id)
        response, err = b"", b""
        try:
            values = await self.client.generate_snapshot(
                job.request.args, result_keys=job.request.result_keys
            )
            response = ",".join(values).encode()
        except (RetryableException, NonRetryableException, ValueError) as e:
            err = str(e).encode()
            _logger.warning("Functions job %s failed: %s", redact(request_id), e)
        return job.consumer.fulfill_request(self.address, request_id, response, err)

    async def run_pending(self, delay: Optional[float] = None) -> list:
        """Run every queued job; `delay` simulates DON latency."""
        if delay:
            await asyncio.sleep(delay)
        return [await self.run_job(request_id) for request_id in self.pending]
