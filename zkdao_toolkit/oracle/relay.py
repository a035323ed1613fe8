"""
Snapshot oracle relay.

Request half: build a Functions job for a batch of proposals, send it through
the router and record a PENDING OracleRequest.

Fulfillment half: the router calls `fulfill_request` at an arbitrary later
time. Only the router may call it, only once per request id. A reported error,
an undecodable payload or a root the governor refuses marks the request FAILED
and nothing is written; a valid payload is applied to every proposal of the
batch atomically. The relay must be the governor's snapshot oracle. Failed
requests are not retried here; an operator re-requests.
"""

import json
import threading
from typing import Any, Dict, List, Optional, Sequence

from eth_utils import keccak, to_checksum_address

from zkdao_toolkit.governance.governor import AnonymousGovernor
from zkdao_toolkit.oracle.functions import (
    FunctionsRequest,
    FunctionsRouter,
    build_cid_source,
    build_snapshot_source,
)
from zkdao_toolkit.oracle.models import OracleRequest, RequestKind, RequestStatus
from zkdao_toolkit.shared.chains import ChainConfig
from zkdao_toolkit.shared.constants import FunctionsConstants, ServiceConstants
from zkdao_toolkit.shared.exceptions import (
    AlreadyFulfilledException,
    ConfigurationException,
    InvalidStateException,
    MalformedResponseException,
    UnauthorizedException,
    UnknownRequestException,
)
from zkdao_toolkit.shared.logging import get_logger, redact

_logger = get_logger(__name__)

DEFAULT_RELAY_ADDRESS = to_checksum_address(
    "0x" + keccak(text="zkdao.snapshot-oracle-relay")[-20:].hex()
)


def proposal_descriptor(space_id: str, proposal_id: int) -> str:
    return f"{space_id}/proposals/{proposal_id}"


def decode_results(payload: bytes, expected: int) -> List[str]:
    """Decode a job payload: JSON array or comma-separated values."""
    try:
        text = payload.decode("utf-8").strip()
    except UnicodeDecodeError:
        raise MalformedResponseException("Oracle payload is not UTF-8") from None

    if text.startswith("["):
        try:
            values = json.loads(text)
        except ValueError:
            raise MalformedResponseException("Oracle payload is not valid JSON") from None
        if not isinstance(values, list):
            raise MalformedResponseException("Oracle payload must be a list")
        values = [str(v).strip() for v in values]
    else:
        values = [v.strip() for v in text.split(",")] if text else []

    if any(not v for v in values):
        raise MalformedResponseException("Oracle payload contains an empty value")
    if len(values) != expected:
        raise MalformedResponseException(
            f"Oracle payload has {len(values)} values, expected {expected}"
        )
    return values


class SnapshotOracleRelay:
    def __init__(
        self,
        governor: AnonymousGovernor,
        router: FunctionsRouter,
        chain: ChainConfig,
        source: Optional[str] = None,
        cid_source: Optional[str] = None,
        gas_limit: int = FunctionsConstants.GAS_LIMIT,
        address: str = DEFAULT_RELAY_ADDRESS,
    ):
        self.governor = governor
        self.router = router
        self.chain = chain
        self.source = source or build_snapshot_source()
        self.cid_source = cid_source or build_cid_source()
        self.gas_limit = gas_limit
        self.address = to_checksum_address(address)
        if governor.snapshot_oracle != self.address:
            raise ConfigurationException(
                f"Governor snapshot oracle is {governor.snapshot_oracle}, "
                f"not this relay ({self.address})"
            )

        self._lock = threading.RLock()
        self._requests: Dict[str, OracleRequest] = {}
        self._next_index = 1
        self.proposal_cids: Dict[int, str] = {}

    def get_request(self, request_id: str) -> OracleRequest:
        try:
            return self._requests[request_id]
        except KeyError:
            raise UnknownRequestException(request_id) from None

    @property
    def requests(self) -> List[OracleRequest]:
        return sorted(self._requests.values(), key=lambda r: r.index)

    def _send(
        self,
        kind: RequestKind,
        proposal_ids: Sequence[int],
        descriptors: Optional[Sequence[str]],
    ) -> OracleRequest:
        if not proposal_ids:
            raise ValueError("At least one proposal is required")
        if len(set(proposal_ids)) != len(proposal_ids):
            raise ValueError("Duplicate proposal ids in request")
        descriptors = (
            [str(pid) for pid in proposal_ids] if descriptors is None else list(descriptors)
        )
        if len(descriptors) != len(proposal_ids):
            raise ValueError("One descriptor per proposal is required")
        if any(not d for d in descriptors):
            raise ValueError("Descriptors must be non-empty")

        with self._lock:
            for pid in proposal_ids:
                proposal = self.governor.get_proposal(pid)
                if kind == RequestKind.GENERATE_SNAPSHOT and proposal.has_snapshot:
                    raise InvalidStateException(
                        f"Snapshot root already set for proposal {pid}"
                    )

            if kind == RequestKind.FETCH_CID:
                source, result_keys = self.cid_source, ServiceConstants.CID_RESULT_KEYS
            else:
                source, result_keys = self.source, ServiceConstants.SNAPSHOT_RESULT_KEYS
            request = FunctionsRequest.for_chain(
                self.chain,
                source,
                descriptors,
                gas_limit=self.gas_limit,
                result_keys=result_keys,
            )
            request_id = self.router.send_request(self, request)
            if request_id in self._requests:
                raise InvalidStateException(f"Router reused request id {request_id}")

            record = OracleRequest(
                index=self._next_index,
                request_id=request_id,
                kind=kind,
                proposal_ids=tuple(proposal_ids),
                descriptors=tuple(descriptors),
            )
            self._requests[request_id] = record
            self._next_index += 1

            _logger.info(
                "Sent %s request #%d (%s) for proposals %s",
                kind.value,
                record.index,
                redact(request_id),
                list(proposal_ids),
            )
            return record

    def request_snapshot(
        self,
        proposal_ids: Sequence[int],
        descriptors: Optional[Sequence[str]] = None,
    ) -> OracleRequest:
        """Ask the oracle network to build snapshot trees for the proposals."""
        return self._send(RequestKind.GENERATE_SNAPSHOT, proposal_ids, descriptors)

    def request_cids(
        self,
        proposal_ids: Sequence[int],
        descriptors: Optional[Sequence[str]] = None,
    ) -> OracleRequest:
        """Ask the oracle network for the content ids of the proposals' trees."""
        return self._send(RequestKind.FETCH_CID, proposal_ids, descriptors)

    def fulfill_request(
        self, caller: str, request_id: str, response: bytes, err: bytes
    ) -> OracleRequest:
        with self._lock:
            if to_checksum_address(caller) != to_checksum_address(self.router.address):
                raise UnauthorizedException("Only the Functions router can fulfill")

            request = self.get_request(request_id)
            if not request.is_pending:
                raise AlreadyFulfilledException(request_id)

            if err:
                return self._fail(request, err.decode("utf-8", errors="replace"))

            try:
                values = decode_results(response, len(request.proposal_ids))
                if request.kind == RequestKind.GENERATE_SNAPSHOT:
                    self.governor.set_snapshot_roots(
                        self.address, dict(zip(request.proposal_ids, values))
                    )
            except (
                MalformedResponseException,
                InvalidStateException,
                UnauthorizedException,
                ValueError,
            ) as e:
                message = e.message if hasattr(e, "message") else str(e)
                return self._fail(request, message, response)

            if request.kind == RequestKind.FETCH_CID:
                self.proposal_cids.update(zip(request.proposal_ids, values))

            request.result_payload = bytes(response)
            request.results = tuple(values)
            request.status = RequestStatus.FULFILLED
            _logger.info(
                "Request #%d (%s) fulfilled", request.index, redact(request_id)
            )
            return request

    def _fail(
        self, request: OracleRequest, reason: str, payload: Optional[bytes] = None
    ) -> OracleRequest:
        request.status = RequestStatus.FAILED
        if payload is not None:
            request.result_payload = bytes(payload)
        request.error = reason
        _logger.warning(
            "Request #%d (%s) failed: %s",
            request.index,
            redact(request.request_id),
            reason,
        )
        return request
