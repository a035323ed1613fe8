from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class RequestKind(Enum):
    GENERATE_SNAPSHOT = "generate_snapshot"
    FETCH_CID = "fetch_cid"


class RequestStatus(Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    FAILED = "failed"


@dataclass
class OracleRequest:
    """One oracle job; leaves PENDING exactly once."""

    index: int
    request_id: str
    kind: RequestKind
    proposal_ids: Tuple[int, ...]
    descriptors: Tuple[str, ...]
    status: RequestStatus = RequestStatus.PENDING
    result_payload: Optional[bytes] = None
    results: Tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "requestId": self.request_id,
            "kind": self.kind.value,
            "proposalIds": list(self.proposal_ids),
            "descriptors": list(self.descriptors),
            "status": self.status.value,
            "results": list(self.results),
            "error": self.error,
        }
