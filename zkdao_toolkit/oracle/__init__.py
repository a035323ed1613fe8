from zkdao_toolkit.oracle.functions import (
    FunctionsRequest,
    LocalFunctionsRouter,
    build_snapshot_source,
)
from zkdao_toolkit.oracle.models import OracleRequest, RequestKind, RequestStatus
from zkdao_toolkit.oracle.relay import SnapshotOracleRelay, proposal_descriptor

__all__ = [
    "FunctionsRequest",
    "LocalFunctionsRouter",
    "build_snapshot_source",
    "OracleRequest",
    "RequestKind",
    "RequestStatus",
    "SnapshotOracleRelay",
    "proposal_descriptor",
]
