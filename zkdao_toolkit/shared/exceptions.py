"""
Exception hierarchy for the zkDAO Toolkit.

Exception Categories:
- RetryableException: Transient failures that may succeed on retry (network, timeouts)
- NonRetryableException: Permanent failures that won't benefit from retry
- ConfigurationException: Startup/config errors that prevent operation

Every exception carries an ErrorKind so callers can branch on the failure
class without string matching:
- TransportException, OperationTimeoutException -> RetryableException
- Service contract violations (rejected status, malformed body) -> NonRetryableException
- Cryptographic rejections (input mismatch, constraint violation, invalid proof)
  -> NonRetryableException
- State machine guard violations (unauthorized, already fulfilled, double vote)
  -> NonRetryableException
- Bridging precondition failures (insufficient fee, unsupported destination)
  -> NonRetryableException

Messages never include voter secrets or nullifier preimages.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Failure classes surfaced by the toolkit."""

    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    SERVICE_REJECTED = "service_rejected"
    MALFORMED_RESPONSE = "malformed_response"
    PROOF_INPUT_MISMATCH = "proof_input_mismatch"
    CONSTRAINT_VIOLATION = "constraint_violation"
    PROOF_GENERATION_FAILED = "proof_generation_failed"
    INVALID_PROOF = "invalid_proof"
    DOUBLE_VOTE = "double_vote"
    SNAPSHOT_NOT_SET = "snapshot_not_set"
    INVALID_STATE = "invalid_state"
    UNAUTHORIZED = "unauthorized"
    ALREADY_FULFILLED = "already_fulfilled"
    UNKNOWN_REQUEST = "unknown_request"
    INSUFFICIENT_FEE = "insufficient_fee"
    UNSUPPORTED_DESTINATION = "unsupported_destination"
    CONFIGURATION = "configuration"


class RetryableException(Exception):
    """
    Base class for exceptions that may succeed on retry.

    Use for transient failures like:
    - Eligibility service unreachable
    - Request timeouts
    - RPC hiccups
    """

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NonRetryableException(Exception):
    """
    Base class for exceptions that won't benefit from retry.

    Use for permanent failures like:
    - Invalid input data
    - Cryptographic rejections
    - State machine violations
    """

    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationException(NonRetryableException):
    """
    Exception for configuration/startup errors.

    Use when:
    - Required environment variables are missing
    - A chain key is unknown
    - Chain constants are inconsistent (duplicate or swapped selectors)
    """

    kind = ErrorKind.CONFIGURATION


# =============================================================================
# OFF-CHAIN CLIENT ERRORS
# =============================================================================


class TransportException(RetryableException):
    """The eligibility service (or another HTTP collaborator) was unreachable."""

    kind = ErrorKind.TRANSPORT


class OperationTimeoutException(RetryableException):
    """A bounded operation (HTTP call or proving run) exceeded its timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, operation: str, timeout: float):
        super().__init__(f"{operation} timed out after {timeout:.1f}s")
        self.operation = operation
        self.timeout = timeout


class ServiceRejectedException(NonRetryableException):
    """The service answered with a non-2xx status."""

    kind = ErrorKind.SERVICE_REJECTED

    def __init__(self, status: int, reason: str = ""):
        message = f"Service rejected request with HTTP {status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.status = status


class MalformedResponseException(NonRetryableException):
    """The service answered 2xx but the body does not match the contract."""

    kind = ErrorKind.MALFORMED_RESPONSE


# =============================================================================
# PROOF ERRORS
# =============================================================================


class ProofInputMismatchException(NonRetryableException):
    """
    A locally recomputed value disagrees with the server-supplied one.

    Always fatal: it means the eligibility service is buggy or tampered.
    Only the field name is reported, never the values.
    """

    kind = ErrorKind.PROOF_INPUT_MISMATCH

    def __init__(self, field: str, detail: str = ""):
        message = f"Recomputed {field} does not match the supplied {field}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.field = field


class ConstraintViolationException(NonRetryableException):
    """The circuit rejected the inputs while generating the witness."""

    kind = ErrorKind.CONSTRAINT_VIOLATION


class ProofGenerationFailedException(NonRetryableException):
    """The proving backend failed or produced a proof that does not verify."""

    kind = ErrorKind.PROOF_GENERATION_FAILED


# =============================================================================
# GOVERNANCE / ORACLE / BRIDGE ERRORS
# =============================================================================


class InvalidProofException(NonRetryableException):
    """The verifier rejected the submitted proof."""

    kind = ErrorKind.INVALID_PROOF


class DoubleVoteException(NonRetryableException):
    """The nullifier has already been spent for this proposal."""

    kind = ErrorKind.DOUBLE_VOTE

    def __init__(self, proposal_id: int):
        super().__init__(f"Nullifier already used for proposal {proposal_id}")
        self.proposal_id = proposal_id


class SnapshotNotSetException(NonRetryableException):
    """Votes cannot be accepted before the snapshot root is published."""

    kind = ErrorKind.SNAPSHOT_NOT_SET

    def __init__(self, proposal_id: int):
        super().__init__(f"Snapshot root not set for proposal {proposal_id}")
        self.proposal_id = proposal_id


class InvalidStateException(NonRetryableException):
    """An operation was attempted in a state that does not allow it."""

    kind = ErrorKind.INVALID_STATE


class UnauthorizedException(NonRetryableException):
    """The caller is not allowed to perform the operation."""

    kind = ErrorKind.UNAUTHORIZED


class AlreadyFulfilledException(NonRetryableException):
    """A second oracle callback arrived for a resolved request."""

    kind = ErrorKind.ALREADY_FULFILLED

    def __init__(self, request_id: str):
        super().__init__(f"Request {request_id} already resolved")
        self.request_id = request_id


class UnknownRequestException(NonRetryableException):
    """An oracle callback referenced a request that was never sent."""

    kind = ErrorKind.UNKNOWN_REQUEST

    def __init__(self, request_id: str):
        super().__init__(f"Unknown request {request_id}")
        self.request_id = request_id


class InsufficientFeeException(NonRetryableException):
    """The fee budget, fee-token balance or allowance does not cover the fee."""

    kind = ErrorKind.INSUFFICIENT_FEE

    def __init__(self, required: int, available: int, reason: str):
        super().__init__(
            f"Insufficient fee ({reason}): required {required}, available {available}"
        )
        self.required = required
        self.available = available


class UnsupportedDestinationException(NonRetryableException):
    """The destination chain is not configured or not supported by the router."""

    kind = ErrorKind.UNSUPPORTED_DESTINATION


def error_kind(exc: BaseException) -> Optional[ErrorKind]:
    """Return the ErrorKind of a toolkit exception, or None for foreign ones."""
    return getattr(exc, "kind", None)
