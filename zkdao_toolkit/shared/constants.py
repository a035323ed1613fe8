"""All constants for the project"""

import os

from dotenv import load_dotenv

load_dotenv()


class CircuitConstants:
    """Constants shared with the zkDAO Noir circuit"""

    # BN254 scalar field
    BN254_FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

    # Circuit artifact and Noir project (nargo execute needs the project dir)
    CIRCUIT_DIR = os.getenv("ZKDAO_CIRCUIT_DIR", "circuits/zkdao")
    CIRCUIT_ARTIFACT = os.getenv(
        "ZKDAO_CIRCUIT_ARTIFACT", "circuits/zkdao/target/zkdao_circuit.json"
    )

    # Depth of the eligibility tree; 0 disables the path-length check
    TREE_DEPTH = int(os.getenv("ZKDAO_TREE_DEPTH", "0"))

    # Order of the public inputs exposed by the circuit
    PUBLIC_INPUTS = ("nullifier", "proposal_id", "snapshot_root", "weight", "choice")

    NARGO_BIN = os.getenv("NARGO_BIN", "nargo")
    BB_BIN = os.getenv("BB_BIN", "bb")


class ServiceConstants:
    """External HTTP services"""

    MERKLE_API_URL = os.getenv("ZKDAO_MERKLE_API_URL", "http://localhost:3000")

    PROOF_PATH = (
        "/merkle-tree/getMerkleProof/{space}/proposals/{proposal_id}/{address}"
    )
    GENERATE_TREES_PATH = "/merkle-tree/generate-merkle-trees"

    # Collection field of the generate-merkle-trees response; both names are in use
    SNAPSHOT_RESULT_KEYS = ("merkleRoots", "cids")
    CID_RESULT_KEYS = ("cids", "merkleRoots")

    HTTP_TIMEOUT = float(os.getenv("ZKDAO_HTTP_TIMEOUT", "15"))
    HTTP_CONNECT_TIMEOUT = float(os.getenv("ZKDAO_HTTP_CONNECT_TIMEOUT", "5"))
    PROOF_TIMEOUT = float(os.getenv("ZKDAO_PROOF_TIMEOUT", "300"))


class GovernanceConstants:
    """Defaults for the anonymous governor"""

    VOTING_DELAY = 150  # 2.5 minutes
    VOTING_PERIOD = 150  # 2.5 minutes
    PROPOSAL_THRESHOLD = 1
    QUORUM_FRACTION = 4  # percent of total voting supply
    MIN_DELAY = 150  # timelock delay
    GRACE_PERIOD = 14 * 24 * 3600

    # Vote choices, same convention as OpenZeppelin GovernorCountingSimple
    AGAINST = 0
    FOR = 1
    ABSTAIN = 2


class FunctionsConstants:
    """Chainlink Functions job defaults"""

    GAS_LIMIT = 300_000
    # Gateway the DON calls to build the trees; must be reachable from the DON
    SNAPSHOT_JOB_URL = os.getenv(
        "ZKDAO_SNAPSHOT_JOB_URL",
        ServiceConstants.MERKLE_API_URL + ServiceConstants.GENERATE_TREES_PATH,
    )


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
