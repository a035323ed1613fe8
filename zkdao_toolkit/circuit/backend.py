"""
Proving backend for the zkDAO voting circuit.

NoirBackend drives the Noir toolchain as subprocesses:

    nargo execute   -> witness (constraint failures surface here)
    bb prove        -> proof + public inputs
    bb write_vk     -> verification key (computed once, cached)
    bb verify       -> local self-check

All commands run through asyncio subprocesses so proving never blocks the
event loop. Cancelling a call kills the running process; temporary files are
removed on every exit path.
"""

import asyncio
import os
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple

from zkdao_toolkit.circuit.inputs import CircuitInputs
from zkdao_toolkit.shared.constants import CircuitConstants
from zkdao_toolkit.shared.exceptions import (
    ConstraintViolationException,
    ProofGenerationFailedException,
)
from zkdao_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)

# nargo error lines that mean the inputs do not satisfy the circuit
CONSTRAINT_MARKERS = (
    "failed constraint",
    "cannot satisfy constraint",
    "assertion failed",
    "failed assertion",
)


@dataclass(frozen=True)
class Witness:
    """Serialized (gzipped) witness as written by nargo."""

    data: bytes


@dataclass(frozen=True)
class ProofData:
    proof: bytes
    public_inputs: Tuple[int, ...]


class ProofBackend(Protocol):
    async def execute(self, inputs: CircuitInputs) -> Witness: ...

    async def generate_proof(self, witness: Witness) -> ProofData: ...

    async def verify_proof(self, proof: ProofData) -> bool: ...


def split_public_inputs(raw: bytes) -> Tuple[int, ...]:
    """bb writes public inputs as concatenated 32-byte big-endian words."""
    if len(raw) % 32 != 0:
        raise ProofGenerationFailedException(
            f"public inputs blob has {len(raw)} bytes, not a multiple of 32"
        )
    return tuple(
        int.from_bytes(raw[i : i + 32], "big") for i in range(0, len(raw), 32)
    )


def join_public_inputs(values: Sequence[int]) -> bytes:
    return b"".join(int(v).to_bytes(32, "big") for v in values)


def _first_constraint_line(output: str) -> Optional[str]:
    for line in output.splitlines():
        if any(marker in line.lower() for marker in CONSTRAINT_MARKERS):
            return line.strip()[:200]
    return None


class NoirBackend:
    """ProofBackend backed by `nargo` and Barretenberg `bb`."""

    def __init__(
        self,
        circuit_dir: str = CircuitConstants.CIRCUIT_DIR,
        artifact: str = CircuitConstants.CIRCUIT_ARTIFACT,
        nargo_bin: str = CircuitConstants.NARGO_BIN,
        bb_bin: str = CircuitConstants.BB_BIN,
        oracle_hash: str = "keccak",
    ):
        self.circuit_dir = Path(circuit_dir)
        self.artifact = Path(artifact)
        self.nargo_bin = nargo_bin
        self.bb_bin = bb_bin
        self.oracle_hash = oracle_hash
        self._vk: Optional[bytes] = None
        self._vk_lock = asyncio.Lock()

    async def _run(self, cmd: List[str], cwd: Optional[Path] = None) -> Tuple[int, str, str]:
        """Run a command, killing it if the awaiting task is cancelled."""
        _logger.debug("Running %s", " ".join(cmd[:2]))
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(cwd) if cwd else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise ProofGenerationFailedException(
                f"{cmd[0]} not found; set NARGO_BIN / BB_BIN"
            ) from None

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        return (
            process.returncode,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
        )

    async def execute(self, inputs: CircuitInputs) -> Witness:
        # nargo reads the prover file from the program dir, so the name must be
        # unique for concurrent runs
        name = f"Prover_{uuid.uuid4().hex}"
        prover_file = self.circuit_dir / f"{name}.toml"
        witness_file = self.circuit_dir / "target" / f"{name}.gz"

        try:
            prover_file.write_text(inputs.to_prover_toml())
            code, stdout, stderr = await self._run(
                [
                    self.nargo_bin,
                    "execute",
                    name,
                    "--program-dir",
                    str(self.circuit_dir),
                    "--prover-name",
                    name,
                ]
            )
            if code != 0:
                reason = _first_constraint_line(stderr) or _first_constraint_line(stdout)
                if reason:
                    raise ConstraintViolationException(
                        f"Circuit rejected the inputs: {reason}"
                    )
                raise ProofGenerationFailedException(
                    f"nargo execute exited with {code}"
                )
            return Witness(data=witness_file.read_bytes())
        finally:
            for path in (prover_file, witness_file):
                try:
                    path.unlink()
                except FileNotFoundError:
                    pass

    async def verification_key(self) -> bytes:
        async with self._vk_lock:
            if self._vk is None:
                with tempfile.TemporaryDirectory(prefix="zkdao-vk-") as tmp:
                    code, _, stderr = await self._run(
                        [
                            self.bb_bin,
                            "write_vk",
                            "-b",
                            str(self.artifact),
                            "-o",
                            tmp,
                            "--oracle_hash",
                            self.oracle_hash,
                        ]
                    )
                    if code != 0:
                        raise ProofGenerationFailedException(
                            f"bb write_vk exited with {code}: {stderr.strip()[:200]}"
                        )
                    self._vk = Path(tmp, "vk").read_bytes()
            return self._vk

    async def generate_proof(self, witness: Witness) -> ProofData:
        with tempfile.TemporaryDirectory(prefix="zkdao-proof-") as tmp:
            witness_path = Path(tmp, "witness.gz")
            witness_path.write_bytes(witness.data)
            out_dir = Path(tmp, "out")
            out_dir.mkdir()

            code, _, stderr = await self._run(
                [
                    self.bb_bin,
                    "prove",
                    "-b",
                    str(self.artifact),
                    "-w",
                    str(witness_path),
                    "-o",
                    str(out_dir),
                    "--oracle_hash",
                    self.oracle_hash,
                ]
            )
            if code != 0:
                raise ProofGenerationFailedException(
                    f"bb prove exited with {code}: {stderr.strip()[:200]}"
                )

            proof = (out_dir / "proof").read_bytes()
            public_inputs = split_public_inputs(
                (out_dir / "public_inputs").read_bytes()
            )

        _logger.info(
            "Generated proof (%d bytes, %d public inputs)",
            len(proof),
            len(public_inputs),
        )
        return ProofData(proof=proof, public_inputs=public_inputs)

    async def verify_proof(self, proof: ProofData) -> bool:
        vk = await self.verification_key()
        with tempfile.TemporaryDirectory(prefix="zkdao-verify-") as tmp:
            paths = {
                "vk": Path(tmp, "vk"),
                "proof": Path(tmp, "proof"),
                "public_inputs": Path(tmp, "public_inputs"),
            }
            paths["vk"].write_bytes(vk)
            paths["proof"].write_bytes(proof.proof)
            paths["public_inputs"].write_bytes(join_public_inputs(proof.public_inputs))

            code, _, _ = await self._run(
                [
                    self.bb_bin,
                    "verify",
                    "-k",
                    str(paths["vk"]),
                    "-p",
                    str(paths["proof"]),
                    "-i",
                    str(paths["public_inputs"]),
                    "--oracle_hash",
                    self.oracle_hash,
                ]
            )
        return code == 0


def default_backend() -> NoirBackend:
    """Backend configured from NARGO_BIN / BB_BIN / ZKDAO_CIRCUIT_* env."""
    if not os.path.isdir(CircuitConstants.CIRCUIT_DIR):
        _logger.warning(
            "Circuit directory %s does not exist", CircuitConstants.CIRCUIT_DIR
        )
    return NoirBackend()
