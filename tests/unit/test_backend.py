"""
Unit tests for the Noir proving backend with the toolchain subprocesses
replaced by fakes.
"""

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import TREE_DEPTH
from zkdao_toolkit.circuit.backend import (
    NoirBackend,
    ProofData,
    Witness,
    join_public_inputs,
    split_public_inputs,
)
from zkdao_toolkit.proofs.generator import ProofGenerator
from zkdao_toolkit.shared.exceptions import (
    ConstraintViolationException,
    ProofGenerationFailedException,
)


class FakeProcess:
    def __init__(self, returncode=0, stdout=b"", stderr=b"", delay=0.0):
        self._returncode = returncode
        self.returncode = None
        self.stdout = stdout
        self.stderr = stderr
        self.delay = delay
        self.killed = False

    async def communicate(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        self.returncode = self._returncode
        return self.stdout, self.stderr

    def kill(self):
        self.killed = True
        self.returncode = -9

    async def wait(self):
        return self.returncode


class FakeToolchain:
    """Stands in for asyncio.create_subprocess_exec."""

    def __init__(self, circuit_dir: Path):
        self.circuit_dir = circuit_dir
        self.commands = []
        self.fail = {}
        self.processes = []
        self.delay = 0.0

    def _option(self, cmd, flag):
        return cmd[cmd.index(flag) + 1]

    async def __call__(self, *cmd, **kwargs):
        cmd = list(cmd)
        self.commands.append(cmd)
        action = cmd[1]
        if action in self.fail:
            process = FakeProcess(returncode=1, stderr=self.fail[action])
        else:
            if action == "execute":
                target = self.circuit_dir / "target"
                target.mkdir(exist_ok=True)
                (target / f"{cmd[2]}.gz").write_bytes(b"witness")
            elif action == "prove":
                out = Path(self._option(cmd, "-o"))
                (out / "proof").write_bytes(b"\xaa" * 32)
                (out / "public_inputs").write_bytes(join_public_inputs([1, 2, 3]))
            elif action == "write_vk":
                Path(self._option(cmd, "-o"), "vk").write_bytes(b"vk")
            process = FakeProcess(delay=self.delay)
        self.processes.append(process)
        return process

    def actions(self):
        return [c[1] for c in self.commands]


@pytest.fixture
def toolchain(tmp_path):
    fake = FakeToolchain(tmp_path)
    with patch("zkdao_toolkit.circuit.backend.asyncio.create_subprocess_exec", fake):
        yield fake


@pytest.fixture
def backend(tmp_path):
    return NoirBackend(
        circuit_dir=str(tmp_path),
        artifact=str(tmp_path / "target" / "zkdao.json"),
        nargo_bin="nargo",
        bb_bin="bb",
    )


@pytest.fixture
def circuit_inputs(eligibility, fake_backend):
    generator = ProofGenerator(fake_backend, tree_depth=TREE_DEPTH)
    return generator.prepare_inputs(eligibility.raw_inputs(0))


class TestPublicInputWords:
    def test_split(self):
        raw = (5).to_bytes(32, "big") + (7).to_bytes(32, "big")
        assert split_public_inputs(raw) == (5, 7)

    def test_split_rejects_partial_word(self):
        with pytest.raises(ProofGenerationFailedException):
            split_public_inputs(b"\x00" * 33)

    def test_join(self):
        assert join_public_inputs([1]) == b"\x00" * 31 + b"\x01"


class TestNoirBackend:
    @pytest.mark.asyncio
    async def test_execute_returns_witness_and_cleans_up(
        self, toolchain, backend, circuit_inputs, tmp_path
    ):
        witness = await backend.execute(circuit_inputs)

        assert witness.data == b"witness"
        cmd = toolchain.commands[0]
        assert cmd[:2] == ["nargo", "execute"]
        assert "--prover-name" in cmd
        assert list(tmp_path.glob("Prover_*.toml")) == []
        assert list((tmp_path / "target").glob("*.gz")) == []

    @pytest.mark.asyncio
    async def test_failed_constraint_maps_to_constraint_violation(
        self, toolchain, backend, circuit_inputs, tmp_path
    ):
        toolchain.fail["execute"] = b"error: Failed constraint\n  at main.nr:42\n"

        with pytest.raises(ConstraintViolationException) as exc_info:
            await backend.execute(circuit_inputs)

        assert "Failed constraint" in str(exc_info.value)
        assert list(tmp_path.glob("Prover_*.toml")) == []

    @pytest.mark.asyncio
    async def test_other_nargo_failure(self, toolchain, backend, circuit_inputs):
        toolchain.fail["execute"] = b"error: could not parse Nargo.toml\n"

        with pytest.raises(ProofGenerationFailedException):
            await backend.execute(circuit_inputs)

    @pytest.mark.asyncio
    async def test_prove_reads_proof_and_public_inputs(self, toolchain, backend):
        proof = await backend.generate_proof(Witness(data=b"witness"))

        assert proof.proof == b"\xaa" * 32
        assert proof.public_inputs == (1, 2, 3)
        assert toolchain.commands[0][-2:] == ["--oracle_hash", "keccak"]

    @pytest.mark.asyncio
    async def test_verification_key_is_cached(self, toolchain, backend):
        proof = ProofData(proof=b"\xaa" * 32, public_inputs=(1, 2, 3))

        assert await backend.verify_proof(proof)
        assert await backend.verify_proof(proof)

        assert toolchain.actions() == ["write_vk", "verify", "verify"]

    @pytest.mark.asyncio
    async def test_verify_failure_returns_false(self, toolchain, backend):
        toolchain.fail["verify"] = b"verification failed"
        proof = ProofData(proof=b"\xaa" * 32, public_inputs=(1,))

        assert await backend.verify_proof(proof) is False

    @pytest.mark.asyncio
    async def test_missing_binary(self, backend, circuit_inputs):
        async def missing(*cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        with patch(
            "zkdao_toolkit.circuit.backend.asyncio.create_subprocess_exec", missing
        ):
            with pytest.raises(ProofGenerationFailedException) as exc_info:
                await backend.execute(circuit_inputs)
        assert "nargo not found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_cancel_kills_process(self, toolchain, backend):
        toolchain.delay = 10
        task = asyncio.create_task(backend.generate_proof(Witness(data=b"w")))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert toolchain.processes[0].killed
