"""
회로 증명 백엔드 (전략 객체)
==============================

CircuitBridge가 최초 사용 시 로드하는 무거운 증명기/검증기 쌍.

**NargoBackend 흐름**:
  1. 백엔드 전용 작업 디렉터리에 Prover.toml 작성 (seed, seed_hash)
  2. nargo execute --prover-name → target/<작업 디렉터리 이름>.gz (witness)
  3. bb prove_ultra_keccak_honk → proof.with_public_inputs
  4. 앞쪽 1024바이트(공개 입력)와 나머지(증명)를 분리

모든 외부 명령은 asyncio 서브프로세스로, 파일 입출력은 asyncio.to_thread로
실행되어 이벤트 루프를 막지 않는다. 같은 회로 디렉터리를 쓰는 백엔드끼리도
입력 파일과 witness 이름이 겹치지 않는다.
"""

import abc
import asyncio
import logging
import os
import shutil
import tempfile

from cangkulan.errors import CircuitError
from cangkulan.circuit.encoding import PUBLIC_INPUTS_SIZE, prover_toml

logger = logging.getLogger(__name__)


def _write_file(path, data):
    mode = "wb" if isinstance(data, bytes) else "w"
    with open(path, mode) as f:
        f.write(data)


def _read_file(path):
    with open(path, "rb") as f:
        return f.read()


class CircuitBackend(abc.ABC):
    """회로 증명 백엔드 인터페이스."""

    @abc.abstractmethod
    async def load(self):
        """회로 아티팩트를 읽고 증명기를 준비한다."""

    @abc.abstractmethod
    async def execute(self, seed, seed_hash):
        """witness를 생성한다. 회로 제약(해시, 엔트로피)을 위반하면 CircuitError."""

    @abc.abstractmethod
    async def prove(self, witness):
        """(proof, public_inputs) 바이트열을 반환한다."""

    @abc.abstractmethod
    async def verify(self, proof, public_inputs):
        ...

    async def close(self):
        pass


class NargoBackend(CircuitBackend):
    """nargo / bb 명령줄 도구를 구동하는 기본 백엔드.

    Args:
        circuit_dir: Nargo.toml이 있는 seed_verify 회로 디렉터리
        circuit_name: 컴파일 산출물 이름 (target/<name>.json)
        nargo_bin, bb_bin: 실행 파일 경로
    """

    def __init__(self, circuit_dir, circuit_name="seed_verify", nargo_bin="nargo", bb_bin="bb"):
        self.circuit_dir = os.path.abspath(circuit_dir)
        self.circuit_name = circuit_name
        self.nargo_bin = nargo_bin
        self.bb_bin = bb_bin
        self.target_dir = os.path.join(self.circuit_dir, "target")
        self.circuit_json = os.path.join(self.target_dir, f"{circuit_name}.json")
        self.vk_path = os.path.join(self.target_dir, "vk.keccak")
        self._workdir = None

    async def _run(self, *args, cwd=None):
        logger.debug("running %s", " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                cwd=cwd or self.circuit_dir,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise CircuitError(f"실행 파일을 찾을 수 없습니다: {args[0]}") from exc
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise CircuitError(f"{args[0]} {args[1]} 실패 (exit {proc.returncode}): "
                               f"{stderr.decode(errors='replace').strip()}")
        return stdout

    async def load(self):
        if not os.path.isdir(self.circuit_dir):
            raise CircuitError(f"회로 디렉터리가 없습니다: {self.circuit_dir}")
        if not os.path.exists(self.circuit_json):
            logger.info("compiling circuit %s", self.circuit_name)
            await self._run(self.nargo_bin, "compile")
        if not os.path.exists(self.vk_path):
            await self._run(self.bb_bin, "write_vk_ultra_keccak_honk",
                            "-b", self.circuit_json, "-o", self.vk_path)
        self._workdir = tempfile.mkdtemp(prefix="cangkulan-circuit-")

    @property
    def witness_name(self):
        """target/ 아래 witness 파일 이름. 작업 디렉터리별로 고유하다."""
        if self._workdir is None:
            raise CircuitError("백엔드가 로드되지 않았습니다")
        return os.path.basename(self._workdir)

    async def execute(self, seed, seed_hash):
        # nargo는 --prover-name을 회로 디렉터리 기준으로 해석하므로 절대 경로를 넘긴다
        name = self.witness_name
        prover = os.path.join(self._workdir, "Prover")
        await asyncio.to_thread(_write_file, prover + ".toml", prover_toml(seed, seed_hash))
        await self._run(self.nargo_bin, "execute", "--prover-name", prover, name)
        witness = os.path.join(self.target_dir, f"{name}.gz")
        if not os.path.exists(witness):
            raise CircuitError("witness 파일이 생성되지 않았습니다")
        return witness

    async def prove(self, witness):
        out = os.path.join(self._workdir, "proof.with_public_inputs")
        await self._run(self.bb_bin, "prove_ultra_keccak_honk",
                        "-b", self.circuit_json, "-w", witness, "-o", out)
        blob = await asyncio.to_thread(_read_file, out)
        if len(blob) <= PUBLIC_INPUTS_SIZE:
            raise CircuitError(f"증명 출력이 너무 짧습니다: {len(blob)}B")
        return blob[PUBLIC_INPUTS_SIZE:], blob[:PUBLIC_INPUTS_SIZE]

    async def verify(self, proof, public_inputs):
        path = os.path.join(self._workdir, "verify.with_public_inputs")
        await asyncio.to_thread(_write_file, path, bytes(public_inputs) + bytes(proof))
        try:
            await self._run(self.bb_bin, "verify_ultra_keccak_honk", "-k", self.vk_path, "-p", path)
        except CircuitError as exc:
            logger.info("circuit proof rejected: %s", exc)
            return False
        return True

    async def close(self):
        if self._workdir:
            witness = os.path.join(self.target_dir, f"{self.witness_name}.gz")
            if os.path.exists(witness):
                os.remove(witness)
            shutil.rmtree(self._workdir, ignore_errors=True)
        self._workdir = None
