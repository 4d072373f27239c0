"""
외부 회로 브리지
==================

noir 모드 시드 증명을 위한 지연 초기화 어댑터.

**초기화 상태 기계**:
  uninitialized → initializing → ready
                        ↓
                      failed  (다음 호출이 다시 시도)

  동시에 여러 코루틴이 ensure_ready()를 호출해도 캐시된 초기화 태스크
  하나를 함께 기다리므로 백엔드는 정확히 한 번만 로드된다.

**분할 검증 프로토콜**:
  회로 증명은 한 번의 원장 검증 예산을 넘기 때문에 두 번의 호출로 나뉜다.
    (1) verify_noir_seed(seedHash, proof)  → 원장에 "검증됨" 플래그 기록
    (2) reveal_seed(seedHash, b"")         → 플래그를 근거로 공개 처리
  (1)이 실패하면 (2)는 호출하지 않는다. 순서 보장은 오케스트레이터의 몫이다.

사용 예시:
    >>> bridge = CircuitBridge(lambda: NargoBackend("circuits/seed_verify"))
    >>> result = await bridge.prove_knowledge(seed)
    >>> len(result.public_inputs)
    1024
"""

import asyncio
import logging
import time

from cangkulan.errors import CircuitError, PreconditionError
from cangkulan.circuit.encoding import (
    NOIR_PROOF_MIN_SIZE, circuit_seed_hash, encode_public_inputs,
    seed_hash_from_public_inputs,
)
from cangkulan.zk.seed import check_seed

logger = logging.getLogger(__name__)


STATE_UNINITIALIZED = "uninitialized"
STATE_INITIALIZING = "initializing"
STATE_READY = "ready"
STATE_FAILED = "failed"


class CircuitProof:
    """회로 증명 결과.

    속성:
        proof: 증명 바이트열 (> 4000B)
        public_inputs: 1024바이트 공개 입력
        seed_hash: 공개 입력에서 복원한 blake2s(seed)
        elapsed_ms: witness + 증명 생성 소요 시간
    """

    def __init__(self, proof, public_inputs, seed_hash, elapsed_ms):
        self.proof = proof
        self.public_inputs = public_inputs
        self.seed_hash = seed_hash
        self.elapsed_ms = elapsed_ms


class CircuitBridge:
    """회로 백엔드를 처음 사용할 때 로드하는 브리지.

    Args:
        backend_factory: 인자 없이 CircuitBackend를 반환하는 호출 가능 객체
    """

    def __init__(self, backend_factory):
        self._factory = backend_factory
        self._backend = None
        self._init_task = None
        self.state = STATE_UNINITIALIZED

    @property
    def is_ready(self):
        return self.state == STATE_READY

    async def _initialize(self):
        self.state = STATE_INITIALIZING
        started = time.perf_counter()
        try:
            backend = self._factory()
            await backend.load()
        except Exception as exc:
            self.state = STATE_FAILED
            logger.error("circuit backend failed to load: %s", exc)
            if isinstance(exc, CircuitError):
                raise
            raise CircuitError(f"회로 백엔드 초기화 실패: {exc}") from exc
        self._backend = backend
        self.state = STATE_READY
        logger.info("circuit backend ready in %.0f ms", (time.perf_counter() - started) * 1000)
        return backend

    async def ensure_ready(self):
        """백엔드를 로드한다. 이미 준비되었으면 바로 반환한다."""
        if self.state == STATE_READY:
            return self._backend
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        try:
            return await self._init_task
        except CircuitError:
            self._init_task = None
            raise

    async def prove_knowledge(self, seed, seed_hash=None):
        """seed를 알고 있고 blake2s(seed) == seedHash 임을 회로로 증명한다.

        회로 안의 엔트로피 조건(앞 4바이트가 모두 0이 아님)은 수십 초짜리
        증명 생성 전에 미리 검사한다.

        Returns:
            CircuitProof

        Raises:
            PreconditionError: 시드 형식/엔트로피 위반, seedHash 불일치
            CircuitError: 백엔드 실패
        """
        seed = check_seed(seed)
        expected = circuit_seed_hash(seed)
        if seed_hash is not None and bytes(seed_hash) != expected:
            raise PreconditionError("seedHash가 blake2s(seed)와 다릅니다")

        backend = await self.ensure_ready()
        started = time.perf_counter()
        witness = await backend.execute(seed, expected)
        proof, public_inputs = await backend.prove(witness)
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        if len(proof) <= NOIR_PROOF_MIN_SIZE:
            raise CircuitError(f"회로 증명이 너무 짧습니다: {len(proof)}B")
        if seed_hash_from_public_inputs(public_inputs) != expected:
            raise CircuitError("공개 입력의 seedHash가 기대값과 다릅니다")
        logger.info("circuit proof generated: %dB in %d ms", len(proof), elapsed_ms)
        return CircuitProof(proof, public_inputs, expected, elapsed_ms)

    async def verify(self, proof, seed_hash):
        """회로 증명을 로컬에서 검증한다."""
        if len(proof) <= NOIR_PROOF_MIN_SIZE:
            return False
        backend = await self.ensure_ready()
        return await backend.verify(proof, encode_public_inputs(seed_hash))

    async def close(self):
        """백엔드를 해제하고 uninitialized 상태로 되돌린다."""
        if self._backend is not None:
            await self._backend.close()
        self._backend = None
        self._init_task = None
        self.state = STATE_UNINITIALIZED
