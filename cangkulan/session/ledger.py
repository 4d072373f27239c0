"""
원장 클라이언트 포트
======================

오케스트레이터가 소비하는 원장 호출의 인터페이스. 실제 트랜잭션 구성과
서명은 구현체(네트워크 어댑터, 개발용 원장)의 몫이다.

모든 상태 변경 호출은 관찰한 액션 논스(expected_nonce)를 함께 보내고,
원장은 오래된 논스를 거부한다 (낙관적 동시성 제어).

실패는 LedgerError로 올린다. 메시지에는 가능한 한 원장의 원시 오류 문자열
("HostError: Error(Contract, #25)" 등)을 담아 재시도 분류와 번역에 쓰이게 한다.

| 호출               | 주요 입력                          |
|--------------------|------------------------------------|
| commit_seed        | commitHash(32)                     |
| reveal_seed        | seedHash(32), proof(64/224/0 B)    |
| verify_noir_seed   | seedHash, proof(> 4000 B)          |
| commit_play        | commitHash                         |
| commit_play_zk     | commitHash, ring proof             |
| commit_cangkul_zk  | commitHash, aggregate proof        |
| reveal_play        | cardId 또는 센티널, salt(32)        |
| tick_timeout       |                                    |
| resolve_timeout    |                                    |
| forfeit            |                                    |
"""

import abc


class TxResult:
    """원장 호출 결과.

    속성:
        tx_hash: 트랜잭션 해시 (개발 원장은 임의 식별자)
        value: 컨트랙트 반환값 (예: tick_timeout의 새 논스, resolve_timeout의 승자)
    """

    def __init__(self, tx_hash=None, value=None):
        self.tx_hash = tx_hash
        self.value = value

    def __repr__(self):
        return f"TxResult(tx_hash={self.tx_hash!r}, value={self.value!r})"


class LedgerClient(abc.ABC):
    """세션 원장에 대한 비동기 호출 계약."""

    @abc.abstractmethod
    async def get_session_view(self, session_id, viewer):
        """SessionView를 반환한다. viewer 본인의 손패만 채워진다."""

    @abc.abstractmethod
    async def commit_seed(self, session_id, party, commit_hash, expected_nonce):
        ...

    @abc.abstractmethod
    async def reveal_seed(self, session_id, party, seed_hash, proof, expected_nonce):
        ...

    @abc.abstractmethod
    async def verify_noir_seed(self, session_id, party, seed_hash, proof, expected_nonce):
        """분할 검증 1단계: 회로 증명을 검증하고 "검증됨" 플래그를 기록한다."""

    @abc.abstractmethod
    async def commit_play(self, session_id, party, commit_hash, expected_nonce):
        ...

    @abc.abstractmethod
    async def commit_play_zk(self, session_id, party, commit_hash, expected_nonce, proof):
        ...

    @abc.abstractmethod
    async def commit_cangkul_zk(self, session_id, party, commit_hash, expected_nonce, proof):
        ...

    @abc.abstractmethod
    async def reveal_play(self, session_id, party, card_id, salt, expected_nonce):
        ...

    @abc.abstractmethod
    async def tick_timeout(self, session_id, party, expected_nonce):
        ...

    @abc.abstractmethod
    async def resolve_timeout(self, session_id, party, expected_nonce):
        ...

    @abc.abstractmethod
    async def forfeit(self, session_id, party, expected_nonce):
        ...
