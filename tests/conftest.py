"""
공용 테스트 픽스처
==================

- SecretStore (TinyDB MemoryStorage)
- DevLedger: 논스/단계/증명 검증을 흉내 내는 스크립트형 원장
- FakeCircuitBackend: nargo/bb 없이 회로 브리지를 구동하는 백엔드
"""

import asyncio

import pytest
from eth_utils import keccak

from cangkulan.circuit.backend import CircuitBackend
from cangkulan.circuit.encoding import (
    NOIR_PROOF_MIN_SIZE, circuit_seed_hash, encode_public_inputs,
    seed_hash_from_public_inputs,
)
from cangkulan.config import Settings
from cangkulan.errors import CircuitError, LedgerError, ProofRejected
from cangkulan.session.ledger import LedgerClient, TxResult
from cangkulan.session.view import (
    LIFECYCLE_FINISHED, LIFECYCLE_PLAYING, LIFECYCLE_SEED_COMMIT, LIFECYCLE_SEED_REVEAL,
    TIMEOUT_ACTIONS, TRICK_COMMIT_WAIT_BOTH, TRICK_COMMIT_WAIT_P1, TRICK_COMMIT_WAIT_P2,
    TRICK_NONE, TRICK_REVEAL_WAIT_BOTH, TRICK_REVEAL_WAIT_P1, TRICK_REVEAL_WAIT_P2,
    SessionView,
)
from cangkulan.storage import SecretStore, TinyKeyValueStore
from cangkulan.zk.cards import CANNOT_FOLLOW_SENTINEL, play_commit_hash, suit_of, valid_set
from cangkulan.zk.verifier import (
    check_cangkul_opening, check_cangkul_proof, check_ring_opening, check_ring_proof,
    check_seed_reveal,
)


ALICE = "GALICE7XQ2MZ3KJ4YTNE5VRL6W2SBF3UGHXDZQ4P7ACNW3KL5RT2YBQ6M"
BOB = "GBOBXK3N7Q2ZL5M4VT6WJ8RS2HFD3YGPQ4C7AUNX5KM3LT2RZ6BW4YQE"
SESSION_ID = 4242

# 테스트용 고정 손패: ALICE는 하트(0..8) 두 장, BOB은 하트 없음
DEFAULT_HANDS = {ALICE: [2, 5, 11, 20, 30], BOB: [9, 13, 19, 27, 35]}


# ─────────────────────────────────────────────────────────────────────
# 개발용 원장
# ─────────────────────────────────────────────────────────────────────

_REJECT_CODES = {"commit_mismatch": 9, "weak_entropy": 24}


class DevLedger(LedgerClient):
    """컨트랙트 규칙을 흉내 내는 메모리 원장.

    속성:
        calls: (호출 이름, 플레이어, expected_nonce) 기록
        events: 뷰 조회를 포함한 전체 호출 순서
        failures: {호출 이름: [예외, ...]} 순서대로 주입할 실패
    """

    def __init__(self, player1=ALICE, player2=BOB, session_id=SESSION_ID, hands=None,
                 trick_suits=(0,), noir_accepts=True):
        self.session_id = session_id
        self.players = (player1, player2)
        self.hands = {p: list(h) for p, h in (hands or DEFAULT_HANDS).items()}
        self.trick_suits = list(trick_suits)
        self.noir_accepts = noir_accepts

        self.lifecycle = LIFECYCLE_SEED_COMMIT
        self.nonce = 0
        self.deadline = None
        self.trick_state = TRICK_NONE
        self.trick_suit = None
        self.winner = None
        self.seed_commits = {}
        self.seed_hashes = {}
        self.noir_verified = set()
        self.play_commits = {}
        self.play_reveals = {}

        self.calls = []
        self.events = []
        self.failures = {}
        self.bump_on_failure = False

    # ── 헬퍼 ──

    def fail(self, name, *errors):
        self.failures.setdefault(name, []).extend(errors)

    def _enter(self, name, party, expected_nonce):
        self.calls.append((name, party, expected_nonce))
        self.events.append(name)
        queued = self.failures.get(name)
        if queued:
            if self.bump_on_failure:
                self.nonce += 1
            raise queued.pop(0)
        if party not in self.players:
            raise LedgerError.from_code(3)
        if self.lifecycle == LIFECYCLE_FINISHED:
            raise LedgerError.from_code(5)
        if expected_nonce != self.nonce:
            raise LedgerError.from_code(25)

    def _slot(self, party):
        return self.players.index(party) + 1

    def _other(self, party):
        return self.players[1] if party == self.players[0] else self.players[0]

    def _bump(self):
        self.nonce += 1
        self.deadline = self.nonce + TIMEOUT_ACTIONS

    def _tx(self, value=None):
        return TxResult(tx_hash=keccak(self.nonce.to_bytes(4, "big")).hex(), value=value)

    def _start_trick(self):
        if not self.trick_suits:
            self.lifecycle = LIFECYCLE_FINISHED
            self.trick_state = TRICK_NONE
            self.trick_suit = None
            self.winner = min(self.players, key=lambda p: len(self.hands[p]))
            return
        self.trick_suit = self.trick_suits.pop(0)
        self.trick_state = TRICK_COMMIT_WAIT_BOTH
        self.play_commits = {}
        self.play_reveals = {}

    # ── 조회 ──

    async def get_session_view(self, session_id, viewer):
        self.events.append("view")
        await asyncio.sleep(0)
        if session_id != self.session_id:
            raise LedgerError.from_code(1)
        p1, p2 = self.players
        return SessionView(
            session_id, p1, p2, self.lifecycle, self.nonce,
            trick_state=self.trick_state, trick_suit=self.trick_suit,
            hand=self.hands.get(viewer, []) if self.lifecycle == LIFECYCLE_PLAYING else [],
            seed_committed=(p1 in self.seed_commits, p2 in self.seed_commits),
            seed_revealed=(p1 in self.seed_hashes, p2 in self.seed_hashes),
            deadline_nonce=self.deadline, winner=self.winner,
        )

    # ── 시드 ──

    async def commit_seed(self, session_id, party, commit_hash, expected_nonce):
        self._enter("commit_seed", party, expected_nonce)
        if self.lifecycle != LIFECYCLE_SEED_COMMIT:
            raise LedgerError.from_code(6)
        if party in self.seed_commits:
            raise LedgerError.from_code(7)
        self.seed_commits[party] = bytes(commit_hash)
        self._bump()
        if len(self.seed_commits) == 2:
            self.lifecycle = LIFECYCLE_SEED_REVEAL
        return self._tx()

    async def verify_noir_seed(self, session_id, party, seed_hash, proof, expected_nonce):
        self._enter("verify_noir_seed", party, expected_nonce)
        if self.lifecycle != LIFECYCLE_SEED_REVEAL:
            raise LedgerError.from_code(6)
        if len(proof) <= NOIR_PROOF_MIN_SIZE:
            raise LedgerError.from_code(10)
        if keccak(bytes(seed_hash)) != self.seed_commits.get(party):
            raise LedgerError.from_code(9)
        if not self.noir_accepts:
            raise LedgerError.from_code(31)
        self.noir_verified.add(party)
        return self._tx(True)

    async def reveal_seed(self, session_id, party, seed_hash, proof, expected_nonce):
        self._enter("reveal_seed", party, expected_nonce)
        if self.lifecycle != LIFECYCLE_SEED_REVEAL:
            raise LedgerError.from_code(6)
        if party in self.seed_hashes:
            raise LedgerError.from_code(8)
        if len(proof) == 0 and party not in self.noir_verified:
            raise LedgerError.from_code(10)
        try:
            check_seed_reveal(seed_hash, self.seed_commits[party], proof, session_id, party)
        except ProofRejected as exc:
            raise LedgerError.from_code(_REJECT_CODES.get(exc.reason, 10)) from exc
        self.seed_hashes[party] = bytes(seed_hash)
        self.noir_verified.discard(party)
        self._bump()
        if len(self.seed_hashes) == 2:
            self.lifecycle = LIFECYCLE_PLAYING
            self._start_trick()
        return self._tx()

    # ── 플레이 ──

    def _begin_commit(self, name, party, expected_nonce):
        self._enter(name, party, expected_nonce)
        if self.lifecycle != LIFECYCLE_PLAYING:
            raise LedgerError.from_code(6)
        if party in self.play_commits:
            raise LedgerError.from_code(26)
        wait = {1: (TRICK_COMMIT_WAIT_BOTH, TRICK_COMMIT_WAIT_P1),
                2: (TRICK_COMMIT_WAIT_BOTH, TRICK_COMMIT_WAIT_P2)}[self._slot(party)]
        if self.trick_state not in wait:
            raise LedgerError.from_code(12)

    def _finish_commit(self, party, commit_hash, mode):
        self.play_commits[party] = (bytes(commit_hash), mode)
        self._bump()
        if len(self.play_commits) == 2:
            self.trick_state = TRICK_REVEAL_WAIT_BOTH
        else:
            self.trick_state = TRICK_COMMIT_WAIT_P2 if self._slot(party) == 1 else TRICK_COMMIT_WAIT_P1
        return self._tx()

    async def commit_play(self, session_id, party, commit_hash, expected_nonce):
        self._begin_commit("commit_play", party, expected_nonce)
        return self._finish_commit(party, commit_hash, "hash")

    async def commit_play_zk(self, session_id, party, commit_hash, expected_nonce, proof):
        self._begin_commit("commit_play_zk", party, expected_nonce)
        valid = valid_set(self.hands[party], self.trick_suit)
        if not valid:
            raise LedgerError.from_code(33)
        try:
            check_ring_proof(commit_hash, valid, proof, session_id, party)
        except ProofRejected as exc:
            raise LedgerError.from_code(32) from exc
        return self._finish_commit(party, commit_hash, "ring")

    async def commit_cangkul_zk(self, session_id, party, commit_hash, expected_nonce, proof):
        self._begin_commit("commit_cangkul_zk", party, expected_nonce)
        if valid_set(self.hands[party], self.trick_suit):
            raise LedgerError.from_code(15)
        try:
            check_cangkul_proof(commit_hash, self.trick_suit, self.hands[party], proof, session_id, party)
        except ProofRejected as exc:
            raise LedgerError.from_code(35) from exc
        return self._finish_commit(party, commit_hash, "cangkul")

    async def reveal_play(self, session_id, party, card_id, salt, expected_nonce):
        self._enter("reveal_play", party, expected_nonce)
        wait = {1: (TRICK_REVEAL_WAIT_BOTH, TRICK_REVEAL_WAIT_P1),
                2: (TRICK_REVEAL_WAIT_BOTH, TRICK_REVEAL_WAIT_P2)}[self._slot(party)]
        if self.lifecycle != LIFECYCLE_PLAYING or self.trick_state not in wait:
            raise LedgerError.from_code(6)
        if party not in self.play_commits:
            raise LedgerError.from_code(27)
        commit_hash, mode = self.play_commits[party]
        hand = self.hands[party]
        try:
            if mode == "ring":
                check_ring_opening(commit_hash, card_id, salt)
            elif mode == "cangkul":
                if card_id != CANNOT_FOLLOW_SENTINEL:
                    raise LedgerError.from_code(28)
                check_cangkul_opening(commit_hash, hand, salt)
            elif play_commit_hash(card_id, salt) != commit_hash:
                raise LedgerError.from_code(28)
        except ProofRejected as exc:
            raise LedgerError.from_code(34) from exc
        if card_id != CANNOT_FOLLOW_SENTINEL:
            if card_id not in hand:
                raise LedgerError.from_code(13)
            if suit_of(card_id) != self.trick_suit:
                raise LedgerError.from_code(14)

        self.play_reveals[party] = card_id
        self._bump()
        if len(self.play_reveals) == 2:
            for p, card in self.play_reveals.items():
                if card != CANNOT_FOLLOW_SENTINEL:
                    self.hands[p].remove(card)
            self._start_trick()
        else:
            self.trick_state = TRICK_REVEAL_WAIT_P2 if self._slot(party) == 1 else TRICK_REVEAL_WAIT_P1
        return self._tx()

    # ── 타임아웃 ──

    async def tick_timeout(self, session_id, party, expected_nonce):
        self._enter("tick_timeout", party, expected_nonce)
        if self.deadline is None:
            raise LedgerError.from_code(22)
        if self.nonce >= self.deadline:
            raise LedgerError.from_code(38)
        self.nonce += 1
        return self._tx(self.nonce)

    async def resolve_timeout(self, session_id, party, expected_nonce):
        self._enter("resolve_timeout", party, expected_nonce)
        if self.deadline is None:
            raise LedgerError.from_code(22)
        if self.nonce < self.deadline:
            raise LedgerError.from_code(21)
        self.lifecycle = LIFECYCLE_FINISHED
        self.winner = party
        return self._tx(party)

    async def forfeit(self, session_id, party, expected_nonce):
        self._enter("forfeit", party, expected_nonce)
        self.lifecycle = LIFECYCLE_FINISHED
        self.winner = self._other(party)
        return self._tx(self.winner)


# ─────────────────────────────────────────────────────────────────────
# 가짜 회로 백엔드
# ─────────────────────────────────────────────────────────────────────

class FakeCircuitBackend(CircuitBackend):
    """nargo/bb 대신 결정론적 바이트열을 돌려준다."""

    def __init__(self, fail_load=False, proof_size=NOIR_PROOF_MIN_SIZE + 1000):
        self.fail_load = fail_load
        self.proof_size = proof_size
        self.loads = 0
        self.proofs = 0
        self.closed = False

    async def load(self):
        self.loads += 1
        await asyncio.sleep(0)
        if self.fail_load:
            raise CircuitError("회로 아티팩트를 읽을 수 없습니다")

    async def execute(self, seed, seed_hash):
        if circuit_seed_hash(seed) != seed_hash:
            raise CircuitError("blake2s(seed) != seed_hash")
        return seed_hash

    async def prove(self, witness):
        self.proofs += 1
        body = keccak(witness) * (self.proof_size // 32 + 1)
        return body[:self.proof_size], encode_public_inputs(witness)

    async def verify(self, proof, public_inputs):
        seed_hash = seed_hash_from_public_inputs(public_inputs)
        return proof[:32] == keccak(seed_hash)

    async def close(self):
        self.closed = True


# ─────────────────────────────────────────────────────────────────────
# 픽스처
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def settings():
    """재시도 대기가 없는 설정."""
    return Settings(retry_base_delay=0.0, poll_base_interval=0.0, _env_file=None)


@pytest.fixture
def store():
    return SecretStore(TinyKeyValueStore.in_memory())


@pytest.fixture
def ledger():
    return DevLedger()


@pytest.fixture
def make_ledger():
    return DevLedger


@pytest.fixture
def fake_backend():
    return FakeCircuitBackend()


@pytest.fixture
def no_sleep():
    """대기 시간을 기록만 하는 sleep 대체 함수."""
    waits = []

    async def sleep(seconds):
        waits.append(seconds)

    sleep.waits = waits
    return sleep


@pytest.fixture
def make_backend():
    return FakeCircuitBackend
