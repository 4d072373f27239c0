"""
시드 증명 엔진: nizk / pedersen / noir
========================================

이미 커밋한 32바이트 시드를 알고 있음을 증명하는 세 가지 교환 가능한 방식.

**nizk (해시 기반, 64바이트)**:
  commitHash = keccak(seedHash ‖ blinding ‖ player)
  challenge  = keccak(commitHash ‖ sid ‖ player ‖ "ZKV2")
  response   = keccak(seedHash ‖ challenge ‖ blinding)
  proof      = blinding ‖ response

**pedersen (곡선 기반, 224바이트)**:
  C = Fr(seedHash)·G + Fr(blinding)·H,  commitHash = keccak(C)
  R = k·H,  e = Fr(keccak(C ‖ R ‖ seedHash ‖ sid ‖ player ‖ "ZKP4"))
  z = k + e·blinding
  proof = C ‖ R ‖ z
  매 호출마다 k가 새로 뽑히므로 같은 커밋먼트의 증명끼리도 연결되지 않는다.

**noir (회로 기반)**:
  seedHash = blake2s(seed),  commitHash = keccak(seedHash)
  증명은 외부 회로 브리지(cangkulan.circuit)가 생성한다.

**엔트로피 규칙**:
  시드의 앞 4바이트가 모두 0이면 모든 모드에서 커밋 전에 거부한다.
  이는 회로 안에서 검사하는 조건과 동일하다.

사용 예시:
    >>> seed = generate_seed()
    >>> blinding = random_blinding_bytes()
    >>> c = build_seed_commitment(seed, blinding, "GPLAYER", MODE_PEDERSEN)
    >>> proof = build_seed_proof(seed, blinding, 7, "GPLAYER", MODE_PEDERSEN)
    >>> len(proof)
    224
"""

import hashlib
import logging
import secrets

from eth_utils import keccak

from cangkulan.errors import PreconditionError
from cangkulan.zk.field import (
    fr_from_bytes, fr_to_bytes, g1_to_bytes, u32_to_bytes, party_bytes,
)
from cangkulan.zk.pedersen import commit, commit_hash, schnorr_commit, schnorr_respond
from cangkulan.zk.transcript import Transcript, TAG_NIZK_SEED, TAG_PEDERSEN_SEED

logger = logging.getLogger(__name__)


MODE_NIZK = "nizk"
MODE_PEDERSEN = "pedersen"
MODE_NOIR = "noir"
PROOF_MODES = (MODE_NIZK, MODE_PEDERSEN, MODE_NOIR)

SEED_SIZE = 32
NIZK_PROOF_SIZE = 64
PEDERSEN_PROOF_SIZE = 224
PEDERSEN_SIGMA_SIZE = 128

NULLIFIER_TAG = b"NULL"


# ─────────────────────────────────────────────────────────────────────
# 시드 생성 및 엔트로피 검사
# ─────────────────────────────────────────────────────────────────────

def has_leading_entropy(seed):
    """앞 4바이트가 모두 0이 아니면 True."""
    return any(bytes(seed[:4]))


def check_seed(seed):
    """시드 형식과 최소 엔트로피를 검사한다.

    Raises:
        PreconditionError: 32바이트가 아니거나 앞 4바이트가 모두 0인 경우
    """
    seed = bytes(seed)
    if len(seed) != SEED_SIZE:
        raise PreconditionError(f"시드는 {SEED_SIZE}바이트여야 합니다: {len(seed)}")
    if not has_leading_entropy(seed):
        raise PreconditionError("시드 엔트로피 부족: 앞 4바이트가 모두 0입니다")
    return seed


def generate_seed():
    """엔트로피 조건을 만족하는 32바이트 난수 시드를 생성한다."""
    while True:
        seed = secrets.token_bytes(SEED_SIZE)
        if has_leading_entropy(seed):
            return seed


def check_mode(mode):
    """알려진 증명 모드인지 확인한다."""
    if mode not in PROOF_MODES:
        raise PreconditionError(f"알 수 없는 증명 모드: {mode!r}")
    return mode


def seed_hash(seed, mode):
    """모드별 시드 해시. noir는 blake2s, 나머지는 keccak256."""
    if check_mode(mode) == MODE_NOIR:
        return hashlib.blake2s(bytes(seed)).digest()
    return keccak(bytes(seed))


def nullifier(seed_hash_bytes, session_id):
    """세션별 재사용 방지 태그: keccak(seedHash ‖ "NULL" ‖ sid)."""
    return keccak(bytes(seed_hash_bytes) + NULLIFIER_TAG + u32_to_bytes(session_id))


# ─────────────────────────────────────────────────────────────────────
# 커밋먼트
# ─────────────────────────────────────────────────────────────────────

class SeedCommitment:
    """시드 커밋 단계의 산출물.

    속성:
        mode: 증명 모드
        seed_hash: 공개 단계에서 제출할 32바이트 시드 해시
        commit_hash: 원장에 게시할 32바이트 커밋 해시
        point: pedersen 모드의 커밋먼트 점 C (다른 모드는 None)
    """

    def __init__(self, mode, seed_hash, commit_hash, point=None):
        self.mode = mode
        self.seed_hash = seed_hash
        self.commit_hash = commit_hash
        self.point = point

    def __repr__(self):
        return f"SeedCommitment(mode={self.mode!r}, commit_hash={self.commit_hash.hex()})"


def nizk_commit_hash(seed_hash_bytes, blinding, party):
    """keccak(seedHash ‖ blinding ‖ player)."""
    return keccak(bytes(seed_hash_bytes) + bytes(blinding) + party_bytes(party))


def pedersen_seed_point(seed_hash_bytes, blinding):
    """C = Fr(seedHash)·G + Fr(blinding)·H."""
    return commit(fr_from_bytes(seed_hash_bytes), fr_from_bytes(blinding))


def build_seed_commitment(seed, blinding, party, mode):
    """모드에 맞는 시드 커밋먼트를 계산한다.

    Args:
        seed: 32바이트 시드
        blinding: 32바이트 블라인딩 (noir 모드에서는 사용하지 않음)
        party: 플레이어 주소
        mode: "nizk" | "pedersen" | "noir"

    Returns:
        SeedCommitment

    Raises:
        PreconditionError: 시드가 엔트로피 검사를 통과하지 못하거나 모드가 잘못된 경우
    """
    seed = check_seed(seed)
    sh = seed_hash(seed, mode)

    if mode == MODE_NIZK:
        return SeedCommitment(mode, sh, nizk_commit_hash(sh, blinding, party))
    if mode == MODE_PEDERSEN:
        point = pedersen_seed_point(sh, blinding)
        return SeedCommitment(mode, sh, commit_hash(point), point)
    return SeedCommitment(mode, sh, keccak(sh))


# ─────────────────────────────────────────────────────────────────────
# 증명
# ─────────────────────────────────────────────────────────────────────

def nizk_challenge(commitment, session_id, party):
    """keccak(commitment ‖ sid ‖ player ‖ "ZKV2"), 원시 32바이트."""
    t = Transcript()
    t.append_bytes(commitment)
    t.append_u32(session_id)
    t.append_party(party)
    return t.challenge_bytes(TAG_NIZK_SEED)


def nizk_response(seed_hash_bytes, challenge, blinding):
    """keccak(seedHash ‖ challenge ‖ blinding)."""
    return keccak(bytes(seed_hash_bytes) + bytes(challenge) + bytes(blinding))


def build_nizk_proof(seed, blinding, session_id, party):
    """64바이트 해시 기반 지식 증명: blinding ‖ response."""
    sh = seed_hash(check_seed(seed), MODE_NIZK)
    blinding = bytes(blinding)
    commitment = nizk_commit_hash(sh, blinding, party)
    challenge = nizk_challenge(commitment, session_id, party)
    return blinding + nizk_response(sh, challenge, blinding)


def pedersen_challenge(point_c, point_r, seed_hash_bytes, session_id, party):
    """Fr(keccak(C ‖ R ‖ seedHash ‖ sid ‖ player ‖ "ZKP4"))."""
    t = Transcript()
    t.append_point(point_c)
    t.append_point(point_r)
    t.append_bytes(seed_hash_bytes)
    t.append_u32(session_id)
    t.append_party(party)
    return t.challenge_scalar(TAG_PEDERSEN_SEED)


def build_pedersen_proof(seed, blinding, session_id, party):
    """224바이트 Pedersen + Schnorr 증명: C ‖ R ‖ z.

    C는 (seedHash, blinding)에만 의존하므로 세션/플레이어가 달라도 같고,
    R과 z는 매 호출마다 달라진다.
    """
    sh = seed_hash(check_seed(seed), MODE_PEDERSEN)
    r = fr_from_bytes(blinding)
    point_c = pedersen_seed_point(sh, blinding)
    point_r, k = schnorr_commit()
    e = pedersen_challenge(point_c, point_r, sh, session_id, party)
    z = schnorr_respond(k, e, r)
    return g1_to_bytes(point_c) + g1_to_bytes(point_r) + fr_to_bytes(z)


def build_seed_proof(seed, blinding, session_id, party, mode):
    """nizk/pedersen 모드의 공개 증명을 만든다.

    noir 모드는 외부 회로 브리지를 거쳐야 하므로 여기서 만들 수 없다.

    Raises:
        PreconditionError: noir 모드 또는 알 수 없는 모드
    """
    check_mode(mode)
    if mode == MODE_NIZK:
        proof = build_nizk_proof(seed, blinding, session_id, party)
    elif mode == MODE_PEDERSEN:
        proof = build_pedersen_proof(seed, blinding, session_id, party)
    else:
        raise PreconditionError("noir 모드 증명은 CircuitBridge.prove_knowledge()로 생성해야 합니다")
    logger.debug("seed proof built: mode=%s size=%d session=%s", mode, len(proof), session_id)
    return proof
