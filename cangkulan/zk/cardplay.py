"""
카드 플레이 증명 엔진: 링 멤버십 증명 / 집계 배제 증명
==========================================================

두 상대가 실시간으로 겨룰 때, 평문 해시 커밋 대신 사용하는 영지식 커밋.

**링(OR) 멤버십 증명** (ZKP7):
  "C는 유효 집합 {v_0, ..., v_{N-1}} 중 하나를 연다. 어느 것인지는 밝히지 않는다."

    C   = card·G + r·H
    D_i = C - v_i·G            (실제 카드 j에서만 D_j = r·H)

    i ≠ j : e_i, z_i 무작위,  R_i = z_i·H - e_i·D_i   (시뮬레이션)
    i = j : R_j = k·H
    e     = Fr(keccak(C ‖ R_0 ‖ ... ‖ R_{N-1} ‖ sid ‖ player ‖ "ZKP7"))
    e_j   = e - Σ_{i≠j} e_i,   z_j = k + e_j·r

  레이아웃: C(96) ‖ [e_i(32) ‖ z_i(32)] × N
  검증자는 R_i를 재구성한 뒤 Σ e_i ≡ e (mod r) 하나만 확인하면 되고,
  어느 레그가 진짜인지는 알 수 없다.

**집계 배제 증명** (ZKP8, "cangkul"):
  "손패 전체에 트릭 무늬 카드가 한 장도 없다."

    A     = Σ (card_i·G + r_i·H)
    r_agg = Σ r_i
    R = k·H,  e = Fr(keccak(A ‖ R ‖ suit ‖ handSize ‖ sid ‖ player ‖ "ZKP8"))
    z = k + e·r_agg

  레이아웃: handSize(4) ‖ A(96) ‖ R(96) ‖ z(32) = 228바이트
  검증자는 z·H == R + e·(A - Σcard_i·G) 를 확인하고,
  손패 메타데이터로 무늬 배제 조건을 따로 검사한다.

사용 예시:
    >>> play = build_ring_proof(12, blinding, [10, 12, 15], 7, "GPLAYER")
    >>> len(play.proof)
    288
    >>> cangkul = build_cangkul_proof([0, 1, 20], 1, 7, "GPLAYER")
    >>> len(cangkul.proof)
    228
"""

import logging

from cangkulan.errors import PreconditionError
from cangkulan.zk.cards import (
    CANNOT_FOLLOW_SENTINEL, check_card, check_suit, play_commit_hash, suit_of,
)
from cangkulan.zk.field import (
    FR, G1, POINT_SIZE, SCALAR_SIZE, ec_mul, ec_sum, fr_from_bytes, fr_to_bytes,
    g1_to_bytes, pedersen_h, random_scalar, u32_to_bytes,
)
from cangkulan.zk.pedersen import commit, commit_hash, open_commitment, simulate_leg
from cangkulan.zk.transcript import Transcript, TAG_RING_PLAY, TAG_AGGREGATE_PLAY

logger = logging.getLogger(__name__)


ZK_MODE_HASH = "hash"
ZK_MODE_RING = "ring"
ZK_MODE_CANGKUL = "cangkul"

RING_MAX_SIZE = 9
RING_LEG_SIZE = 2 * SCALAR_SIZE
AGGREGATE_MAX_HAND = 18
AGGREGATE_PROOF_SIZE = 4 + POINT_SIZE + POINT_SIZE + SCALAR_SIZE


class PlayCommitment:
    """트릭 한 번의 플레이 커밋 산출물.

    속성:
        zk_mode: "hash" | "ring" | "cangkul"
        card_id: 공개 단계에서 제출할 카드 (cangkul은 센티널)
        salt: 공개 단계에서 제출할 32바이트 salt/블라인딩
        commit_hash: 원장에 게시할 32바이트 해시
        proof: 영지식 증명 바이트열 (hash 모드는 b"")
    """

    def __init__(self, zk_mode, card_id, salt, commit_hash, proof=b""):
        self.zk_mode = zk_mode
        self.card_id = card_id
        self.salt = salt
        self.commit_hash = commit_hash
        self.proof = proof

    def __repr__(self):
        return (f"PlayCommitment(zk_mode={self.zk_mode!r}, "
                f"commit_hash={self.commit_hash.hex()}, proof={len(self.proof)}B)")


def ring_proof_size(n):
    return POINT_SIZE + n * RING_LEG_SIZE


def build_hash_commitment(card_id, salt):
    """ZK 없이 keccak(card ‖ salt) 로 커밋한다 (봇/로컬 세션용)."""
    return PlayCommitment(ZK_MODE_HASH, int(card_id), bytes(salt), play_commit_hash(card_id, salt))


# ─────────────────────────────────────────────────────────────────────
# 링 멤버십 증명
# ─────────────────────────────────────────────────────────────────────

def ring_challenge(point_c, r_points, session_id, party):
    """e = Fr(keccak(C ‖ R_0..R_{N-1} ‖ sid ‖ player ‖ "ZKP7"))."""
    t = Transcript()
    t.append_point(point_c)
    for r_point in r_points:
        t.append_point(r_point)
    t.append_u32(session_id)
    t.append_party(party)
    return t.challenge_scalar(TAG_RING_PLAY)


def _check_ring(card_id, valid_cards):
    valid_cards = [check_card(c) for c in valid_cards]
    if not valid_cards:
        raise PreconditionError("유효 집합이 비어 있습니다: 트릭 무늬 카드가 없으면 cangkul 증명을 사용하세요")
    if len(valid_cards) > RING_MAX_SIZE:
        raise PreconditionError(f"유효 집합은 최대 {RING_MAX_SIZE}장입니다: {len(valid_cards)}")
    if len(set(valid_cards)) != len(valid_cards):
        raise PreconditionError("유효 집합에 중복 카드가 있습니다")
    if card_id not in valid_cards:
        raise PreconditionError(f"카드 {card_id}가 유효 집합 {valid_cards}에 없습니다")
    return valid_cards


def build_ring_proof(card_id, blinding, valid_cards, session_id, party):
    """card_id를 숨긴 채 유효 집합 멤버십을 증명한다.

    Args:
        card_id: 실제로 낼 카드
        blinding: 32바이트 블라인딩 (공개 단계의 salt가 된다)
        valid_cards: 트릭 무늬와 일치하는 손패 카드 목록 (순서가 증명에 포함됨)
        session_id: u32 세션 ID
        party: 플레이어 주소

    Returns:
        PlayCommitment (zk_mode="ring")

    Raises:
        PreconditionError: 유효 집합이 비었거나, 카드가 집합에 없거나, 집합이 너무 큰 경우
    """
    card_id = check_card(card_id)
    valid_cards = _check_ring(card_id, valid_cards)
    r = fr_from_bytes(blinding)
    if int(r) == 0:
        raise PreconditionError("블라인딩은 0이 될 수 없습니다")

    point_c = commit(card_id, r)
    real = valid_cards.index(card_id)

    r_points = []
    legs = []
    k = None
    for i, value in enumerate(valid_cards):
        if i == real:
            k = random_scalar()
            r_points.append(ec_mul(pedersen_h(), k))
            legs.append(None)
        else:
            r_point, e_i, z_i = simulate_leg(open_commitment(point_c, value))
            r_points.append(r_point)
            legs.append((e_i, z_i))

    e = ring_challenge(point_c, r_points, session_id, party)
    e_real = e
    for leg in legs:
        if leg is not None:
            e_real = e_real - leg[0]
    legs[real] = (e_real, FR(k) + e_real * r)

    proof = g1_to_bytes(point_c) + b"".join(fr_to_bytes(e_i) + fr_to_bytes(z_i) for e_i, z_i in legs)
    logger.debug("ring proof built: n=%d size=%d session=%s", len(valid_cards), len(proof), session_id)
    return PlayCommitment(ZK_MODE_RING, card_id, fr_to_bytes(r), commit_hash(point_c), proof)


def parse_ring_proof(proof):
    """링 증명 바이트열을 (C 바이트, [(e_i, z_i)]) 로 분해한다.

    Raises:
        ValueError: 길이가 96 + 64·N (1 ≤ N ≤ 9) 형식이 아닌 경우
    """
    proof = bytes(proof)
    body = len(proof) - POINT_SIZE
    if body <= 0 or body % RING_LEG_SIZE != 0:
        raise ValueError(f"링 증명 길이가 잘못되었습니다: {len(proof)}")
    n = body // RING_LEG_SIZE
    if n > RING_MAX_SIZE:
        raise ValueError(f"링 크기 초과: {n}")
    legs = []
    for i in range(n):
        off = POINT_SIZE + i * RING_LEG_SIZE
        legs.append((fr_from_bytes(proof[off:off + SCALAR_SIZE]),
                     fr_from_bytes(proof[off + SCALAR_SIZE:off + RING_LEG_SIZE])))
    return proof[:POINT_SIZE], legs


def ring_challenge_sum(proof):
    """Σ e_i (mod r). 올바른 증명이면 ring_challenge(C, R_i...)와 같다."""
    _, legs = parse_ring_proof(proof)
    total = FR(0)
    for e_i, _ in legs:
        total = total + e_i
    return total


# ─────────────────────────────────────────────────────────────────────
# 집계 배제 증명 (cangkul)
# ─────────────────────────────────────────────────────────────────────

def aggregate_challenge(point_a, point_r, trick_suit, hand_size, session_id, party):
    """e = Fr(keccak(A ‖ R ‖ suit ‖ handSize ‖ sid ‖ player ‖ "ZKP8"))."""
    t = Transcript()
    t.append_point(point_a)
    t.append_point(point_r)
    t.append_u32(trick_suit)
    t.append_u32(hand_size)
    t.append_u32(session_id)
    t.append_party(party)
    return t.challenge_scalar(TAG_AGGREGATE_PLAY)


def build_cangkul_proof(hand, trick_suit, session_id, party, blindings=None):
    """손패 전체가 트릭 무늬를 갖지 않음을 하나의 집계 증명으로 보인다.

    Args:
        hand: 손패 카드 목록 (1..18장)
        trick_suit: 현재 트릭 무늬 (0..3)
        session_id: u32 세션 ID
        party: 플레이어 주소
        blindings: 카드별 블라인딩 스칼라 목록 (생략하면 무작위)

    Returns:
        PlayCommitment (zk_mode="cangkul", card_id=센티널, salt=Σr_i)

    Raises:
        PreconditionError: 손패가 비었거나, 너무 크거나, 트릭 무늬 카드를 갖고 있는 경우
    """
    hand = [check_card(c) for c in hand]
    trick_suit = check_suit(trick_suit)
    if not hand:
        raise PreconditionError("손패가 비어 있어 cangkul 증명을 만들 수 없습니다")
    if len(hand) > AGGREGATE_MAX_HAND:
        raise PreconditionError(f"손패는 최대 {AGGREGATE_MAX_HAND}장입니다: {len(hand)}")
    matching = [c for c in hand if suit_of(c) == trick_suit]
    if matching:
        raise PreconditionError(f"트릭 무늬 카드 {matching}를 갖고 있어 cangkul을 선언할 수 없습니다")

    if blindings is None:
        blindings = [random_scalar() for _ in hand]
    elif len(blindings) != len(hand):
        raise PreconditionError("블라인딩 개수가 손패 크기와 다릅니다")

    point_a = ec_sum(commit(card, r_i) for card, r_i in zip(hand, blindings))
    r_agg = FR(0)
    for r_i in blindings:
        r_agg = r_agg + FR(int(r_i))

    k = random_scalar()
    point_r = ec_mul(pedersen_h(), k)
    e = aggregate_challenge(point_a, point_r, trick_suit, len(hand), session_id, party)
    z = k + e * r_agg

    proof = (u32_to_bytes(len(hand)) + g1_to_bytes(point_a) + g1_to_bytes(point_r) + fr_to_bytes(z))
    logger.debug("cangkul proof built: hand=%d suit=%d session=%s", len(hand), trick_suit, session_id)
    return PlayCommitment(ZK_MODE_CANGKUL, CANNOT_FOLLOW_SENTINEL, fr_to_bytes(r_agg),
                          commit_hash(point_a), proof)


def parse_cangkul_proof(proof):
    """집계 증명을 (handSize, A 바이트, R 바이트, z) 로 분해한다."""
    proof = bytes(proof)
    if len(proof) != AGGREGATE_PROOF_SIZE:
        raise ValueError(f"cangkul 증명은 {AGGREGATE_PROOF_SIZE}바이트여야 합니다: {len(proof)}")
    hand_size = int.from_bytes(proof[:4], "big")
    a_bytes = proof[4:4 + POINT_SIZE]
    r_bytes = proof[4 + POINT_SIZE:4 + 2 * POINT_SIZE]
    z = fr_from_bytes(proof[4 + 2 * POINT_SIZE:])
    return hand_size, a_bytes, r_bytes, z


def card_sum_point(cards):
    """Σ card_i·G. 검증자가 A에서 카드 기여분을 제거할 때 사용한다."""
    return ec_mul(G1, sum(int(c) for c in cards))
