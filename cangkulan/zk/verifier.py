"""
Cangkulan Verifier
====================

검증 컨트랙트의 검사를 클라이언트에서 그대로 재현한다.
제출 전 자체 점검, 개발용 원장, 개발 HTTP 엔드포인트에서 사용한다.

**모드 판별 (증명 길이)**:
  시드 공개:  0 B → 회로 사전 검증됨 (verify_noir_seed 이후)
             64 B → nizk,  224 B → pedersen,  > 4000 B → noir 회로 증명
  카드 플레이: 228 B → cangkul 집계 증명,  96 + 64·N B → 링 증명

  224 B는 N = 2 링 증명과 길이가 같으므로 시드와 플레이는 서로 다른
  진입점(verify_seed_reveal / verify_play_commit)에서 판별한다.

**실패 보고**:
  check_* 함수는 실패 시 ProofRejected(reason, mode)를 발생시킨다.
  verify_* 함수는 같은 검사를 bool로 돌려준다.

  reason:
    bad_length         길이가 어떤 형식과도 맞지 않음
    bad_point          점 인코딩이 잘못됨 (곡선/부분군 밖)
    commit_mismatch    커밋 해시가 증명의 커밋먼트와 다름 (모드 불일치의 전형)
    challenge_mismatch Fiat-Shamir 관계 불일치 (오래된 유효 집합/세션의 전형)
    equation_failed    시그마 검증식 불일치
    suit_violation     손패에 트릭 무늬 카드가 있음
    weak_entropy       시드 해시의 서로 다른 바이트 수 부족
    bad_input          손패 크기/무늬/카드 범위 위반

사용 예시:
    >>> check_seed_reveal(seed_hash, commit_hash, proof, 7, "GPLAYER")
    'pedersen'
    >>> verify_play_commit(commit_hash, proof, 7, "GPLAYER", valid_cards=[10, 12])
    True
"""

from eth_utils import keccak

from cangkulan.errors import ProofRejected
from cangkulan.circuit.encoding import NOIR_PROOF_MIN_SIZE
from cangkulan.zk.cards import DECK_SIZE, SUIT_COUNT, suit_of
from cangkulan.zk.cardplay import (
    AGGREGATE_MAX_HAND, AGGREGATE_PROOF_SIZE, RING_LEG_SIZE, RING_MAX_SIZE,
    ZK_MODE_CANGKUL, ZK_MODE_RING, aggregate_challenge, card_sum_point,
    parse_cangkul_proof, parse_ring_proof, ring_challenge,
)
from cangkulan.zk.field import (
    FR, POINT_SIZE, ec_add, ec_mul, ec_sub, fr_from_bytes, g1_from_bytes,
    pedersen_h,
)
from cangkulan.zk.pedersen import commit, open_commitment, schnorr_check
from cangkulan.zk.pedersen import commit_hash as point_hash
from cangkulan.zk.seed import (
    MODE_NIZK, MODE_NOIR, MODE_PEDERSEN, NIZK_PROOF_SIZE, PEDERSEN_PROOF_SIZE,
    PEDERSEN_SIGMA_SIZE, nizk_challenge, nizk_commit_hash, nizk_response,
    pedersen_challenge,
)

MIN_DISTINCT_SEED_BYTES = 4


# ─────────────────────────────────────────────────────────────────────
# 모드 판별
# ─────────────────────────────────────────────────────────────────────

def detect_seed_mode(proof):
    """시드 공개 증명의 모드를 길이로 판별한다. 알 수 없으면 None."""
    size = len(proof)
    if size == NIZK_PROOF_SIZE:
        return MODE_NIZK
    if size in (PEDERSEN_SIGMA_SIZE, PEDERSEN_PROOF_SIZE):
        return MODE_PEDERSEN
    if size == 0 or size > NOIR_PROOF_MIN_SIZE:
        return MODE_NOIR
    return None


def detect_play_mode(proof):
    """플레이 커밋 증명의 모드를 길이로 판별한다. 알 수 없으면 None."""
    size = len(proof)
    if size == AGGREGATE_PROOF_SIZE:
        return ZK_MODE_CANGKUL
    body = size - POINT_SIZE
    if body > 0 and body % RING_LEG_SIZE == 0 and body // RING_LEG_SIZE <= RING_MAX_SIZE:
        return ZK_MODE_RING
    return None


def _point(data, mode):
    try:
        return g1_from_bytes(data)
    except ValueError as exc:
        raise ProofRejected("bad_point", mode, str(exc)) from exc


# ─────────────────────────────────────────────────────────────────────
# 시드 증명 검증
# ─────────────────────────────────────────────────────────────────────

def check_seed_entropy(seed_hash):
    """시드 해시에 서로 다른 바이트 값이 4개 이상인지 확인한다."""
    if len(set(bytes(seed_hash))) < MIN_DISTINCT_SEED_BYTES:
        raise ProofRejected("weak_entropy", None, "시드 해시의 바이트 다양성이 부족합니다")


def check_nizk_seed(seed_hash, commit_hash, proof, session_id, party):
    """64바이트 해시 기반 NIZK를 검증한다.

    commitHash를 재계산해 원장 기록과 비교한 뒤 응답을 재계산한다.
    """
    proof = bytes(proof)
    if len(proof) != NIZK_PROOF_SIZE:
        raise ProofRejected("bad_length", MODE_NIZK, f"{len(proof)}B")
    blinding, response = proof[:32], proof[32:]
    commitment = nizk_commit_hash(seed_hash, blinding, party)
    if commitment != bytes(commit_hash):
        raise ProofRejected("commit_mismatch", MODE_NIZK,
                            "재계산한 커밋이 다릅니다 (커밋 때와 다른 모드일 수 있음)")
    challenge = nizk_challenge(commitment, session_id, party)
    if nizk_response(seed_hash, challenge, blinding) != response:
        raise ProofRejected("challenge_mismatch", MODE_NIZK)


def check_pedersen_sigma(point_c, sigma, seed_hash, session_id, party):
    """128바이트 R ‖ z 를 C에 대해 검증한다: z·H == R + e·(C - s·G)."""
    if len(sigma) != PEDERSEN_SIGMA_SIZE:
        raise ProofRejected("bad_length", MODE_PEDERSEN, f"{len(sigma)}B")
    point_r = _point(sigma[:POINT_SIZE], MODE_PEDERSEN)
    z = fr_from_bytes(sigma[POINT_SIZE:])
    e = pedersen_challenge(point_c, point_r, seed_hash, session_id, party)
    d_point = open_commitment(point_c, fr_from_bytes(seed_hash))
    if not schnorr_check(d_point, point_r, e, z):
        raise ProofRejected("equation_failed", MODE_PEDERSEN)


def check_pedersen_seed(seed_hash, commit_hash, proof, session_id, party):
    """224바이트 C ‖ R ‖ z 를 검증한다. keccak(C)가 커밋 해시와 같아야 한다."""
    proof = bytes(proof)
    if len(proof) != PEDERSEN_PROOF_SIZE:
        raise ProofRejected("bad_length", MODE_PEDERSEN, f"{len(proof)}B")
    c_bytes = proof[:POINT_SIZE]
    if keccak(c_bytes) != bytes(commit_hash):
        raise ProofRejected("commit_mismatch", MODE_PEDERSEN,
                            "keccak(C)가 커밋 해시와 다릅니다 (커밋 때와 다른 모드일 수 있음)")
    point_c = _point(c_bytes, MODE_PEDERSEN)
    check_pedersen_sigma(point_c, proof[POINT_SIZE:], seed_hash, session_id, party)


def check_seed_reveal(seed_hash, commit_hash, proof, session_id, party):
    """시드 공개 증명을 길이로 판별해 검증한다.

    회로 증명(noir)은 외부 검증기가 담당하므로 여기서는 커밋 바인딩만
    확인한다: keccak(seedHash) == commitHash.

    Returns:
        str: 검증된 모드

    Raises:
        ProofRejected
    """
    seed_hash = bytes(seed_hash)
    mode = detect_seed_mode(proof)
    if mode is None:
        raise ProofRejected("bad_length", None, f"{len(proof)}B는 어떤 시드 증명 형식과도 맞지 않습니다")
    check_seed_entropy(seed_hash)
    if mode == MODE_NIZK:
        check_nizk_seed(seed_hash, commit_hash, proof, session_id, party)
    elif mode == MODE_PEDERSEN:
        if len(proof) != PEDERSEN_PROOF_SIZE:
            raise ProofRejected("bad_length", MODE_PEDERSEN, "커밋먼트 C가 없는 128바이트 증명")
        check_pedersen_seed(seed_hash, commit_hash, proof, session_id, party)
    elif keccak(seed_hash) != bytes(commit_hash):
        raise ProofRejected("commit_mismatch", MODE_NOIR,
                            "keccak(seedHash)가 커밋 해시와 다릅니다 (커밋 때와 다른 모드일 수 있음)")
    return mode


def verify_seed_reveal(seed_hash, commit_hash, proof, session_id, party):
    """check_seed_reveal의 bool 버전."""
    try:
        check_seed_reveal(seed_hash, commit_hash, proof, session_id, party)
    except ProofRejected:
        return False
    return True


# ─────────────────────────────────────────────────────────────────────
# 카드 플레이 증명 검증
# ─────────────────────────────────────────────────────────────────────

def check_ring_proof(commit_hash, valid_cards, proof, session_id, party):
    """링 멤버십 증명을 검증한다.

    Args:
        commit_hash: 원장에 게시된 keccak(C)
        valid_cards: 증명 생성 시점의 유효 집합 (순서 포함)
        proof: C ‖ [e_i ‖ z_i] × N

    Raises:
        ProofRejected
    """
    try:
        c_bytes, legs = parse_ring_proof(proof)
    except ValueError as exc:
        raise ProofRejected("bad_length", ZK_MODE_RING, str(exc)) from exc
    valid_cards = list(valid_cards)
    if not valid_cards:
        raise ProofRejected("bad_input", ZK_MODE_RING, "유효 집합이 비어 있습니다")
    if len(legs) != len(valid_cards):
        raise ProofRejected("challenge_mismatch", ZK_MODE_RING,
                            f"증명 레그 {len(legs)}개, 유효 집합 {len(valid_cards)}장 (유효 집합이 바뀌었을 수 있음)")
    if keccak(c_bytes) != bytes(commit_hash):
        raise ProofRejected("commit_mismatch", ZK_MODE_RING)

    point_c = _point(c_bytes, ZK_MODE_RING)
    h = pedersen_h()
    r_points = []
    e_sum = FR(0)
    for value, (e_i, z_i) in zip(valid_cards, legs):
        d_point = open_commitment(point_c, value)
        r_points.append(ec_sub(ec_mul(h, z_i), ec_mul(d_point, e_i)))
        e_sum = e_sum + e_i

    e = ring_challenge(point_c, r_points, session_id, party)
    if e != e_sum:
        raise ProofRejected("challenge_mismatch", ZK_MODE_RING,
                            "Σe_i가 챌린지와 다릅니다 (다른 세션/플레이어 또는 오래된 유효 집합)")


def check_cangkul_proof(commit_hash, trick_suit, hand, proof, session_id, party):
    """집계 배제 증명을 검증한다.

    Raises:
        ProofRejected
    """
    try:
        hand_size, a_bytes, r_bytes, z = parse_cangkul_proof(proof)
    except ValueError as exc:
        raise ProofRejected("bad_length", ZK_MODE_CANGKUL, str(exc)) from exc
    hand = [int(c) for c in hand]
    if not 1 <= hand_size <= AGGREGATE_MAX_HAND or hand_size != len(hand):
        raise ProofRejected("bad_input", ZK_MODE_CANGKUL,
                            f"증명 손패 크기 {hand_size}, 실제 손패 {len(hand)}장")
    if trick_suit is None or not 0 <= int(trick_suit) < SUIT_COUNT:
        raise ProofRejected("bad_input", ZK_MODE_CANGKUL, f"잘못된 트릭 무늬: {trick_suit}")
    for card in hand:
        if not 0 <= card < DECK_SIZE:
            raise ProofRejected("bad_input", ZK_MODE_CANGKUL, f"잘못된 카드: {card}")
        if suit_of(card) == int(trick_suit):
            raise ProofRejected("suit_violation", ZK_MODE_CANGKUL, f"카드 {card}가 트릭 무늬와 같습니다")
    if keccak(a_bytes) != bytes(commit_hash):
        raise ProofRejected("commit_mismatch", ZK_MODE_CANGKUL)

    point_a = _point(a_bytes, ZK_MODE_CANGKUL)
    point_r = _point(r_bytes, ZK_MODE_CANGKUL)
    e = aggregate_challenge(point_a, point_r, int(trick_suit), hand_size, session_id, party)
    d_point = ec_sub(point_a, card_sum_point(hand))
    if not schnorr_check(d_point, point_r, e, z):
        raise ProofRejected("equation_failed", ZK_MODE_CANGKUL,
                            "손패가 바뀌었거나 다른 세션의 증명일 수 있습니다")


def check_play_commit(commit_hash, proof, session_id, party, valid_cards=None, trick_suit=None, hand=None):
    """플레이 커밋 증명을 길이로 판별해 검증한다.

    Returns:
        str: "ring" | "cangkul"
    """
    mode = detect_play_mode(proof)
    if mode == ZK_MODE_CANGKUL:
        check_cangkul_proof(commit_hash, trick_suit, hand or [], proof, session_id, party)
    elif mode == ZK_MODE_RING:
        check_ring_proof(commit_hash, valid_cards or [], proof, session_id, party)
    else:
        raise ProofRejected("bad_length", None, f"{len(proof)}B는 어떤 플레이 증명 형식과도 맞지 않습니다")
    return mode


def verify_play_commit(commit_hash, proof, session_id, party, valid_cards=None, trick_suit=None, hand=None):
    """check_play_commit의 bool 버전."""
    try:
        check_play_commit(commit_hash, proof, session_id, party,
                          valid_cards=valid_cards, trick_suit=trick_suit, hand=hand)
    except ProofRejected:
        return False
    return True


# ─────────────────────────────────────────────────────────────────────
# 공개(opening) 검증
# ─────────────────────────────────────────────────────────────────────

def check_ring_opening(commit_hash, card_id, salt):
    """공개된 (card, salt)가 링 커밋먼트를 여는지 확인한다: keccak(card·G + salt·H)."""
    if point_hash(commit(int(card_id), fr_from_bytes(salt))) != bytes(commit_hash):
        raise ProofRejected("commit_mismatch", ZK_MODE_RING, "공개값이 커밋먼트를 열지 못합니다")


def check_cangkul_opening(commit_hash, hand, salt):
    """센티널 공개의 salt(Σr_i)가 집계 커밋먼트를 여는지 확인한다."""
    point_a = ec_add(card_sum_point(hand), ec_mul(pedersen_h(), fr_from_bytes(salt)))
    if point_hash(point_a) != bytes(commit_hash):
        raise ProofRejected("commit_mismatch", ZK_MODE_CANGKUL, "공개값이 집계 커밋먼트를 열지 못합니다")
