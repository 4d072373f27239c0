"""
Pedersen 커밋먼트와 Schnorr 시그마 증명
==========================================

**Pedersen 커밋먼트**:
  C = value·G + blinding·H

  - 바인딩: G와 H 사이의 이산로그를 모르면 다른 (value, blinding)으로 열 수 없다
  - 은닉: blinding이 균등 분포이면 C는 value에 대해 정보 이론적으로 숨겨진다
  - 원장에는 C 자체가 아니라 keccak256(C) 32바이트 해시가 게시된다

**Schnorr 증명 (H 기저)**:
  value를 공개한 뒤에도 blinding은 숨긴 채, D = C - value·G 가
  H의 배수임을 증명한다.

    R = k·H            (k는 매번 새 난수)
    e = challenge(...)  (Fiat-Shamir)
    z = k + e·blinding  (mod r)

  검증: z·H == R + e·D

사용 예시:
    >>> C = commit(42, blinding)
    >>> h = commit_hash(C)
    >>> R, k = schnorr_commit()
    >>> z = schnorr_respond(k, e, blinding)
    >>> schnorr_check(C_minus_vG, R, e, z)
    True
"""

from eth_utils import keccak

from cangkulan.zk.field import (
    FR, G1, pedersen_h, ec_mul, ec_add, ec_sub, ec_eq, g1_to_bytes, random_scalar,
)


def commit(value, blinding):
    """Pedersen 커밋먼트 C = value·G + blinding·H 를 계산한다.

    Args:
        value: 커밋할 값 (정수 또는 FR)
        blinding: 블라인딩 팩터 (정수 또는 FR)

    Returns:
        G1 위의 점 C
    """
    return ec_add(ec_mul(G1, value), ec_mul(pedersen_h(), blinding))


def commit_hash(point):
    """원장에 게시하는 커밋먼트 해시: keccak256(C의 96바이트 인코딩)."""
    return keccak(g1_to_bytes(point))


def open_commitment(point, value):
    """D = C - value·G 를 계산한다. 값이 맞으면 D = blinding·H 이다."""
    return ec_sub(point, ec_mul(G1, value))


def schnorr_commit():
    """Schnorr 첫 메시지를 만든다.

    Returns:
        (R, k): R = k·H, k는 새 난수 스칼라
    """
    k = random_scalar()
    return ec_mul(pedersen_h(), k), k


def schnorr_respond(k, e, blinding):
    """응답 z = k + e·blinding (mod r) 을 계산한다."""
    return FR(k) + FR(e) * FR(blinding)


def schnorr_check(d_point, r_point, e, z):
    """z·H == R + e·D 를 확인한다.

    Args:
        d_point: H의 배수여야 하는 점 D
        r_point: 증명자의 첫 메시지 R
        e: 챌린지
        z: 응답

    Returns:
        bool
    """
    lhs = ec_mul(pedersen_h(), z)
    rhs = ec_add(r_point, ec_mul(d_point, e))
    return ec_eq(lhs, rhs)


def simulate_leg(d_point):
    """챌린지를 먼저 고른 가짜(simulated) 시그마 레그를 만든다.

    e, z를 무작위로 정하고 R = z·H - e·D 로 역산하면 검증식을
    만족하는 전사가 만들어진다. 링(OR) 증명의 비선택 레그에 쓰인다.

    Returns:
        (R, e, z)
    """
    e = random_scalar()
    z = random_scalar()
    r_point = ec_sub(ec_mul(pedersen_h(), z), ec_mul(d_point, e))
    return r_point, e, z
