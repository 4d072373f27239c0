"""
기반 모듈: 스칼라 필드, BLS12-381 G1 연산, 고정폭 인코딩
==========================================================

Cangkulan 커밋-공개 엔진 전체에서 사용하는 대수적 도구를 정의한다.

**유한체 FR**:
  BLS12-381 곡선의 스칼라 필드. 블라인딩, 챌린지, 응답 등
  모든 시그마 증명 산술의 기본 단위이다.
  - 위수 r ≈ 2^255, 소수체
  - 32바이트 버퍼는 빅엔디안 정수로 읽은 뒤 r로 축소한다

**생성자 쌍 (G, H)**:
  G는 표준 G1 생성자, H는 "PEDERSEN_H"를 hash-to-curve로 사상한 점이다.
  log_G(H)를 아무도 모르므로 Pedersen 커밋먼트의 바인딩이 성립한다.

**인코딩 규칙**:
  - G1 점: 비압축 아핀 좌표 x(48) ‖ y(48), 빅엔디안, 총 96바이트
  - 무한원점: 0x40 ‖ 0^95 (무한원점 플래그)
  - 스칼라: 32바이트 빅엔디안
  - 세션 ID: u32 → 4바이트 빅엔디안, 플레이어: UTF-8 바이트

사용 예시:
    >>> from cangkulan.zk.field import FR, G1, ec_mul, pedersen_h
    >>> P = ec_mul(G1, 5)
    >>> data = g1_to_bytes(P)
    >>> len(data)
    96
"""

import hashlib
import secrets
from functools import lru_cache

from py_ecc.bls.hash_to_curve import hash_to_G1
from py_ecc.fields import optimized_bls12_381_FQ as FQ
from py_ecc import optimized_bls12_381 as bls


# ─────────────────────────────────────────────────────────────────────
# 유한체(Finite Field) FR
# ─────────────────────────────────────────────────────────────────────

class FR(FQ):
    """BLS12-381 스칼라 필드 위의 유한체 원소.

    py_ecc의 FQ 클래스를 상속하여 +, -, *, /, ** 등의 필드 연산을 제공한다.

    예시:
        >>> e = FR(3)
        >>> int(e * FR(7))
        21
    """
    field_modulus = bls.curve_order


# 곡선 위수 (스칼라 필드 크기)
CURVE_ORDER = bls.curve_order

# 기저 필드 위수 (좌표 범위 검사용)
FIELD_MODULUS = bls.field_modulus

POINT_SIZE = 96
SCALAR_SIZE = 32
COORD_SIZE = 48

INFINITY_FLAG = 0x40


# ─────────────────────────────────────────────────────────────────────
# 타원곡선 상수 및 연산
# ─────────────────────────────────────────────────────────────────────

# G1 그룹 생성자
G1 = bls.G1

# 항등원 (투영 좌표의 z = 0)
Z1 = bls.Z1

PEDERSEN_H_MESSAGE = b"PEDERSEN_H"
PEDERSEN_H_DST = b"SGS_CANGKULAN_V1"


@lru_cache(maxsize=1)
def pedersen_h():
    """두 번째 독립 생성자 H를 반환한다.

    hash_to_curve(XMD:SHA-256, SSWU, RO)로 결정론적으로 유도하며,
    계산 비용이 크므로 최초 호출 결과를 캐시한다.

    Returns:
        G1 위의 점 H
    """
    return hash_to_G1(PEDERSEN_H_MESSAGE, PEDERSEN_H_DST, hashlib.sha256)


def is_infinity(point):
    """점이 항등원인지 확인한다."""
    return point[2] == FQ.zero()


def ec_mul(point, scalar):
    """타원곡선 스칼라 곱셈: scalar · point.

    Args:
        point: G1 위의 점 (투영 좌표)
        scalar: 정수 또는 FR 원소 (r로 축소됨)

    Returns:
        scalar · point
    """
    return bls.multiply(point, int(scalar) % CURVE_ORDER)


def ec_add(p1, p2):
    """타원곡선 점 덧셈: p1 + p2."""
    return bls.add(p1, p2)


def ec_neg(point):
    """타원곡선 점 부정: -point."""
    return bls.neg(point)


def ec_sub(p1, p2):
    """타원곡선 점 뺄셈: p1 - p2."""
    return bls.add(p1, bls.neg(p2))


def ec_eq(p1, p2):
    """두 점이 같은 아핀 점을 나타내는지 비교한다."""
    return bls.eq(p1, p2)


def ec_sum(points):
    """점 목록의 합. 빈 목록이면 항등원."""
    acc = Z1
    for p in points:
        acc = bls.add(acc, p)
    return acc


# ─────────────────────────────────────────────────────────────────────
# 스칼라 유틸리티
# ─────────────────────────────────────────────────────────────────────

def fr_from_bytes(data):
    """임의 길이 바이트열을 빅엔디안 정수로 읽어 FR로 축소한다."""
    return FR(int.from_bytes(bytes(data), "big") % CURVE_ORDER)


def fr_to_bytes(value):
    """FR(또는 정수)을 32바이트 빅엔디안으로 직렬화한다."""
    return (int(value) % CURVE_ORDER).to_bytes(SCALAR_SIZE, "big")


def random_scalar():
    """[1, r) 범위의 균등 난수 스칼라를 생성한다.

    블라인딩과 시그마 논스에 사용한다. 0은 커밋먼트를 숨기지
    못하므로 제외한다.
    """
    return FR(secrets.randbelow(CURVE_ORDER - 1) + 1)


def random_blinding_bytes():
    """32바이트 블라인딩 팩터를 생성한다 (0이 아닌 FR 원소)."""
    return fr_to_bytes(random_scalar())


# ─────────────────────────────────────────────────────────────────────
# G1 점 인코딩
# ─────────────────────────────────────────────────────────────────────

def g1_to_bytes(point):
    """G1 점을 96바이트 비압축 형식으로 직렬화한다.

    Args:
        point: G1 위의 점 (투영 좌표)

    Returns:
        bytes: x(48) ‖ y(48), 무한원점은 0x40 ‖ 0^95
    """
    if is_infinity(point):
        return bytes([INFINITY_FLAG]) + b"\x00" * (POINT_SIZE - 1)
    x, y = bls.normalize(point)
    return int(x).to_bytes(COORD_SIZE, "big") + int(y).to_bytes(COORD_SIZE, "big")


def g1_from_bytes(data):
    """96바이트를 G1 점으로 역직렬화한다.

    곡선 위에 있는지, 그리고 위수 r 부분군에 속하는지 검사한다.

    Args:
        data: 96바이트 비압축 점

    Returns:
        G1 위의 점 (투영 좌표)

    Raises:
        ValueError: 길이, 좌표 범위, 곡선 방정식, 부분군 검사 중 하나라도 실패한 경우
    """
    data = bytes(data)
    if len(data) != POINT_SIZE:
        raise ValueError(f"G1 점은 {POINT_SIZE}바이트여야 합니다: {len(data)}")
    if data[0] & INFINITY_FLAG:
        if data[0] != INFINITY_FLAG or any(data[1:]):
            raise ValueError("잘못된 무한원점 인코딩입니다")
        return Z1

    x = int.from_bytes(data[:COORD_SIZE], "big")
    y = int.from_bytes(data[COORD_SIZE:], "big")
    if x >= FIELD_MODULUS or y >= FIELD_MODULUS:
        raise ValueError("좌표가 기저 필드 범위를 벗어났습니다")

    point = (FQ(x), FQ(y), FQ.one())
    if not bls.is_on_curve(point, bls.b):
        raise ValueError("점이 곡선 위에 있지 않습니다")
    # 코팩터가 1이 아니므로 부분군 검사가 필요하다
    if not is_infinity(bls.multiply(point, CURVE_ORDER)):
        raise ValueError("점이 위수 r 부분군에 속하지 않습니다")
    return point


# ─────────────────────────────────────────────────────────────────────
# 트랜스크립트 필드 인코딩
# ─────────────────────────────────────────────────────────────────────

U32_MAX = 0xFFFFFFFF


def u32_to_bytes(value):
    """u32 값을 4바이트 빅엔디안으로 직렬화한다.

    Raises:
        ValueError: 0 ≤ value ≤ 2^32 - 1 범위를 벗어난 경우
    """
    value = int(value)
    if value < 0 or value > U32_MAX:
        raise ValueError(f"u32 범위를 벗어났습니다: {value}")
    return value.to_bytes(4, "big")


def party_bytes(party):
    """플레이어 식별자(주소 문자열)를 UTF-8 바이트로 변환한다."""
    if isinstance(party, (bytes, bytearray)):
        return bytes(party)
    if not party:
        raise ValueError("플레이어 식별자가 비어 있습니다")
    return party.encode("utf-8")
