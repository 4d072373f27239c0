"""
Cangkulan Fiat-Shamir Transcript
==================================

비대화식 시그마 증명을 위한 keccak256 기반 Fiat-Shamir 해싱.

**레이아웃 규칙**:
  검증 컨트랙트가 같은 바이트열을 재구성해야 하므로 트랜스크립트는
  필드별 레이블 없이 고정폭 값을 그대로 이어 붙인다.
  - 점 96바이트, 스칼라 32바이트, u32 4바이트
  - 가변 길이 필드(플레이어 주소)는 마지막에 한 번만 추가
  - 4바이트 도메인 태그를 맨 끝에 붙여 증명 종류를 분리

**도메인 태그**:
  ZKV2 → 해시 기반 NIZK 시드 증명
  ZKP4 → Pedersen 시드 증명
  ZKP7 → 카드 플레이 링 증명
  ZKP8 → 캉쿨(따라낼 수 없음) 집계 증명

사용 예시:
    >>> t = Transcript()
    >>> t.append_point(C)
    >>> t.append_u32(session_id)
    >>> t.append_party(player)
    >>> e = t.challenge_scalar(TAG_PEDERSEN_SEED)
"""

from eth_utils import keccak

from cangkulan.zk.field import (
    FR, CURVE_ORDER, g1_to_bytes, fr_to_bytes, u32_to_bytes, party_bytes,
)


TAG_NIZK_SEED = b"ZKV2"
TAG_PEDERSEN_SEED = b"ZKP4"
TAG_RING_PLAY = b"ZKP7"
TAG_AGGREGATE_PLAY = b"ZKP8"


class Transcript:
    """keccak256 Fiat-Shamir 트랜스크립트.

    Prover와 Verifier가 동일한 순서로 데이터를 추가하면 동일한 챌린지가
    생성된다. 챌린지는 한 번만 뽑는다 (체이닝 없음).

    속성:
        state: 현재까지 누적된 해시 입력 바이트열
    """

    def __init__(self):
        self.state = bytearray()

    def append_bytes(self, data):
        """원시 바이트열을 그대로 추가한다."""
        self.state.extend(bytes(data))

    def append_point(self, point):
        """G1 점을 96바이트 인코딩으로 추가한다."""
        self.state.extend(g1_to_bytes(point))

    def append_scalar(self, scalar):
        """FR 스칼라를 32바이트 빅엔디안으로 추가한다."""
        self.state.extend(fr_to_bytes(scalar))

    def append_u32(self, value):
        """u32 값(세션 ID, 무늬, 손패 크기)을 4바이트로 추가한다."""
        self.state.extend(u32_to_bytes(value))

    def append_party(self, party):
        """플레이어 주소를 UTF-8 바이트로 추가한다."""
        self.state.extend(party_bytes(party))

    def challenge_bytes(self, tag):
        """도메인 태그를 붙여 32바이트 keccak 다이제스트를 반환한다.

        Args:
            tag: 4바이트 도메인 태그 (예: TAG_NIZK_SEED)

        Returns:
            bytes: keccak256(state ‖ tag)
        """
        return keccak(bytes(self.state) + tag)

    def challenge_scalar(self, tag):
        """도메인 태그를 붙여 챌린지 스칼라를 생성한다.

        Returns:
            FR: keccak256(state ‖ tag) mod r
        """
        digest = self.challenge_bytes(tag)
        return FR(int.from_bytes(digest, "big") % CURVE_ORDER)
