"""
Cangkulan 예외 계층과 컨트랙트 오류 번역
==========================================

**예외 분류**:
  - PreconditionError: 잘못된 입력 (유효 집합에 없는 카드, 빈 손패 등).
    제출 전에 즉시 발생하며 절대 재시도하지 않는다.
  - LedgerError: 원장 호출 실패. 원시 메시지와 파싱된 컨트랙트 코드를 담는다.
    경합(contention) 여부는 is_contention()으로 판별한다.
  - ProofRejected: 검증기 불일치. 감지된 모드와 실패 사유를 함께 담아
    "모드 불일치"와 "오래된 상태로 만든 증명"을 구분할 수 있게 한다.
  - SecretPersistenceError: 비밀값 저장 실패. 커밋을 중단시키는 치명적 오류.
  - SecretMissingError: 공개 시점에 저장된 비밀값이 없음. 로컬 복구 불가,
    타임아웃 프로토콜로만 세션이 정리된다.
  - CircuitError: 외부 회로 증명기 실패.

사용 예시:
    >>> format_error(LedgerError("HostError: Error(Contract, #25)"))
    'Invalid nonce: game state has changed. Please refresh and try again.'
"""

import re


class CangkulanError(Exception):
    """모든 엔진 예외의 기반 클래스."""


class PreconditionError(CangkulanError, ValueError):
    """증명/커밋 생성 전에 감지된 입력 조건 위반."""


class ProofRejected(CangkulanError):
    """검증기가 증명을 거부했다.

    속성:
        reason: 실패 사유 코드 (예: "commit_mismatch", "equation_failed")
        mode: 길이로 감지된 증명 모드 (예: "pedersen", "ring")
    """

    def __init__(self, reason, mode=None, detail=None):
        self.reason = reason
        self.mode = mode
        self.detail = detail
        text = f"증명 거부 ({mode or 'unknown'}): {reason}"
        if detail:
            text += f" - {detail}"
        super().__init__(text)


class LedgerError(CangkulanError):
    """원장(컨트랙트) 호출 실패.

    속성:
        message: 원장 클라이언트가 돌려준 원시 오류 메시지
        code: 메시지에서 추출한 컨트랙트 오류 코드 (없으면 None)
    """

    def __init__(self, message, code=None):
        self.message = str(message)
        self.code = code if code is not None else extract_error_code(self.message)
        super().__init__(self.message)

    @classmethod
    def from_code(cls, code):
        """컨트랙트 코드로부터 Soroban 형식 메시지를 가진 오류를 만든다."""
        return cls(f"HostError: Error(Contract, #{code})", code=code)

    def is_contention(self):
        """재시도로 해소될 수 있는 경합/일시적 실패인지 판별한다.

        컨트랙트 코드가 붙은 실패는 결정적이므로 논스 불일치만 재시도한다.
        """
        if self.code is not None:
            return self.code == INVALID_NONCE
        return is_contention_message(self.message)


class SecretPersistenceError(CangkulanError):
    """비밀값 저장소 쓰기 실패. 커밋 경로에서는 치명적이다."""


class SecretMissingError(CangkulanError):
    """공개에 필요한 비밀값이 저장소에 없다."""


class CircuitError(CangkulanError):
    """외부 회로 증명기(nargo/bb) 실패."""


# ─────────────────────────────────────────────────────────────────────
# 컨트랙트 오류 코드
# ─────────────────────────────────────────────────────────────────────

INVALID_NONCE = 25

CONTRACT_ERRORS = {
    1: "Game not found: this session ID does not exist.",
    2: "Session already exists: this session ID has already been used. Try a different one.",
    3: "Not a player: your wallet address is not part of this game session.",
    4: "Self-play not allowed: you cannot play against yourself.",
    5: "Game already ended: this game session has already finished.",
    6: "Wrong phase: this action is not valid in the current game phase.",
    7: "Seed already committed: you have already submitted your seed commitment.",
    8: "Seed already revealed: you have already revealed your seed.",
    9: "Commit hash mismatch: the revealed seed does not match your original commitment.",
    10: "Invalid ZK proof: the zero-knowledge proof verification failed.",
    11: "Missing commit: both players must commit their seeds before revealing.",
    12: "Not your turn: wait for the other player to make their move.",
    13: "Card not in hand: you do not have this card in your hand.",
    14: "Wrong suit: you must follow the trick suit if you have a matching card.",
    15: 'Has matching suit: you cannot call "cannot follow" when you have a matching suit card.',
    16: "Draw pile empty: there are no more cards in the draw pile.",
    17: "No trick in progress: there is no active trick to respond to.",
    18: "Admin not set: contract admin has not been configured.",
    19: "Game Hub not set: Game Hub contract address has not been configured.",
    20: "Verifier not set: ZK Verifier contract address has not been configured.",
    21: "Timeout not reached: the timeout deadline has not been reached yet.",
    22: "Timeout not configured: no timeout is currently active for this game.",
    23: "Timeout not applicable: timeout cannot be applied in the current game state.",
    24: "Weak seed entropy: your random seed is too predictable. Please use a stronger seed.",
    25: "Invalid nonce: game state has changed. Please refresh and try again.",
    26: "Play commit already submitted: you have already committed your play for this trick.",
    27: "Play commit missing: you must commit before revealing.",
    28: "Play reveal mismatch: the revealed card and salt do not match your commitment.",
    29: "Invalid card ID: the card ID is not valid.",
    30: "UltraHonk verifier not set: Noir verifier contract address has not been configured.",
    31: "UltraHonk verification failed: the Noir ZK proof did not pass on-chain verification.",
    32: "ZK play proof invalid: the ring sigma proof for card play failed verification.",
    33: "ZK play set empty: no valid cards in the ring for ZK proof (hand has no matching suit).",
    34: "ZK play opening mismatch: the Pedersen commitment opening does not match the commit hash.",
    35: 'ZK cangkul proof invalid: the aggregate Pedersen proof for "cannot follow" failed verification.',
    38: "Tick too soon: must wait before calling tick_timeout again.",
}

MAX_CONTRACT_CODE = 38

_CONTRACT_CODE_PATTERNS = (
    re.compile(r"Error\(Contract,\s*#(\d+)\)"),
    re.compile(r"Contract,\s*#(\d+)"),
)
_BARE_CODE = re.compile(r"#(\d+)")

CONTENTION_PATTERNS = (
    "transaction failed",
    "txbadseq",
    "invalidnonce",
    "expired in flight",
    "resource_limit_exceeded",
)

TRANSIENT_PATTERNS = (
    "timeout",
    "timed out",
    "econnreset",
    "econnrefused",
    "network error",
    "503",
    "429",
    "rate limit",
    "too many requests",
    "service unavailable",
)


def extract_error_code(message):
    """원시 오류 메시지에서 컨트랙트 오류 코드를 추출한다.

    Args:
        message: 원장 클라이언트의 오류 메시지

    Returns:
        int 또는 None
    """
    if not message:
        return None
    for pattern in _CONTRACT_CODE_PATTERNS:
        match = pattern.search(message)
        if match:
            return int(match.group(1))

    # 시뮬레이션/호스트 오류 안의 맨 "#N"은 알려진 범위일 때만 인정
    if "simulation failed" in message or "HostError" in message:
        match = _BARE_CODE.search(message)
        if match:
            code = int(match.group(1))
            if 1 <= code <= MAX_CONTRACT_CODE:
                return code
    return None


def is_contention_message(message):
    """경합 또는 일시적 전송 실패를 나타내는 메시지인지 확인한다."""
    lowered = (message or "").lower()
    return any(p in lowered for p in CONTENTION_PATTERNS + TRANSIENT_PATTERNS)


def translate_contract_error(message):
    """코드가 있으면 고정 메시지로 번역하고, 없으면 None을 반환한다."""
    code = extract_error_code(message)
    if code is None:
        return None
    return CONTRACT_ERRORS.get(code, f"Unknown contract error #{code}")


def format_error(err):
    """예외나 메시지를 사용자에게 보여줄 문자열로 변환한다.

    알려진 컨트랙트 코드는 고정 메시지로, 알 수 없는 코드는
    "Unknown contract error #N"으로, 코드가 없는 메시지는 그대로 돌려준다.
    """
    if isinstance(err, LedgerError):
        message = err.message
        if err.code is not None:
            return CONTRACT_ERRORS.get(err.code, f"Unknown contract error #{err.code}")
    else:
        message = str(err)
    translated = translate_contract_error(message)
    return translated if translated is not None else message
