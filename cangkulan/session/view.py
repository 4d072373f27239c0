"""
세션 뷰: 원장 세션 상태의 로컬 투영
=====================================

폴링으로 갱신되는 캐시이며 결코 권위 있는 값이 아니다 (원장이 진실의 원천).

**라이프사이클**:
  SEED_COMMIT(1) → SEED_REVEAL(2) → PLAYING(3) → FINISHED(4)

**트릭 하위 상태** (PLAYING 안에서):
  NONE(0)
  COMMIT_WAIT_BOTH(10) → COMMIT_WAIT_P1(11) / COMMIT_WAIT_P2(12)
  REVEAL_WAIT_BOTH(20) → REVEAL_WAIT_P1(21) / REVEAL_WAIT_P2(22)
  → NONE (트릭 해소)

**타임아웃**:
  원장은 전이마다 deadline_nonce = action_nonce + 2 를 기록한다.
  tick_timeout이 논스를 올리고, action_nonce ≥ deadline_nonce 가 되면
  resolve_timeout으로 상대의 몰수패를 청구할 수 있다.
"""

LIFECYCLE_SEED_COMMIT = 1
LIFECYCLE_SEED_REVEAL = 2
LIFECYCLE_PLAYING = 3
LIFECYCLE_FINISHED = 4

LIFECYCLE_NAMES = {
    LIFECYCLE_SEED_COMMIT: "seed_commit",
    LIFECYCLE_SEED_REVEAL: "seed_reveal",
    LIFECYCLE_PLAYING: "playing",
    LIFECYCLE_FINISHED: "finished",
}

TRICK_NONE = 0
TRICK_COMMIT_WAIT_BOTH = 10
TRICK_COMMIT_WAIT_P1 = 11
TRICK_COMMIT_WAIT_P2 = 12
TRICK_REVEAL_WAIT_BOTH = 20
TRICK_REVEAL_WAIT_P1 = 21
TRICK_REVEAL_WAIT_P2 = 22

TIMEOUT_ACTIONS = 2

# 슬롯별로 "이 플레이어가 아직 해야 하는" 트릭 상태
_COMMIT_WAIT = {1: (TRICK_COMMIT_WAIT_BOTH, TRICK_COMMIT_WAIT_P1),
                2: (TRICK_COMMIT_WAIT_BOTH, TRICK_COMMIT_WAIT_P2)}
_REVEAL_WAIT = {1: (TRICK_REVEAL_WAIT_BOTH, TRICK_REVEAL_WAIT_P1),
                2: (TRICK_REVEAL_WAIT_BOTH, TRICK_REVEAL_WAIT_P2)}


class SessionView:
    """원장 세션의 스냅샷.

    속성:
        session_id: u32 세션 ID
        player1, player2: 플레이어 주소
        lifecycle: 라이프사이클 단계
        trick_state: 트릭 하위 상태
        trick_suit: 현재 트릭 무늬 (트릭이 없으면 None)
        hand: 조회한 플레이어 본인의 손패 (상대 손패는 비공개)
        seed_committed, seed_revealed: (p1, p2) bool 쌍
        action_nonce: 현재 액션 논스
        deadline_nonce: 타임아웃 기준 논스 (없으면 None)
        winner: 종료 시 승자 주소
    """

    def __init__(self, session_id, player1, player2, lifecycle, action_nonce,
                 trick_state=TRICK_NONE, trick_suit=None, hand=(),
                 seed_committed=(False, False), seed_revealed=(False, False),
                 deadline_nonce=None, winner=None, draw_pile=0):
        self.session_id = session_id
        self.player1 = player1
        self.player2 = player2
        self.lifecycle = lifecycle
        self.action_nonce = action_nonce
        self.trick_state = trick_state
        self.trick_suit = trick_suit
        self.hand = list(hand)
        self.seed_committed = tuple(seed_committed)
        self.seed_revealed = tuple(seed_revealed)
        self.deadline_nonce = deadline_nonce
        self.winner = winner
        self.draw_pile = draw_pile

    def slot_of(self, party):
        """플레이어 슬롯 (1 또는 2). 세션 참가자가 아니면 None."""
        if party == self.player1:
            return 1
        if party == self.player2:
            return 2
        return None

    def needs_seed_reveal(self, party):
        slot = self.slot_of(party)
        return (slot is not None
                and self.lifecycle == LIFECYCLE_SEED_REVEAL
                and not self.seed_revealed[slot - 1])

    def needs_play_commit(self, party):
        slot = self.slot_of(party)
        return (slot is not None
                and self.lifecycle == LIFECYCLE_PLAYING
                and self.trick_state in _COMMIT_WAIT[slot])

    def needs_play_reveal(self, party):
        slot = self.slot_of(party)
        return (slot is not None
                and self.lifecycle == LIFECYCLE_PLAYING
                and self.trick_state in _REVEAL_WAIT[slot])

    @property
    def is_finished(self):
        return self.lifecycle == LIFECYCLE_FINISHED

    def fingerprint(self):
        """폴링 변경 감지용 값."""
        return (self.lifecycle, self.trick_state, self.trick_suit, self.action_nonce,
                tuple(self.hand), self.seed_committed, self.seed_revealed, self.winner)

    def to_dict(self):
        return {
            "sessionId": self.session_id,
            "player1": self.player1,
            "player2": self.player2,
            "lifecycle": LIFECYCLE_NAMES.get(self.lifecycle, self.lifecycle),
            "trickState": self.trick_state,
            "trickSuit": self.trick_suit,
            "hand": list(self.hand),
            "actionNonce": self.action_nonce,
            "deadlineNonce": self.deadline_nonce,
            "winner": self.winner,
        }

    def __repr__(self):
        return (f"SessionView(session_id={self.session_id}, lifecycle={self.lifecycle}, "
                f"trick_state={self.trick_state}, nonce={self.action_nonce})")


class TimeoutStatus:
    """로컬 카운트다운 투영 (UX 전용, 결정은 원장이 한다)."""

    def __init__(self, active, remaining_actions, claimable):
        self.active = active
        self.remaining_actions = remaining_actions
        self.claimable = claimable

    def __repr__(self):
        return (f"TimeoutStatus(active={self.active}, remaining={self.remaining_actions}, "
                f"claimable={self.claimable})")


def timeout_status(view):
    """뷰에서 타임아웃 진행 상황을 계산한다."""
    if view is None or view.deadline_nonce is None or view.is_finished:
        return TimeoutStatus(False, None, False)
    remaining = max(0, view.deadline_nonce - view.action_nonce)
    return TimeoutStatus(True, remaining, remaining == 0)
