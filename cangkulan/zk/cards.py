"""카드 모델: 36장 덱, 4무늬 × 9장, 무늬 = card // 9."""

from eth_utils import keccak

from cangkulan.errors import PreconditionError
from cangkulan.zk.field import u32_to_bytes

DECK_SIZE = 36
CARDS_PER_SUIT = 9
SUIT_COUNT = 4
HAND_SIZE = 5

# "따라낼 수 없음(cangkul)" 선언 시 공개하는 카드 값
CANNOT_FOLLOW_SENTINEL = 0xFFFFFFFF

SUIT_NAMES = ("hearts", "diamonds", "clubs", "spades")


def suit_of(card_id):
    """카드 무늬 (0..3)."""
    return int(card_id) // CARDS_PER_SUIT


def check_card(card_id):
    """덱 범위 안의 카드인지 확인한다."""
    if not 0 <= int(card_id) < DECK_SIZE:
        raise PreconditionError(f"잘못된 카드 ID: {card_id}")
    return int(card_id)


def check_suit(suit):
    if suit is None or not 0 <= int(suit) < SUIT_COUNT:
        raise PreconditionError(f"잘못된 트릭 무늬: {suit}")
    return int(suit)


def valid_set(hand, trick_suit):
    """손패 중 트릭 무늬와 같은 카드들 (오름차순).

    링 증명의 후보 집합이며, 반드시 가장 최신 세션 뷰의 손패로 계산해야 한다.
    """
    trick_suit = check_suit(trick_suit)
    return sorted(check_card(c) for c in hand if suit_of(c) == trick_suit)


def play_commit_hash(card_id, salt):
    """레거시 해시 플레이 커밋: keccak(cardId_u32be ‖ salt32)."""
    salt = bytes(salt)
    if len(salt) != 32:
        raise PreconditionError(f"salt는 32바이트여야 합니다: {len(salt)}")
    return keccak(u32_to_bytes(card_id) + salt)
