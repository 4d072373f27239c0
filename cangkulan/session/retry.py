"""
경합 재시도 (jittered exponential backoff)
============================================

상대의 동시 액션이 논스를 먼저 올렸거나, 시퀀스 번호 충돌/일시적 전송
실패가 나면 논스를 다시 읽고 제한된 횟수만큼 재시도한다.

  attempt 1: 관찰한 논스로 호출
  attempt n (n ≥ 2): delay(n-1) 대기 → 논스 재조회 → 호출

  delay(i) = min(base · factor^(i-1), max) · U[jitter_min, jitter_max)

경합이 아닌 실패(컨트랙트 규칙 위반, 증명 거부 등)는 즉시 올린다.
"""

import asyncio
import logging
import random

from cangkulan.errors import LedgerError

logger = logging.getLogger(__name__)


class RetryPolicy:
    """재시도 횟수와 백오프 파라미터.

    Args:
        max_retries: 첫 시도 이후 추가 시도 횟수 (기본 2 → 총 3회)
        base_delay, max_delay: 초 단위
        factor: 지수 백오프 배수
        jitter: (min, max) 곱셈 지터 범위
        rng: random.Random 호환 객체 (테스트에서 고정 가능)
    """

    def __init__(self, max_retries=2, base_delay=1.5, max_delay=8.0, factor=2.0,
                 jitter=(0.75, 1.25), rng=None):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.factor = factor
        self.jitter = jitter
        self.rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings, rng=None):
        return cls(
            max_retries=settings.retry_max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            factor=settings.retry_backoff_factor,
            jitter=(settings.retry_jitter_min, settings.retry_jitter_max),
            rng=rng,
        )

    @property
    def max_attempts(self):
        return self.max_retries + 1

    def delay(self, retry_index):
        """retry_index번째 재시도(1부터) 전 대기 시간."""
        raw = min(self.base_delay * self.factor ** (retry_index - 1), self.max_delay)
        low, high = self.jitter
        return raw * (low + self.rng.random() * (high - low))


async def with_contention_retry(operation, nonce, refresh_nonce, policy, sleep=asyncio.sleep, label="action"):
    """operation(nonce)를 경합 재시도와 함께 실행한다.

    Args:
        operation: expected_nonce를 받아 원장 호출 코루틴을 돌려주는 함수
        nonce: 첫 시도에 쓸 논스
        refresh_nonce: 최신 논스를 돌려주는 코루틴 함수
        policy: RetryPolicy
        sleep: 대기 함수 (테스트에서 교체)
        label: 로그용 액션 이름

    Returns:
        operation의 결과

    Raises:
        LedgerError: 경합이 아닌 실패이거나 재시도를 모두 소진한 경우
    """
    attempt = 1
    while True:
        try:
            return await operation(nonce)
        except LedgerError as exc:
            if not exc.is_contention():
                raise
            if attempt >= policy.max_attempts:
                logger.warning("%s: contention persisted after %d attempts: %s",
                               label, attempt, exc.message)
                raise
            wait = policy.delay(attempt)
            logger.warning("%s: contention on attempt %d/%d (%s), retrying in %.2fs",
                           label, attempt, policy.max_attempts, exc.message, wait)
        await sleep(wait)
        nonce = await refresh_nonce()
        attempt += 1
