"""
세션 액션 오케스트레이터
==========================

한 세션의 원장 액션을 순서대로 제출한다.

  ┌──────────────────────────────────────────────────────────────┐
  │  SeedCommit : 시드 생성 → 커밋먼트 → 저장 → commit_seed       │
  ├──────────────────────────────────────────────────────────────┤
  │  SeedReveal : 저장된 시드 → 모드별 증명 → reveal_seed          │
  │               (noir: verify_noir_seed → reveal_seed(빈 증명))  │
  ├──────────────────────────────────────────────────────────────┤
  │  Playing    : 트릭마다 최신 뷰 조회 → 유효 집합 계산           │
  │               → 링/집계/해시 커밋 → 저장 → commit_play*        │
  │               → (폴링) reveal 대기 상태 감지 → reveal_play     │
  ├──────────────────────────────────────────────────────────────┤
  │  Finished                                                     │
  └──────────────────────────────────────────────────────────────┘

**동시성 규칙**:
  - 한 번에 하나의 액션만 진행한다. 진행 중에 들어온 두 번째 호출은
    큐에 쌓이지 않고 아무 일도 하지 않는다 (None 반환).
  - 모든 제출은 관찰한 액션 논스를 싣고, 경합 실패 시 논스를 다시 읽어
    jittered exponential backoff로 제한된 횟수만큼 재시도한다.
  - 자동 공개는 폴링(refresh)에서만 일어나며, 다른 액션이 진행 중이면
    건너뛴다. 공개 성공 시 저장 항목을 지우므로 중복 발사되지 않는다.

**봇/로컬 세션**:
  zk_play가 꺼진 세션은 링/집계 증명 대신 평문 해시 커밋을 쓴다.

사용 예시:
    >>> ctx = SessionContext(7, "GALICE", ledger, store, game_mode="multiplayer")
    >>> orch = SessionOrchestrator(ctx)
    >>> await orch.commit_seed()
    >>> await orch.refresh()          # SEED_REVEAL 감지 시 자동 공개
    >>> await orch.commit_play(12)
"""

import asyncio
import logging

from cangkulan.config import Settings
from cangkulan.errors import CangkulanError, PreconditionError, SecretMissingError, format_error
from cangkulan.session.retry import RetryPolicy, with_contention_retry
from cangkulan.session.view import LIFECYCLE_PLAYING, LIFECYCLE_SEED_COMMIT, timeout_status
from cangkulan.zk.cardplay import (
    build_cangkul_proof, build_hash_commitment, build_ring_proof,
    ZK_MODE_CANGKUL, ZK_MODE_RING,
)
from cangkulan.zk.cards import CANNOT_FOLLOW_SENTINEL, valid_set
from cangkulan.zk.field import random_blinding_bytes
from cangkulan.zk.seed import (
    MODE_NOIR, build_seed_commitment, build_seed_proof, check_mode, generate_seed,
    seed_hash,
)

logger = logging.getLogger(__name__)


GAME_MODE_AI = "ai"
GAME_MODE_MULTIPLAYER = "multiplayer"
GAME_MODE_DEV = "dev"


def default_seed_mode(game_mode, settings):
    """게임 종류별 기본 시드 증명 모드. AI 게임은 nizk, 그 외는 pedersen."""
    if settings.seed_mode_override:
        return check_mode(settings.seed_mode_override)
    if game_mode == GAME_MODE_AI:
        return check_mode(settings.ai_seed_mode)
    return check_mode(settings.multiplayer_seed_mode)


class SessionContext:
    """게임 하나에 대한 명시적 컨텍스트. 엔진 호출마다 전달된다.

    Args:
        session_id: u32 세션 ID
        party: 이 클라이언트가 대표하는 플레이어 주소
        ledger: LedgerClient 구현체
        store: SecretStore
        game_mode: "ai" | "multiplayer" | "dev"
        proof_mode: 시드 증명 모드 (생략 시 game_mode로 결정)
        zk_play: 카드 플레이 ZK 사용 여부 (생략 시 봇/로컬 세션이면 False)
        bridge: noir 모드용 CircuitBridge
        settings: Settings
        local_network: 로컬 네트워크 세션 여부
    """

    def __init__(self, session_id, party, ledger, store, game_mode=GAME_MODE_MULTIPLAYER,
                 proof_mode=None, zk_play=None, bridge=None, settings=None, local_network=False):
        self.session_id = session_id
        self.party = party
        self.ledger = ledger
        self.store = store
        self.game_mode = game_mode
        self.bridge = bridge
        self.settings = settings or Settings()
        self.local_network = local_network
        self.proof_mode = check_mode(proof_mode) if proof_mode else default_seed_mode(game_mode, self.settings)
        if zk_play is None:
            zk_play = game_mode != GAME_MODE_AI and not local_network
        self.zk_play = zk_play


class SessionOrchestrator:
    """한 세션의 커밋-공개 액션 시퀀서.

    속성:
        view: 마지막으로 조회한 SessionView
        last_error: 마지막 실패의 사용자용 메시지
        pending_action: 진행 중인 액션 이름 (없으면 None)
    """

    def __init__(self, context, policy=None, sleep=asyncio.sleep):
        self.ctx = context
        self.policy = policy or RetryPolicy.from_settings(context.settings)
        self._sleep = sleep
        self.view = None
        self.last_error = None
        self.pending_action = None

    @property
    def busy(self):
        return self.pending_action is not None

    # ── 내부 헬퍼 ──

    async def _exclusive(self, name, action):
        if self.pending_action is not None:
            logger.debug("%s ignored: %s already in flight", name, self.pending_action)
            return None
        self.pending_action = name
        try:
            result = await action()
        except CangkulanError as exc:
            self.last_error = format_error(exc)
            logger.info("%s failed: %s", name, self.last_error)
            raise
        finally:
            self.pending_action = None
        self.last_error = None
        return result

    async def fetch_view(self):
        """상태 갱신 포트: 원장에서 최신 세션 뷰를 가져온다."""
        self.view = await self.ctx.ledger.get_session_view(self.ctx.session_id, self.ctx.party)
        return self.view

    async def _fresh_nonce(self):
        view = await self.fetch_view()
        return view.action_nonce

    async def _submit(self, label, call):
        if self.view is None:
            await self.fetch_view()
        result = await with_contention_retry(call, self.view.action_nonce, self._fresh_nonce,
                                             self.policy, sleep=self._sleep, label=label)
        logger.info("%s confirmed: session=%s party=%s", label, self.ctx.session_id, self.ctx.party)
        return result

    # ── 시드 단계 ──

    async def commit_seed(self, seed=None):
        """시드를 생성(또는 주어진 시드 사용)해 커밋한다.

        공개 재료는 원장 제출 전에 저장되며, 저장 실패 시 제출하지 않는다.
        """
        return await self._exclusive("commit_seed", lambda: self._commit_seed(seed))

    async def _commit_seed(self, seed):
        ctx = self.ctx
        seed = seed if seed is not None else generate_seed()
        blinding = random_blinding_bytes()
        commitment = build_seed_commitment(seed, blinding, ctx.party, ctx.proof_mode)

        view = await self.fetch_view()
        if view.lifecycle != LIFECYCLE_SEED_COMMIT:
            raise PreconditionError(f"시드 커밋 단계가 아닙니다 (lifecycle={view.lifecycle})")
        slot = view.slot_of(ctx.party)
        if slot is None:
            raise PreconditionError(f"{ctx.party}는 세션 {ctx.session_id}의 참가자가 아닙니다")
        # 이미 커밋한 시드의 공개 재료를 덮어쓰지 않는다
        if view.seed_committed[slot - 1]:
            raise PreconditionError(f"세션 {ctx.session_id}에 이미 시드를 커밋했습니다")

        ctx.store.save_seed(ctx.session_id, ctx.party, seed, blinding, ctx.proof_mode)
        result = await self._submit(
            "commit_seed",
            lambda nonce: ctx.ledger.commit_seed(ctx.session_id, ctx.party, commitment.commit_hash, nonce),
        )
        await self.fetch_view()
        return result

    async def reveal_seed(self):
        """저장된 시드를 커밋 때의 모드로 공개한다."""
        return await self._exclusive("reveal_seed", self._reveal_seed)

    async def _reveal_seed(self):
        ctx = self.ctx
        secret = ctx.store.load_seed(ctx.session_id, ctx.party)
        if secret is None:
            raise SecretMissingError(
                f"세션 {ctx.session_id}의 시드가 저장소에 없습니다. 타임아웃으로만 세션을 정리할 수 있습니다")
        await self.fetch_view()

        if secret.proof_mode == MODE_NOIR:
            result = await self._reveal_seed_circuit(secret)
        else:
            sh = seed_hash(secret.seed, secret.proof_mode)
            proof = build_seed_proof(secret.seed, secret.blinding, ctx.session_id, ctx.party, secret.proof_mode)
            result = await self._submit(
                "reveal_seed",
                lambda nonce: ctx.ledger.reveal_seed(ctx.session_id, ctx.party, sh, proof, nonce),
            )
        ctx.store.clear_seed(ctx.session_id, ctx.party)
        await self.fetch_view()
        return result

    async def _reveal_seed_circuit(self, secret):
        ctx = self.ctx
        if ctx.bridge is None:
            raise PreconditionError("noir 모드 공개에는 CircuitBridge가 필요합니다")
        circuit = await ctx.bridge.prove_knowledge(secret.seed)
        logger.info("circuit proof ready for session %s (%d ms)", ctx.session_id, circuit.elapsed_ms)

        # 1단계가 실패하면 예외가 전파되어 2단계에 도달하지 않는다
        await self._submit(
            "verify_noir_seed",
            lambda nonce: ctx.ledger.verify_noir_seed(ctx.session_id, ctx.party, circuit.seed_hash,
                                                      circuit.proof, nonce),
        )
        await self.fetch_view()
        return await self._submit(
            "reveal_seed",
            lambda nonce: ctx.ledger.reveal_seed(ctx.session_id, ctx.party, circuit.seed_hash, b"", nonce),
        )

    # ── 플레이 단계 ──

    async def commit_play(self, card_id=None, cannot_follow=False):
        """현재 트릭에 카드(또는 cangkul)를 커밋한다."""
        return await self._exclusive("commit_play", lambda: self._commit_play(card_id, cannot_follow))

    def _build_play(self, view, card_id, cannot_follow):
        ctx = self.ctx
        if view.lifecycle != LIFECYCLE_PLAYING:
            raise PreconditionError(f"플레이 단계가 아닙니다 (lifecycle={view.lifecycle})")
        if view.trick_suit is None:
            raise PreconditionError("진행 중인 트릭이 없습니다")
        if not view.needs_play_commit(ctx.party):
            raise PreconditionError(f"이번 트릭에 커밋할 차례가 아닙니다 (trick_state={view.trick_state})")

        valid = valid_set(view.hand, view.trick_suit)
        if cannot_follow:
            if valid:
                raise PreconditionError(f"트릭 무늬 카드 {valid}가 있어 cangkul을 선언할 수 없습니다")
        elif card_id is None:
            raise PreconditionError("낼 카드를 지정해야 합니다")
        elif card_id not in valid:
            raise PreconditionError(f"카드 {card_id}가 유효 집합 {valid}에 없습니다")

        if not ctx.zk_play:
            logger.warning("session %s: ZK play disabled, using hash commitment", ctx.session_id)
            card = CANNOT_FOLLOW_SENTINEL if cannot_follow else card_id
            return build_hash_commitment(card, random_blinding_bytes())
        if cannot_follow:
            return build_cangkul_proof(view.hand, view.trick_suit, ctx.session_id, ctx.party)
        return build_ring_proof(card_id, random_blinding_bytes(), valid, ctx.session_id, ctx.party)

    async def _commit_play(self, card_id, cannot_follow):
        ctx = self.ctx
        # 유효 집합은 반드시 최신 뷰로 계산한다
        view = await self.fetch_view()
        play = self._build_play(view, card_id, cannot_follow)
        ctx.store.save_play(ctx.session_id, ctx.party, play.card_id, play.salt, play.zk_mode)

        if play.zk_mode == ZK_MODE_RING:
            def call(nonce):
                return ctx.ledger.commit_play_zk(ctx.session_id, ctx.party, play.commit_hash, nonce, play.proof)
        elif play.zk_mode == ZK_MODE_CANGKUL:
            def call(nonce):
                return ctx.ledger.commit_cangkul_zk(ctx.session_id, ctx.party, play.commit_hash, nonce, play.proof)
        else:
            def call(nonce):
                return ctx.ledger.commit_play(ctx.session_id, ctx.party, play.commit_hash, nonce)

        result = await self._submit(f"commit_play[{play.zk_mode}]", call)
        await self.fetch_view()
        return result

    async def reveal_play(self):
        """저장된 카드와 salt로 현재 트릭 커밋을 공개한다."""
        return await self._exclusive("reveal_play", self._reveal_play)

    async def _reveal_play(self):
        ctx = self.ctx
        secret = ctx.store.load_play(ctx.session_id, ctx.party)
        if secret is None:
            raise SecretMissingError(
                f"세션 {ctx.session_id}의 플레이 커밋이 저장소에 없습니다. 타임아웃으로만 세션을 정리할 수 있습니다")
        await self.fetch_view()
        result = await self._submit(
            "reveal_play",
            lambda nonce: ctx.ledger.reveal_play(ctx.session_id, ctx.party, secret.card_id, secret.salt, nonce),
        )
        ctx.store.clear_play(ctx.session_id, ctx.party)
        await self.fetch_view()
        return result

    # ── 타임아웃 / 몰수 ──

    async def tick_timeout(self):
        """상대가 멈췄을 때 논스를 올려 타임아웃 기한에 다가간다."""
        return await self._exclusive("tick_timeout", self._tick_timeout)

    async def _tick_timeout(self):
        ctx = self.ctx
        await self.fetch_view()
        result = await self._submit(
            "tick_timeout", lambda nonce: ctx.ledger.tick_timeout(ctx.session_id, ctx.party, nonce))
        await self.fetch_view()
        return result

    async def resolve_timeout(self):
        """기한이 지났으면 상대의 몰수패를 청구한다."""
        return await self._exclusive("resolve_timeout", self._resolve_timeout)

    async def _resolve_timeout(self):
        ctx = self.ctx
        await self.fetch_view()
        result = await self._submit(
            "resolve_timeout", lambda nonce: ctx.ledger.resolve_timeout(ctx.session_id, ctx.party, nonce))
        self._discard_secrets()
        await self.fetch_view()
        return result

    async def forfeit(self):
        return await self._exclusive("forfeit", self._forfeit)

    async def _forfeit(self):
        ctx = self.ctx
        await self.fetch_view()
        result = await self._submit(
            "forfeit", lambda nonce: ctx.ledger.forfeit(ctx.session_id, ctx.party, nonce))
        self._discard_secrets()
        await self.fetch_view()
        return result

    def _discard_secrets(self):
        self.ctx.store.clear_seed(self.ctx.session_id, self.ctx.party)
        self.ctx.store.clear_play(self.ctx.session_id, self.ctx.party)

    def timeout_status(self):
        return timeout_status(self.view)

    # ── 폴링 / 자동 공개 ──

    async def refresh(self):
        """뷰를 갱신하고, 공개 대기 상태이면 자동으로 공개한다.

        Returns:
            SessionView
        """
        view = await self.fetch_view()
        if self.busy:
            return view
        ctx = self.ctx
        if view.needs_seed_reveal(ctx.party) and ctx.store.load_seed(ctx.session_id, ctx.party):
            logger.info("auto-reveal seed: session=%s", ctx.session_id)
            await self.reveal_seed()
        elif view.needs_play_reveal(ctx.party) and ctx.store.load_play(ctx.session_id, ctx.party):
            logger.info("auto-reveal play: session=%s", ctx.session_id)
            await self.reveal_play()
        return self.view

    async def run_polling(self, stop=None, max_polls=None):
        """세션이 끝날 때까지 적응형 간격으로 refresh()를 반복한다.

        상태가 바뀌면 기본 간격으로 돌아가고, 변화가 없으면 간격을 늘리며,
        오류가 나면 조금 더 늦춘다.

        Args:
            stop: 설정되면 루프를 끝내는 asyncio.Event
            max_polls: 최대 폴링 횟수 (None이면 무제한)
        """
        s = self.ctx.settings
        interval = s.poll_base_interval
        last = None
        polls = 0
        while stop is None or not stop.is_set():
            try:
                view = await self.refresh()
            except CangkulanError as exc:
                self.last_error = format_error(exc)
                logger.warning("poll failed for session %s: %s", self.ctx.session_id, self.last_error)
                interval = min(interval * s.poll_error_factor, s.poll_max_interval)
            else:
                fingerprint = view.fingerprint()
                if fingerprint != last:
                    last = fingerprint
                    interval = s.poll_base_interval
                else:
                    interval = min(interval * s.poll_backoff_factor, s.poll_max_interval)
                if view.is_finished:
                    return view
            polls += 1
            if max_polls is not None and polls >= max_polls:
                break
            await self._sleep(interval)
        return self.view
