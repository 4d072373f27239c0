"""
Cangkulan Flask Blueprint: 개발용 ZK 엔드포인트
=================================================

커밋먼트와 증명을 만들고 검증해 보는 JSON API.
원장 없이 엔진만 실행하며, 비밀값 저장소 내용(모드 요약)을 조회할 수 있다.

  GET  /zk/modes                  증명 크기표
  POST /zk/seed/commit            시드 커밋먼트
  POST /zk/seed/prove             시드 증명 (nizk/pedersen)
  POST /zk/seed/verify            시드 증명 검증
  POST /zk/play/ring              링 증명
  POST /zk/play/cangkul           집계 배제 증명
  POST /zk/play/verify            플레이 증명 검증
  POST /zk/describe               증명 바이트 분해
  GET  /zk/secrets/<sid>/<party>  저장된 비밀값 요약
"""

import logging

from flask import Blueprint, jsonify, request

from cangkulan.errors import CangkulanError, ProofRejected
from cangkulan.zk.cardplay import build_cangkul_proof, build_ring_proof
from cangkulan.zk.cards import valid_set
from cangkulan.zk.field import random_blinding_bytes
from cangkulan.zk.seed import build_seed_commitment, build_seed_proof, generate_seed
from cangkulan.zk.verifier import check_play_commit, check_seed_reveal

from cangkulan_serializers import (
    to_hex, from_hex,
    serialize_seed_commitment, serialize_play_commitment,
    describe_seed_proof, describe_play_proof,
)

logger = logging.getLogger(__name__)

zk_bp = Blueprint('zk', __name__, url_prefix='/zk')

# 저장소는 app.py에서 주입
STORE = None


def init_zk_bp(store):
    """app.py에서 SecretStore를 주입받는다."""
    global STORE
    STORE = store


def _body():
    return request.get_json(silent=True) or {}


def _session_fields(data):
    return int(data["sessionId"]), data["player"]


@zk_bp.errorhandler(CangkulanError)
def handle_engine_error(exc):
    """엔진 오류 → 400 JSON."""
    payload = {"error": str(exc), "type": type(exc).__name__}
    if isinstance(exc, ProofRejected):
        payload.update({"reason": exc.reason, "mode": exc.mode})
    return jsonify(payload), 400


@zk_bp.errorhandler(KeyError)
def handle_missing_field(exc):
    return jsonify({"error": f"필수 필드 누락: {exc.args[0]}"}), 400


@zk_bp.errorhandler(ValueError)
def handle_bad_value(exc):
    return jsonify({"error": str(exc)}), 400


# ──────────────────────────────────────────────────────────────
# 크기표
# ──────────────────────────────────────────────────────────────

@zk_bp.route("/modes")
def modes():
    return jsonify({
        "seed": {"nizk": 64, "pedersen": 224, "noir": ">4000"},
        "play": {"cangkul": 228, "ring": "96 + 64*N (N=1..9)"},
    })


# ──────────────────────────────────────────────────────────────
# 시드
# ──────────────────────────────────────────────────────────────

@zk_bp.route("/seed/commit", methods=["POST"])
def seed_commit():
    """시드 커밋먼트를 만든다. seed/blinding을 생략하면 새로 생성한다."""
    data = _body()
    seed = from_hex(data["seed"]) if data.get("seed") else generate_seed()
    blinding = from_hex(data["blinding"]) if data.get("blinding") else random_blinding_bytes()
    commitment = build_seed_commitment(seed, blinding, data["player"], data.get("mode", "pedersen"))
    out = serialize_seed_commitment(commitment)
    out.update({"seed": to_hex(seed), "blinding": to_hex(blinding)})
    return jsonify(out)


@zk_bp.route("/seed/prove", methods=["POST"])
def seed_prove():
    data = _body()
    sid, player = _session_fields(data)
    proof = build_seed_proof(from_hex(data["seed"]), from_hex(data["blinding"]),
                             sid, player, data.get("mode", "pedersen"))
    return jsonify({"proof": to_hex(proof), "proofSize": len(proof)})


@zk_bp.route("/seed/verify", methods=["POST"])
def seed_verify():
    data = _body()
    sid, player = _session_fields(data)
    mode = check_seed_reveal(from_hex(data["seedHash"]), from_hex(data["commitHash"]),
                             from_hex(data["proof"]), sid, player)
    return jsonify({"valid": True, "mode": mode})


# ──────────────────────────────────────────────────────────────
# 카드 플레이
# ──────────────────────────────────────────────────────────────

@zk_bp.route("/play/ring", methods=["POST"])
def play_ring():
    """손패와 트릭 무늬로 유효 집합을 계산해 링 증명을 만든다."""
    data = _body()
    sid, player = _session_fields(data)
    valid = valid_set(data["hand"], data["trickSuit"])
    blinding = from_hex(data["blinding"]) if data.get("blinding") else random_blinding_bytes()
    play = build_ring_proof(int(data["cardId"]), blinding, valid, sid, player)
    out = serialize_play_commitment(play)
    out["validSet"] = valid
    return jsonify(out)


@zk_bp.route("/play/cangkul", methods=["POST"])
def play_cangkul():
    data = _body()
    sid, player = _session_fields(data)
    play = build_cangkul_proof(data["hand"], data["trickSuit"], sid, player)
    return jsonify(serialize_play_commitment(play))


@zk_bp.route("/play/verify", methods=["POST"])
def play_verify():
    data = _body()
    sid, player = _session_fields(data)
    hand = data.get("hand", [])
    suit = data.get("trickSuit")
    valid = data.get("validSet")
    if valid is None and suit is not None:
        valid = valid_set(hand, suit)
    mode = check_play_commit(from_hex(data["commitHash"]), from_hex(data["proof"]), sid, player,
                             valid_cards=valid, trick_suit=suit, hand=hand)
    return jsonify({"valid": True, "mode": mode})


@zk_bp.route("/describe", methods=["POST"])
def describe():
    data = _body()
    proof = from_hex(data["proof"])
    if data.get("kind") == "play":
        return jsonify(describe_play_proof(proof))
    return jsonify(describe_seed_proof(proof))


# ──────────────────────────────────────────────────────────────
# 저장소 조회
# ──────────────────────────────────────────────────────────────

@zk_bp.route("/secrets/<int:session_id>/<player>")
def secrets_summary(session_id, player):
    """저장된 공개 재료의 존재 여부와 모드만 돌려준다."""
    if STORE is None:
        return jsonify({"error": "저장소가 설정되지 않았습니다"}), 503
    return jsonify(STORE.describe(session_id, player))
