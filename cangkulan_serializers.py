"""
Cangkulan 데이터 직렬화/역직렬화 헬퍼
========================================

JSON 응답과 TinyDB에 담을 수 있는 형태로 엔진 객체를 변환한다.
G1 점, FR 스칼라, 커밋먼트, 증명 바이트열 등.
"""

from cangkulan.circuit.encoding import NOIR_PROOF_MIN_SIZE
from cangkulan.zk.cardplay import parse_cangkul_proof, parse_ring_proof
from cangkulan.zk.field import POINT_SIZE, g1_to_bytes, fr_to_bytes
from cangkulan.zk.verifier import detect_play_mode, detect_seed_mode


# ─── bytes ───

def to_hex(data):
    """bytes → "0x..." """
    return "0x" + bytes(data).hex()


def from_hex(s):
    """"0x..." 또는 "..." → bytes"""
    if s is None:
        return None
    s = s.strip()
    if s.startswith(("0x", "0X")):
        s = s[2:]
    return bytes.fromhex(s)


def hex_short(data, n=8):
    """앞뒤 n자리만 남긴 축약 표기."""
    h = bytes(data).hex()
    if len(h) <= 2 * n:
        return "0x" + h
    return f"0x{h[:n]}…{h[-n:]}"


# ─── G1 point / FR ───

def serialize_g1(point):
    """G1 point → 96바이트 hex"""
    return to_hex(g1_to_bytes(point))


def serialize_fr(val):
    """FR → 32바이트 hex"""
    return to_hex(fr_to_bytes(val))


# ─── 엔진 결과 ───

def serialize_seed_commitment(commitment):
    return {
        "mode": commitment.mode,
        "seedHash": to_hex(commitment.seed_hash),
        "commitHash": to_hex(commitment.commit_hash),
        "point": serialize_g1(commitment.point) if commitment.point is not None else None,
    }


def serialize_play_commitment(play):
    return {
        "zkMode": play.zk_mode,
        "cardId": play.card_id,
        "salt": to_hex(play.salt),
        "commitHash": to_hex(play.commit_hash),
        "proof": to_hex(play.proof),
        "proofSize": len(play.proof),
    }


def describe_seed_proof(proof):
    """시드 증명을 크기표에 따라 필드별로 분해한다."""
    proof = bytes(proof)
    mode = detect_seed_mode(proof)
    out = {"size": len(proof), "mode": mode}
    if mode == "nizk":
        out["blinding"] = hex_short(proof[:32])
        out["response"] = hex_short(proof[32:])
    elif mode == "pedersen" and len(proof) == 224:
        out["commitment"] = hex_short(proof[:POINT_SIZE])
        out["R"] = hex_short(proof[POINT_SIZE:2 * POINT_SIZE])
        out["z"] = hex_short(proof[2 * POINT_SIZE:])
    elif mode == "noir":
        out["preVerified"] = len(proof) == 0
        out["circuit"] = len(proof) > NOIR_PROOF_MIN_SIZE
    return out


def describe_play_proof(proof):
    """플레이 증명을 크기표에 따라 필드별로 분해한다."""
    proof = bytes(proof)
    mode = detect_play_mode(proof)
    out = {"size": len(proof), "mode": mode}
    if mode == "ring":
        c_bytes, legs = parse_ring_proof(proof)
        out["commitment"] = hex_short(c_bytes)
        out["legs"] = [{"e": serialize_fr(e), "z": serialize_fr(z)} for e, z in legs]
    elif mode == "cangkul":
        hand_size, a_bytes, r_bytes, z = parse_cangkul_proof(proof)
        out["handSize"] = hand_size
        out["aggregate"] = hex_short(a_bytes)
        out["R"] = hex_short(r_bytes)
        out["z"] = serialize_fr(z)
    return out
