"""
회로 증명 공개 입력 인코딩
============================

seed_verify 회로의 공개 입력은 seedHash 32바이트이며, 각 바이트가
하나의 필드 원소(32바이트 빅엔디안)로 인코딩된다. 따라서 공개 입력은
32 × 32 = 1024바이트이다.

**크기 상수**:
  - NOIR_PROOF_MIN_SIZE: 이보다 작거나 같은 증명은 회로 증명이 아니다
  - 전형적인 UltraHonk(keccak) 증명은 약 14 KB
"""

import hashlib

from cangkulan.errors import PreconditionError

NOIR_PROOF_MIN_SIZE = 4000
TYPICAL_PROOF_SIZE = 14592
FIELD_ELEMENT_SIZE = 32
SEED_HASH_SIZE = 32
PUBLIC_INPUTS_SIZE = SEED_HASH_SIZE * FIELD_ELEMENT_SIZE


def circuit_seed_hash(seed):
    """회로 안에서 쓰는 해시와 같은 blake2s-256."""
    return hashlib.blake2s(bytes(seed)).digest()


def is_circuit_proof(proof):
    return len(proof) > NOIR_PROOF_MIN_SIZE


def encode_public_inputs(seed_hash):
    """seedHash 32바이트 → 1024바이트 공개 입력.

    예시:
        >>> encode_public_inputs(b"\\x01" * 32)[:32].hex()
        '0000000000000000000000000000000000000000000000000000000000000001'
    """
    seed_hash = bytes(seed_hash)
    if len(seed_hash) != SEED_HASH_SIZE:
        raise PreconditionError(f"seedHash는 {SEED_HASH_SIZE}바이트여야 합니다: {len(seed_hash)}")
    return b"".join(b.to_bytes(FIELD_ELEMENT_SIZE, "big") for b in seed_hash)


def seed_hash_from_public_inputs(public_inputs):
    """1024바이트 공개 입력 → seedHash 32바이트.

    Raises:
        PreconditionError: 길이가 맞지 않거나 원소가 한 바이트 범위를 넘는 경우
    """
    public_inputs = bytes(public_inputs)
    if len(public_inputs) != PUBLIC_INPUTS_SIZE:
        raise PreconditionError(f"공개 입력은 {PUBLIC_INPUTS_SIZE}바이트여야 합니다: {len(public_inputs)}")
    out = bytearray()
    for i in range(SEED_HASH_SIZE):
        element = int.from_bytes(public_inputs[i * FIELD_ELEMENT_SIZE:(i + 1) * FIELD_ELEMENT_SIZE], "big")
        if element > 0xFF:
            raise PreconditionError(f"공개 입력 {i}번 원소가 바이트 범위를 벗어났습니다")
        out.append(element)
    return bytes(out)


def prover_toml(seed, seed_hash):
    """nargo execute 입력 파일(Prover.toml) 내용을 만든다."""
    seed_list = ", ".join(str(b) for b in bytes(seed))
    hash_list = ", ".join(f'"0x{b:02x}"' for b in bytes(seed_hash))
    return f"seed = [{seed_list}]\nseed_hash = [{hash_list}]\n"
