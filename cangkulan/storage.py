"""
비밀값 영속 저장소
====================

커밋과 공개는 서로 다른 요청에서 일어나므로, 시드/블라인딩/salt를
재시작 후에도 남도록 저장해야 한다.

**키 구조** (세션과 플레이어를 모두 포함해 한 프로세스의 여러 역할이 충돌하지 않음):
  cangkulan-seed:{sessionId}:{player}         → {seed, blinding, proofMode}
  cangkulan-play-commit:{sessionId}:{player}  → {cardId, salt, zkMode}

**저장 형식**:
  값은 JSON 문자열이며 keccak256 카운터 모드 스트림으로 난독화된다.
    stored    = "enc2:" + base64(iv(16) ‖ plaintext ⊕ keystream)
    block_i   = keccak(storageKey ":" salt ‖ iv ‖ i_be4)
  평문으로 남아 있는 예전 항목도 그대로 읽는다.

**실패 정책**:
  쓰기 실패는 SecretPersistenceError로 올린다. 저장되지 않은 커밋은 공개할 수
  없으므로 오케스트레이터는 이 오류를 받으면 원장 제출 전에 커밋을 중단한다.

사용 예시:
    >>> store = SecretStore(TinyKeyValueStore.in_memory())
    >>> store.save_seed(7, "GPLAYER", seed, blinding, "pedersen")
    >>> store.load_seed(7, "GPLAYER").proof_mode
    'pedersen'
"""

import base64
import json
import logging
import secrets

from eth_utils import keccak
from tinydb import TinyDB, Query
from tinydb.storages import MemoryStorage

from cangkulan.errors import SecretPersistenceError
from cangkulan.zk.cards import CANNOT_FOLLOW_SENTINEL

logger = logging.getLogger(__name__)


SEED_PREFIX = "cangkulan-seed"
PLAY_PREFIX = "cangkulan-play-commit"
CIPHER_PREFIX = "enc2:"
IV_SIZE = 16

ENTRY = Query()


def seed_key(session_id, party):
    return f"{SEED_PREFIX}:{session_id}:{party}"


def play_key(session_id, party):
    return f"{PLAY_PREFIX}:{session_id}:{party}"


# ─────────────────────────────────────────────────────────────────────
# 키-값 포트
# ─────────────────────────────────────────────────────────────────────

class TinyKeyValueStore:
    """TinyDB 위의 get/set/delete 키-값 저장소.

    Args:
        db: TinyDB 인스턴스 (파일 또는 MemoryStorage)
        table: 사용할 테이블 이름
    """

    def __init__(self, db, table="secrets"):
        self.db = db
        self.table = db.table(table)

    @classmethod
    def open(cls, path):
        return cls(TinyDB(path))

    @classmethod
    def in_memory(cls):
        return cls(TinyDB(storage=MemoryStorage))

    def get(self, key):
        result = self.table.search(ENTRY.type == key)
        if not result:
            return None
        return result[0].get("data")

    def set(self, key, value):
        self.table.upsert({"type": key, "data": value}, ENTRY.type == key)

    def delete(self, key):
        self.table.remove(ENTRY.type == key)

    def keys(self, prefix=""):
        return [doc["type"] for doc in self.table.all() if doc.get("type", "").startswith(prefix)]


# ─────────────────────────────────────────────────────────────────────
# 난독화
# ─────────────────────────────────────────────────────────────────────

def _key_stream(storage_key, salt, iv, length):
    prefix = f"{storage_key}:{salt}".encode("utf-8")
    stream = bytearray()
    block = 0
    while len(stream) < length:
        stream.extend(keccak(prefix + iv + block.to_bytes(4, "big")))
        block += 1
    return bytes(stream[:length])


def encrypt_value(storage_key, plaintext, salt):
    data = plaintext.encode("utf-8")
    iv = secrets.token_bytes(IV_SIZE)
    stream = _key_stream(storage_key, salt, iv, len(data))
    cipher = bytes(a ^ b for a, b in zip(data, stream))
    return CIPHER_PREFIX + base64.b64encode(iv + cipher).decode("ascii")


def decrypt_value(storage_key, stored, salt):
    """enc2 항목을 복호화한다. 접두사가 없으면 평문으로 간주한다."""
    if not stored.startswith(CIPHER_PREFIX):
        return stored
    data = base64.b64decode(stored[len(CIPHER_PREFIX):])
    if len(data) < IV_SIZE:
        raise ValueError("손상된 저장 항목입니다")
    iv, cipher = data[:IV_SIZE], data[IV_SIZE:]
    stream = _key_stream(storage_key, salt, iv, len(cipher))
    return bytes(a ^ b for a, b in zip(cipher, stream)).decode("utf-8")


# ─────────────────────────────────────────────────────────────────────
# 비밀값 레코드
# ─────────────────────────────────────────────────────────────────────

class SeedSecret:
    """시드 커밋의 공개 재료."""

    def __init__(self, seed, blinding, proof_mode):
        self.seed = seed
        self.blinding = blinding
        self.proof_mode = proof_mode

    def to_dict(self):
        return {"seed": self.seed.hex(), "blinding": self.blinding.hex(), "proofMode": self.proof_mode}

    @classmethod
    def from_dict(cls, data):
        return cls(bytes.fromhex(data["seed"]), bytes.fromhex(data["blinding"]),
                   data.get("proofMode", "nizk"))


class PlaySecret:
    """플레이 커밋의 공개 재료. card_id는 cangkul이면 센티널이다."""

    def __init__(self, card_id, salt, zk_mode):
        self.card_id = card_id
        self.salt = salt
        self.zk_mode = zk_mode

    def to_dict(self):
        return {"cardId": self.card_id, "salt": self.salt.hex(), "zkMode": self.zk_mode}

    @classmethod
    def from_dict(cls, data):
        zk_mode = data.get("zkMode", "hash")
        # 예전 항목은 bool 플래그였다
        if zk_mode is True:
            zk_mode = "ring"
        elif zk_mode is False:
            zk_mode = "hash"
        return cls(int(data["cardId"]), bytes.fromhex(data["salt"]), zk_mode)


class SecretStore:
    """세션+플레이어 단위 비밀값 저장소.

    Args:
        kv: get/set/delete를 제공하는 키-값 저장소
        salt: 난독화 솔트
        encrypt: False면 평문 JSON으로 저장
    """

    def __init__(self, kv, salt="cangkulan-zk-storage-v2", encrypt=True):
        self.kv = kv
        self.salt = salt
        self.encrypt = encrypt

    @classmethod
    def from_settings(cls, settings, kv=None):
        if kv is None:
            kv = TinyKeyValueStore.open(settings.storage_path)
        return cls(kv, salt=settings.storage_salt, encrypt=settings.storage_encrypt)

    def _write(self, key, record):
        plaintext = json.dumps(record, sort_keys=True)
        stored = encrypt_value(key, plaintext, self.salt) if self.encrypt else plaintext
        try:
            self.kv.set(key, stored)
            written = self.kv.get(key)
        except Exception as exc:
            logger.error("secret write failed for %s: %s", key, exc)
            raise SecretPersistenceError(f"비밀값 저장 실패 ({key}): {exc}") from exc
        if written != stored:
            raise SecretPersistenceError(f"비밀값 저장 확인 실패 ({key})")

    def _read(self, key):
        stored = self.kv.get(key)
        if stored is None:
            return None
        try:
            return json.loads(decrypt_value(key, stored, self.salt))
        except (ValueError, UnicodeDecodeError) as exc:
            logger.warning("unreadable secret entry %s: %s", key, exc)
            return None

    # ── 시드 ──

    def save_seed(self, session_id, party, seed, blinding, proof_mode):
        """시드 공개 재료를 저장한다. 실패하면 SecretPersistenceError."""
        self._write(seed_key(session_id, party), SeedSecret(seed, blinding, proof_mode).to_dict())

    def load_seed(self, session_id, party):
        data = self._read(seed_key(session_id, party))
        return SeedSecret.from_dict(data) if data else None

    def clear_seed(self, session_id, party):
        self.kv.delete(seed_key(session_id, party))

    # ── 플레이 커밋 ──

    def save_play(self, session_id, party, card_id, salt, zk_mode):
        """트릭 플레이 공개 재료를 저장한다. 실패하면 SecretPersistenceError."""
        self._write(play_key(session_id, party), PlaySecret(card_id, salt, zk_mode).to_dict())

    def load_play(self, session_id, party):
        data = self._read(play_key(session_id, party))
        return PlaySecret.from_dict(data) if data else None

    def clear_play(self, session_id, party):
        self.kv.delete(play_key(session_id, party))

    def describe(self, session_id, party):
        """개발용 요약. 비밀값 자체는 노출하지 않는다."""
        seed = self.load_seed(session_id, party)
        play = self.load_play(session_id, party)
        return {
            "seed": {"proofMode": seed.proof_mode} if seed else None,
            "play": {"zkMode": play.zk_mode, "cannotFollow": play.card_id == CANNOT_FOLLOW_SENTINEL} if play else None,
        }
