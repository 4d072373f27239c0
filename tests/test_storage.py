"""
Tests for the secret persistence store (TinyDB key-value port + keccak-CTR
obfuscation).
"""

import json

import pytest
from tinydb import TinyDB
from tinydb.storages import MemoryStorage

from cangkulan.config import Settings
from cangkulan.errors import SecretPersistenceError
from cangkulan.storage import (
    CIPHER_PREFIX, PlaySecret, SecretStore, TinyKeyValueStore, decrypt_value,
    encrypt_value, play_key, seed_key,
)
from cangkulan.zk.cards import CANNOT_FOLLOW_SENTINEL


SEED = bytes.fromhex("deadbeef") + bytes(range(1, 29))
BLINDING = bytes(range(32))
ALICE = "GALICE"
BOB = "GBOB"


class LossyKV(TinyKeyValueStore):
    """쓴 값과 다른 값을 돌려주는 저장소."""

    def get(self, key):
        value = super().get(key)
        return None if value is None else value + "x"


# ─────────────────────────────────────────────────────────────────────
# 키 / 난독화
# ─────────────────────────────────────────────────────────────────────

class TestKeysAndCipher:

    def test_key_layout(self):
        assert seed_key(7, ALICE) == "cangkulan-seed:7:GALICE"
        assert play_key(7, ALICE) == "cangkulan-play-commit:7:GALICE"

    def test_encrypt_roundtrip(self):
        stored = encrypt_value("k", '{"a": 1}', "salt")
        assert stored.startswith(CIPHER_PREFIX)
        assert decrypt_value("k", stored, "salt") == '{"a": 1}'

    def test_fresh_iv_per_write(self):
        assert encrypt_value("k", "same", "salt") != encrypt_value("k", "same", "salt")

    def test_key_bound(self):
        """다른 저장 키로는 같은 평문이 복원되지 않는다."""
        stored = encrypt_value("k1", '{"a": 1}', "salt")
        with pytest.raises(ValueError):
            json.loads(decrypt_value("k2", stored, "salt"))

    def test_plaintext_legacy_passthrough(self):
        assert decrypt_value("k", '{"a": 1}', "salt") == '{"a": 1}'


# ─────────────────────────────────────────────────────────────────────
# SecretStore
# ─────────────────────────────────────────────────────────────────────

class TestSecretStore:

    def test_seed_roundtrip(self, store):
        store.save_seed(7, ALICE, SEED, BLINDING, "pedersen")
        secret = store.load_seed(7, ALICE)
        assert secret.seed == SEED
        assert secret.blinding == BLINDING
        assert secret.proof_mode == "pedersen"

    def test_entries_scoped_by_session_and_party(self, store):
        store.save_seed(7, ALICE, SEED, BLINDING, "nizk")
        assert store.load_seed(7, BOB) is None
        assert store.load_seed(8, ALICE) is None

    def test_stored_value_is_obfuscated(self, store):
        store.save_seed(7, ALICE, SEED, BLINDING, "nizk")
        raw = store.kv.get(seed_key(7, ALICE))
        assert raw.startswith(CIPHER_PREFIX)
        assert SEED.hex() not in raw

    def test_plaintext_mode(self):
        store = SecretStore(TinyKeyValueStore.in_memory(), encrypt=False)
        store.save_play(7, ALICE, 12, BLINDING, "ring")
        assert json.loads(store.kv.get(play_key(7, ALICE)))["cardId"] == 12

    def test_play_roundtrip_and_clear(self, store):
        store.save_play(7, ALICE, CANNOT_FOLLOW_SENTINEL, BLINDING, "cangkul")
        secret = store.load_play(7, ALICE)
        assert secret.card_id == CANNOT_FOLLOW_SENTINEL
        assert secret.zk_mode == "cangkul"
        store.clear_play(7, ALICE)
        assert store.load_play(7, ALICE) is None

    def test_overwrite(self, store):
        store.save_play(7, ALICE, 3, BLINDING, "ring")
        store.save_play(7, ALICE, 4, BLINDING, "ring")
        assert store.load_play(7, ALICE).card_id == 4
        assert store.kv.keys("cangkulan-play-commit") == [play_key(7, ALICE)]

    def test_write_verification_failure(self):
        store = SecretStore(LossyKV(TinyDB(storage=MemoryStorage)))
        with pytest.raises(SecretPersistenceError, match="확인"):
            store.save_seed(7, ALICE, SEED, BLINDING, "nizk")

    def test_unreadable_entry_is_missing(self, store):
        store.kv.set(seed_key(7, ALICE), CIPHER_PREFIX + "AAAA")
        assert store.load_seed(7, ALICE) is None

    def test_wrong_salt_cannot_read(self):
        kv = TinyKeyValueStore.in_memory()
        SecretStore(kv, salt="one").save_seed(7, ALICE, SEED, BLINDING, "nizk")
        assert SecretStore(kv, salt="two").load_seed(7, ALICE) is None

    def test_legacy_bool_zk_mode(self):
        assert PlaySecret.from_dict({"cardId": 1, "salt": "00", "zkMode": True}).zk_mode == "ring"
        assert PlaySecret.from_dict({"cardId": 1, "salt": "00", "zkMode": False}).zk_mode == "hash"

    def test_describe_hides_secrets(self, store):
        store.save_seed(7, ALICE, SEED, BLINDING, "pedersen")
        store.save_play(7, ALICE, CANNOT_FOLLOW_SENTINEL, BLINDING, "cangkul")
        assert store.describe(7, ALICE) == {
            "seed": {"proofMode": "pedersen"},
            "play": {"zkMode": "cangkul", "cannotFollow": True},
        }

    def test_survives_reopen(self, tmp_path):
        settings = Settings(storage_path=str(tmp_path / "secrets.json"), _env_file=None)
        SecretStore.from_settings(settings).save_seed(7, ALICE, SEED, BLINDING, "nizk")
        assert SecretStore.from_settings(settings).load_seed(7, ALICE).seed == SEED
