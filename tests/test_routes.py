"""
Tests for the development HTTP surface (Flask blueprint /zk).
"""

import pytest

from app import create_test_app
from cangkulan.zk.cards import CANNOT_FOLLOW_SENTINEL


PLAYER = "GPLAYERA3XQ2MZ3KJ4YTNE5VRL6W2SBF3UGHXDZQ4P7ACNW3KL5RT2YB"
SEED_HEX = "0xdeadbeef" + bytes(range(1, 29)).hex()


@pytest.fixture
def client():
    app = create_test_app()
    app.config["TESTING"] = True
    return app.test_client()


class TestIndex:

    def test_index(self, client):
        res = client.get("/")
        assert res.status_code == 200
        assert res.get_json()["service"] == "cangkulan-zk"

    def test_modes(self, client):
        data = client.get("/zk/modes").get_json()
        assert data["seed"]["pedersen"] == 224
        assert data["play"]["cangkul"] == 228


class TestSeedRoutes:

    def test_commit_prove_verify(self, client):
        commit = client.post("/zk/seed/commit", json={
            "player": PLAYER, "mode": "pedersen", "seed": SEED_HEX}).get_json()
        assert commit["mode"] == "pedersen"
        assert commit["point"].startswith("0x")

        proof = client.post("/zk/seed/prove", json={
            "sessionId": 7, "player": PLAYER, "mode": "pedersen",
            "seed": commit["seed"], "blinding": commit["blinding"]}).get_json()
        assert proof["proofSize"] == 224

        res = client.post("/zk/seed/verify", json={
            "sessionId": 7, "player": PLAYER, "seedHash": commit["seedHash"],
            "commitHash": commit["commitHash"], "proof": proof["proof"]})
        assert res.status_code == 200
        assert res.get_json() == {"valid": True, "mode": "pedersen"}

    def test_verify_wrong_session(self, client):
        commit = client.post("/zk/seed/commit", json={"player": PLAYER, "mode": "nizk"}).get_json()
        proof = client.post("/zk/seed/prove", json={
            "sessionId": 7, "player": PLAYER, "mode": "nizk",
            "seed": commit["seed"], "blinding": commit["blinding"]}).get_json()
        res = client.post("/zk/seed/verify", json={
            "sessionId": 8, "player": PLAYER, "seedHash": commit["seedHash"],
            "commitHash": commit["commitHash"], "proof": proof["proof"]})
        assert res.status_code == 400
        body = res.get_json()
        assert body["type"] == "ProofRejected"
        assert body["mode"] == "nizk"

    def test_weak_seed(self, client):
        res = client.post("/zk/seed/commit", json={"player": PLAYER, "seed": "00" * 32})
        assert res.status_code == 400
        assert res.get_json()["type"] == "PreconditionError"

    def test_missing_field(self, client):
        res = client.post("/zk/seed/prove", json={"player": PLAYER})
        assert res.status_code == 400
        assert "sessionId" in res.get_json()["error"]


class TestPlayRoutes:

    def test_ring_then_verify(self, client):
        hand = [2, 5, 11, 20, 30]
        ring = client.post("/zk/play/ring", json={
            "sessionId": 7, "player": PLAYER, "hand": hand, "trickSuit": 0, "cardId": 5}).get_json()
        assert ring["validSet"] == [2, 5]
        assert ring["proofSize"] == 96 + 64 * 2

        res = client.post("/zk/play/verify", json={
            "sessionId": 7, "player": PLAYER, "hand": hand, "trickSuit": 0,
            "commitHash": ring["commitHash"], "proof": ring["proof"]})
        assert res.get_json() == {"valid": True, "mode": "ring"}

    def test_cangkul_then_describe(self, client):
        hand = [9, 13, 19, 27, 35]
        play = client.post("/zk/play/cangkul", json={
            "sessionId": 7, "player": PLAYER, "hand": hand, "trickSuit": 0}).get_json()
        assert play["cardId"] == CANNOT_FOLLOW_SENTINEL
        assert play["proofSize"] == 228

        described = client.post("/zk/describe", json={"proof": play["proof"], "kind": "play"}).get_json()
        assert described["mode"] == "cangkul"
        assert described["handSize"] == 5

    def test_ring_card_not_in_valid_set(self, client):
        res = client.post("/zk/play/ring", json={
            "sessionId": 7, "player": PLAYER, "hand": [2, 5, 11], "trickSuit": 0, "cardId": 11})
        assert res.status_code == 400


class TestSecretsRoute:

    def test_empty_summary(self, client):
        res = client.get(f"/zk/secrets/7/{PLAYER}")
        assert res.get_json() == {"seed": None, "play": None}
