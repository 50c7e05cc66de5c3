"""Unit tests for safedocs.crypto."""

import base64
import json
import os

import pytest

from safedocs.crypto import CryptoGateway, canonical_json, hash_password
from safedocs.grid import GridRow
from safedocs.tree import DocumentTree, GridPage, Tab, TextPage

# ---------------------------------------------------------------------------
# hash_password()
# ---------------------------------------------------------------------------


class TestHashPassword:
    def test_known_sha256_digest(self):
        assert hash_password("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    def test_deterministic(self):
        assert hash_password("pass") == hash_password("pass")

    def test_distinct_passwords_distinct_hashes(self):
        hashes = {hash_password(p) for p in ["a", "b", "A", "a ", "パスワード", ""]}
        assert len(hashes) == 6


# ---------------------------------------------------------------------------
# encrypt() / decrypt()
# ---------------------------------------------------------------------------


@pytest.fixture()
def doc() -> DocumentTree:
    return DocumentTree(
        [
            Tab(id="t1", name="アイデア", pages=[TextPage(id="p1", title="ようこそ", body="line\nline", updated_at=7)]),
            Tab(id="t2", name="Sheet", pages=[GridPage(id="p2", title="g", rows=[GridRow("a", "b", "c")], updated_at=9)]),
        ]
    )


class TestEncryptDecrypt:
    def test_round_trip(self, crypto: CryptoGateway, doc: DocumentTree):
        assert crypto.decrypt(crypto.encrypt(doc, "secret"), "secret") == doc

    def test_empty_tree_round_trip(self, crypto: CryptoGateway):
        assert crypto.decrypt(crypto.encrypt(DocumentTree(), "p"), "p") == DocumentTree()

    def test_ciphertext_is_salted(self, crypto: CryptoGateway, doc: DocumentTree):
        assert crypto.encrypt(doc, "secret") != crypto.encrypt(doc, "secret")

    def test_ciphertext_does_not_leak_plaintext(self, crypto: CryptoGateway, doc: DocumentTree):
        assert "Sheet" not in crypto.encrypt(doc, "secret")

    def test_format_prefix(self, crypto: CryptoGateway, doc: DocumentTree):
        assert crypto.encrypt(doc, "secret").startswith("v1$")

    def test_wrong_passphrase_returns_none(self, crypto: CryptoGateway, doc: DocumentTree):
        assert crypto.decrypt(crypto.encrypt(doc, "secret"), "Secret") is None

    @pytest.mark.parametrize("garbage", ["", "v1$", "v1$!!$token", "v2$AAAA$token", "no separators", "v1$AAAAAAAAAAAAAAAAAAAAAA==$gAAAA"])
    def test_garbage_returns_none(self, crypto: CryptoGateway, garbage: str):
        assert crypto.decrypt(garbage, "secret") is None

    def test_non_string_returns_none(self, crypto: CryptoGateway):
        assert crypto.decrypt(None, "secret") is None  # type: ignore[arg-type]

    def test_tampered_token_returns_none(self, crypto: CryptoGateway, doc: DocumentTree):
        blob = crypto.encrypt(doc, "secret")
        flipped = blob[:-5] + ("A" if blob[-5] != "A" else "B") + blob[-4:]
        assert crypto.decrypt(flipped, "secret") is None

    def test_valid_token_with_non_document_payload_returns_none(self, crypto: CryptoGateway, monkeypatch):
        monkeypatch.setattr("safedocs.crypto.canonical_json", lambda tree: json.dumps([1, 2, 3]))
        blob = crypto.encrypt(DocumentTree(), "secret")
        assert crypto.decrypt(blob, "secret") is None

    def test_out_of_range_timestamp_returns_none(self, crypto: CryptoGateway):
        salt = os.urandom(16)
        payload = '{"tabs":[{"id":"t","name":"n","pages":[{"id":"p","updatedAt":1e400}]}]}'
        token = crypto._fernet("secret", salt).encrypt(payload.encode("utf-8"))
        blob = "$".join(["v1", base64.urlsafe_b64encode(salt).decode("ascii"), token.decode("ascii")])
        assert crypto.decrypt(blob, "secret") is None

    def test_other_iteration_count_cannot_decrypt(self, crypto: CryptoGateway, doc: DocumentTree):
        blob = crypto.encrypt(doc, "secret")
        assert CryptoGateway(iterations=2_000).decrypt(blob, "secret") is None


class TestCanonicalJson:
    def test_sorted_and_compact(self, doc: DocumentTree):
        text = canonical_json(doc)
        assert ", " not in text
        assert text == json.dumps(json.loads(text), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
