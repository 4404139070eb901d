"""Credential vault tests."""

import os
from unittest.mock import patch

import pytest

from netwise.utils import crypto

KEY_A = bytes(range(32))
KEY_B = bytes(range(1, 33))


def test_round_trip_with_explicit_key():
    for plaintext in ["", "p@ss word", "ünïcødé ✓", "x" * 1000]:
        assert crypto.decrypt(crypto.encrypt(plaintext, KEY_A), KEY_A) == plaintext


def test_round_trip_with_configured_key():
    assert crypto.decrypt(crypto.encrypt("hunter2")) == "hunter2"


def test_encoded_shape_and_fresh_iv():
    first = crypto.encrypt("same", KEY_A)
    second = crypto.encrypt("same", KEY_A)
    assert first != second
    iv_hex, body_hex = first.split(":")
    assert len(iv_hex) == 32
    assert crypto.is_encoded_secret(first)
    # one AES block of ciphertext + 32-byte tag
    assert len(bytes.fromhex(body_hex)) == 16 + 32


def test_wrong_key_always_fails():
    encoded = crypto.encrypt("secret", KEY_A)
    with pytest.raises(crypto.VaultError):
        crypto.decrypt(encoded, KEY_B)


def test_tampered_ciphertext_fails():
    encoded = crypto.encrypt("secret", KEY_A)
    iv_hex, body_hex = encoded.split(":")
    flipped = body_hex[:-1] + ("0" if body_hex[-1] != "0" else "1")
    with pytest.raises(crypto.VaultError):
        crypto.decrypt(f"{iv_hex}:{flipped}", KEY_A)


@pytest.mark.parametrize(
    "value",
    [
        "plaintext-password",
        "",
        "abc:def",
        "zz" * 16 + ":" + "00" * 48,
        "00" * 16 + ":" + "0" * 95,
        "00" * 16 + ":" + "00" * 20,
        "00" * 16 + ":" + "00" * 16 + ":" + "00",
    ],
)
def test_malformed_values_raise(value):
    with pytest.raises(crypto.VaultError):
        crypto.decrypt(value, KEY_A)


def test_configured_key_must_be_256_bits():
    with patch.object(crypto.settings, "vault_key", "abcd"):
        with pytest.raises(crypto.VaultError):
            crypto.load_key()
    with patch.object(crypto.settings, "vault_key", "not-hex" * 10):
        with pytest.raises(crypto.VaultError):
            crypto.load_key()


def test_missing_key_is_fatal_in_production():
    with patch.object(crypto.settings, "vault_key", ""), patch.object(
        crypto.settings, "env", "production"
    ):
        with pytest.raises(crypto.VaultError):
            crypto.load_key()


def test_missing_key_outside_production_uses_process_key(caplog):
    with patch.object(crypto.settings, "vault_key", ""), patch.object(
        crypto, "_process_key", None
    ):
        key = crypto.load_key()
        assert len(key) == 32
        assert crypto.load_key() == key
        assert crypto.decrypt(crypto.encrypt("dev")) == "dev"
    assert "random key" in caplog.text


def test_agent_tokens():
    token = crypto.generate_agent_token()
    assert len(token) == 64
    int(token, 16)
    assert token != crypto.generate_agent_token()
    assert crypto.tokens_match(token, token)
    assert not crypto.tokens_match(token, token[:-1] + "x")
    assert not crypto.tokens_match("", token)


def test_random_key_bytes_are_used():
    with patch.object(crypto.settings, "vault_key", ""), patch.object(
        crypto, "_process_key", None
    ), patch.object(crypto.os, "urandom", wraps=os.urandom) as urandom:
        crypto.load_key()
        urandom.assert_called_with(32)
