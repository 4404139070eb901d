"""Credential vault — AES-256-CBC secret encryption with an HMAC-SHA256 tag.

Stored form is ``<iv hex>:<ciphertext hex>`` where the ciphertext part is the
CBC output followed by a 32-byte tag over ``iv || ciphertext``. Encryption and
MAC subkeys are both derived from the single vault key with HKDF, so rotating
the vault key means re-encrypting every stored secret.
"""

from __future__ import annotations

import logging
import os
import re
import secrets

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from netwise.config import settings

logger = logging.getLogger(__name__)

KEY_BYTES = 32
IV_BYTES = 16
TAG_BYTES = 32
_HKDF_INFO = b"netwise-vault-v1"

_ENCODED_RE = re.compile(r"^[0-9a-f]{32}:[0-9a-f]+$")

_process_key: bytes | None = None


class VaultError(Exception):
    """A secret could not be encrypted or decrypted (bad key, malformed or tampered value)."""


def load_key() -> bytes:
    """Return the vault key, generating a process-lifetime key outside production."""
    global _process_key
    if settings.vault_key:
        try:
            key = bytes.fromhex(settings.vault_key.strip())
        except ValueError:
            raise VaultError("NETWISE_VAULT_KEY must be hex encoded") from None
        if len(key) != KEY_BYTES:
            raise VaultError(f"NETWISE_VAULT_KEY must be {KEY_BYTES * 2} hex characters")
        return key

    if settings.is_production:
        raise VaultError("NETWISE_VAULT_KEY is required in production")

    if _process_key is None:
        logger.warning(
            "NETWISE_VAULT_KEY not set — using a random key for this process; "
            "secrets stored now will be unreadable after a restart"
        )
        _process_key = os.urandom(KEY_BYTES)
    return _process_key


def _subkeys(key: bytes) -> tuple[bytes, bytes]:
    if len(key) != KEY_BYTES:
        raise VaultError(f"vault key must be {KEY_BYTES} bytes")
    material = HKDF(
        algorithm=hashes.SHA256(), length=2 * KEY_BYTES, salt=None, info=_HKDF_INFO
    ).derive(key)
    return material[:KEY_BYTES], material[KEY_BYTES:]


def _tag(mac_key: bytes, data: bytes) -> hmac.HMAC:
    h = hmac.HMAC(mac_key, hashes.SHA256())
    h.update(data)
    return h


def encrypt(plaintext: str, key: bytes | None = None) -> str:
    enc_key, mac_key = _subkeys(key if key is not None else load_key())
    iv = os.urandom(IV_BYTES)

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(enc_key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    tag = _tag(mac_key, iv + ciphertext).finalize()
    return f"{iv.hex()}:{(ciphertext + tag).hex()}"


def decrypt(encoded: str, key: bytes | None = None) -> str:
    if not is_encoded_secret(encoded):
        raise VaultError("secret is not in iv:ciphertext form")

    iv_hex, body_hex = encoded.split(":")
    body = bytes.fromhex(body_hex) if len(body_hex) % 2 == 0 else b""
    if len(body) < IV_BYTES + TAG_BYTES or (len(body) - TAG_BYTES) % IV_BYTES:
        raise VaultError("secret ciphertext has an invalid length")

    iv = bytes.fromhex(iv_hex)
    ciphertext, tag = body[:-TAG_BYTES], body[-TAG_BYTES:]
    enc_key, mac_key = _subkeys(key if key is not None else load_key())

    try:
        _tag(mac_key, iv + ciphertext).verify(tag)
    except InvalidSignature:
        raise VaultError("secret was encrypted under a different key or was tampered with") from None

    decryptor = Cipher(algorithms.AES(enc_key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    try:
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode("utf-8")
    except ValueError:
        raise VaultError("secret could not be decoded") from None


def is_encoded_secret(value: str | None) -> bool:
    """True if value has the ``iv:ciphertext`` shape (says nothing about the key)."""
    return bool(value) and isinstance(value, str) and _ENCODED_RE.match(value) is not None


# ── Agent tokens ─────────────────────────────────────────────────────


def generate_agent_token() -> str:
    return secrets.token_hex(32)


def tokens_match(presented: str, expected: str) -> bool:
    return secrets.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))
