"""Scrypt password hasher adapter."""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets

from projectdesk.application.ports.password_hasher_port import PasswordHasherPort
from projectdesk.domain.auth.stored_secret import (
    DERIVED_KEY_BYTES,
    SALT_BYTES,
    StoredSecretKind,
    format_stored_secret,
    parse_stored_secret,
)

logger = logging.getLogger(__name__)

# Cost parameters must stay fixed: stored secrets do not record them.
SCRYPT_N = 16_384
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_MAXMEM = 64 * 1024 * 1024

_DERIVED_KEY_PATTERN = re.compile(rf"[0-9a-f]{{{DERIVED_KEY_BYTES * 2}}}")
_SALT_PATTERN = re.compile(rf"[0-9a-f]{{{SALT_BYTES * 2}}}")


class ScryptPasswordHasher(PasswordHasherPort):
    """Password hashing adapter using scrypt with a per-password random salt.

    Stored values look like `<128 hex chars>.<32 hex chars>`. The salt enters
    the KDF as the UTF-8 bytes of its hex text, which is how existing records
    were derived.
    """

    def hash_password(self, password: str) -> str:
        salt_hex = secrets.token_hex(SALT_BYTES)
        derived_key = _derive_key(password=password, salt_hex=salt_hex)
        return format_stored_secret(derived_key=derived_key, salt_hex=salt_hex)

    def verify_password(self, *, password: str, password_hash: str) -> bool:
        if not isinstance(password, str) or not isinstance(password_hash, str):
            return False

        parsed = parse_stored_secret(password_hash)
        if parsed.kind is StoredSecretKind.MALFORMED:
            logger.warning("password_verify_malformed_secret kind=%s", parsed.kind.value)
            return False

        if parsed.kind is StoredSecretKind.LEGACY_PLAINTEXT:
            try:
                return hmac.compare_digest(
                    password.encode("utf-8"),
                    password_hash.encode("utf-8"),
                )
            except UnicodeEncodeError as exc:
                logger.warning("password_verify_failed error=%s", type(exc).__name__)
                return False

        if not (
            _DERIVED_KEY_PATTERN.fullmatch(parsed.derived_key_hex)
            and _SALT_PATTERN.fullmatch(parsed.salt_hex)
        ):
            logger.warning("password_verify_malformed_secret kind=bad_hex_shape")
            return False

        stored_key = bytes.fromhex(parsed.derived_key_hex)
        try:
            candidate_key = _derive_key(password=password, salt_hex=parsed.salt_hex)
        except (TypeError, ValueError) as exc:
            logger.warning("password_verify_failed error=%s", type(exc).__name__)
            return False

        return hmac.compare_digest(stored_key, candidate_key)

    def needs_rehash(self, password_hash: str) -> bool:
        return parse_stored_secret(password_hash).kind is StoredSecretKind.LEGACY_PLAINTEXT


def _derive_key(*, password: str, salt_hex: str) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt_hex.encode("utf-8"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        maxmem=SCRYPT_MAXMEM,
        dklen=DERIVED_KEY_BYTES,
    )
