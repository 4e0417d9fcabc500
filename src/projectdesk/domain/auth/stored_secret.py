"""Stored password secret format: `<hex derived key>.<hex salt>`."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

SECRET_SEPARATOR = "."
SALT_BYTES = 16
DERIVED_KEY_BYTES = 64


class StoredSecretKind(StrEnum):
    """Shapes a persisted password value can take."""

    SALTED = "salted"
    LEGACY_PLAINTEXT = "legacy_plaintext"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ParsedStoredSecret:
    """Stored secret split into its derived key and salt parts."""

    kind: StoredSecretKind
    derived_key_hex: str = ""
    salt_hex: str = ""


def parse_stored_secret(value: str) -> ParsedStoredSecret:
    """Classify one persisted password value without touching the KDF.

    A value without separator, or whose separator leaves one side empty, is a
    legacy unsalted record. Empty values and values with several separators
    are malformed.
    """

    if not value:
        return ParsedStoredSecret(kind=StoredSecretKind.MALFORMED)

    parts = value.split(SECRET_SEPARATOR)
    if len(parts) == 1:
        return ParsedStoredSecret(kind=StoredSecretKind.LEGACY_PLAINTEXT)
    if len(parts) > 2:
        return ParsedStoredSecret(kind=StoredSecretKind.MALFORMED)

    derived_key_hex, salt_hex = parts
    if not derived_key_hex or not salt_hex:
        return ParsedStoredSecret(kind=StoredSecretKind.LEGACY_PLAINTEXT)
    return ParsedStoredSecret(
        kind=StoredSecretKind.SALTED,
        derived_key_hex=derived_key_hex,
        salt_hex=salt_hex,
    )


def format_stored_secret(*, derived_key: bytes, salt_hex: str) -> str:
    """Join derived key and salt into the persisted representation."""

    return f"{derived_key.hex()}{SECRET_SEPARATOR}{salt_hex}"
