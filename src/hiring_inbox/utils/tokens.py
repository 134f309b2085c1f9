"""Inbound email token helpers."""

from __future__ import annotations

import secrets
import string

from hiring_inbox import constants

# Base58 alphabet: no 0, O, I or l.
_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


def generate_inbound_email_token(length: int = constants.INBOUND_EMAIL_TOKEN_LENGTH) -> str:
    """Return a random alphanumeric token for routing inbound email."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def normalize_token(token: str) -> str:
    """Lowercase ASCII letters only, matching SQL lower(); other characters pass through."""
    return token.translate(_ASCII_LOWER)
