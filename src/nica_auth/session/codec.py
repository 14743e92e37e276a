"""Stateless session token codec.

Encodes a JSON session payload into an opaque, tamper-evident token and
back. Two envelope strategies are supported:

- ``encrypted`` (default): AES-256-GCM. A fresh 16-byte salt and 16-byte
  nonce are drawn per token; the key is SHA-256(secret || salt).
  Token = base64(salt || nonce || ciphertext || tag). The payload is
  confidential and authenticated, and two tokens for the same payload
  are unlinkable.
- ``signed``: HMAC-SHA256. Token = base64(json) + "." + base64(mac).
  Cheaper, but the payload is readable by anyone holding the token.
  Only integrity is protected; use it for non-sensitive session data.

Every encoded payload carries ``iat`` and ``exp`` (Unix seconds), stamped
by the codec. Decoding never raises: any malformed, forged, or expired
token decodes to None.

Usage:
    codec = SessionCodec(secret="x" * 32)
    token = codec.encode({"user_id": "42"})
    payload = codec.decode(token)           # None once expired
    payload = codec.decode(token, False)    # peek: ignores expiry
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import os
import time
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from nica_auth.errors import InvalidConfigurationError, WeakSecretError

logger = structlog.get_logger()

MIN_SECRET_LENGTH = 32
DEFAULT_TOKEN_EXP = 60 * 60 * 24 * 7  # 7 days, in seconds

SALT_SIZE = 16
NONCE_SIZE = 16
TAG_SIZE = 16

ISSUED_AT = "iat"
EXPIRES_AT = "exp"
RESERVED_FIELDS = frozenset({ISSUED_AT, EXPIRES_AT})


class SessionStrategy(str, Enum):
    """Session token envelope strategies."""

    ENCRYPTED = "encrypted"
    SIGNED = "signed"


def validate_secret(secret: str | None, *, label: str = "secret") -> str:
    """Check that a secret is present and long enough.

    Raises:
        WeakSecretError: If the secret is missing or shorter than 32 characters.
    """
    if not secret:
        raise WeakSecretError(f"A {label} is required")
    if len(secret) < MIN_SECRET_LENGTH:
        raise WeakSecretError(
            f"The {label} must be at least {MIN_SECRET_LENGTH} characters long",
            length=len(secret),
        )
    return secret


def strip_reserved(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Return the caller's fields without ``iat`` and ``exp``."""
    return {k: v for k, v in payload.items() if k not in RESERVED_FIELDS}


class SessionCodec:
    """Encode and decode session tokens.

    Holds only its fixed configuration and is safe for concurrent use.
    """

    def __init__(
        self,
        secret: str,
        strategy: SessionStrategy | str = SessionStrategy.ENCRYPTED,
        token_exp: int = DEFAULT_TOKEN_EXP,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the codec.

        Args:
            secret: Shared secret, at least 32 characters.
            strategy: ``encrypted`` or ``signed``.
            token_exp: Token lifetime in seconds.
            clock: Source of the current Unix time.

        Raises:
            WeakSecretError: If the secret is missing or too short.
            InvalidConfigurationError: If the strategy or lifetime is invalid.
        """
        self._secret = validate_secret(secret, label="session secret")
        self._secret_bytes = secret.encode("utf-8")

        try:
            self.strategy = SessionStrategy(strategy)
        except ValueError:
            raise InvalidConfigurationError(
                "Strategy must be either 'encrypted' or 'signed'", strategy=strategy
            ) from None

        if isinstance(token_exp, bool) or not isinstance(token_exp, int) or token_exp <= 0:
            raise InvalidConfigurationError(
                "Token expiration must be a positive number of seconds", token_exp=token_exp
            )
        self.token_exp = token_exp
        self._clock = clock

    def __repr__(self) -> str:
        return f"SessionCodec(strategy={self.strategy.value!r}, token_exp={self.token_exp})"

    def _now(self) -> int:
        return int(self._clock())

    def encode(self, payload: Mapping[str, Any]) -> str:
        """Encode a payload into a token.

        ``iat`` and ``exp`` are always set by the codec and override any
        caller-supplied values.

        Args:
            payload: JSON-serializable mapping.

        Returns:
            The opaque token string.
        """
        now = self._now()
        data = {**payload, ISSUED_AT: now, EXPIRES_AT: now + self.token_exp}
        raw = json.dumps(data, separators=(",", ":")).encode("utf-8")

        if self.strategy == SessionStrategy.ENCRYPTED:
            return self._encrypt(raw)
        return self._sign(raw)

    def decode(self, token: str | None, validate_expiry: bool = True) -> dict[str, Any] | None:
        """Decode a token back into its payload.

        Args:
            token: Token produced by ``encode``.
            validate_expiry: When True, expired tokens decode to None. When
                False (peek), the payload is returned even if expired; use
                this only for diagnostics, never for authorization.

        Returns:
            The payload including ``iat`` and ``exp``, or None if the token
            is malformed, forged, or expired.
        """
        if not token or not isinstance(token, str):
            return None

        if self.strategy == SessionStrategy.ENCRYPTED:
            raw = self._decrypt(token)
        else:
            raw = self._verify(token)
        if raw is None:
            return None

        try:
            payload = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(payload, dict):
            return None

        if validate_expiry and self._is_expired(payload):
            logger.debug("Session token expired")
            return None

        return payload

    def _is_expired(self, payload: dict[str, Any]) -> bool:
        expires_at = payload.get(EXPIRES_AT)
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            return True
        return expires_at < self._now()

    def _derive_key(self, salt: bytes) -> bytes:
        return hashlib.sha256(self._secret_bytes + salt).digest()

    def _encrypt(self, raw: bytes) -> str:
        salt = os.urandom(SALT_SIZE)
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = AESGCM(self._derive_key(salt)).encrypt(nonce, raw, None)
        return base64.b64encode(salt + nonce + ciphertext).decode("ascii")

    def _decrypt(self, token: str) -> bytes | None:
        try:
            combined = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError):
            return None

        # Reject non-canonical encodings so every token has one spelling.
        if base64.b64encode(combined).decode("ascii") != token:
            return None
        if len(combined) < SALT_SIZE + NONCE_SIZE + TAG_SIZE:
            return None

        salt = combined[:SALT_SIZE]
        nonce = combined[SALT_SIZE : SALT_SIZE + NONCE_SIZE]
        ciphertext = combined[SALT_SIZE + NONCE_SIZE :]

        try:
            return AESGCM(self._derive_key(salt)).decrypt(nonce, ciphertext, None)
        except InvalidTag:
            return None

    def _mac(self, body: str) -> str:
        digest = hmac.new(self._secret_bytes, body.encode("ascii"), hashlib.sha256).digest()
        return base64.b64encode(digest).decode("ascii")

    def _sign(self, raw: bytes) -> str:
        body = base64.b64encode(raw).decode("ascii")
        return f"{body}.{self._mac(body)}"

    def _verify(self, token: str) -> bytes | None:
        parts = token.split(".")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            return None
        body, signature = parts

        try:
            expected = self._mac(body)
        except UnicodeEncodeError:
            return None
        # Compare the encoded signature so any altered character fails.
        if not hmac.compare_digest(signature.encode("ascii", "replace"), expected.encode("ascii")):
            return None

        try:
            return base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError):
            return None
