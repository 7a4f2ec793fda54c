"""Secure generation of ephemeral credentials used as request inputs.

Failures of the randomness source are never papered over: a weak or empty
credential must not reach the remote API, so every failure surfaces as
SecretGenerationError and aborts the attempt.
"""

from __future__ import annotations

import base64
import logging
import secrets

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .config import SSH_KEY_BITS
from .errors import SecretGenerationError

logger = logging.getLogger(__name__)

RSA_PUBLIC_EXPONENT = 65537


def generate_random_string(n: int) -> str:
    """Return a URL-safe, base64 encoded string of n secure random bytes.

    Raises:
        SecretGenerationError: If the system's secure random source fails.
    """
    if n < 1:
        raise SecretGenerationError(f"random string length must be positive: {n}")

    try:
        raw = secrets.token_bytes(n)
    except (OSError, NotImplementedError) as e:
        raise SecretGenerationError("failed to generate random string") from e

    if len(raw) != n:
        raise SecretGenerationError(f"short read from random source: {len(raw)} of {n} bytes")

    return base64.urlsafe_b64encode(raw).decode("ascii")


def generate_ssh_public_key(bits: int = SSH_KEY_BITS) -> str:
    """Generate a fresh RSA keypair and return the public half.

    The private key is discarded: VMs created this way are reachable only
    through keys supplied later by the caller.

    Returns:
        OpenSSH authorized_keys line, newline terminated.

    Raises:
        SecretGenerationError: If key generation fails.
    """
    try:
        private_key = rsa.generate_private_key(public_exponent=RSA_PUBLIC_EXPONENT, key_size=bits)
    except (OSError, ValueError) as e:
        raise SecretGenerationError("failed to generate private key") from e

    try:
        public_key = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.OpenSSH,
            format=serialization.PublicFormat.OpenSSH,
        )
    except ValueError as e:
        raise SecretGenerationError("failed to generate public key") from e

    logger.debug("Generated ephemeral SSH keypair", extra={"key_bits": bits})
    return public_key.decode("ascii") + "\n"
