"""Tests for secure credential generation."""

from __future__ import annotations

import base64
from unittest import mock

import pytest

from converge.errors import SecretGenerationError
from converge.keygen import generate_random_string, generate_ssh_public_key


class TestGenerateRandomString:
    """Tests for generate_random_string."""

    @pytest.mark.parametrize("n", [1, 16, 32, 64])
    def test_decoded_length_matches(self, n: int) -> None:
        value = generate_random_string(n)

        assert len(base64.urlsafe_b64decode(value)) == n

    def test_url_safe(self) -> None:
        value = generate_random_string(256)

        assert "+" not in value
        assert "/" not in value

    def test_values_differ(self) -> None:
        assert generate_random_string(32) != generate_random_string(32)

    def test_random_source_failure_propagates(self) -> None:
        """A failing random source must raise, never return a weak value."""
        with mock.patch(
            "converge.keygen.secrets.token_bytes", side_effect=OSError("no entropy")
        ):
            with pytest.raises(SecretGenerationError) as exc_info:
                generate_random_string(32)

        assert isinstance(exc_info.value.__cause__, OSError)

    def test_short_read_rejected(self) -> None:
        with mock.patch("converge.keygen.secrets.token_bytes", return_value=b"abc"):
            with pytest.raises(SecretGenerationError):
                generate_random_string(32)

    def test_non_positive_length_rejected(self) -> None:
        with pytest.raises(SecretGenerationError):
            generate_random_string(0)


class TestGenerateSshPublicKey:
    """Tests for generate_ssh_public_key."""

    def test_authorized_key_format(self) -> None:
        key = generate_ssh_public_key()

        assert key.startswith("ssh-rsa ")
        assert key.endswith("\n")
        assert len(key.split()) == 2

    def test_keys_differ(self) -> None:
        assert generate_ssh_public_key() != generate_ssh_public_key()

    def test_generation_failure_propagates(self) -> None:
        with mock.patch(
            "converge.keygen.rsa.generate_private_key", side_effect=ValueError("bad size")
        ):
            with pytest.raises(SecretGenerationError):
                generate_ssh_public_key()
