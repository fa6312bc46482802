"""Unit tests for DPI validation and password hashing."""

import pytest

from gated_calc.security.credentials import hash_password, is_valid_dpi, verify_password


@pytest.mark.parametrize(
    "dpi, valid",
    [
        ("1234567890123", True),
        ("0000000000000", True),
        ("123456789012", False),
        ("12345678901234", False),
        ("12345678901a3", False),
        (" 234567890123", False),
        ("", False),
        ("١٢٣٤٥٦٧٨٩٠١٢٣", False),
    ],
)
def test_is_valid_dpi(dpi, valid):
    assert is_valid_dpi(dpi) is valid


class TestPasswords:
    def test_hash_is_not_plain_text(self):
        hashed = hash_password("s3cret-pass", rounds=4)
        assert hashed != "s3cret-pass"
        assert hashed.startswith("$2")

    def test_verify_roundtrip(self):
        hashed = hash_password("s3cret-pass", rounds=4)
        assert verify_password("s3cret-pass", hashed)
        assert not verify_password("wrong-pass", hashed)

    def test_hashes_are_salted(self):
        assert hash_password("same", rounds=4) != hash_password("same", rounds=4)

    def test_malformed_hash_does_not_verify(self):
        assert not verify_password("anything", "not-a-bcrypt-hash")
