"""
Unit tests for bcrypt password hashing.
"""

from __future__ import annotations

import pytest

from backend.app.services.password_service import hash_password, verify_password


def test_hash_is_bcrypt_and_verifies():
    hashed = hash_password("Password1", rounds=4)
    assert hashed.startswith("$2")
    assert hashed != "Password1"
    assert verify_password("Password1", hashed)


def test_wrong_password_does_not_verify():
    assert not verify_password("Password2", hash_password("Password1", rounds=4))


def test_hashes_are_salted():
    assert hash_password("Password1", rounds=4) != hash_password("Password1", rounds=4)


@pytest.mark.parametrize("stored", [None, "", "not-a-bcrypt-hash"])
def test_unusable_stored_hash_returns_false(stored):
    assert verify_password("Password1", stored) is False


def test_non_string_password_returns_false():
    assert verify_password(None, hash_password("Password1", rounds=4)) is False
