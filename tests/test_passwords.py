"""
StartupVista - Password hashing tests
"""

from startupvista.core.passwords import burn_password_check, hash_password, verify_password


def test_hash_and_verify():
    hashed = hash_password("secret1", rounds=4)
    assert hashed != "secret1"
    assert hashed.startswith("$2")
    assert verify_password("secret1", hashed)
    assert not verify_password("secret2", hashed)


def test_hashes_are_salted():
    assert hash_password("secret1", rounds=4) != hash_password("secret1", rounds=4)


def test_missing_or_invalid_hash_never_matches():
    assert verify_password("secret1", None) is False
    assert verify_password("secret1", "") is False
    assert verify_password("secret1", "not-a-bcrypt-hash") is False


def test_long_passwords_are_truncated_consistently():
    long_password = "x" * 100
    hashed = hash_password(long_password, rounds=4)
    assert verify_password(long_password, hashed)


def test_burn_password_check_returns_nothing():
    assert burn_password_check("anything", rounds=4) is None
