import pytest

from oneaccount.core import composite_token


def test_build_and_parse():
    secret = composite_token.generate_secret()
    raw = composite_token.build_token("attempt-1", secret)

    parsed = composite_token.parse_token(raw)
    assert parsed.lookup_id == "attempt-1"
    assert parsed.secret == secret
    assert parsed.encode() == raw


@pytest.mark.parametrize("raw", [None, "", "no-separator", "a|b|c", "|secret", "id|", "|"])
def test_parse_rejects_anything_but_two_parts(raw):
    assert composite_token.parse_token(raw) is None


def test_secret_is_hashed_and_verified():
    secret = composite_token.generate_secret()
    secret_hash = composite_token.hash_secret(secret)

    assert secret not in secret_hash
    assert composite_token.verify_secret(secret, secret_hash)


def test_mutated_secret_fails_verification():
    secret = composite_token.generate_secret()
    secret_hash = composite_token.hash_secret(secret)
    flipped = ("A" if secret[5] != "A" else "B")
    mutated = secret[:5] + flipped + secret[6:]

    assert not composite_token.verify_secret(mutated, secret_hash)


def test_unknown_hash_format_is_rejected():
    assert not composite_token.verify_secret("anything", "not-a-passlib-hash")
    assert not composite_token.verify_secret("anything", None)
