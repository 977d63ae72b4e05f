"""Tests for identity tokens and their principal text form."""

import pytest

from ipledger.registry.errors import InvalidIdentityError
from ipledger.registry.identity import MAX_IDENTITY_BYTES, Identity


def test_known_principal_texts():
    assert Identity(b"").to_text() == "aaaaa-aa"
    assert Identity.anonymous().to_text() == "2vxsx-fae"


def test_parse_known_principal_texts():
    assert Identity.from_text("aaaaa-aa") == Identity(b"")
    anon = Identity.from_text("2vxsx-fae")
    assert anon.is_anonymous
    assert anon.raw == b"\x04"


def test_text_round_trip():
    alice = Identity(b"alice")
    text = alice.to_text()
    assert Identity.from_text(text) == alice
    assert str(alice) == text
    # Grouped in fives, lowercase
    assert all(len(group) <= 5 for group in text.split("-"))
    assert text == text.lower()


def test_self_authenticating_identity():
    ident = Identity.self_authenticating(b"public-key-bytes")
    assert len(ident.raw) == MAX_IDENTITY_BYTES
    assert ident.raw.endswith(b"\x02")
    assert Identity.self_authenticating(b"public-key-bytes") == ident
    assert Identity.self_authenticating(b"other-key") != ident


def test_ordering_follows_raw_bytes():
    ids = [Identity(b"carol"), Identity(b"alice"), Identity(b"bob")]
    assert [i.raw for i in sorted(ids)] == [b"alice", b"bob", b"carol"]
    assert Identity(b"\x01") < Identity(b"\x02")


def test_identities_are_hashable():
    seen = {Identity(b"alice"), Identity(b"alice"), Identity(b"bob")}
    assert len(seen) == 2


def test_too_long_identity_rejected():
    with pytest.raises(InvalidIdentityError):
        Identity(b"x" * (MAX_IDENTITY_BYTES + 1))


def test_non_bytes_rejected():
    with pytest.raises(InvalidIdentityError):
        Identity("alice")


@pytest.mark.parametrize(
    "text",
    [
        "",
        "not-a-principal!",
        "aaaaa-ab",  # checksum mismatch
        "aaaaaaa",  # missing group separator
        "2VXSX-FAE",  # not lowercase
        "aaa",
    ],
)
def test_invalid_text_rejected(text):
    with pytest.raises(InvalidIdentityError):
        Identity.from_text(text)


def test_invalid_identity_is_value_error():
    with pytest.raises(ValueError):
        Identity.from_text("zzzzz")


def test_hex_form():
    assert Identity.from_hex("04") == Identity.anonymous()
    assert Identity(b"\xab\xcd").to_hex() == "abcd"
    with pytest.raises(InvalidIdentityError):
        Identity.from_hex("xyz")
