"""Tests for the scrypt credential store."""

from ctrlw.auth.credentials import ScryptCredentialStore
from ctrlw.auth.identity import Identity


def identity_with(hash_value: str = "") -> Identity:
    return Identity(identity_id="id-1", email="ada@example.com", credential_hash=hash_value)


class TestScryptCredentialStore:
    def test_store_and_verify(self, credentials):
        identity = identity_with()
        identity.credential_hash = credentials.store(identity, "correct horse")

        assert credentials.verify(identity, "correct horse")
        assert not credentials.verify(identity, "wrong horse")

    def test_hash_format(self, credentials):
        hashed = credentials.store(identity_with(), "secret")
        scheme, n, r, p, salt, digest = hashed.split("$")

        assert scheme == "scrypt"
        assert (int(n), int(r), int(p)) == (2**4, 8, 1)
        assert "secret" not in hashed

    def test_salted(self, credentials):
        identity = identity_with()
        assert credentials.store(identity, "secret") != credentials.store(identity, "secret")

    def test_parameters_read_from_hash(self, credentials):
        """A hash made with other cost parameters still verifies."""
        identity = identity_with()
        identity.credential_hash = ScryptCredentialStore(n=2**5, r=4, p=1).store(
            identity, "secret"
        )
        assert credentials.verify(identity, "secret")

    def test_malformed_hash(self, credentials):
        for bad in ["", "plain", "bcrypt$1$2$3$a$b", "scrypt$x$8$1$AAAA$AAAA", "scrypt$16$8$1$!!$??"]:
            assert not credentials.verify(identity_with(bad), "secret")

    def test_lone_surrogate_secret(self, credentials):
        identity = identity_with()
        identity.credential_hash = credentials.store(identity, "\ud800abcdef")

        assert credentials.verify(identity, "\ud800abcdef")
        assert not credentials.verify(identity, "\udc00abcdef")
