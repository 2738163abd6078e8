"""
Credential storage and comparison.

Plain text mode keeps the stored value identical to what was submitted.
Hashed mode stores "pbkdf2_sha256$<iterations>$<salt>$<digest>". Verification
recognizes either form, so a store written in one mode stays readable
after the flag changes.
"""
import hashlib
import hmac
import re
import secrets

from faceauth.config import HASH_CREDENTIALS, CREDENTIAL_HASH_ITERATIONS

HASH_SCHEME = "pbkdf2_sha256"
SALT_BYTES = 16
# Upper bound on iterations read back from a stored value
MAX_ITERATIONS = 2_000_000
HASH_PATTERN = re.compile(HASH_SCHEME + r"\$(\d+)\$([0-9a-f]+)\$([0-9a-f]+)")


def _derive(secret: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, iterations)


class CredentialHasher:

    def __init__(self, hash_credentials: bool = HASH_CREDENTIALS,
                 iterations: int = CREDENTIAL_HASH_ITERATIONS):
        self.hash_credentials = hash_credentials
        self.iterations = iterations

    def encode(self, secret: str) -> str:
        """Value to persist for a newly registered credential."""
        if not self.hash_credentials:
            return secret
        salt = secrets.token_bytes(SALT_BYTES)
        digest = _derive(secret, salt, self.iterations)
        return f"{HASH_SCHEME}${self.iterations}${salt.hex()}${digest.hex()}"

    def verify(self, secret: str, stored: str) -> bool:
        match = HASH_PATTERN.fullmatch(stored)
        if match is not None:
            if self._verify_hash(secret, match):
                return True
            if self.hash_credentials:
                return False
        # Plain text mode: a secret that merely looks like a hash is still compared as given
        return hmac.compare_digest(secret.encode("utf-8"), stored.encode("utf-8"))

    @staticmethod
    def _verify_hash(secret: str, match) -> bool:
        iterations, salt_hex, digest_hex = match.groups()
        if not 0 < int(iterations) <= MAX_ITERATIONS:
            return False
        try:
            expected = bytes.fromhex(digest_hex)
            digest = _derive(secret, bytes.fromhex(salt_hex), int(iterations))
        except ValueError:
            return False
        return hmac.compare_digest(digest, expected)
