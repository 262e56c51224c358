"""
Encryption utilities

Symmetric encryption (Fernet) for customer contact data stored with a
booking: identity document number and phone.
"""

import base64
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings


class DecryptionError(Exception):
    """Stored ciphertext could not be decrypted with the configured key."""


def _derive_key(raw) -> bytes:
    # Any passphrase is accepted; it is stretched to a 32-byte Fernet key.
    if isinstance(raw, str):
        return base64.urlsafe_b64encode(hashlib.sha256(raw.encode()).digest())
    return raw


@lru_cache(maxsize=4)
def _fernet_for(key: bytes) -> Fernet:
    return Fernet(key)


def get_fernet() -> Fernet:
    key = getattr(settings, 'ENCRYPTION_KEY', None)
    if not key:
        raise ValueError(
            "ENCRYPTION_KEY not configured in settings. "
            "Generate one with: python -c 'from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())'"
        )
    return _fernet_for(_derive_key(key))


def encrypt_string(plaintext: str) -> str:
    if not plaintext:
        return ''
    return get_fernet().encrypt(plaintext.encode()).decode()


def decrypt_string(token: str) -> str:
    if not token:
        return ''
    try:
        return get_fernet().decrypt(token.encode()).decode()
    except InvalidToken as e:
        raise DecryptionError("Ciphertext does not match ENCRYPTION_KEY") from e


def mask(value: str, visible: int = 4) -> str:
    """Mask all but the last `visible` characters, for admin and API output."""
    if not value:
        return ''
    if len(value) <= visible:
        return '*' * len(value)
    return '*' * (len(value) - visible) + value[-visible:]
