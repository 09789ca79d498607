"""Symmetric sealing of the vault payload and wrapping of its password.

Never log passwords, plaintext or ciphertext.

"""

import os
import struct

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from sshvault import AuthenticationError, EntropyError

PASSWORD_SIZE = 32  # AES-256
NONCE_SIZE = 12  # 96 bit GCM nonce
TAG_SIZE = 16
LENGTH = struct.Struct(">H")


def generate_password(size=PASSWORD_SIZE):
    try:
        return os.urandom(size)
    except (OSError, NotImplementedError) as e:
        raise EntropyError.from_context(
            f"Random source failed: {e}"
        ) from e


def seal(key, plaintext, associated_data):
    """Encrypt and authenticate `plaintext` under `key`.

    Every call uses a fresh nonce, so sealing the same plaintext twice
    gives different results.

    """
    nonce = generate_password(NONCE_SIZE)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, associated_data)


def open_sealed(key, sealed, associated_data):
    if len(sealed) < NONCE_SIZE + TAG_SIZE:
        raise AuthenticationError.from_context()
    nonce, ciphertext = sealed[:NONCE_SIZE], sealed[NONCE_SIZE:]
    try:
        return AESGCM(key).decrypt(nonce, ciphertext, associated_data)
    except (InvalidTag, ValueError) as e:
        raise AuthenticationError.from_context() from e


def _oaep():
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


def wrap_password(public_key, password):
    return public_key.encrypt(password, _oaep())


def unwrap_password(private_key, wrapped):
    try:
        return private_key.decrypt(wrapped, _oaep())
    except ValueError as e:
        raise AuthenticationError.from_context() from e


def pack(wrapped, sealed):
    """Serialize a vault: length-prefixed wrapped password, then payload."""
    return LENGTH.pack(len(wrapped)) + wrapped + sealed


def unpack(blob):
    if len(blob) < LENGTH.size:
        raise AuthenticationError.from_context()
    (size,) = LENGTH.unpack_from(blob)
    wrapped = blob[LENGTH.size:LENGTH.size + size]
    sealed = blob[LENGTH.size + size:]
    if len(wrapped) != size or not sealed:
        raise AuthenticationError.from_context()
    return wrapped, sealed
