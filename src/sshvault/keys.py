"""Find, parse and fingerprint the RSA key a vault is bound to."""

import hashlib
import logging
import os
import os.path
from typing import Callable, Optional, Tuple

import requests
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from sshvault import AuthenticationError, KeyFormatError, KeyResolutionError

logger = logging.getLogger(__name__)

USER_AGENT = "ssh-vault"
HTTP_TIMEOUT = 10
GITHUB_KEYS_URL = "https://github.com/{user}.keys"
DEFAULT_PUBLIC_KEY = "~/.ssh/id_rsa.pub"
DEFAULT_PRIVATE_KEY = "~/.ssh/id_rsa"


def is_url(source):
    return source.startswith(("http://", "https://"))


def fetch_url(url: str) -> bytes:
    """Fetch raw key material. Exactly one request, no retries."""
    logger.debug("Fetching key from %s", url)
    try:
        r = requests.get(
            url, headers={"User-Agent": USER_AGENT}, timeout=HTTP_TIMEOUT
        )
    except requests.RequestException as e:
        raise KeyResolutionError.from_context(url, str(e)) from e
    if r.status_code == 404:
        raise KeyResolutionError.from_context(url, "no key found")
    try:
        r.raise_for_status()
    except requests.HTTPError as e:
        raise KeyResolutionError.from_context(url, str(e)) from e
    return r.content


class KeyResolver(object):
    """Obtain raw public key bytes from a file, a URL or a GitHub user.

    Local paths win over URLs, URLs over GitHub users. Without any of them
    the default key in `~/.ssh` is used.

    """

    def __init__(self, fetch: Optional[Callable[[str], bytes]] = None):
        self.fetch = fetch or fetch_url

    def resolve(
        self,
        path: Optional[str] = None,
        url: Optional[str] = None,
        user: Optional[str] = None,
        index: int = 0,
    ) -> Tuple[str, bytes]:
        """Return `(source, key_bytes)`."""
        if path and is_url(path):
            path, url = None, path
        if path:
            return path, self._read_local(path)
        if url:
            return url, self._read_remote(url)
        if user:
            url = GITHUB_KEYS_URL.format(user=user)
            if index < 0:
                raise KeyResolutionError.from_context(
                    url, f"invalid key index {index}"
                )
            return url, self._select(url, self._read_remote(url), index)
        return DEFAULT_PUBLIC_KEY, self._read_local(DEFAULT_PUBLIC_KEY)

    def _read_local(self, path):
        logger.debug("Reading key from %s", path)
        try:
            with open(os.path.expanduser(path), "rb") as f:
                data = f.read()
        except OSError as e:
            raise KeyResolutionError.from_context(
                path, e.strerror or str(e)
            ) from e
        if not data.strip():
            raise KeyResolutionError.from_context(path, "file is empty")
        return data

    def _read_remote(self, url):
        data = self.fetch(url)
        if not data or not data.strip():
            raise KeyResolutionError.from_context(url, "no key found")
        return data

    def _select(self, url, data, index):
        keys = [line for line in data.splitlines() if line.strip()]
        if index < 1:
            # The first RSA key; the others are of no use to us.
            for key in keys:
                if key.startswith(b"ssh-rsa "):
                    return key
            raise KeyResolutionError.from_context(url, "no RSA key found")
        if index > len(keys):
            raise KeyResolutionError.from_context(
                url, f"key index {index} out of range (found {len(keys)})"
            )
        return keys[index - 1]


class PublicKeyInfo(object):
    """Human oriented description of a public key."""

    def __init__(self, key: rsa.RSAPublicKey):
        self.key = key
        self.key_size = key.key_size
        self.public_exponent = key.public_numbers().e
        self.openssh = key.public_bytes(
            serialization.Encoding.OpenSSH,
            serialization.PublicFormat.OpenSSH,
        ).decode("ascii")

    def __str__(self):
        return f"RSA {self.key_size} bits"

    def __repr__(self):
        return f"<PublicKeyInfo RSA {self.key_size} e={self.public_exponent}>"


def to_pkcs8(raw: bytes) -> bytes:
    """Convert an OpenSSH (or PEM) RSA public key to PKCS8 DER.

    The output only depends on the key itself: comments and surrounding
    whitespace are discarded.

    """
    raw = raw.strip()
    if not raw:
        raise KeyFormatError.from_context("empty key")
    try:
        if raw.startswith(b"-----BEGIN"):
            key = serialization.load_pem_public_key(raw)
        else:
            key = serialization.load_ssh_public_key(raw.splitlines()[0])
    except UnsupportedAlgorithm as e:
        raise KeyFormatError.from_context(f"unsupported key type: {e}") from e
    except ValueError as e:
        raise KeyFormatError.from_context(str(e) or "malformed key") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyFormatError.from_context("not an RSA key")
    return key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def parse_public_key(pkcs8: bytes) -> PublicKeyInfo:
    try:
        key = serialization.load_der_public_key(pkcs8)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyFormatError.from_context(str(e) or "malformed key") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyFormatError.from_context("not an RSA key")
    return PublicKeyInfo(key)


def fingerprint(pkcs8: bytes) -> str:
    digest = hashlib.sha256(pkcs8).hexdigest()
    return ":".join(digest[i:i + 2] for i in range(0, len(digest), 2))


def private_key_path(key_source: str, explicit: Optional[str] = None) -> str:
    if explicit:
        return explicit
    if not is_url(key_source) and key_source.endswith(".pub"):
        return key_source[:-len(".pub")]
    return DEFAULT_PRIVATE_KEY


def load_private_key(
    path: str, get_passphrase: Callable[[str], str]
) -> rsa.RSAPrivateKey:
    """Load an RSA private key, asking for a passphrase only if needed."""
    try:
        with open(os.path.expanduser(path), "rb") as f:
            data = f.read()
    except OSError as e:
        raise KeyResolutionError.from_context(
            path, e.strerror or str(e)
        ) from e

    if b"OPENSSH PRIVATE KEY" in data:
        loader = serialization.load_ssh_private_key
    else:
        loader = serialization.load_pem_private_key

    try:
        key = loader(data, None)
    except TypeError:
        # Encrypted: try again with the passphrase.
        passphrase = get_passphrase(path).encode("utf-8")
        try:
            key = loader(data, passphrase)
        except (ValueError, TypeError) as e:
            raise AuthenticationError.from_context() from e
    except (ValueError, UnsupportedAlgorithm) as e:
        raise KeyFormatError.from_context(str(e) or "malformed key") from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyFormatError.from_context("not an RSA key")
    return key
