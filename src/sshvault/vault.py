"""Create, view and edit a vault.

A vault is a small blob encrypted with a random session password. The
password itself is stored in the vault wrapped with the RSA public key, so
only the holder of the private key can get at it. The fingerprint of the
public key is bound to the ciphertext as associated data and is never
stored: it is derived from the key every time.

"""

import contextlib
import logging
import os.path
from typing import Optional

from sshvault import AlreadyExistsError, NotFoundError
from sshvault.crypto import (
    generate_password,
    open_sealed,
    pack,
    seal,
    unpack,
    unwrap_password,
    wrap_password,
)
from sshvault.edit import Editor
from sshvault.keys import (
    KeyResolver,
    PublicKeyInfo,
    fingerprint,
    load_private_key,
    parse_public_key,
    private_key_path,
    to_pkcs8,
)
from sshvault.passphrase import Passphrase
from sshvault.store import VaultStore

logger = logging.getLogger(__name__)

ACTIONS = ("create", "view", "edit", "fingerprint")

RESOLVING = "resolving"
KEY_READY = "key-ready"
SEALING = "sealing"
OPENING = "opening"
DONE = "done"
FAILED = "failed"


class Session(object):
    """The vault a single invocation works on.

    Built once by `SessionBuilder` and read-only afterwards.

    """

    key_source: str
    public_key: PublicKeyInfo
    pkcs8: bytes
    fingerprint: str
    storage_path: Optional[str]
    private_key_path: str
    action: str

    _frozen = False

    def __setattr__(self, name, value):
        if self._frozen:
            raise AttributeError(f"Session is read-only, can not set {name}")
        super().__setattr__(name, value)

    def freeze(self):
        super().__setattr__("_frozen", True)
        return self

    @property
    def associated_data(self):
        return self.fingerprint.encode("ascii")

    def __repr__(self):
        return "<Session {} {} key={}>".format(
            self.action, self.storage_path or "<stdout>", self.key_source
        )


class SessionBuilder(object):

    def __init__(self, resolver=None):
        self.resolver = resolver or KeyResolver()

    def build(
        self,
        action,
        key=None,
        url=None,
        user=None,
        index=0,
        vault=None,
        private_key=None,
    ):
        if action not in ACTIONS:
            raise ValueError(f"unknown action `{action}`")
        # Refuse before doing any work with keys.
        if action == "create" and vault and os.path.lexists(vault):
            raise AlreadyExistsError.from_context(vault)

        source, raw = self.resolver.resolve(key, url, user, index)
        pkcs8 = to_pkcs8(raw)

        session = Session()
        session.action = action
        session.key_source = source
        session.pkcs8 = pkcs8
        session.public_key = parse_public_key(pkcs8)
        session.fingerprint = fingerprint(pkcs8)
        session.storage_path = vault or None
        session.private_key_path = private_key_path(source, private_key)
        return session.freeze()


class VaultController(object):
    """Run vault operations, one controller per invocation.

    The session password lives on the controller: it is generated by
    `create`, recovered by `view` and reused by `edit` to seal the changed
    plaintext again.

    """

    password: Optional[bytes] = None

    def __init__(
        self, store=None, editor=None, passphrase=None, builder=None
    ):
        self.store = store or VaultStore()
        self.editor = editor or Editor()
        self.passphrase = passphrase or Passphrase()
        self.builder = builder or SessionBuilder()
        self.state = RESOLVING

    def _transition(self, state):
        logger.debug("%s -> %s", self.state, state)
        self.state = state

    @contextlib.contextmanager
    def _running(self):
        try:
            yield
        except Exception:
            self._transition(FAILED)
            raise

    def session(self, action, **kw) -> Session:
        self._transition(RESOLVING)
        with self._running():
            session = self.builder.build(action, **kw)
        self._transition(KEY_READY)
        return session

    def _seal(self, session, plaintext):
        sealed = seal(self.password, plaintext, session.associated_data)
        wrapped = wrap_password(session.public_key.key, self.password)
        return pack(wrapped, sealed)

    def create(self, session, plaintext: bytes):
        with self._running():
            handle = self.store.create_new(session.storage_path)
            self._transition(SEALING)
            self.password = generate_password()
            self.store.write(handle, self._seal(session, plaintext))
        self._transition(DONE)

    def view(self, session) -> bytes:
        with self._running():
            if not session.storage_path:
                raise NotFoundError.from_context("(no vault given)")
            self._transition(OPENING)
            wrapped, sealed = unpack(self.store.read(session.storage_path))
            password = self.password
            if password is None:
                private_key = load_private_key(
                    session.private_key_path, self.passphrase
                )
                password = unwrap_password(private_key, wrapped)
            plaintext = open_sealed(
                password, sealed, session.associated_data
            )
            self.password = password
        self._transition(DONE)
        return plaintext

    def edit(self, session) -> bytes:
        plaintext = self.view(session)
        with self._running():
            edited = self.editor.edit(plaintext)
            self._transition(SEALING)
            handle = self.store.open_existing(session.storage_path)
            self.store.write(handle, self._seal(session, edited))
        self._transition(DONE)
        return edited

    def fingerprint(self, session) -> str:
        self._transition(DONE)
        return session.fingerprint
