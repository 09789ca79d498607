import io

import mock
import pytest

from sshvault import (
    AlreadyExistsError,
    AuthenticationError,
    EditError,
    KeyResolutionError,
    NotFoundError,
)
from sshvault.edit import Editor
from sshvault.keys import KeyResolver, fingerprint, to_pkcs8
from sshvault.passphrase import Passphrase, StreamLineReader
from sshvault.store import VaultStore
from sshvault.vault import (
    DONE,
    FAILED,
    KEY_READY,
    SessionBuilder,
    VaultController,
)

PLAINTEXT = b"The quick brown fox jumps over the lazy dog"


def session(controller, keypair, vault, action="create", **kw):
    return controller.session(
        action, key=str(keypair.public_path), vault=vault, **kw
    )


def test_session_is_read_only(keypair, tmp_path):
    s = SessionBuilder().build(
        "create", key=str(keypair.public_path), vault=str(tmp_path / "v")
    )
    assert s.fingerprint == fingerprint(to_pkcs8(keypair.openssh))
    assert s.associated_data == s.fingerprint.encode("ascii")
    assert s.public_key.key_size == 2048
    assert s.key_source == str(keypair.public_path)
    assert s.private_key_path == str(keypair.private_path)
    assert s.storage_path == str(tmp_path / "v")
    with pytest.raises(AttributeError):
        s.fingerprint = "aa:bb"


def test_session_unknown_action(keypair):
    with pytest.raises(ValueError):
        SessionBuilder().build("destroy", key=str(keypair.public_path))


def test_session_missing_key():
    with pytest.raises(KeyResolutionError):
        SessionBuilder().build("view", key="/dev/null/none")


def test_session_create_on_existing_file_fails_before_key_work(tmp_path):
    vault = tmp_path / "vault"
    vault.write_bytes(b"precious")
    resolver = mock.Mock(spec=KeyResolver)
    with pytest.raises(AlreadyExistsError):
        SessionBuilder(resolver).build("create", vault=str(vault))
    assert not resolver.resolve.called
    assert vault.read_bytes() == b"precious"


def test_session_from_url(key_server, keypair):
    key_server.responses["/key"] = (200, keypair.openssh + b"\n")
    s = SessionBuilder().build("view", url=key_server.url + "/key")
    assert s.fingerprint == fingerprint(to_pkcs8(keypair.openssh))
    assert s.key_source == key_server.url + "/key"


def test_vault_functions(keypair, tmp_path, monkeypatch):
    vault = str(tmp_path / "vault")
    controller = VaultController()
    s = session(controller, keypair, vault)
    assert controller.state == KEY_READY

    controller.create(s, PLAINTEXT)
    assert controller.state == DONE
    password = controller.password
    assert len(password) == 32
    with open(vault, "rb") as f:
        enc1 = f.read()
    assert PLAINTEXT not in enc1
    assert password not in enc1
    assert s.associated_data not in enc1

    assert controller.view(s) == PLAINTEXT

    monkeypatch.setenv("EDITOR", "cat")
    controller.editor = Editor()
    edited = controller.edit(s)
    assert edited == PLAINTEXT
    assert controller.password == password

    assert controller.view(s) == edited
    with open(vault, "rb") as f:
        enc2 = f.read()
    assert enc1 != enc2


def test_vault_functions_stdout(keypair):
    stdout = io.BytesIO()
    controller = VaultController(store=VaultStore(stdout=stdout))
    controller.create(session(controller, keypair, None), PLAINTEXT)
    assert stdout.getvalue()
    assert PLAINTEXT not in stdout.getvalue()


def test_view_in_new_process_uses_private_key(keypair, tmp_path):
    vault = str(tmp_path / "vault")
    creator = VaultController()
    creator.create(session(creator, keypair, vault), PLAINTEXT)

    viewer = VaultController(passphrase=mock.Mock())
    assert viewer.password is None
    assert viewer.view(session(viewer, keypair, vault, "view")) == PLAINTEXT
    assert viewer.password == creator.password
    assert not viewer.passphrase.called


def test_view_with_encrypted_private_key(encrypted_keypair, tmp_path):
    vault = str(tmp_path / "vault")
    creator = VaultController()
    creator.create(session(creator, encrypted_keypair, vault), PLAINTEXT)

    reader = StreamLineReader(io.StringIO("argle-bargle\n"))
    viewer = VaultController(passphrase=Passphrase(reader))
    s = session(viewer, encrypted_keypair, vault, "view")
    assert viewer.view(s) == PLAINTEXT


def test_edit_in_new_process_keeps_password(keypair, tmp_path):
    vault = str(tmp_path / "vault")
    creator = VaultController()
    creator.create(session(creator, keypair, vault), PLAINTEXT)

    editor = VaultController(editor=Editor("sed -i s/fox/cat/"))
    edited = editor.edit(session(editor, keypair, vault, "edit"))
    assert edited == PLAINTEXT.replace(b"fox", b"cat")
    assert editor.password == creator.password

    viewer = VaultController()
    assert viewer.view(session(viewer, keypair, vault, "view")) == edited


def test_view_with_other_key_fails(keypair, other_keypair, tmp_path):
    vault = str(tmp_path / "vault")
    creator = VaultController()
    creator.create(session(creator, keypair, vault), PLAINTEXT)

    viewer = VaultController()
    s = session(viewer, other_keypair, vault, "view")
    with pytest.raises(AuthenticationError):
        viewer.view(s)
    assert viewer.state == FAILED
    assert viewer.password is None


def test_session_password_is_bound_to_fingerprint(
    keypair, other_keypair, tmp_path
):
    vault = str(tmp_path / "vault")
    controller = VaultController()
    controller.create(session(controller, keypair, vault), PLAINTEXT)
    # Same password, but the vault is opened as if it was bound to
    # another key.
    s = controller.session(
        "view",
        key=str(other_keypair.public_path),
        vault=vault,
        private_key=str(keypair.private_path),
    )
    with pytest.raises(AuthenticationError):
        controller.view(s)


def test_view_tampered_vault(keypair, tmp_path):
    vault = tmp_path / "vault"
    creator = VaultController()
    creator.create(session(creator, keypair, str(vault)), PLAINTEXT)
    data = bytearray(vault.read_bytes())
    data[-1] ^= 0x01
    vault.write_bytes(bytes(data))

    viewer = VaultController()
    with pytest.raises(AuthenticationError) as e:
        viewer.view(session(viewer, keypair, str(vault), "view"))
    assert str(e.value) == AuthenticationError.MESSAGE


def test_view_missing_vault(keypair, tmp_path):
    controller = VaultController()
    with pytest.raises(NotFoundError):
        controller.view(
            session(controller, keypair, str(tmp_path / "vault"), "view")
        )
    with pytest.raises(NotFoundError):
        controller.view(session(controller, keypair, None, "view"))


def test_create_refuses_existing_vault(keypair, tmp_path):
    vault = tmp_path / "vault"
    controller = VaultController()
    s = session(controller, keypair, str(vault))
    vault.write_bytes(b"precious")
    with pytest.raises(AlreadyExistsError):
        controller.create(s, PLAINTEXT)
    assert controller.password is None
    assert controller.state == FAILED
    assert vault.read_bytes() == b"precious"


def test_failing_editor_leaves_vault_alone(keypair, tmp_path):
    vault = tmp_path / "vault"
    controller = VaultController(editor=Editor("false"))
    controller.create(session(controller, keypair, str(vault)), PLAINTEXT)
    before = vault.read_bytes()
    with pytest.raises(EditError):
        controller.edit(session(controller, keypair, str(vault), "edit"))
    assert controller.state == FAILED
    assert vault.read_bytes() == before


def test_fingerprint(keypair):
    controller = VaultController()
    s = session(controller, keypair, None, "fingerprint")
    assert controller.fingerprint(s) == fingerprint(to_pkcs8(keypair.openssh))
    assert controller.state == DONE


def test_view_with_encrypted_private_key_and_no_input(
    encrypted_keypair, tmp_path
):
    vault = str(tmp_path / "vault")
    creator = VaultController()
    creator.create(session(creator, encrypted_keypair, vault), PLAINTEXT)

    reader = mock.Mock()
    reader.readline.side_effect = EOFError()
    viewer = VaultController(passphrase=Passphrase(reader))
    with pytest.raises(AuthenticationError):
        viewer.view(session(viewer, encrypted_keypair, vault, "view"))
    assert viewer.state == FAILED
