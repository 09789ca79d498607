"""Round-trip vault plaintext through an external editor."""

import os
import os.path
import shlex
import subprocess
import tempfile

from sshvault import EditError, output


def default_editor():
    return os.environ.get("EDITOR") or "vi"


class Editor(object):
    """Let the user edit plaintext with an external editor.

    The plaintext only ever touches disk inside a private temporary
    directory which is removed again whatever happens.

    """

    def __init__(self, editor_cmd=None, run=subprocess.check_call):
        self.editor_cmd = editor_cmd or default_editor()
        self.run = run

    def edit(self, plaintext: bytes) -> bytes:
        try:
            # mkdtemp() creates the directory accessible to us only.
            with tempfile.TemporaryDirectory(prefix="ssh-vault.") as tmpdir:
                clearfile = os.path.join(tmpdir, "vault")
                fd = os.open(
                    clearfile, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600
                )
                with os.fdopen(fd, "wb") as f:
                    f.write(plaintext)

                args = self.editor_cmd + " " + shlex.quote(clearfile)
                output.annotate(
                    "Running editor with command: {}".format(args), debug=True
                )
                try:
                    self.run(args, shell=True)
                except subprocess.CalledProcessError as e:
                    raise EditError.from_context(args, e.returncode) from e

                with open(clearfile, "rb") as f:
                    return f.read()
        except OSError as e:
            raise EditError.from_context(
                self.editor_cmd, reason=e.strerror or str(e)
            ) from e
