import logging
import os
import os.path
import sys
import tempfile

from sshvault import (
    AlreadyExistsError,
    NotFoundError,
    ReadError,
    WriteError,
)

logger = logging.getLogger(__name__)


class VaultHandle(object):
    """Where a vault is going to be written.

    A `path` of `None` means standard output.

    """

    def __init__(self, path=None, exclusive=True):
        self.path = path
        self.exclusive = exclusive

    def __repr__(self):
        where = self.path or "<stdout>"
        return f"<VaultHandle {where} exclusive={self.exclusive}>"


class VaultStore(object):

    def __init__(self, stdout=None):
        self._stdout = stdout

    @property
    def stdout(self):
        return self._stdout or sys.stdout.buffer

    def create_new(self, path):
        if path and os.path.lexists(path):
            raise AlreadyExistsError.from_context(path)
        return VaultHandle(path or None, exclusive=True)

    def open_existing(self, path):
        return VaultHandle(path or None, exclusive=False)

    def write(self, handle, data):
        if not handle.path:
            self.stdout.write(data)
            self.stdout.flush()
            return

        directory = os.path.dirname(os.path.abspath(handle.path))
        tmp = None
        try:
            fd, tmp = tempfile.mkstemp(
                prefix="." + os.path.basename(handle.path) + ".",
                dir=directory,
            )
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            if handle.exclusive:
                # link() refuses to replace an existing file.
                try:
                    os.link(tmp, handle.path)
                except FileExistsError as e:
                    raise AlreadyExistsError.from_context(handle.path) from e
            else:
                os.replace(tmp, handle.path)
        except OSError as e:
            raise WriteError.from_context(
                handle.path, e.strerror or str(e)
            ) from e
        finally:
            if tmp is not None and os.path.lexists(tmp):
                os.unlink(tmp)
        logger.debug("Wrote %d bytes to %s", len(data), handle.path)

    def read(self, path):
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError as e:
            raise NotFoundError.from_context(path) from e
        except OSError as e:
            raise ReadError.from_context(path, e.strerror or str(e)) from e
        if not data:
            raise ReadError.from_context(path, "file is empty")
        return data
