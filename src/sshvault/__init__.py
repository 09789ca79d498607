import os.path

from ._output import output

with open(os.path.dirname(__file__) + "/version.txt") as f:
    __version__ = f.read().strip()


class ReportingException(Exception):
    """Exceptions that support user-readable reporting."""

    def __str__(self):
        raise NotImplementedError()

    def report(self):
        raise NotImplementedError()


class VaultError(ReportingException):
    """Base class for everything that can go wrong handling a vault."""

    message: str

    @classmethod
    def from_context(cls, message):
        self = cls()
        self.message = message
        return self

    def __str__(self):
        return str(self.message)

    def report(self):
        output.error(str(self))


class KeyResolutionError(VaultError):
    """No usable public key could be found locally or remotely."""

    source: str

    @classmethod
    def from_context(cls, source, reason):
        self = cls()
        self.source = source
        self.message = reason
        return self

    def __str__(self):
        return f"Could not resolve key from {self.source}: {self.message}"

    def report(self):
        output.error("Could not resolve public key")
        output.tabular("source", self.source, red=True)
        output.tabular("reason", self.message)


class KeyFormatError(VaultError):
    """The key could not be parsed or is not an RSA key."""

    def __str__(self):
        return f"Invalid key: {self.message}"


class AlreadyExistsError(VaultError):
    """A vault must never be created on top of an existing file."""

    path: str

    @classmethod
    def from_context(cls, path):
        self = cls()
        self.path = str(path)
        self.message = f"File already exists: {self.path}"
        return self


class NotFoundError(VaultError):
    """The vault to view or edit does not exist."""

    path: str

    @classmethod
    def from_context(cls, path):
        self = cls()
        self.path = str(path)
        self.message = f"No such vault: {self.path}"
        return self


class ReadError(VaultError):
    """The vault exists but could not be read."""

    path: str

    @classmethod
    def from_context(cls, path, reason):
        self = cls()
        self.path = str(path)
        self.message = f"Could not read vault {self.path}: {reason}"
        return self


class WriteError(VaultError):
    """The vault could not be written."""

    path: str

    @classmethod
    def from_context(cls, path, reason):
        self = cls()
        self.path = str(path)
        self.message = f"Could not write vault {self.path}: {reason}"
        return self


class AuthenticationError(VaultError):
    """The vault could not be opened.

    Wrong password, wrong key and tampered ciphertext all end up here with
    the same message so callers can not tell them apart.

    """

    MESSAGE = "Unable to decrypt vault (wrong key or corrupted file)"

    @classmethod
    def from_context(cls):
        self = cls()
        self.message = cls.MESSAGE
        return self


class EditError(VaultError):
    """The external editor failed."""

    command: str
    exitcode: str

    @classmethod
    def from_context(cls, command, exitcode=None, reason=None):
        self = cls()
        self.command = command
        self.exitcode = "" if exitcode is None else str(exitcode)
        if reason is None:
            reason = f"Exitcode {self.exitcode} while calling: {command}"
        self.message = reason
        return self

    def report(self):
        output.error("Error while running the editor")
        output.tabular("command", self.command, red=True)
        if self.exitcode:
            output.tabular("exit code", self.exitcode)
        output.tabular("message", self.message, separator=":\n")


class EntropyError(VaultError):
    """The random source failed. There is nothing sensible left to do."""
