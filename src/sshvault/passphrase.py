"""Query passphrases from the user"""

import getpass


class TerminalLineReader(object):
    """Read one secret line from the controlling terminal, echo disabled."""

    def readline(self, prompt):
        return getpass.getpass(prompt)


class StreamLineReader(object):
    """Read secret lines from any text stream."""

    def __init__(self, stream):
        self.stream = stream

    def readline(self, prompt):
        return self.stream.readline()


def read_password(reader, prompt):
    try:
        line = reader.readline(prompt)
    except EOFError:
        # Closed input or Ctrl-D: an empty answer.
        line = ""
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


class Passphrase(object):
    """Ask for the passphrase protecting a private key.

    Entered passphrases are cached, so a key is only asked for once per
    process.
    """

    def __init__(self, reader=None):
        self.reader = reader or TerminalLineReader()
        self.passphrase_cache = {}

    def __call__(self, for_what):
        if for_what not in self.passphrase_cache:
            self.passphrase_cache[for_what] = read_password(
                self.reader, "Enter passphrase for %s: " % for_what
            )
        return self.passphrase_cache[for_what]
