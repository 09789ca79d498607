import sys


class Output(object):
    """Manage the output of ssh-vault to achieve consistency wrt to
    formatting and display.
    """

    enable_debug = False

    def __init__(self, backend):
        self.backend = backend

    def line(self, message, debug=False, **format):
        if debug and not self.enable_debug:
            return
        self.backend.line(message, **format)

    def annotate(self, message, debug=False, **format):
        if debug and not self.enable_debug:
            return
        lines = message.split("\n")
        lines = [" " * 5 + line for line in lines]
        self.line("\n".join(lines), **format)

    def tabular(self, key, value, separator=": ", debug=False, **kw):
        if debug and not self.enable_debug:
            return
        message = key.rjust(10) + separator + value
        self.annotate(message, **kw)

    def step(self, context, message, debug=False, **format):
        if debug and not self.enable_debug:
            return
        _format = {"bold": True}
        _format.update(format)
        self.line("{}: {}".format(context, message), **_format)

    def error(self, message, debug=False):
        if debug and not self.enable_debug:
            return
        self.step("ERROR", message, red=True)


class TerminalBackend(object):
    # Messages go to stderr: stdout may carry a vault or its plaintext.

    def __init__(self, file=None):
        import py.io

        self._tw = py.io.TerminalWriter(file or sys.stderr)

    def line(self, message, **format):
        self._tw.line(message, **format)

    def write(self, content, **format):
        self._tw.write(content, **format)


class NullBackend(object):

    def line(self, message, **format):
        pass

    def write(self, content, **format):
        pass


class TestBackend(object):
    """Record output for inspection in tests."""

    def __init__(self):
        self.output = ""

    def line(self, message, **format):
        self.output += message + "\n"

    def write(self, content, **format):
        self.output += content


output = Output(NullBackend())
