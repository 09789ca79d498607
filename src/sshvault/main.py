import argparse
import logging
import sys
import textwrap
from typing import Optional

import sshvault
from sshvault._output import TerminalBackend, output
from sshvault.edit import Editor
from sshvault.log import setup_logging
from sshvault.vault import VaultController


def _session(controller, action, key, user, index, private_key, vault):
    return controller.session(
        action,
        key=key,
        user=user,
        index=index,
        private_key=private_key,
        vault=vault,
    )


def create(vault, editor, **kw):
    """Encrypt standard input (or what the user types into the editor)."""
    controller = VaultController(editor=Editor(editor))
    session = _session(controller, "create", vault=vault, **kw)
    if sys.stdin.isatty():
        plaintext = controller.editor.edit(b"")
    else:
        plaintext = sys.stdin.buffer.read()
    controller.create(session, plaintext)
    output.annotate(f"Created vault {vault or '<stdout>'}", debug=True)
    return 0


def view(vault, **kw):
    controller = VaultController()
    session = _session(controller, "view", vault=vault, **kw)
    plaintext = controller.view(session)
    sys.stdout.buffer.write(plaintext)
    sys.stdout.flush()
    return 0


def edit(vault, editor, **kw):
    controller = VaultController(editor=Editor(editor))
    session = _session(controller, "edit", vault=vault, **kw)
    controller.edit(session)
    return 0


def fingerprint(**kw):
    controller = VaultController()
    session = _session(controller, "fingerprint", vault=None, **kw)
    print(controller.fingerprint(session))
    print(f"{session.public_key} ({session.key_source})")
    return 0


def main(args: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(
        description=(
            "ssh-vault v{}: encrypt and decrypt secrets using ssh keys"
        ).format(sshvault.__version__),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.set_defaults(func=parser.print_usage)

    parser.add_argument(
        "-d", "--debug", action="store_true", help="Enable debug mode."
    )
    parser.add_argument(
        "-k",
        "--key",
        default=None,
        help="Public key to use: a path or an http(s) URL. "
        "(default: ~/.ssh/id_rsa.pub)",
    )
    parser.add_argument(
        "-u",
        "--user",
        default=None,
        help="GitHub user whose public keys to use.",
    )
    parser.add_argument(
        "-i",
        "--index",
        type=int,
        default=0,
        help="Which of the GitHub user's keys to use, starting at 1. "
        "0 picks the first RSA key.",
    )
    parser.add_argument(
        "-p",
        "--private-key",
        default=None,
        help="Private key to open the vault with. (default: the public "
        "key path without `.pub`, or ~/.ssh/id_rsa)",
    )

    subparsers = parser.add_subparsers()

    p = subparsers.add_parser(
        "create",
        help=textwrap.dedent(
            """
            Create a new vault. Encrypts standard input, or opens the
            editor if standard input is a terminal. Refuses to overwrite
            an existing file.
        """
        ),
    )
    p.add_argument(
        "--editor",
        "-e",
        metavar="EDITOR",
        default=None,
        help="Invoke EDITOR to edit (default: $EDITOR or vi)",
    )
    p.add_argument(
        "vault",
        nargs="?",
        default=None,
        help="File to write the vault to. Standard output if not given.",
    )
    p.set_defaults(func=create)

    p = subparsers.add_parser(
        "view", help="Decrypt a vault to standard output."
    )
    p.add_argument("vault", help="The vault to decrypt.")
    p.set_defaults(func=view)

    p = subparsers.add_parser(
        "edit",
        help=textwrap.dedent(
            """
            Decrypt a vault, invoke the editor, and encrypt the vault
            again with the same password.
        """
        ),
    )
    p.add_argument(
        "--editor",
        "-e",
        metavar="EDITOR",
        default=None,
        help="Invoke EDITOR to edit (default: $EDITOR or vi)",
    )
    p.add_argument("vault", help="The vault to edit.")
    p.set_defaults(func=edit)

    p = subparsers.add_parser(
        "fingerprint", help="Show the fingerprint of the public key."
    )
    p.set_defaults(func=fingerprint)

    args = parser.parse_args(args)

    # Consume global arguments
    output.enable_debug = args.debug
    if args.debug:
        setup_logging(["sshvault"], logging.DEBUG)

    if args.func.__name__ == "print_usage":
        args.func()
        sys.exit(1)

    output.backend = TerminalBackend()

    func_args = dict(args._get_kwargs())
    del func_args["func"]
    del func_args["debug"]
    try:
        return args.func(**func_args)
    except sshvault.VaultError as e:
        e.report()
        sys.exit(1)
