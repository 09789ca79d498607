import http.server
import threading

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

KEY_PASSPHRASE = b"argle-bargle"


class KeyPair(object):

    def __init__(self, directory, encrypted=False):
        self.key = rsa.generate_private_key(
            public_exponent=65537, key_size=2048
        )
        directory.mkdir(parents=True, exist_ok=True)
        self.private_path = directory / "id_rsa"
        self.public_path = directory / "id_rsa.pub"
        if encrypted:
            private = self.key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.BestAvailableEncryption(KEY_PASSPHRASE),
            )
        else:
            private = self.key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.OpenSSH,
                serialization.NoEncryption(),
            )
        self.private_path.write_bytes(private)
        self.openssh = self.key.public_key().public_bytes(
            serialization.Encoding.OpenSSH,
            serialization.PublicFormat.OpenSSH,
        )
        self.public_path.write_bytes(self.openssh + b" test@example.com\n")


@pytest.fixture(scope="session")
def keypair(tmp_path_factory):
    return KeyPair(tmp_path_factory.mktemp("keys"))


@pytest.fixture(scope="session")
def other_keypair(tmp_path_factory):
    return KeyPair(tmp_path_factory.mktemp("other-keys"))


@pytest.fixture(scope="session")
def encrypted_keypair(tmp_path_factory):
    return KeyPair(tmp_path_factory.mktemp("encrypted-keys"), encrypted=True)


class KeyRequestHandler(http.server.BaseHTTPRequestHandler):

    def do_GET(self):
        self.server.requests.append(
            {"path": self.path, "user-agent": self.headers.get("User-Agent")}
        )
        status, body = self.server.responses.get(self.path, (404, b""))
        self.send_response(status)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def key_server():
    """Serve keys over HTTP. Unknown paths answer with an empty 404."""
    server = http.server.HTTPServer(("127.0.0.1", 0), KeyRequestHandler)
    server.responses = {}
    server.requests = []
    server.url = "http://127.0.0.1:{}".format(server.server_port)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    return tmp_path


@pytest.fixture(autouse=True)
def output(monkeypatch):
    from sshvault import output
    from sshvault._output import TestBackend

    backend = TestBackend()
    monkeypatch.setattr(output, "backend", backend)
    monkeypatch.setattr(output, "enable_debug", False)
    return output
