import base64
import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from enlightkit import jwk


def _b64(number: int) -> str:
    raw = number.to_bytes((number.bit_length() + 7) // 8, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _key_dict(public_key, kid, use="sig"):
    nums = public_key.public_numbers()
    return {"alg": "RS256", "e": _b64(nums.e), "kid": kid, "kty": "RSA", "n": _b64(nums.n), "use": use}


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        status, body = self.server.reply
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@pytest.fixture
def server():
    srv = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    srv.reply = (200, b"{}")
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    jwk.configure(None)
    jwk.set_key_set_url(f"http://127.0.0.1:{srv.server_address[1]}/")
    yield srv
    srv.shutdown()
    jwk.set_key_set_url("")


@pytest.fixture(scope="module")
def public_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048).public_key()


def test_public_key_round_trip(public_key):
    ks = jwk.JWKeySet.from_dict(_key_dict(public_key, "k"))
    assert ks.public_key().public_numbers() == public_key.public_numbers()


def test_public_key_bad_base64():
    with pytest.raises(ValueError):
        jwk.JWKeySet(exp="AQ==", mod="abc").public_key()


@pytest.mark.parametrize("member", ["Keys", "keys", "data"])
def test_refresh_reads_each_member(server, public_key, member):
    server.reply = (200, json.dumps({member: [_key_dict(public_key, "kid-" + member)]}).encode())
    jwk.refresh_key_sets()
    found = jwk.get_key_sets().lookup_key_id("kid-" + member)
    assert found.key_id == "kid-" + member


def test_lookup_ignores_non_signing_keys(server, public_key):
    server.reply = (200, json.dumps({"keys": [_key_dict(public_key, "enc-key", use="enc")]}).encode())
    with pytest.raises(LookupError):
        jwk.JWKeySets().lookup_key_id("enc-key")


def test_refresh_without_member_fails(server):
    server.reply = (200, b'{"other": []}')
    with pytest.raises(RuntimeError, match="failed to find key sets"):
        jwk.refresh_key_sets()


def test_refresh_non_200(server):
    server.reply = (500, b"{}")
    with pytest.raises(RuntimeError, match="non 200"):
        jwk.refresh_key_sets()


def test_not_configured():
    jwk.configure(None)
    jwk.set_key_set_url("")
    with pytest.raises(RuntimeError, match="not configured"):
        jwk.refresh_key_sets()


def test_disallowed_stage():
    jwk.configure(jwk.Config(stage=jwk.STAGE_LOCAL))
    try:
        with pytest.raises(RuntimeError, match="not allowed"):
            jwk.refresh_key_sets()
    finally:
        jwk.configure(None)