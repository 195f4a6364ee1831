"""Tests for request signing and credentials."""

import base64
import hashlib
import hmac

import pytest

from okx_sdk.auth import Credentials, login_prehash, prehash, sign, sign_login
from okx_sdk.errors import SigningError


def _reference_sign(secret: str, message: str) -> str:
    digest = hmac.new(secret.encode(), message.encode(), hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


class TestPrehash:
    """Test prehash string construction."""

    def test_concatenates_parts_in_order(self):
        """Should join timestamp, method, path and body with no separators."""
        result = prehash("2020-12-08T09:08:57.715Z", "GET", "/api/v5/account/balance?ccy=BTC")
        assert result == "2020-12-08T09:08:57.715ZGET/api/v5/account/balance?ccy=BTC"

    def test_upper_cases_method(self):
        """Should upper-case the HTTP method."""
        assert prehash("t", "post", "/p", "{}") == "tPOST/p{}"

    def test_login_prehash(self):
        """Should sign GET /users/self/verify with an empty body."""
        assert login_prehash("1538054050") == "1538054050GET/users/self/verify"

    def test_rejects_non_string_input(self):
        """Should raise SigningError naming the offending field."""
        with pytest.raises(SigningError) as exc_info:
            prehash(1538054050, "GET", "/users/self/verify")
        assert exc_info.value.field == "timestamp"


class TestSign:
    """Test HMAC-SHA256 signature generation."""

    def test_matches_published_hmac_vector(self):
        """Should reproduce RFC 4231 test case 2 (key "Jefe")."""
        expected_hex = "5bdcc146bf60754e6a042426089575c75a003f089d2739839dec58b964ec3843"
        expected = base64.b64encode(bytes.fromhex(expected_hex)).decode()

        assert sign("Jefe", "what do ya want ", "", "for nothing?") == expected

    def test_matches_known_request_signature(self):
        """Should produce a fixed signature for a GET request with a query string."""
        result = sign("22582BD0CFF14C41EDBF1AB98506286D", "2020-12-08T09:08:57.715Z",
                      "GET", "/api/v5/account/balance?ccy=BTC")
        assert result == "HiZhvSfMtWJA3uUIVXV3a/bSXNPCWvYFXoGCVS8V4zY="

    def test_matches_reference_computation(self):
        """Should be base64(HMAC-SHA256(secret, prehash))."""
        body = '{"instId":"BTC-USDT","tdMode":"cash","side":"buy","ordType":"market","sz":"1"}'
        result = sign("secret", "2020-12-08T09:08:57.715Z", "POST", "/api/v5/trade/order", body)
        expected = _reference_sign(
            "secret", "2020-12-08T09:08:57.715ZPOST/api/v5/trade/order" + body
        )
        assert result == expected

    def test_deterministic(self):
        """Same inputs should always give the same signature."""
        first = sign("s", "ts", "GET", "/api/v5/account/balance")
        second = sign("s", "ts", "GET", "/api/v5/account/balance")
        assert first == second

    def test_any_input_change_changes_signature(self):
        """Should depend on every signed component."""
        base = sign("s", "ts", "GET", "/a", "")
        assert sign("s2", "ts", "GET", "/a", "") != base
        assert sign("s", "ts2", "GET", "/a", "") != base
        assert sign("s", "ts", "POST", "/a", "") != base
        assert sign("s", "ts", "GET", "/b", "") != base
        assert sign("s", "ts", "GET", "/a", "{}") != base

    def test_signature_is_base64(self):
        """Should decode to a 32-byte SHA-256 digest."""
        assert len(base64.b64decode(sign("s", "ts", "GET", "/"))) == 32

    def test_sign_login(self):
        """Should sign the login prehash."""
        assert sign_login("secret", "1538054050") == _reference_sign(
            "secret", "1538054050GET/users/self/verify"
        )

    def test_non_string_secret(self):
        """Should raise SigningError instead of a TypeError."""
        with pytest.raises(SigningError):
            sign(None, "ts", "GET", "/")

    def test_unencodable_input(self):
        """Lone surrogates cannot be UTF-8 encoded."""
        with pytest.raises(SigningError) as exc_info:
            sign("secret", "ts", "GET", "/path\ud800")
        assert "secret" not in str(exc_info.value)


class TestCredentials:
    """Test the credentials value object."""

    def test_simulated_flag(self):
        """Should map is_simulated to the header value."""
        assert Credentials("k", "s", "p", is_simulated=True).simulated_flag == "1"
        assert Credentials("k", "s", "p").simulated_flag == "0"

    def test_repr_hides_secrets(self):
        """Should never include the secret or passphrase in repr/str."""
        creds = Credentials("abcd-efgh-ijkl", "very-secret", "my-passphrase")
        for text in (repr(creds), str(creds)):
            assert "very-secret" not in text
            assert "my-passphrase" not in text
            assert "abcd***ijkl" in text

    def test_short_api_key_fully_masked(self):
        """Should mask short keys entirely."""
        assert "short" not in repr(Credentials("short", "s", "p"))

    def test_immutable(self):
        """Should be frozen."""
        creds = Credentials("k", "s", "p")
        with pytest.raises(Exception):
            creds.api_key = "other"
