"""
Webhook signature validation tests.
These protect the authentication boundary for all inbound deliveries.
"""
import hashlib
import hmac
from unittest.mock import patch

from pushtomemory.utils.webhook_signatures import (
    generate_webhook_secret,
    sign_github_payload,
    verify_github_signature,
)

SECRET = "It's a Secret to Everybody"
BODY = b"Hello, World!"


class TestSignGithubPayload:
    def test_matches_github_documented_example(self):
        """Example from GitHub's webhook validation docs."""
        assert sign_github_payload(BODY, SECRET) == (
            "sha256=757107ea0eb2509fc211221cce984b8a37570b6d7586c22c46f4379c8b043e17"
        )

    def test_matches_hmac_sha256(self):
        body = b'{"zen": "Design for failure."}'
        expected = hmac.new(b"k", body, hashlib.sha256).hexdigest()
        assert sign_github_payload(body, "k") == f"sha256={expected}"


class TestVerifyGithubSignature:
    def test_valid_signature(self):
        assert verify_github_signature(BODY, sign_github_payload(BODY, SECRET), SECRET) is True

    def test_body_mutation_fails(self):
        signature = sign_github_payload(BODY, SECRET)
        assert verify_github_signature(b"Hello, World?", signature, SECRET) is False

    def test_single_byte_mutations_fail(self):
        signature = sign_github_payload(BODY, SECRET)
        for i in range(len(BODY)):
            mutated = bytearray(BODY)
            mutated[i] ^= 0x01
            assert verify_github_signature(bytes(mutated), signature, SECRET) is False

    def test_secret_mutation_fails(self):
        signature = sign_github_payload(BODY, SECRET)
        assert verify_github_signature(BODY, signature, SECRET + "x") is False
        assert verify_github_signature(BODY, signature, "it's a Secret to Everybody") is False

    def test_reserialized_json_does_not_match(self):
        raw = b'{"a": 1,  "b": 2}'
        signature = sign_github_payload(raw, SECRET)
        assert verify_github_signature(b'{"a": 1, "b": 2}', signature, SECRET) is False

    def test_missing_prefix_fails(self):
        digest = sign_github_payload(BODY, SECRET).removeprefix("sha256=")
        assert verify_github_signature(BODY, digest, SECRET) is False

    def test_sha1_header_fails(self):
        sha1 = "sha1=" + hmac.new(SECRET.encode(), BODY, hashlib.sha1).hexdigest()
        assert verify_github_signature(BODY, sha1, SECRET) is False

    def test_length_mismatch_returns_false(self):
        assert verify_github_signature(BODY, "sha256=abc", SECRET) is False

    def test_empty_signature_returns_false(self):
        assert verify_github_signature(BODY, "", SECRET) is False

    def test_none_signature_returns_false(self):
        assert verify_github_signature(BODY, None, SECRET) is False

    def test_empty_secret_returns_false(self):
        assert verify_github_signature(BODY, sign_github_payload(BODY, ""), "") is False

    def test_empty_body_is_signable(self):
        assert verify_github_signature(b"", sign_github_payload(b"", SECRET), SECRET) is True

    def test_non_ascii_signature_returns_false(self):
        assert verify_github_signature(BODY, "sha256=é" * 8, SECRET) is False

    def test_internal_error_returns_false(self):
        with patch(
            "pushtomemory.utils.webhook_signatures.sign_github_payload",
            side_effect=RuntimeError("boom"),
        ):
            assert verify_github_signature(BODY, "sha256=" + "0" * 64, SECRET) is False


class TestGenerateWebhookSecret:
    def test_is_64_hex_chars(self):
        secret = generate_webhook_secret()
        assert len(secret) == 64
        int(secret, 16)

    def test_secrets_are_unique(self):
        assert len({generate_webhook_secret() for _ in range(20)}) == 20
