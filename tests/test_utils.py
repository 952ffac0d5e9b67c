"""
Tests for utility modules: encryption, rate limiter, structured logging.
"""
import json
import logging
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from cryptography.fernet import Fernet

from pushtomemory.utils.encryption import (
    SecretDecryptionError,
    SecretEncryptionError,
    decrypt_value,
    encrypt_value,
)
from pushtomemory.utils.logging import (
    StructuredJsonFormatter,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from pushtomemory.utils.rate_limiter import (
    check_rate_limit,
    check_source_rate_limit,
    check_webhook_rate_limit,
)


def _settings_with_key(key):
    settings = MagicMock()
    settings.encryption_key = key
    return settings


# ---------------------------------------------------------------------------
# Encryption
# ---------------------------------------------------------------------------


class TestEncryption:
    def test_round_trip_with_key(self):
        with patch("pushtomemory.config.get_settings", return_value=_settings_with_key(Fernet.generate_key().decode())):
            token = encrypt_value("hook-secret")
            assert token != "hook-secret"
            assert decrypt_value(token) == "hook-secret"

    def test_no_key_stores_plaintext(self):
        with patch("pushtomemory.config.get_settings", return_value=_settings_with_key("")):
            assert encrypt_value("hook-secret") == "hook-secret"
            assert decrypt_value("hook-secret") == "hook-secret"

    def test_legacy_plaintext_decrypts_as_is(self):
        with patch("pushtomemory.config.get_settings", return_value=_settings_with_key(Fernet.generate_key().decode())):
            assert decrypt_value("not-a-token") == "not-a-token"

    def test_empty_values_pass_through(self):
        assert encrypt_value("") == ""
        assert decrypt_value("") == ""

    def test_wrong_key_raises(self):
        with patch("pushtomemory.config.get_settings", return_value=_settings_with_key(Fernet.generate_key().decode())):
            token = encrypt_value("hook-secret")
        with patch("pushtomemory.config.get_settings", return_value=_settings_with_key(Fernet.generate_key().decode())):
            with pytest.raises(SecretDecryptionError):
                decrypt_value(token)

    def test_sealed_value_without_key_raises(self):
        with patch("pushtomemory.config.get_settings", return_value=_settings_with_key(Fernet.generate_key().decode())):
            token = encrypt_value("hook-secret")
        with patch("pushtomemory.config.get_settings", return_value=_settings_with_key("")):
            with pytest.raises(SecretDecryptionError):
                decrypt_value(token)

    def test_malformed_key_never_stores_plaintext(self):
        with patch("pushtomemory.config.get_settings", return_value=_settings_with_key("too-short")):
            with pytest.raises(SecretEncryptionError):
                encrypt_value("hook-secret")


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------


def _pipeline(count: int) -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[0, 1, count, True])
    return pipe


class TestRateLimiter:
    async def test_under_limit_allowed(self, mock_redis):
        mock_redis.pipeline.return_value = _pipeline(3)
        assert await check_rate_limit("ip:1.2.3.4", limit=5) == (True, None)

    async def test_over_limit_blocked(self, mock_redis):
        mock_redis.pipeline.return_value = _pipeline(6)
        allowed, retry_after = await check_rate_limit("ip:1.2.3.4", limit=5, window=30)
        assert allowed is False
        assert retry_after == 30

    async def test_key_is_namespaced(self, mock_redis):
        pipe = _pipeline(1)
        mock_redis.pipeline.return_value = pipe
        await check_rate_limit("ip:1.2.3.4", limit=5)
        assert pipe.zadd.call_args.args[0] == "pushtomemory:ratelimit:ip:1.2.3.4"
        pipe.expire.assert_called_once_with("pushtomemory:ratelimit:ip:1.2.3.4", 61)

    async def test_redis_failure_fails_open(self):
        with patch(
            "pushtomemory.utils.redis_client.get_redis",
            new_callable=AsyncMock,
            side_effect=ConnectionError("redis down"),
        ):
            assert await check_rate_limit("ip:1.2.3.4", limit=1) == (True, None)

    async def test_ip_limit_uses_setting(self):
        settings = MagicMock()
        settings.webhook_ip_rate_limit_per_minute = 3000
        with patch("pushtomemory.config.get_settings", return_value=settings), \
             patch("pushtomemory.utils.rate_limiter.check_rate_limit", new_callable=AsyncMock,
                   return_value=(True, None)) as mock_check:
            await check_webhook_rate_limit("140.82.115.1")
        mock_check.assert_awaited_once_with("ip:140.82.115.1", 3000)

    async def test_source_limit_keyed_by_source(self):
        settings = MagicMock()
        settings.webhook_rate_limit_per_minute = 7
        with patch("pushtomemory.config.get_settings", return_value=settings), \
             patch("pushtomemory.utils.rate_limiter.check_rate_limit", new_callable=AsyncMock,
                   return_value=(True, None)) as mock_check:
            await check_source_rate_limit("organization", "acme")
        mock_check.assert_awaited_once_with("source:organization:acme", 7)

    def test_ip_limit_default_exceeds_source_limit(self):
        from pushtomemory.config import get_settings
        settings = get_settings()
        assert settings.webhook_ip_rate_limit_per_minute > settings.webhook_rate_limit_per_minute


# ---------------------------------------------------------------------------
# Structured logging
# ---------------------------------------------------------------------------


def _record(msg="hello %s", args=("world",), **extra) -> logging.LogRecord:
    record = logging.LogRecord("pushtomemory.test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredLogging:
    def test_formats_json_line(self):
        set_correlation_id("cid-123")
        line = StructuredJsonFormatter().format(_record())
        entry = json.loads(line)
        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["module"] == "pushtomemory.test"
        assert entry["correlation_id"] == "cid-123"

    def test_known_extras_included(self):
        line = StructuredJsonFormatter().format(
            _record(reflection_id="my-app-abc", delivery_id="d-1", commit_count=2, unrelated="x"),
        )
        entry = json.loads(line)
        assert entry["reflection_id"] == "my-app-abc"
        assert entry["delivery_id"] == "d-1"
        assert entry["commit_count"] == 2
        assert "unrelated" not in entry

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                "pushtomemory.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info(),
            )
        entry = json.loads(StructuredJsonFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]

    def test_correlation_ids(self):
        cid = generate_correlation_id()
        assert len(cid) == 32
        set_correlation_id(cid)
        assert get_correlation_id() == cid
