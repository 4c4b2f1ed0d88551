"""Tests for fetch event publishing."""

import json
from unittest.mock import MagicMock

import redis

from discovery.fetchers.events import DEFAULT_CHANNEL, RedisEventSink, emit


class TestRedisEventSink:
    def test_publishes_json_on_channel(self):
        client = MagicMock()
        sink = RedisEventSink(client=client)

        sink("blocked", {"adapter": "direct", "blocking_type": "cloudflare"})

        channel, message = client.publish.call_args.args
        assert channel == DEFAULT_CHANNEL
        assert json.loads(message) == {
            "event": "blocked",
            "data": {"adapter": "direct", "blocking_type": "cloudflare"},
        }

    def test_channel_from_env(self, monkeypatch):
        monkeypatch.setenv("FETCH_EVENTS_CHANNEL", "scrapers:fetch")
        assert RedisEventSink(client=MagicMock()).channel == "scrapers:fetch"

    def test_publish_failure_is_swallowed(self):
        client = MagicMock()
        client.publish.side_effect = redis.ConnectionError("Connection refused")

        RedisEventSink(client=client)("request.stop", {"adapter": "zyte"})

    def test_lazy_client_uses_env(self, monkeypatch):
        monkeypatch.setenv("REDIS_HOST", "redis.internal")
        monkeypatch.setenv("REDIS_PORT", "6380")
        created = MagicMock()
        monkeypatch.setattr("discovery.fetchers.events.redis.Redis", created)

        RedisEventSink().client

        created.assert_called_once_with(host="redis.internal", port=6380, db=0)


class TestEmit:
    def test_no_sink_is_a_no_op(self):
        emit(None, "request.start", {})

    def test_sink_receives_event(self):
        sink = MagicMock()
        emit(sink, "request.start", {"url": "https://example.com"})
        sink.assert_called_once_with("request.start", {"url": "https://example.com"})

    def test_sink_errors_are_logged_not_raised(self):
        emit(MagicMock(side_effect=ValueError("boom")), "request.stop", {})
