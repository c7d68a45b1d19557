"""Tests for the digest subsystem: accumulator, rendering, flush scheduler."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from reply_scout.config import BotConfig, StaticConfigProvider
from reply_scout.digest.accumulator import DigestAccumulator, NotificationItem
from reply_scout.digest.render import excerpt, group_by_channel, render_digest, render_realtime
from reply_scout.digest.scheduler import FLUSH_JOB_ID, FlushScheduler
from reply_scout.errors import ConfigUnavailable, DeliveryFailure

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _item(channel: str = "general", author: str = "alice", content: str = "wen mint?") -> NotificationItem:
    return NotificationItem(channel_label=channel, author_label=author, content=content)


def _numbered(n: int) -> list[NotificationItem]:
    return [_item(content=f"question {i}?") for i in range(n)]


def _digest_config(enabled: bool = True, max_items: int = 10) -> BotConfig:
    cfg = BotConfig()
    cfg.digest.enabled = enabled
    cfg.digest.max_items = max_items
    return cfg


# ===================================================================
# Accumulator
# ===================================================================


class TestDigestAccumulator:
    def test_push_within_bound(self):
        acc = DigestAccumulator(max_queue=5)
        for item in _numbered(3):
            assert acc.push(item) == 0
        assert len(acc) == 3

    def test_overflow_keeps_most_recent(self):
        acc = DigestAccumulator(max_queue=5)
        items = _numbered(8)
        evicted = sum(acc.push(item) for item in items)
        assert evicted == 3
        assert acc.snapshot() == items[-5:]

    def test_drain_is_fifo_and_leaves_remainder(self):
        acc = DigestAccumulator(max_queue=50)
        items = _numbered(7)
        for item in items:
            acc.push(item)
        assert acc.drain(3) == items[:3]
        assert acc.snapshot() == items[3:]

    def test_drain_more_than_available(self):
        acc = DigestAccumulator()
        acc.push(_item())
        assert len(acc.drain(10)) == 1
        assert len(acc) == 0

    def test_drain_empty_returns_empty(self):
        assert DigestAccumulator().drain(10) == []

    def test_push_applies_cap_override(self):
        acc = DigestAccumulator(max_queue=50)
        for item in _numbered(10):
            acc.push(item)
        acc.push(_item(content="latest"), max_queue=4)
        assert len(acc) == 4
        assert acc.snapshot()[-1].content == "latest"

    def test_invalid_cap(self):
        with pytest.raises(ValueError, match="max_queue"):
            DigestAccumulator(max_queue=0)

    def test_concurrent_push_and_drain_lose_nothing(self):
        acc = DigestAccumulator(max_queue=100_000)
        producers_done = threading.Event()
        drained: list[NotificationItem] = []

        def produce(worker: int):
            for i in range(2000):
                acc.push(_item(content=f"{worker}-{i}"))

        def consume():
            while not producers_done.is_set() or len(acc):
                drained.extend(acc.drain(7))

        producers = [threading.Thread(target=produce, args=(w,)) for w in range(4)]
        consumer = threading.Thread(target=consume)
        consumer.start()
        for t in producers:
            t.start()
        for t in producers:
            t.join(timeout=30)
        producers_done.set()
        consumer.join(timeout=30)

        contents = [item.content for item in drained]
        assert len(contents) == 8000
        assert set(contents) == {f"{w}-{i}" for w in range(4) for i in range(2000)}
        # Each producer's items come out in the order it pushed them
        for w in range(4):
            mine = [c for c in contents if c.startswith(f"{w}-")]
            assert mine == [f"{w}-{i}" for i in range(2000)]

    def test_concurrent_cap_overrides_keep_bound(self):
        acc = DigestAccumulator(max_queue=50)
        evicted: list[int] = []
        evicted_lock = threading.Lock()

        def produce(cap: int):
            for i in range(1000):
                n = acc.push(_item(content=f"{cap}-{i}"), max_queue=cap)
                with evicted_lock:
                    evicted.append(n)

        threads = [threading.Thread(target=produce, args=(cap,)) for cap in (3, 5, 3, 5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert acc.max_queue in (3, 5)
        assert len(acc) <= acc.max_queue
        assert sum(evicted) + len(acc) == 4000


# ===================================================================
# Rendering
# ===================================================================


class TestRender:
    def test_excerpt_normalises_and_truncates(self):
        assert excerpt("a\n\n b\t c") == "a b c"
        assert len(excerpt("x" * 500)) == 180
        assert excerpt(None) == ""

    def test_group_by_channel_keeps_first_appearance_order(self):
        items = [_item("beta", "a"), _item("alpha", "b"), _item("beta", "c")]
        grouped = group_by_channel(items)
        assert list(grouped) == ["beta", "alpha"]
        assert [i.author_label for i in grouped["beta"]] == ["a", "c"]

    def test_render_digest_layout(self):
        items = [
            _item("general", "alice", "wen mint?"),
            _item("trading", "bob", "how do I\nbridge?"),
            _item("general", "carol", "anyone know the floor?"),
        ]
        assert render_digest(items) == (
            "Digest (3):\n"
            "\n"
            "#general\n"
            "- alice: wen mint?\n"
            "- carol: anyone know the floor?\n"
            "\n"
            "#trading\n"
            "- bob: how do I bridge?\n"
            "\n"
            "Use /draft in the channel for full reply options.\n"
            "Or use /paste draft to generate from copied messages."
        )

    def test_render_realtime(self):
        text = render_realtime(_item("general", "alice", "wen mint?"))
        assert text == (
            "Reply opportunity in #general:\n"
            "alice: wen mint?\n"
            "\n"
            "Run /draft in that channel."
        )


# ===================================================================
# Flush scheduler
# ===================================================================


class TestFlushScheduler:
    def _scheduler(self, config: BotConfig, items: list[NotificationItem], notifier=None):
        acc = DigestAccumulator()
        for item in items:
            acc.push(item)
        notifier = notifier or MagicMock()
        return FlushScheduler(StaticConfigProvider(config), acc, notifier), acc, notifier

    def test_flush_drains_and_delivers(self):
        flusher, acc, notifier = self._scheduler(_digest_config(), _numbered(3))
        assert flusher.flush() == 3
        assert len(acc) == 0
        text = notifier.deliver.call_args[0][0]
        assert text.startswith("Digest (3):")

    def test_flush_respects_max_items(self):
        flusher, acc, notifier = self._scheduler(_digest_config(max_items=2), _numbered(5))
        assert flusher.flush() == 2
        assert len(acc) == 3

    def test_disabled_digest_is_noop(self):
        flusher, acc, notifier = self._scheduler(_digest_config(enabled=False), _numbered(2))
        assert flusher.flush() == 0
        assert len(acc) == 2
        notifier.deliver.assert_not_called()

    def test_empty_accumulator_is_noop(self):
        flusher, _, notifier = self._scheduler(_digest_config(), [])
        assert flusher.flush() == 0
        notifier.deliver.assert_not_called()

    def test_delivery_failure_drops_batch(self):
        notifier = MagicMock()
        notifier.deliver.side_effect = DeliveryFailure("timeout")
        flusher, acc, _ = self._scheduler(_digest_config(), _numbered(3), notifier)
        assert flusher.flush() == 0
        assert len(acc) == 0

    def test_config_failure_skips_tick(self):
        provider = MagicMock()
        provider.load.side_effect = ConfigUnavailable("bad yaml")
        acc = DigestAccumulator()
        acc.push(_item())
        flusher = FlushScheduler(provider, acc, MagicMock())
        assert flusher.flush() == 0
        assert len(acc) == 1

    def test_overlapping_tick_skipped(self):
        flusher, acc, notifier = self._scheduler(_digest_config(), _numbered(2))
        flusher._tick_lock.acquire()
        try:
            assert flusher.flush() == 0
        finally:
            flusher._tick_lock.release()
        assert len(acc) == 2

    def test_start_is_idempotent(self):
        backend = MagicMock()
        flusher, _, _ = self._scheduler(_digest_config(), [])
        flusher._scheduler = backend
        assert flusher.start(1) is True
        assert flusher.start(1) is False
        backend.add_job.assert_called_once()
        backend.start.assert_called_once()
        kwargs = backend.add_job.call_args[1]
        assert kwargs["id"] == FLUSH_JOB_ID
        assert kwargs["minutes"] == 1
        assert kwargs["max_instances"] == 1

    def test_start_twice_leaves_one_real_job(self):
        flusher, _, _ = self._scheduler(_digest_config(), [])
        try:
            flusher.start(60)
            flusher.start(60)
            assert len(flusher._scheduler.get_jobs()) == 1
        finally:
            flusher.shutdown()
        assert flusher.running is False

    def test_reschedule_only_when_running(self):
        backend = MagicMock()
        flusher, _, _ = self._scheduler(_digest_config(), [])
        flusher._scheduler = backend
        flusher.reschedule(10)
        backend.reschedule_job.assert_not_called()
        flusher.start(1)
        flusher.reschedule(10)
        backend.reschedule_job.assert_called_once_with(
            FLUSH_JOB_ID, trigger="interval", minutes=10,
        )

    def test_tick_applies_interval_edited_in_config(self):
        backend = MagicMock()
        config = _digest_config()
        flusher, _, _ = self._scheduler(config, [])
        flusher._scheduler = backend
        flusher.start(1)

        flusher.flush()
        backend.reschedule_job.assert_not_called()

        config.digest.interval_minutes = 15
        flusher.flush()
        flusher.flush()
        backend.reschedule_job.assert_called_once_with(
            FLUSH_JOB_ID, trigger="interval", minutes=15,
        )
