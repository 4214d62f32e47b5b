"""
Tests for the Inter-Stage Channel
=================================
"""

import threading
import time

import pytest

from gesture_pipeline.core.channel import Channel


class TestChannel:
    """Test suite for Channel."""

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            Channel(capacity=0)

    def test_try_send_drops_new(self):
        """A full channel keeps the queued item and rejects the new one."""
        channel = Channel(capacity=1)
        assert channel.try_send("a")
        assert not channel.try_send("b")
        assert channel.dropped == 1
        assert channel.recv() == "a"

    def test_send_overwrite_evicts_oldest(self):
        channel = Channel(capacity=1)
        for item in ("a", "b", "c"):
            assert channel.send_overwrite(item)
        assert len(channel) == 1
        assert channel.overwritten == 2
        assert channel.recv() == "c"

    def test_recv_latest(self):
        """Queued items older than the newest are counted stale."""
        channel = Channel(capacity=3)
        for item in (1, 2, 3):
            channel.try_send(item)
        assert channel.recv_latest() == 3
        assert channel.stale == 2
        assert len(channel) == 0

    def test_try_recv_empty(self):
        assert Channel().try_recv() is None

    def test_close_wakes_receiver(self):
        channel = Channel()
        received = []

        def receiver():
            received.append(channel.recv())

        thread = threading.Thread(target=receiver, daemon=True)
        thread.start()
        time.sleep(0.05)
        channel.close()
        thread.join(timeout=2.0)

        assert not thread.is_alive()
        assert received == [None]

    def test_closed_channel(self):
        """Sends fail after close; queued items can still be drained."""
        channel = Channel(capacity=2)
        channel.try_send("a")
        channel.close()

        assert channel.closed
        assert not channel.try_send("b")
        assert not channel.send_overwrite("c")
        assert channel.recv() == "a"
        assert channel.recv() is None
        assert channel.recv_latest() is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
