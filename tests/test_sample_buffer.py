"""
Unit tests for the rolling sample window — capacity, FIFO eviction,
mean, and concurrent pushes.
"""
import os
import sys
import threading

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from services.metrics_service.sample_buffer import SampleBuffer


class TestSampleBuffer:
    def test_default_capacity(self):
        assert SampleBuffer().capacity == 1000

    def test_mean_of_empty_buffer_is_zero(self):
        assert SampleBuffer(capacity=5).mean() == 0.0

    def test_mean(self):
        buf = SampleBuffer(capacity=5)
        for v in (10.0, 20.0, 30.0):
            buf.push(v)
        assert buf.mean() == pytest.approx(20.0)

    def test_eviction_keeps_last_capacity_in_order(self):
        buf = SampleBuffer(capacity=3)
        for v in range(1, 8):  # capacity + 4 pushes
            buf.push(float(v))
        assert len(buf) == 3
        assert buf.values() == [5.0, 6.0, 7.0]

    def test_mean_tracks_window_not_history(self):
        buf = SampleBuffer(capacity=2)
        buf.push(100.0)
        buf.push(1.0)
        buf.push(3.0)  # evicts 100
        assert buf.mean() == pytest.approx(2.0)

    def test_zero_duration_accepted(self):
        buf = SampleBuffer(capacity=2)
        buf.push(0)
        assert buf.values() == [0.0]

    def test_negative_rejected(self):
        buf = SampleBuffer(capacity=2)
        with pytest.raises(ValueError):
            buf.push(-1.0)
        assert len(buf) == 0

    def test_nan_rejected(self):
        with pytest.raises(ValueError):
            SampleBuffer(capacity=2).push(float("nan"))

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            SampleBuffer(capacity=0)

    def test_values_is_a_copy(self):
        buf = SampleBuffer(capacity=3)
        buf.push(1.0)
        vals = buf.values()
        vals.append(99.0)
        assert buf.values() == [1.0]


class TestSampleBufferConcurrency:
    def test_concurrent_pushes_respect_capacity(self):
        buf = SampleBuffer(capacity=100)
        errors = []

        def writer(n: int):
            try:
                for i in range(n):
                    buf.push(float(i))
                    buf.mean()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(500,)) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(buf) == 100
        assert all(0.0 <= v < 500 for v in buf.values())
