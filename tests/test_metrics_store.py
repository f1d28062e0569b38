"""Tests for the metrics ring buffer."""

import json
import threading
from datetime import datetime, timedelta

import pytest

from apctray.metrics_store import MetricSample, MetricsStore

T0 = datetime(2024, 5, 1, 10, 0, 0)


class TestMetricsBuffer:
    """Bounded buffer behaviour."""

    def test_oldest_sample_is_evicted(self, tmp_path):
        store = MetricsStore(tmp_path / "metrics.json", max_samples=3)
        for i in range(5):
            store.append(MetricSample(time=T0 + timedelta(minutes=i), charge=float(i)))

        assert [s.charge for s in store.snapshot()] == [2.0, 3.0, 4.0]
        assert len(store) == 3

    def test_record_from_status(self, tmp_path, status_factory):
        store = MetricsStore(tmp_path / "metrics.json")
        sample = store.record(status_factory(LINEFREQ="59,9 Hz"), T0)

        assert sample == MetricSample(
            time=T0, charge=100.0, load=50.0, line_v=121.0, freq=59.9, time_left=45.0
        )

    def test_missing_readings_are_none(self, tmp_path):
        store = MetricsStore(tmp_path / "metrics.json")
        sample = store.record({"STATUS": "ONLINE"}, T0)
        assert sample.charge is None
        assert sample.line_v is None

    def test_concurrent_appends_and_snapshots(self, tmp_path):
        store = MetricsStore(tmp_path / "metrics.json", max_samples=100)

        def writer():
            for i in range(1000):
                store.append(MetricSample(time=T0, charge=float(i)))

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for thread in threads:
            thread.start()
        for _ in range(100):
            assert len(store.snapshot()) <= 100
        for thread in threads:
            thread.join()
        assert len(store) == 100


class TestMetricsPersistence:
    """JSON file format and failure handling."""

    def test_save_and_load(self, tmp_path):
        path = tmp_path / "metrics.json"
        store = MetricsStore(path)
        store.append(MetricSample(time=T0, charge=99.0, load=12.0, line_v=120.5, freq=60.0, time_left=42.0))
        store.append(MetricSample(time=T0 + timedelta(minutes=1)))
        assert store.save() is True

        raw = json.loads(path.read_text())
        assert raw[0] == {
            "time": "2024-05-01T10:00:00",
            "charge": 99.0,
            "load": 12.0,
            "lineV": 120.5,
            "freq": 60.0,
            "timeLeft": 42.0,
        }

        reloaded = MetricsStore(path)
        assert reloaded.load() == 2
        assert reloaded.snapshot() == store.snapshot()

    def test_load_truncates_to_capacity(self, tmp_path):
        path = tmp_path / "metrics.json"
        big = MetricsStore(path, max_samples=10)
        for i in range(10):
            big.append(MetricSample(time=T0 + timedelta(minutes=i)))
        big.save()

        small = MetricsStore(path, max_samples=4)
        assert small.load() == 4
        assert small.snapshot()[0].time == T0 + timedelta(minutes=6)

    def test_corrupt_file_loads_nothing(self, tmp_path):
        path = tmp_path / "metrics.json"
        path.write_text("{not json")
        store = MetricsStore(path)
        assert store.load() == 0
        assert store.snapshot() == []

    def test_missing_file_loads_nothing(self, tmp_path):
        assert MetricsStore(tmp_path / "absent.json").load() == 0

    def test_save_failure_is_reported_not_raised(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        store = MetricsStore(blocker / "metrics.json")
        store.append(MetricSample(time=T0))
        assert store.save() is False

    @pytest.mark.asyncio
    async def test_save_async(self, tmp_path):
        path = tmp_path / "sub" / "metrics.json"
        store = MetricsStore(path)
        store.append(MetricSample(time=T0, charge=1.0))
        assert await store.save_async() is True
        assert path.exists()
