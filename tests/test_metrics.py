"""Tests for sysgauge.metrics (psutil mocked)."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock, patch

import psutil
import pytest

from sysgauge.errors import MetricsUnavailable
from sysgauge.loop import SampleSource, build_snapshot
from sysgauge.metrics import (
    InterfaceCounters,
    MetricsProvider,
    RawSample,
    interface_counters,
    read_cpu,
    read_memory,
    read_pernic,
)
from sysgauge.rates import RateTracker


def _vm(used: int | None, total: int | None) -> MagicMock:
    vm = MagicMock()
    vm.used = used
    vm.total = total
    return vm


def _nic(recv: int | None, sent: int | None) -> MagicMock:
    io = MagicMock()
    io.bytes_recv = recv
    io.bytes_sent = sent
    return io


# ── Readers ────────────────────────────────────────────────────────────────


class TestReadCpu:
    @patch("sysgauge.metrics.psutil.cpu_percent", return_value=37.5)
    def test_returns_float(self, mock_cpu: MagicMock) -> None:
        assert read_cpu() == pytest.approx(37.5)
        mock_cpu.assert_called_once_with(interval=None)

    @patch("sysgauge.metrics.psutil.cpu_percent", side_effect=OSError("no /proc/stat"))
    def test_os_error(self, mock_cpu: MagicMock) -> None:
        with pytest.raises(MetricsUnavailable) as exc:
            read_cpu()
        assert exc.value.metric == "cpu"

    @patch("sysgauge.metrics.psutil.cpu_percent", return_value="busy")
    def test_non_numeric(self, mock_cpu: MagicMock) -> None:
        with pytest.raises(MetricsUnavailable, match="not a number"):
            read_cpu()


class TestReadMemory:
    @patch("sysgauge.metrics.psutil.virtual_memory")
    def test_used_and_total(self, mock_vm: MagicMock) -> None:
        mock_vm.return_value = _vm(8 * 1024**3, 16 * 1024**3)
        assert read_memory() == (8 * 1024**3, 16 * 1024**3)

    @patch("sysgauge.metrics.psutil.virtual_memory")
    def test_missing_field(self, mock_vm: MagicMock) -> None:
        mock_vm.return_value = _vm(None, 16)
        with pytest.raises(MetricsUnavailable, match="used missing"):
            read_memory()

    @patch("sysgauge.metrics.psutil.virtual_memory", side_effect=psutil.AccessDenied())
    def test_psutil_error(self, mock_vm: MagicMock) -> None:
        with pytest.raises(MetricsUnavailable) as exc:
            read_memory()
        assert exc.value.metric == "memory"


class TestReadPernic:
    @patch("sysgauge.metrics.psutil.net_io_counters")
    def test_returns_raw_counters(self, mock_net: MagicMock) -> None:
        eth0 = _nic(1000, 200)
        mock_net.return_value = {"eth0": eth0}
        assert read_pernic() == {"eth0": eth0}
        mock_net.assert_called_once_with(pernic=True)

    @patch("sysgauge.metrics.psutil.net_io_counters", return_value={})
    def test_no_interfaces_is_not_an_error(self, mock_net: MagicMock) -> None:
        assert read_pernic() == {}

    @patch("sysgauge.metrics.psutil.net_io_counters", return_value=None)
    def test_none_result(self, mock_net: MagicMock) -> None:
        with pytest.raises(MetricsUnavailable, match="network"):
            read_pernic()


class TestInterfaceCounters:
    def test_valid(self) -> None:
        assert interface_counters("eth0", _nic(1000, 200)) == InterfaceCounters(1000, 200)

    def test_negative_counter(self) -> None:
        with pytest.raises(MetricsUnavailable, match="negative") as exc:
            interface_counters("eth0", _nic(-1, 0))
        assert exc.value.metric == "interface eth0"

    def test_missing_counter(self) -> None:
        with pytest.raises(MetricsUnavailable, match="bytes_recv missing"):
            interface_counters("tun0", _nic(None, 0))

    @pytest.mark.parametrize("bad", ["n/a", object(), [1, 2]])
    def test_non_numeric_counter(self, bad: object) -> None:
        with pytest.raises(MetricsUnavailable, match="not a number"):
            interface_counters("eth0", _nic(10, bad))  # type: ignore[arg-type]


# ── MetricsProvider ────────────────────────────────────────────────────────


@patch("sysgauge.metrics.psutil.net_io_counters")
@patch("sysgauge.metrics.psutil.virtual_memory")
@patch("sysgauge.metrics.psutil.cpu_percent")
class TestMetricsProvider:
    def test_sample(
        self, mock_cpu: MagicMock, mock_vm: MagicMock, mock_net: MagicMock
    ) -> None:
        mock_cpu.side_effect = [0.0, 42.0]
        mock_vm.return_value = _vm(4096, 8192)
        mock_net.return_value = {"eth0": _nic(10, 20)}

        provider = MetricsProvider()
        data = provider.sample()

        assert data == RawSample(
            cpu_percent=42.0,
            memory_used=4096,
            memory_total=8192,
            interfaces={"eth0": InterfaceCounters(10, 20)},
        )
        assert provider.unavailable == frozenset()

    def test_is_a_sample_source(
        self, mock_cpu: MagicMock, mock_vm: MagicMock, mock_net: MagicMock
    ) -> None:
        assert isinstance(MetricsProvider(), SampleSource)

    def test_primes_cpu_on_construction(
        self, mock_cpu: MagicMock, mock_vm: MagicMock, mock_net: MagicMock
    ) -> None:
        MetricsProvider()
        mock_cpu.assert_called_once_with(interval=None)

    def test_failed_metric_becomes_zero(
        self, mock_cpu: MagicMock, mock_vm: MagicMock, mock_net: MagicMock
    ) -> None:
        mock_cpu.return_value = 12.0
        mock_vm.side_effect = OSError("meminfo unreadable")
        mock_net.return_value = None

        data = MetricsProvider().sample()

        assert data.cpu_percent == pytest.approx(12.0)
        assert data.memory_used == 0
        assert data.memory_total == 0
        assert data.interfaces == {}

    def test_outage_logged_once(
        self,
        mock_cpu: MagicMock,
        mock_vm: MagicMock,
        mock_net: MagicMock,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        caplog.set_level(logging.INFO, logger="sysgauge")
        mock_cpu.return_value = 1.0
        mock_vm.side_effect = OSError("meminfo unreadable")
        mock_net.return_value = {}

        provider = MetricsProvider()
        for _ in range(3):
            provider.sample()

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "memory unavailable" in warnings[0].getMessage()
        assert provider.unavailable == frozenset({"memory"})

    def test_recovery_logged(
        self,
        mock_cpu: MagicMock,
        mock_vm: MagicMock,
        mock_net: MagicMock,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        caplog.set_level(logging.INFO, logger="sysgauge")
        mock_cpu.return_value = 1.0
        mock_vm.side_effect = [OSError("busy"), _vm(1, 2)]
        mock_net.return_value = {}

        provider = MetricsProvider()
        provider.sample()
        data = provider.sample()

        assert (data.memory_used, data.memory_total) == (1, 2)
        assert provider.unavailable == frozenset()
        assert any("recovered" in r.getMessage() for r in caplog.records)

    def test_bad_interface_left_out_of_tick(
        self,
        mock_cpu: MagicMock,
        mock_vm: MagicMock,
        mock_net: MagicMock,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        caplog.set_level(logging.INFO, logger="sysgauge")
        mock_cpu.return_value = 1.0
        mock_vm.return_value = _vm(1, 2)
        mock_net.return_value = {"eth0": _nic(1000, 100), "tun0": _nic(None, 7)}

        provider = MetricsProvider()
        provider.sample()
        data = provider.sample()

        assert data.interfaces == {"eth0": InterfaceCounters(1000, 100)}
        assert provider.unavailable == frozenset({"interface tun0"})
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "interface tun0 unavailable" in warnings[0].getMessage()

    def test_bad_interface_keeps_healthy_deltas(
        self, mock_cpu: MagicMock, mock_vm: MagicMock, mock_net: MagicMock
    ) -> None:
        mock_cpu.return_value = 1.0
        mock_vm.return_value = _vm(1, 2)
        mock_net.side_effect = [
            {"eth0": _nic(0, 0), "tun0": _nic(500, 500)},
            {"eth0": _nic(1000, 10), "tun0": _nic(None, 500)},
            {"eth0": _nic(2000, 20), "tun0": _nic(500, 500)},
        ]

        provider = MetricsProvider()
        tracker = RateTracker()
        snapshots = [build_snapshot(provider.sample(), tracker) for _ in range(3)]

        assert [s.download_bytes for s in snapshots] == [0, 1000, 1000]
        assert [s.upload_bytes for s in snapshots] == [0, 10, 10]
        assert provider.unavailable == frozenset()
