import pytest

from nodecollect.collector import DEFAULT_REGISTRY, Paths
from nodecollect.diskstats import (
    READ_BYTES_DESC,
    DiskstatsCollector,
    TypedFactorDesc,
    parse_disk_stats,
)
from nodecollect.metrics import ValueType

FIXTURE = """\
   8       0 sda 100 2 300 40 50 6 700 80 0 90 120
   8       4 sda4 25353629 1 2 3 4 5 6 7 8 9 10
 179       2 mmcblk0p2 1 2 3 4 5 6 7 8 9 10 68
   8      16 sdb 1 2 3 4 5 6 7 8 9 10 11 12 13 14 11130
   8      32 sdc 1 2 3 4 5 6 7 8 9 10 11 12 13 14 15 1555 1944
   7       0 loop0 1 2 3 4 5 6 7 8 9 10 11
"""


def _write(tmp_path, text):
    (tmp_path / "diskstats").write_text(text)
    return Paths(proc_path=str(tmp_path), sys_path=str(tmp_path))


def test_parse_disk_stats_source_cases(tmp_path):
    path = tmp_path / "diskstats"
    path.write_text(FIXTURE)
    with open(path) as handle:
        stats = parse_disk_stats(handle)
    assert stats["sda4"][0] == "25353629"
    assert stats["mmcblk0p2"][10] == "68"
    assert stats["sdb"][14] == "11130"
    assert stats["sdc"][15] == "1555"
    assert stats["sdc"][16] == "1944"


def test_parse_disk_stats_from_string():
    stats = parse_disk_stats("8 0 sda 1 2 3\n")
    assert stats == {"sda": ["1", "2", "3"]}


def test_parse_disk_stats_short_line():
    with pytest.raises(ValueError, match="invalid line"):
        parse_disk_stats("8 0 sda\n")


def test_typed_factor_desc_scales():
    desc = TypedFactorDesc(READ_BYTES_DESC, ValueType.COUNTER, 512)
    metric = desc.metric(2, "sda")
    assert metric.value == 1024.0
    assert metric.labels == {"device": "sda"}


def test_typed_factor_desc_zero_factor_keeps_value():
    desc = TypedFactorDesc(READ_BYTES_DESC, ValueType.COUNTER)
    assert desc.metric(7, "sda").value == 7.0


def test_update_ignores_devices_and_scales(tmp_path):
    collector = DiskstatsCollector(_write(tmp_path, FIXTURE))
    metrics = list(collector.update())
    devices = {m.labels["device"] for m in metrics}
    assert "loop0" not in devices
    assert "sda4" not in devices
    assert "mmcblk0p2" in devices
    by_name = {m.name: m.value for m in metrics if m.labels["device"] == "sda"}
    assert by_name["node_disk_reads_completed_total"] == 100.0
    assert by_name["node_disk_read_bytes_total"] == 300 * 512
    assert by_name["node_disk_read_time_seconds_total"] == pytest.approx(0.04)
    assert by_name["node_disk_io_now"] == 0.0


def test_update_limits_to_known_fields(tmp_path):
    line = "8 0 sda " + " ".join(str(n) for n in range(1, 21)) + "\n"
    collector = DiskstatsCollector(_write(tmp_path, line))
    metrics = list(collector.update())
    assert len(metrics) == 17
    assert len({m.name for m in metrics}) == 17


def test_update_invalid_value(tmp_path):
    collector = DiskstatsCollector(_write(tmp_path, "8 0 sda x\n"))
    with pytest.raises(ValueError, match="invalid value x"):
        list(collector.update())


def test_update_missing_file(tmp_path):
    collector = DiskstatsCollector(Paths(proc_path=str(tmp_path / "none")))
    with pytest.raises(RuntimeError, match="couldn't get diskstats"):
        list(collector.update())


def test_custom_ignore_pattern(tmp_path):
    collector = DiskstatsCollector(_write(tmp_path, FIXTURE), ignored_devices="^sd")
    devices = {m.labels["device"] for m in collector.update()}
    assert "loop0" in devices
    assert not any(d.startswith("sd") for d in devices)


def test_registered_enabled():
    assert DEFAULT_REGISTRY.is_enabled("diskstats") is True