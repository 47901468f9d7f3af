import pytest

from nodecollect.arp import ArpCollector, parse_arp_entries
from nodecollect.collector import Paths
from nodecollect.metrics import ValueType

ARP_TABLE = (
    "IP address       HW type     Flags       HW address            Mask     Device\n"
    "192.0.2.1        0x1         0x2         00:00:5e:00:53:01     *        eth0\n"
    "192.0.2.2        0x1         0x2         00:00:5e:00:53:02     *        eth0\n"
    "198.51.100.7     0x1         0x2         00:00:5e:00:53:03     *        eth1\n"
)


def test_parse_arp_entries_counts_devices():
    assert parse_arp_entries(ARP_TABLE) == {"eth0": 2, "eth1": 1}


def test_parse_arp_entries_header_only():
    header = ARP_TABLE.splitlines()[0]
    assert parse_arp_entries([header]) == {}


def test_parse_arp_entries_short_line():
    with pytest.raises(ValueError, match="unexpected ARP table format"):
        parse_arp_entries(["192.0.2.1 0x1 0x2"])


def test_arp_collector_update(tmp_path):
    (tmp_path / "net").mkdir()
    (tmp_path / "net" / "arp").write_text(ARP_TABLE)
    collector = ArpCollector(Paths(proc_path=str(tmp_path)))
    metrics = {m.labels["device"]: m for m in collector.update()}
    assert metrics["eth0"].value == 2.0
    assert metrics["eth1"].value == 1.0
    assert metrics["eth0"].value_type is ValueType.GAUGE
    assert metrics["eth0"].name == "node_arp_entries"


def test_arp_collector_missing_file(tmp_path):
    collector = ArpCollector(Paths(proc_path=str(tmp_path)))
    with pytest.raises(RuntimeError, match="could not get ARP entries"):
        list(collector.update())