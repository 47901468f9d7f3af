import pytest

from nodecollect.collector import NoDataError, Paths
from nodecollect.conntrack import ConntrackCollector


def _netfilter(tmp_path):
    directory = tmp_path / "sys" / "net" / "netfilter"
    directory.mkdir(parents=True)
    return directory


def test_update_reads_count_and_max(tmp_path):
    directory = _netfilter(tmp_path)
    (directory / "nf_conntrack_count").write_text("123\n")
    (directory / "nf_conntrack_max").write_text("65536\n")
    metrics = list(ConntrackCollector(Paths(proc_path=str(tmp_path))).update())
    assert [(m.name, m.value) for m in metrics] == [
        ("node_nf_conntrack_entries", 123.0),
        ("node_nf_conntrack_entries_limit", 65536.0),
    ]


def test_update_not_loaded(tmp_path):
    collector = ConntrackCollector(Paths(proc_path=str(tmp_path)))
    with pytest.raises(NoDataError):
        list(collector.update())


def test_update_missing_max_after_count(tmp_path):
    directory = _netfilter(tmp_path)
    (directory / "nf_conntrack_count").write_text("9\n")
    updates = ConntrackCollector(Paths(proc_path=str(tmp_path))).update()
    assert next(updates).value == 9.0
    with pytest.raises(NoDataError):
        next(updates)


def test_update_invalid_value(tmp_path):
    directory = _netfilter(tmp_path)
    (directory / "nf_conntrack_count").write_text("many\n")
    collector = ConntrackCollector(Paths(proc_path=str(tmp_path)))
    with pytest.raises(RuntimeError, match="failed to retrieve conntrack stats"):
        list(collector.update())