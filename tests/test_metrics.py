import pytest

from nodecollect.metrics import Desc, Metric, TypedDesc, ValueType, build_fq_name


def test_build_fq_name_joins_all_parts():
    assert build_fq_name("node", "arp", "entries") == "node_arp_entries"


def test_build_fq_name_skips_empty_subsystem():
    assert build_fq_name("node", "", "nf_conntrack_entries") == "node_nf_conntrack_entries"


def test_build_fq_name_empty_name_gives_empty():
    assert build_fq_name("node", "scrape", "") == ""


def test_desc_rejects_invalid_name():
    with pytest.raises(ValueError):
        Desc("1bad-name", "help")


def test_desc_rejects_invalid_label():
    with pytest.raises(ValueError):
        Desc("node_x", "help", ("bad-label",))


def test_desc_converts_labels_to_tuple():
    desc = Desc("node_x", "help", ["device"])
    assert desc.variable_labels == ("device",)


def test_metric_label_count_mismatch():
    desc = Desc("node_x", "help", ("device",))
    with pytest.raises(ValueError):
        Metric(desc, ValueType.GAUGE, 1.0, ())


def test_metric_labels_mapping():
    desc = Desc("node_x", "help", ("master", "slave"))
    metric = Metric(desc, ValueType.COUNTER, 3, ("bond0", "eth0"))
    assert metric.labels == {"master": "bond0", "slave": "eth0"}
    assert metric.value == 3.0
    assert metric.name == "node_x"


def test_typed_desc_metric_carries_type_and_labels():
    typed = TypedDesc(Desc("node_y", "help", ("cpu", "mode")), ValueType.COUNTER)
    metric = typed.metric(7, "0", "user")
    assert metric.value_type is ValueType.COUNTER
    assert metric.label_values == ("0", "user")
    assert metric.desc is typed.desc


def test_typed_desc_metric_checks_labels():
    typed = TypedDesc(Desc("node_y", "help", ("cpu",)), ValueType.GAUGE)
    with pytest.raises(ValueError):
        typed.metric(1)