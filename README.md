# nodecollect

`nodecollect` gathers system metrics on Linux. It reads files under `/proc`
and `/sys` and returns plain `Metric` values. Each one carries a descriptor,
a value type, a number and its label values.

## Metrics

`nodecollect.metrics` holds the basic types:

- `ValueType`: `COUNTER`, `GAUGE` or `UNTYPED`.
- `Desc(fq_name, help, variable_labels)`: a metric name, its help text and
  its label names. An invalid or duplicated name raises `ValueError`.
- `Metric(desc, value_type, value, label_values)`: one sample. The number of
  label values must match the descriptor, or it raises `ValueError`. The
  properties `name` and `labels` give the full name and a label dictionary.
- `TypedDesc(desc, value_type)`: `metric(value, *labels)` builds a sample.
- `build_fq_name(namespace, subsystem, name)`: joins the non-empty parts
  with `_`, for example `node_disk_io_now`.

## Collectors

Every collector subclasses `nodecollect.collector.Collector`. It takes an
optional `Paths` object and an optional logger. Its `update()` method returns
the metrics it found. `Paths(proc_path="/proc", sys_path="/sys")` sets the
roots, so a collector can read a copy of those trees anywhere on disk.

| Module       | Collector             | Reads                                           | Registered as        |
|--------------|-----------------------|-------------------------------------------------|----------------------|
| `arp`        | `ArpCollector`        | `/proc/net/arp`                                 | `arp`                |
| `bonding`    | `BondingCollector`    | `/sys/class/net/.../bonding`                    | `bonding`            |
| `conntrack`  | `ConntrackCollector`  | `/proc/sys/net/netfilter/nf_conntrack_*`        | `conntrack`          |
| `diskstats`  | `DiskstatsCollector`  | `/proc/diskstats`                               | `diskstats`          |
| `filefd`     | `FileFDStatCollector` | `/proc/sys/fs/file-nr`                          | `filefd`             |
| `edac`       | `EdacCollector`       | `/sys/devices/system/edac/mc`                   | `edac`               |
| `drbd`       | `DrbdCollector`       | `/proc/drbd`                                    | `drbd` (off by default) |
| `btrfs`      | `BtrfsCollector`      | `/sys/fs/btrfs`                                 | `btrfs`              |
| `cpufreq`    | `CpuFreqCollector`    | `/sys/devices/system/cpu/cpu*/cpufreq`          | `cpufreq`            |
| `cpu`        | `CpuCollector`        | `/proc/stat`, `/proc/cpuinfo`, `/sys/devices/system/cpu` | `cpu`       |
| `filesystem` | `FilesystemCollector` | a stats source you supply                       | not registered       |
| `bcache`     | `BcacheCollector`     | a stats source you supply                       | not registered       |

The bonding, conntrack and drbd collectors raise `NoDataError` when the files
they read do not exist. Any other failure raises an ordinary exception.

Some collectors take options as constructor arguments:

- `DiskstatsCollector(ignored_devices=...)` sets a regular expression of
  device names to skip. The default skips `ram`, `loop`, `fd` and partitions.
- `CpuCollector(enable_info=False, flags_include="", bugs_include="")` adds
  `node_cpu_info` and, for `flags` and `bugs` values that match the given
  regular expressions, `node_cpu_flag_info` and `node_cpu_bug_info`. If you
  give either pattern, `enable_info` is switched on. Counters read from
  `/proc/stat` never go backwards between calls. If the idle time drops, the
  cached values for that CPU are reset.
- `FilesystemCollector(stats_source, ignored_mount_points=None, ignored_fs_types=None)`
  takes a callable that returns `FilesystemStats` records. It drops the
  ignored mount points and filesystem types. It reports each set of labels
  only once.
- `BcacheCollector(stats_source, priority_stats=False)` takes a callable. It
  calls it with `priority_stats` and expects `BcacheStats` records back.

## Running collectors together

Importing a collector module registers its collector in
`nodecollect.collector.DEFAULT_REGISTRY`. You can also build your own
`CollectorRegistry` and call `register(name, default_enabled, factory)`. A
factory is called as `factory(paths, logger)`. `set_enabled(name, enabled)`
switches a collector on or off. `is_enabled(name)` reports its state.
`disable_defaults()` turns off every collector that was not set explicitly.

```python
from nodecollect import arp, diskstats, filefd  # registers these collectors
from nodecollect.collector import DEFAULT_REGISTRY, NodeCollector, Paths

node = NodeCollector(DEFAULT_REGISTRY, Paths(), filters=["diskstats"])
for metric in node.collect():
    print(metric.name, metric.labels, metric.value)
```

`NodeCollector` builds every enabled collector. If you give filters, it keeps
only the collectors you name. An unknown name raises `ValueError`, and so does
the name of a disabled collector. `collect()` runs the collectors in parallel
threads and yields their metrics, grouped by collector name in sorted order.
For each collector it adds `node_scrape_collector_duration_seconds` and
`node_scrape_collector_success`. The success value is 1 or 0. A collector that
fails gets a success value of 0 and does not stop the others.
`execute(name, collector)` does the same for a single collector.

## Parsing helpers

- `arp.parse_arp_entries(lines)`: the number of ARP entries per device.
- `bonding.read_bonding_stats(root)`: for each master, a pair of the
  configured slaves and the slaves that are up.
- `diskstats.parse_disk_stats(stream)`: the raw fields of each device.
- `filefd.parse_file_fd_stats(filename)`: `allocated` and `maximum` as strings.
- `collector.read_uint_from_file(path)`: one unsigned 64-bit integer.
- `cpu.update_field_info(values, pattern, desc)`: an info metric for each
  value that matches the pattern.

## What it does not do

`nodecollect` is a library only. It has no command-line program and no HTTP
endpoint, and it does not render metrics in any text exposition format. That
is left to the caller. It does not read mount tables or bcache sysfs trees
itself. `FilesystemCollector` and `BcacheCollector` report only what their
stats source returns.

## Testing

Install with the `test` extra, then run `pytest`.