"""Tests for scrape orchestration against fake cgroup and containers trees."""

import pytest
from prometheus_client.parser import text_string_to_metric_families

from dockerprom.collector import ContainerMetricsCollector
from dockerprom.core.config import build_config
from dockerprom.core.errors import CgroupRootUnavailableError
from dockerprom.core.schemas import CgroupDriver, CgroupVersion, LabelPolicy
from dockerprom.metadata.cache import MetadataCache
from dockerprom.metadata.labels import LabelFilter
from dockerprom.monitoring.base import CgroupTopology
from dockerprom.monitoring.samplers import create_sampler

CONTAINER_A = "a1" * 32
CONTAINER_B = "b2" * 32
CONTAINER_X = "e5" * 32
CONTAINER_Y = "f6" * 32


def _collector(tree, containers_dir, policy=None, min_refresh_interval=0.0):
    return ContainerMetricsCollector(
        cgroup_root=tree.root,
        sampler=create_sampler(tree.root, CgroupTopology(tree.version, tree.driver)),
        cache=MetadataCache(containers_dir.path, min_refresh_interval),
        label_filter=LabelFilter(policy or LabelPolicy()),
    )


def _memory_labels(text):
    """container_id -> labels of the memory gauge lines."""
    for family in text_string_to_metric_families(text):
        if family.name == "container_memory_usage_bytes":
            return {s.labels["container_id"]: s.labels for s in family.samples}
    return {}


def _sample_names(text, container_id):
    return {
        sample.name
        for family in text_string_to_metric_families(text)
        for sample in family.samples
        if sample.labels.get("container_id") == container_id
    }


class TestLabelling:
    """Metadata and label filtering flow into the exposition."""

    def test_exclude_compose_version(self, make_cgroup_tree, containers_dir):
        tree = make_cgroup_tree()
        tree.add_container(CONTAINER_A)
        tree.add_container(CONTAINER_B)
        containers_dir.add(
            CONTAINER_A, "web", {"env": "prod", "com.docker.compose.version": "2.24.0"}, image=""
        )
        containers_dir.add(CONTAINER_B, "db", image="")
        policy = LabelPolicy.from_lists(exclude=["com.docker.compose.version"])

        text = _collector(tree, containers_dir, policy).collect()
        labels = _memory_labels(text)

        assert labels[CONTAINER_A] == {
            "container_id": CONTAINER_A,
            "container_name": "web",
            "env": "prod",
        }
        assert labels[CONTAINER_B] == {"container_id": CONTAINER_B, "container_name": "db"}

    def test_image_label(self, make_cgroup_tree, containers_dir):
        tree = make_cgroup_tree()
        tree.add_container(CONTAINER_A)
        containers_dir.add(CONTAINER_A, "web", image="nginx:1.27")

        labels = _memory_labels(_collector(tree, containers_dir).collect())

        assert labels[CONTAINER_A]["container_image"] == "nginx:1.27"

    def test_label_keys_are_sanitized(self, make_cgroup_tree, containers_dir):
        tree = make_cgroup_tree()
        tree.add_container(CONTAINER_A)
        containers_dir.add(CONTAINER_A, "web", {"com.example.tier": "front"})

        labels = _memory_labels(_collector(tree, containers_dir).collect())

        assert labels[CONTAINER_A]["com_example_tier"] == "front"

    def test_unknown_container_rendered_without_name(self, make_cgroup_tree, containers_dir):
        tree = make_cgroup_tree()
        tree.add_container(CONTAINER_Y)
        containers_dir.add_raw(CONTAINER_Y, "{not json")

        labels = _memory_labels(_collector(tree, containers_dir).collect())

        assert labels[CONTAINER_Y] == {"container_id": CONTAINER_Y, "container_name": ""}


class TestContainerSet:
    """The live cgroup listing decides which containers are rendered."""

    @pytest.mark.parametrize("version", list(CgroupVersion))
    @pytest.mark.parametrize("driver", list(CgroupDriver))
    def test_all_metrics_for_every_topology(
        self, make_cgroup_tree, containers_dir, version, driver
    ):
        tree = make_cgroup_tree(version, driver)
        tree.add_container(CONTAINER_A, memory=4096, user_nanos=3_000_000_000)
        containers_dir.add(CONTAINER_A, "web")

        text = _collector(tree, containers_dir).collect()

        assert _sample_names(text, CONTAINER_A) == {
            "container_memory_usage_bytes",
            "container_cpu_user_seconds_total",
            "container_cpu_system_seconds_total",
            "container_blkio_read_bytes_total",
            "container_blkio_write_bytes_total",
        }
        user_cpu = [
            sample.value
            for family in text_string_to_metric_families(text)
            for sample in family.samples
            if sample.name == "container_cpu_user_seconds_total"
        ]
        assert user_cpu == [3.0]

    def test_stale_metadata_not_rendered(self, make_cgroup_tree, containers_dir):
        tree = make_cgroup_tree()
        tree.add_container(CONTAINER_A)
        containers_dir.add(CONTAINER_A, "web")
        containers_dir.add(CONTAINER_B, "stopped")

        labels = _memory_labels(_collector(tree, containers_dir).collect())

        assert set(labels) == {CONTAINER_A}

    def test_container_vanishing_mid_scrape(self, make_cgroup_tree, containers_dir, monkeypatch):
        tree = make_cgroup_tree()
        tree.add_container(CONTAINER_A)
        containers_dir.add(CONTAINER_A, "web")
        collector = _collector(tree, containers_dir)
        # X was listed but its cgroup is gone by the time it is read
        monkeypatch.setattr(
            collector.sampler, "list_container_ids", lambda: [CONTAINER_A, CONTAINER_X]
        )

        text = collector.collect()

        assert set(_memory_labels(text)) == {CONTAINER_A}
        assert _sample_names(text, CONTAINER_X) == set()

    def test_missing_file_only_affects_its_container(self, make_cgroup_tree, containers_dir):
        tree = make_cgroup_tree(CgroupVersion.V1, CgroupDriver.CGROUPFS)
        tree.add_container(CONTAINER_A, skip=("memory",))
        tree.add_container(CONTAINER_B)
        containers_dir.add(CONTAINER_A, "web")
        containers_dir.add(CONTAINER_B, "db")

        text = _collector(tree, containers_dir).collect()

        assert set(_memory_labels(text)) == {CONTAINER_B}
        assert "container_cpu_user_seconds_total" in _sample_names(text, CONTAINER_A)
        assert len(_sample_names(text, CONTAINER_B)) == 5

    def test_undecodable_file_only_affects_its_container(
        self, make_cgroup_tree, containers_dir
    ):
        tree = make_cgroup_tree()
        tree.add_container(CONTAINER_A)
        tree.add_container(CONTAINER_B)
        (tree.container_dir(CONTAINER_A) / "io.stat").write_bytes(
            b"8:0 rbytes=\xff\xfe wbytes=1\n"
        )
        containers_dir.add(CONTAINER_A, "web")
        containers_dir.add(CONTAINER_B, "db")

        text = _collector(tree, containers_dir).collect()

        assert _sample_names(text, CONTAINER_A) == {
            "container_memory_usage_bytes",
            "container_cpu_user_seconds_total",
            "container_cpu_system_seconds_total",
        }
        assert len(_sample_names(text, CONTAINER_B)) == 5

    def test_read_error_skips_only_that_container(
        self, make_cgroup_tree, containers_dir, monkeypatch, caplog
    ):
        tree = make_cgroup_tree()
        tree.add_container(CONTAINER_A)
        tree.add_container(CONTAINER_B)
        containers_dir.add(CONTAINER_A, "web")
        containers_dir.add(CONTAINER_B, "db")
        collector = _collector(tree, containers_dir)
        real_read = collector.sampler.read

        def read(container_id):
            if container_id == CONTAINER_A:
                raise RuntimeError("controller exploded")
            return real_read(container_id)

        monkeypatch.setattr(collector.sampler, "read", read)

        text = collector.collect()

        assert set(_memory_labels(text)) == {CONTAINER_B}
        assert "controller exploded" in caplog.text

    def test_no_containers(self, make_cgroup_tree, containers_dir):
        tree = make_cgroup_tree()

        text = _collector(tree, containers_dir).collect()

        assert _memory_labels(text) == {}

    def test_root_unavailable_raises(self, tmp_path, containers_dir):
        root = tmp_path / "missing"
        collector = ContainerMetricsCollector(
            cgroup_root=root,
            sampler=create_sampler(root, CgroupTopology(CgroupVersion.V2, CgroupDriver.SYSTEMD)),
            cache=MetadataCache(containers_dir.path),
        )

        with pytest.raises(CgroupRootUnavailableError):
            collector.collect()


class TestMetadataRefresh:
    """Unknown containers trigger rate-limited rescans."""

    def test_new_container_picked_up(self, make_cgroup_tree, containers_dir):
        tree = make_cgroup_tree()
        collector = _collector(tree, containers_dir)
        collector.cache.refresh()
        tree.add_container(CONTAINER_A)
        containers_dir.add(CONTAINER_A, "late")

        labels = _memory_labels(collector.collect())

        assert labels[CONTAINER_A]["container_name"] == "late"

    def test_known_containers_do_not_rescan(self, make_cgroup_tree, containers_dir):
        tree = make_cgroup_tree()
        tree.add_container(CONTAINER_A)
        containers_dir.add(CONTAINER_A, "web")
        collector = _collector(tree, containers_dir)
        collector.cache.refresh()

        collector.collect()
        collector.collect()

        assert collector.cache.rescan_count == 1

    def test_unknown_container_rescans_at_most_once_per_interval(
        self, make_cgroup_tree, containers_dir
    ):
        tree = make_cgroup_tree()
        tree.add_container(CONTAINER_Y)
        collector = _collector(tree, containers_dir, min_refresh_interval=3600.0)

        collector.collect()
        collector.collect()

        assert collector.cache.rescan_count == 1

    def test_unknown_container_logs_warning(self, make_cgroup_tree, containers_dir, caplog):
        tree = make_cgroup_tree()
        tree.add_container(CONTAINER_Y)

        _collector(tree, containers_dir).collect()

        assert f"Couldn't find details for container ID {CONTAINER_Y}" in caplog.text


class TestFromConfig:
    """Tests for wiring a collector from configuration."""

    def test_detects_topology(self, make_cgroup_tree, containers_dir):
        tree = make_cgroup_tree(CgroupVersion.V1, CgroupDriver.SYSTEMD)
        tree.add_container(CONTAINER_A)
        containers_dir.add(CONTAINER_A, "web", {"env": "prod", "team": "x"})
        config = build_config(
            cgroupfs_dir=tree.root,
            containers_dir=containers_dir.path,
            include_labels=["env"],
        )

        collector = ContainerMetricsCollector.from_config(config)
        labels = _memory_labels(collector.collect())

        assert collector.sampler.topology == CgroupTopology(
            CgroupVersion.V1, CgroupDriver.SYSTEMD
        )
        assert labels[CONTAINER_A]["env"] == "prod"
        assert "team" not in labels[CONTAINER_A]
