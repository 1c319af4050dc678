"""
Unit tests for supplemental group range resolution.
"""

import random
from collections import Counter
from unittest.mock import MagicMock

import pytest

from nfs_provisioner.cli.lib.exceptions import ClusterAPIError, GidRangeError
from nfs_provisioner.cli.lib.gid_ranges import (
    GidRange,
    GidRangeResolver,
    get_pod_annotation,
    parse_blocks,
    pick_gid,
    preallocated_supplemental_groups,
    psp_supplemental_groups,
    scc_supplemental_groups,
)


@pytest.fixture
def annotations_file(temp_dir):
    path = temp_dir / "annotations"
    path.write_text(
        'kubernetes.io/config.seen="2024-01-01T00:00:00Z"\n'
        'kubernetes.io/psp="restricted"\n'
        'openshift.io/scc="nfs-scc"\n',
        encoding="utf-8",
    )
    return path


def _scc(ranges, strategy="MustRunAs"):
    return {"supplementalGroups": {"type": strategy, "ranges": ranges}}


def _psp(ranges, rule="MustRunAs"):
    return {"spec": {"supplementalGroups": {"rule": rule, "ranges": ranges}}}


def _namespace(annotations):
    return {"metadata": {"name": "nfs", "annotations": annotations}}


class TestGetPodAnnotation:
    """Tests for reading downward API annotations."""

    @pytest.mark.unit
    def test_present(self, annotations_file):
        assert get_pod_annotation(str(annotations_file), "kubernetes.io/psp") == "restricted"
        assert get_pod_annotation(str(annotations_file), "openshift.io/scc") == "nfs-scc"

    @pytest.mark.unit
    def test_absent(self, annotations_file):
        assert get_pod_annotation(str(annotations_file), "example.com/missing") == ""

    @pytest.mark.unit
    def test_missing_file(self, temp_dir):
        with pytest.raises(OSError):
            get_pod_annotation(str(temp_dir / "missing"), "kubernetes.io/psp")


class TestPolicyRanges:
    """Tests for extracting ranges from policy objects."""

    @pytest.mark.unit
    def test_scc_must_run_as(self):
        assert scc_supplemental_groups(_scc([{"min": 5000, "max": 5999}])) == [GidRange(5000, 5999)]

    @pytest.mark.unit
    def test_scc_run_as_any(self):
        assert scc_supplemental_groups(_scc([{"min": 1, "max": 2}], strategy="RunAsAny")) == []

    @pytest.mark.unit
    def test_psp_must_run_as(self):
        assert psp_supplemental_groups(_psp([{"min": 1, "max": 2}, {"min": 10, "max": 20}])) == [
            GidRange(1, 2),
            GidRange(10, 20),
        ]

    @pytest.mark.unit
    def test_psp_skips_inverted_range(self):
        assert psp_supplemental_groups(_psp([{"min": 9, "max": 1}])) == []

    @pytest.mark.unit
    def test_namespace_block_size(self):
        ns = _namespace({"openshift.io/sa.scc.supplemental-groups": "1000000000/10000"})
        assert preallocated_supplemental_groups(ns) == [GidRange(1000000000, 1000009999)]

    @pytest.mark.unit
    def test_namespace_falls_back_to_uid_range(self):
        ns = _namespace({"openshift.io/sa.scc.uid-range": "2000-2999"})
        assert preallocated_supplemental_groups(ns) == [GidRange(2000, 2999)]

    @pytest.mark.unit
    def test_namespace_without_annotations(self):
        assert preallocated_supplemental_groups({"metadata": {"name": "nfs"}}) == []

    @pytest.mark.unit
    def test_parse_blocks_multiple(self):
        assert parse_blocks("100/10, 500-600") == [GidRange(100, 109), GidRange(500, 600)]

    @pytest.mark.unit
    def test_parse_blocks_malformed(self):
        with pytest.raises(ValueError):
            parse_blocks("lots")


class TestGidRangeResolver:
    """Tests for the resolution order."""

    @pytest.mark.unit
    def test_scc_wins(self, annotations_file):
        client = MagicMock()
        client.get_security_context_constraints.return_value = _scc([{"min": 7000, "max": 7999}])
        client.get_pod_security_policy.return_value = _psp([{"min": 1, "max": 2}])

        ranges = GidRangeResolver(client, str(annotations_file)).resolve("nfs")

        assert ranges == [GidRange(7000, 7999)]
        client.get_security_context_constraints.assert_called_once_with("nfs-scc")
        client.get_pod_security_policy.assert_not_called()

    @pytest.mark.unit
    def test_psp_when_scc_lookup_fails(self, annotations_file):
        client = MagicMock()
        client.get_security_context_constraints.side_effect = ClusterAPIError(details="404")
        client.get_pod_security_policy.return_value = _psp([{"min": 1, "max": 2}])

        ranges = GidRangeResolver(client, str(annotations_file)).resolve("nfs")

        assert ranges == [GidRange(1, 2)]
        client.get_pod_security_policy.assert_called_once_with("restricted")

    @pytest.mark.unit
    def test_namespace_when_policies_say_nothing(self, annotations_file):
        client = MagicMock()
        client.get_security_context_constraints.return_value = _scc([], strategy="RunAsAny")
        client.get_pod_security_policy.return_value = _psp([])
        client.get_namespace.return_value = _namespace({"openshift.io/sa.scc.supplemental-groups": "3000/100"})

        ranges = GidRangeResolver(client, str(annotations_file)).resolve("nfs")

        assert ranges == [GidRange(3000, 3099)]
        client.get_namespace.assert_called_once_with("nfs")

    @pytest.mark.unit
    def test_default_when_everything_fails(self, temp_dir):
        client = MagicMock()
        client.get_namespace.side_effect = ClusterAPIError(details="connection refused")

        ranges = GidRangeResolver(client, str(temp_dir / "missing")).resolve("nfs")

        assert ranges == [GidRange(0, 65533)]
        client.get_security_context_constraints.assert_not_called()
        client.get_pod_security_policy.assert_not_called()

    @pytest.mark.unit
    def test_default_on_malformed_namespace_annotation(self, temp_dir):
        client = MagicMock()
        client.get_namespace.return_value = _namespace({"openshift.io/sa.scc.supplemental-groups": "bogus"})

        ranges = GidRangeResolver(client, str(temp_dir / "missing")).resolve("nfs")

        assert ranges == [GidRange(0, 65533)]

    @pytest.mark.unit
    def test_unknown_namespace_skips_lookup(self, temp_dir):
        client = MagicMock()

        ranges = GidRangeResolver(client, str(temp_dir / "missing")).resolve("")

        assert ranges == [GidRange(0, 65533)]
        client.get_namespace.assert_not_called()


class TestPickGid:
    """Tests for gid selection."""

    @pytest.mark.unit
    def test_empty_ranges(self):
        with pytest.raises(GidRangeError):
            pick_gid([])

    @pytest.mark.unit
    def test_single_value_range(self):
        assert pick_gid([GidRange(4242, 4242)]) == 4242

    @pytest.mark.unit
    def test_always_within_a_range_and_every_range_used(self):
        ranges = [GidRange(0, 9), GidRange(1000, 1009), GidRange(50000, 50000)]
        rng = random.Random(1234)
        hits = Counter()

        for _ in range(3000):
            gid = pick_gid(ranges, rng)
            matching = [r for r in ranges if r.min <= gid <= r.max]
            assert len(matching) == 1
            hits[matching[0]] += 1

        assert set(hits) == set(ranges)
        for count in hits.values():
            assert 800 < count < 1200
