"""
Supplemental group ranges.

Each provisioned volume is chgrp'd to a random gid taken from the ranges the
provisioner pod itself is allowed to run with. Those ranges can be imposed by
an OpenShift SCC, a PodSecurityPolicy, or an OpenShift namespace; when none of
them says anything the default range is used.
"""

import logging
import random
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from nfs_provisioner.cli.lib.exceptions import ClusterAPIError, GidRangeError

LOG = logging.getLogger(__name__)

# Annotation on the provisioner pod naming the PSP it validated against
VALIDATED_PSP_ANNOTATION = "kubernetes.io/psp"

# Annotation on the provisioner pod naming the SCC it validated against
VALIDATED_SCC_ANNOTATION = "openshift.io/scc"

# Namespace annotations holding the preallocated OpenShift ranges
SUPPLEMENTAL_GROUPS_ANNOTATION = "openshift.io/sa.scc.supplemental-groups"
UID_RANGE_ANNOTATION = "openshift.io/sa.scc.uid-range"

MUST_RUN_AS = "MustRunAs"


@dataclass(frozen=True)
class GidRange:
    """Inclusive range of group ids."""

    min: int
    max: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GidRange":
        return cls(min=int(data["min"]), max=int(data["max"]))


DEFAULT_RANGES = (GidRange(0, 65533),)


def get_pod_annotation(annotations_file: str, annotation: str) -> str:
    """
    Read an annotation of the provisioner pod from the downward API volume.

    Args:
        annotations_file: Downward API annotations file (lines of key="value")
        annotation: Annotation key

    Returns:
        The annotation value, or "" if the pod doesn't have it

    Raises:
        OSError: If the annotations file cannot be read
    """
    with open(annotations_file, "r", encoding="utf-8") as f:
        content = f.read()

    match = re.search(r"^" + re.escape(annotation) + r'="(.*?)"$', content, re.MULTILINE)
    if not match:
        return ""
    return match.group(1)


def parse_ranges(raw: Any) -> List[GidRange]:
    """Parse a list of {"min": .., "max": ..} objects, skipping bad entries."""
    ranges: List[GidRange] = []
    for item in raw or []:
        try:
            rng = GidRange.from_dict(item)
        except (KeyError, TypeError, ValueError):
            LOG.warning("Ignoring malformed id range %r", item)
            continue
        if rng.min > rng.max:
            LOG.warning("Ignoring id range with min > max: %r", item)
            continue
        ranges.append(rng)
    return ranges


def parse_blocks(value: str) -> List[GidRange]:
    """
    Parse OpenShift preallocated blocks.

    Blocks are comma separated and written either as "start/size" or as
    "start-end".

    Raises:
        ValueError: If a block is malformed
    """
    ranges: List[GidRange] = []
    for block in value.split(","):
        block = block.strip()
        if not block:
            continue
        if "/" in block:
            start, size = (int(part) for part in block.split("/", 1))
            if size < 1:
                raise ValueError(f"block {block!r} has no ids")
            ranges.append(GidRange(start, start + size - 1))
        elif "-" in block:
            start, end = (int(part) for part in block.split("-", 1))
            if start > end:
                raise ValueError(f"block {block!r} ends before it starts")
            ranges.append(GidRange(start, end))
        else:
            raise ValueError(f"block {block!r} is neither start/size nor start-end")
    return ranges


def scc_supplemental_groups(scc: Optional[Dict[str, Any]]) -> List[GidRange]:
    """Ranges of an SCC, or [] if it doesn't impose MustRunAs."""
    if not scc:
        return []
    groups = scc.get("supplementalGroups") or {}
    if groups.get("type") != MUST_RUN_AS:
        return []
    return parse_ranges(groups.get("ranges"))


def psp_supplemental_groups(psp: Optional[Dict[str, Any]]) -> List[GidRange]:
    """Ranges of a PSP, or [] if it doesn't impose MustRunAs."""
    if not psp:
        return []
    groups = (psp.get("spec") or {}).get("supplementalGroups") or {}
    if groups.get("rule") != MUST_RUN_AS:
        return []
    return parse_ranges(groups.get("ranges"))


def preallocated_supplemental_groups(namespace: Optional[Dict[str, Any]]) -> List[GidRange]:
    """
    Ranges preallocated to a namespace.

    Raises:
        ValueError: If the annotation is malformed
    """
    if not namespace:
        return []
    annotations = (namespace.get("metadata") or {}).get("annotations") or {}
    value = annotations.get(SUPPLEMENTAL_GROUPS_ANNOTATION) or annotations.get(UID_RANGE_ANNOTATION)
    if not value:
        return []
    return parse_blocks(value)


class GidRangeResolver:
    """Works out which supplemental group ranges this provisioner may use."""

    def __init__(self, client, annotations_file: str):
        self.client = client
        self.annotations_file = annotations_file

    def _annotation(self, annotation: str) -> str:
        try:
            return get_pod_annotation(self.annotations_file, annotation)
        except OSError as e:
            LOG.error("Error getting pod annotation %s: %s", annotation, e)
            return ""

    def _from_scc(self) -> List[GidRange]:
        scc_name = self._annotation(VALIDATED_SCC_ANNOTATION)
        if not scc_name:
            return []
        try:
            scc = self.client.get_security_context_constraints(scc_name)
        except ClusterAPIError as e:
            LOG.error("Error getting provisioner pod's scc %s: %s", scc_name, e)
            return []
        return scc_supplemental_groups(scc)

    def _from_psp(self) -> List[GidRange]:
        psp_name = self._annotation(VALIDATED_PSP_ANNOTATION)
        if not psp_name:
            return []
        try:
            psp = self.client.get_pod_security_policy(psp_name)
        except ClusterAPIError as e:
            LOG.error("Error getting provisioner pod's psp %s: %s", psp_name, e)
            return []
        return psp_supplemental_groups(psp)

    def _from_namespace(self, namespace: str) -> List[GidRange]:
        if not namespace:
            LOG.warning("Provisioner namespace is unknown, skipping preallocated supplemental groups")
            return []
        try:
            ns = self.client.get_namespace(namespace)
        except ClusterAPIError as e:
            LOG.error("Error getting namespace %s: %s", namespace, e)
            return []
        try:
            return preallocated_supplemental_groups(ns)
        except ValueError as e:
            LOG.error("Error getting preallocated supplemental groups of %s: %s", namespace, e)
            return []

    def resolve(self, namespace: str) -> List[GidRange]:
        """
        Resolve the ranges, first match wins: SCC, PSP, namespace, default.

        Lookup failures are logged and fall through to the next source.
        """
        for source, lookup in (
            ("scc", self._from_scc),
            ("psp", self._from_psp),
            ("namespace", lambda: self._from_namespace(namespace)),
        ):
            ranges = lookup()
            if ranges:
                LOG.info("Using supplemental group ranges from %s: %s", source, ranges)
                return ranges

        LOG.info("No supplemental group ranges imposed, using default %s", list(DEFAULT_RANGES))
        return list(DEFAULT_RANGES)


def pick_gid(ranges: List[GidRange], rng: Optional[random.Random] = None) -> int:
    """
    Pick a random range, then a random gid within it.

    Raises:
        GidRangeError: If there are no ranges
    """
    if not ranges:
        raise GidRangeError(details="provisioner has empty ranges")
    rng = rng or random.SystemRandom()
    chosen = rng.choice(ranges)
    return rng.randint(chosen.min, chosen.max)
