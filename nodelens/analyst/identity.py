"""Node identity resolution from alert labels and annotations.

Alert rules disagree on where they put the host: some set a ``node``
annotation, some carry ``node``/``node_name`` labels, node-exporter alerts
only have ``job`` and ``instance``.  The resolver walks an ordered list of
extractors and returns the first non-empty answer, falling back to
``"unknown"`` so the pipeline always has something to report on.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType

UNKNOWN_NODE = "unknown"

Labels = Mapping[str, str]
NodeNameExtractor = Callable[[Labels, Labels], str | None]


def merge_labels(alert_labels: Labels | None, common_labels: Labels | None) -> Mapping[str, str]:
    """Overlay group-common labels on per-alert labels.

    Common labels win on key collision.  The result is read-only.
    """
    merged: dict[str, str] = {}
    merged.update(alert_labels or {})
    merged.update(common_labels or {})
    return MappingProxyType(merged)


def _annotation(key: str) -> NodeNameExtractor:
    def extract(labels: Labels, annotations: Labels) -> str | None:
        return annotations.get(key) or None

    extract.__name__ = f"annotation_{key}"
    return extract


def _label(key: str) -> NodeNameExtractor:
    def extract(labels: Labels, annotations: Labels) -> str | None:
        return labels.get(key) or None

    extract.__name__ = f"label_{key}"
    return extract


def _node_job(labels: Labels, annotations: Labels) -> str | None:
    """The job name itself, when it names a node-level scrape job."""
    job = labels.get("job", "")
    return job if "node" in job else None


def _instance_host(labels: Labels, annotations: Labels) -> str | None:
    """The instance label without its ``:port`` suffix."""
    instance = labels.get("instance", "")
    return instance.split(":", 1)[0] or None


NODE_NAME_EXTRACTORS: tuple[NodeNameExtractor, ...] = (
    _annotation("node"),
    _annotation("node_name"),
    _label("node"),
    _label("node_name"),
    _node_job,
    _instance_host,
)


def resolve_node_name(
    labels: Labels | None,
    annotations: Labels | None,
    extractors: tuple[NodeNameExtractor, ...] = NODE_NAME_EXTRACTORS,
) -> str:
    """Return the first non-empty node name produced by *extractors*.

    *labels* should be the merged mapping from merge_labels(); *annotations*
    come from the individual alert only.  Never raises and never returns an
    empty string.
    """
    label_map = labels or {}
    annotation_map = annotations or {}
    for extract in extractors:
        name = extract(label_map, annotation_map)
        if name:
            return name
    return UNKNOWN_NODE
