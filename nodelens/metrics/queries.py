"""PromQL templates for node and workload resource queries.

Node identifiers are matched as a partial substring of the ``instance``
label (``instance=~".*<node>.*"``), so ``app-vm-01`` matches both
``app-vm-01:9100`` and ``10.0.0.5`` relabelled as ``app-vm-01.internal``.
Identifiers are embedded verbatim; any identifier that could terminate the
string literal or the label matcher is rejected instead of escaped.
"""

from __future__ import annotations

from enum import StrEnum

from nodelens.errors import InvalidIdentifierError

_FORBIDDEN_CHARS = frozenset("\"'`{}\\\n")

DEFAULT_WORKLOAD_LABEL = "name"


class QueryKind(StrEnum):
    CPU_USAGE = "cpu_usage"
    MEMORY_USAGE = "memory_usage"
    DISK_USAGE = "disk_usage"
    WORKLOAD_CPU = "workload_cpu"
    WORKLOAD_MEMORY = "workload_memory"


NODE_QUERY_KINDS: tuple[QueryKind, ...] = (
    QueryKind.CPU_USAGE,
    QueryKind.MEMORY_USAGE,
    QueryKind.DISK_USAGE,
)

_TEMPLATES: dict[QueryKind, str] = {
    QueryKind.CPU_USAGE: ('100 - (avg(rate(node_cpu_seconds_total{{mode="idle",{node}}}[5m])) * 100)'),
    QueryKind.MEMORY_USAGE: (
        "100 - ((node_memory_MemAvailable_bytes{{{node}}}"
        " / node_memory_MemTotal_bytes{{{node}}}) * 100)"
    ),
    QueryKind.DISK_USAGE: (
        '100 - ((node_filesystem_avail_bytes{{{node},fstype!="tmpfs"}}'
        ' / node_filesystem_size_bytes{{{node},fstype!="tmpfs"}}) * 100)'
    ),
    QueryKind.WORKLOAD_CPU: (
        'sum by ({label}) (rate(container_cpu_usage_seconds_total{{{node},{label}!=""}}[5m])) * 100'
    ),
    QueryKind.WORKLOAD_MEMORY: ('sum(container_memory_working_set_bytes{{{node},{label}="{workload}"}}) / 1024 / 1024'),
}


def validate_identifier(identifier: str) -> str:
    """Return *identifier* unchanged, or raise InvalidIdentifierError."""
    if not identifier:
        raise InvalidIdentifierError(identifier, "must not be empty")
    bad = sorted(_FORBIDDEN_CHARS.intersection(identifier))
    if bad:
        raise InvalidIdentifierError(identifier, f"contains forbidden characters {bad}")
    return identifier


def _instance_matcher(node_name: str) -> str:
    return f'instance=~".*{node_name}.*"'


def render(
    kind: QueryKind | str,
    node_name: str,
    workload_name: str | None = None,
    workload_label: str = DEFAULT_WORKLOAD_LABEL,
) -> str:
    """Render the PromQL expression for *kind* scoped to *node_name*.

    ``workload_memory`` additionally requires *workload_name*.  Raises
    InvalidIdentifierError for unsafe identifiers and ValueError for an
    unknown kind or a missing workload name.
    """
    query_kind = QueryKind(kind)
    validate_identifier(node_name)
    validate_identifier(workload_label)

    if query_kind is QueryKind.WORKLOAD_MEMORY:
        if workload_name is None:
            raise ValueError("workload_memory queries require a workload name")
        validate_identifier(workload_name)

    return _TEMPLATES[query_kind].format(
        node=_instance_matcher(node_name),
        label=workload_label,
        workload=workload_name or "",
    )
