"""Analysis context assembly for the LLM prompt.

build_context() is a pure function of its inputs: it reads no clock and no
global state, so identical inputs always render byte-identical text.  Size is
bounded by capping the history at 6 entries, the workload listing at
MAX_WORKLOADS entries and free-text alert fields at _TEXT_TRUNCATE_LEN
characters.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from nodelens.models.analysis import MAX_HISTORY_ENTRIES, AlertContext
from nodelens.models.metrics import NodeSnapshot, WorkloadSnapshot

MAX_WORKLOADS: int = 20
_TEXT_TRUNCATE_LEN: int = 500

_REQUEST_WITH_WORKLOADS = (
    "1. Judge whether the current node state is outside the normal range.\n"
    "2. Compare with the historical trend and point out any sudden change.\n"
    "3. Identify the workload consuming the most resources and judge whether it is the root cause.\n"
    "4. Project the risk for the next hour.\n"
    "5. Recommend concrete actions.\n"
)

_REQUEST_WITHOUT_WORKLOADS = (
    "1. Judge whether the current node state is outside the normal range.\n"
    "2. Compare with the historical trend and point out any sudden change.\n"
    "3. Estimate the most likely root cause.\n"
    "4. Project the risk for the next hour.\n"
    "5. Recommend concrete actions.\n"
)

_RESPONSE_FORMAT = (
    "Answer in plain text only: no Markdown, no tables, no code blocks. "
    "Keep the whole answer under 15 lines, using exactly these five sections:\n"
    "[Current State] one-line judgment of the current state\n"
    "[Trend] comparison with the past hours\n"
    "[Workloads] workload analysis (write 'no workload data' if none was provided)\n"
    "[Risk] what is likely to happen within the next hour\n"
    "[Action] the recommended action\n"
)


def _truncate(value: str, max_len: int = _TEXT_TRUNCATE_LEN) -> str:
    if len(value) <= max_len:
        return value
    return value[:max_len] + "...[TRUNCATED]"


def _select_workloads(workloads: Mapping[str, WorkloadSnapshot]) -> list[WorkloadSnapshot]:
    """Keep the MAX_WORKLOADS heaviest CPU consumers, listed by name."""
    entries = list(workloads.values())
    if len(entries) > MAX_WORKLOADS:
        entries = sorted(entries, key=lambda w: (-w.cpu_usage_percent, w.name))[:MAX_WORKLOADS]
    return sorted(entries, key=lambda w: w.name)


def format_alert_summary(alert: AlertContext) -> str:
    lines = [
        f"Alert: {alert.alert_name}",
        f"Severity: {alert.severity}",
    ]
    if alert.summary:
        lines.append(f"Summary: {_truncate(alert.summary)}")
    if alert.description:
        lines.append(f"Description: {_truncate(alert.description)}")
    return "\n".join(lines)


def build_context(
    current: NodeSnapshot,
    history: Sequence[NodeSnapshot],
    workloads: Mapping[str, WorkloadSnapshot],
    alert: AlertContext,
) -> str:
    """Render the analysis prompt for one alert.

    *history* is newest-first; entry ``i`` is labelled ``i + 1`` hours ago.
    The workload block and the workload-specific analysis request appear only
    when *workloads* is non-empty.
    """
    sections: list[str] = []

    sections.append("### Node Monitoring Anomaly Detected ###")
    sections.append("[Alert]\n" + format_alert_summary(alert))

    sections.append(
        "[Current State]\n"
        f"- Node: {current.node_name}\n"
        f"- CPU usage: {current.cpu_usage_percent:.2f}%\n"
        f"- Memory usage: {current.memory_usage_percent:.2f}%\n"
        f"- Disk usage: {current.disk_usage_percent:.2f}%"
    )

    selected = _select_workloads(workloads)
    if selected:
        header = f"[Workloads on this node] ({len(selected)} of {len(workloads)} shown)"
        workload_lines = [
            f"- {w.name}: CPU {w.cpu_usage_percent:.2f}%, Memory {w.memory_usage_mb:.2f} MB" for w in selected
        ]
        sections.append(header + "\n" + "\n".join(workload_lines))

    shown = history[:MAX_HISTORY_ENTRIES]
    trend_lines = [
        f"{offset + 1}h ago - CPU: {h.cpu_usage_percent:.2f}%, "
        f"Memory: {h.memory_usage_percent:.2f}%, Disk: {h.disk_usage_percent:.2f}%"
        for offset, h in enumerate(shown)
    ]
    sections.append(f"[Historical Trend] (last {len(shown)} hours)\n" + "\n".join(trend_lines))

    request = _REQUEST_WITH_WORKLOADS if selected else _REQUEST_WITHOUT_WORKLOADS
    sections.append("[Analysis Request]\n" + request.rstrip("\n"))
    sections.append("[Response Format]\n" + _RESPONSE_FORMAT.rstrip("\n"))

    return "\n\n".join(sections) + "\n"
