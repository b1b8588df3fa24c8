"""Merge specialist replies into one attributed answer, and relay status logic."""

from __future__ import annotations

import re

from ..models.delegation import AgentOutcome, CheckStatus, RelayStatus


def calculate_relay_status(outcomes: list[AgentOutcome]) -> RelayStatus:
    """Overall status of a relayed query.

    - COMPLETE: every specialist answered
    - PARTIAL: at least one answered
    - FAILED: none answered (or nobody was asked)
    """
    completed = sum(1 for o in outcomes if o.status == CheckStatus.COMPLETED)
    if outcomes and completed == len(outcomes):
        return RelayStatus.COMPLETE
    if completed > 0:
        return RelayStatus.PARTIAL
    return RelayStatus.FAILED


def get_exit_code(status: RelayStatus) -> int:
    """Map relay status to exit code."""
    return {
        RelayStatus.COMPLETE: 0,
        RelayStatus.PARTIAL: 2,
        RelayStatus.FAILED: 1,
    }.get(status, 0)


def _normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip().lower()


def group_answers(outcomes: list[AgentOutcome]) -> list[tuple[list[AgentOutcome], str]]:
    """Group completed outcomes whose answers are the same text.

    Groups keep the order in which each distinct answer first appeared.
    """
    groups: list[tuple[list[AgentOutcome], str]] = []
    index: dict[str, int] = {}
    for outcome in outcomes:
        text = outcome.response
        if outcome.status != CheckStatus.COMPLETED or not text:
            continue
        key = _normalize(text)
        if key in index:
            groups[index[key]][0].append(outcome)
        else:
            index[key] = len(groups)
            groups.append(([outcome], text))
    return groups


def _unanswered_line(outcome: AgentOutcome) -> str:
    if outcome.status == CheckStatus.COMPLETED:
        return f"- **{outcome.agent_name}**: finished without any text"
    label = outcome.status.value
    detail = outcome.error or (outcome.result.message if outcome.result else "")
    if not detail:
        return f"- **{outcome.agent_name}** ({label})"
    return f"- **{outcome.agent_name}** ({label}): {detail}"


def merge_outcomes(query: str, outcomes: list[AgentOutcome]) -> str:
    """Build the attributed Markdown answer for one relayed query.

    Each distinct answer gets its own section headed by the agent(s) that gave
    it, so complementary or conflicting replies stay visibly separate.
    """
    status = calculate_relay_status(outcomes)
    groups = group_answers(outcomes)

    lines: list[str] = []
    lines.append("# Specialist Answers")
    lines.append("")
    lines.append(f"**Question:** {query}")
    lines.append(f"**Status:** {status.value} ({sum(len(g[0]) for g in groups)}/{len(outcomes)} answered)")
    lines.append("")

    for members, text in groups:
        names = ", ".join(m.agent_name for m in members)
        lines.append(f"## {names}")
        if len(members) > 1:
            lines.append("")
            lines.append(f"*Same answer from {len(members)} agents.*")
        lines.append("")
        lines.append(text)
        lines.append("")

    answered = {id(m) for members, _ in groups for m in members}
    unanswered = [o for o in outcomes if id(o) not in answered]
    if unanswered:
        lines.append("## Not Answered")
        lines.append("")
        for outcome in unanswered:
            lines.append(_unanswered_line(outcome))
        lines.append("")

    if not outcomes:
        lines.append("No specialists were consulted.")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"
