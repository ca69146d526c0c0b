"""Blocking operator prompts."""

from __future__ import annotations

import typer

from relflow.release.contracts import ConflictReport, OperatorDecision

_ANSWERS = {
    "c": OperatorDecision.CONTINUE,
    "continue": OperatorDecision.CONTINUE,
    "a": OperatorDecision.ABORT,
    "abort": OperatorDecision.ABORT,
}


def ask_conflict_decision(report: ConflictReport) -> OperatorDecision:
    """Wait until the operator resolved the merge (or gives up)."""
    if report.conflicted_paths:
        typer.echo(f"{len(report.conflicted_paths)} conflicted path(s) to resolve.")
    while True:
        raw: str = typer.prompt(
            "Resolve, stage and commit, then type 'continue' (or 'abort')",
            default="",
            show_default=False,
        )
        decision = _ANSWERS.get(raw.strip().lower())
        if decision is not None:
            return decision
        typer.echo("please answer 'continue' or 'abort'")


def ask_version(default: str) -> str:
    value: str = typer.prompt("Version to release", default=default)
    return value.strip()


def confirm(message: str) -> bool:
    return typer.confirm(message, default=False)
