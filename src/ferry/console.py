"""Human-readable rendering for the ferry CLI.

Every ``render_*`` function is pure: it returns text and never writes.
ConsoleRolloutReporter is the only piece that prints, always to stderr so
JSON on stdout stays machine readable.

Example:
    >>> render_rollout_progress(RefreshState.from_raw("InProgress"), "backend-prod", 75, 3)
    '⠸  🚧  Refreshing backend-prod - Status: In progress          00:01:15'
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from ferry.schemas.rollout import RefreshState, RefreshStatus, SessionState

if TYPE_CHECKING:
    from ferry.schemas.artifacts import ArtifactRef
    from ferry.schemas.promotion import (
        AliasStatus,
        PromotionResult,
        PushResult,
        RollbackResult,
        SetStatus,
    )
    from ferry.schemas.rollout import EscalationTarget, RolloutSession

SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")

WAITING_GLYPH = "🕐"
UNKNOWN_GLYPH = "❔"

STATUS_GLYPHS: dict[RefreshStatus, tuple[str, str]] = {
    RefreshStatus.PENDING: ("⏳", "Pending"),
    RefreshStatus.IN_PROGRESS: ("🚧", "In progress"),
    RefreshStatus.CANCELLING: ("⚠️", "Cancelling"),
    RefreshStatus.SUCCESSFUL: ("✅", "Completed successfully"),
    RefreshStatus.FAILED: ("❌", "Failed"),
    RefreshStatus.CANCELLED: ("⚠️", "Cancelled"),
}


def format_duration(seconds: float) -> str:
    """Format seconds as HH:MM:SS.

    Example:
        >>> format_duration(3725)
        '01:02:05'
    """
    total = max(int(seconds), 0)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02}:{minutes:02}:{secs:02}"


def status_glyph(state: RefreshState) -> tuple[str, str]:
    """Glyph and message for a refresh state.

    No refresh yet renders as "Waiting..."; statuses ferry does not know
    render with their raw AWS text.
    """
    if state.raw is None:
        return WAITING_GLYPH, "Waiting..."
    if state.status is RefreshStatus.UNKNOWN:
        return UNKNOWN_GLYPH, state.raw
    glyph, message = STATUS_GLYPHS[state.status]
    if state.raw != state.status.value:
        message = state.raw
    return glyph, message


def spinner_frame(frame: int) -> str:
    return SPINNER_FRAMES[frame % len(SPINNER_FRAMES)]


def render_rollout_progress(state: RefreshState, group: str, elapsed: float, frame: int) -> str:
    glyph, message = status_glyph(state)
    return (
        f"{spinner_frame(frame)}  {glyph}  Refreshing {group} - "
        f"Status: {message:<20} {format_duration(elapsed)}"
    )


def render_rollout_started(session: RolloutSession, region: str | None = None) -> str:
    lines = ["🚀 Started instance refresh", f"  ASG:     {session.group}"]
    if region:
        lines.append(f"  Region:  {region}")
    lines.append(f"  Refresh: {session.refresh_id}")
    return "\n".join(lines)


def render_rollout_finished(session: RolloutSession, elapsed: float) -> str:
    took = format_duration(elapsed)
    status = session.last.status
    if status is RefreshStatus.SUCCESSFUL and session.rollback_triggered:
        return f"⚠️ Rollout converged after an automatic rollback ({took})"
    if status is RefreshStatus.SUCCESSFUL:
        return f"✅ Rollout completed successfully! ({took})"
    if status is RefreshStatus.FAILED:
        return f"❌ Rollout failed. ({took})"
    if status is RefreshStatus.CANCELLED:
        return f"⚠️ Rollout cancelled. ({took})"
    if session.state is SessionState.FAILED_HARD:
        return f"⏰ Timeout after an automatic rollback, rollout still not completed ({took})"
    return f"⏹️  Stopped waiting, last status: {session.last.display} ({took})"


def render_escalation(
    target: EscalationTarget | None,
    result: RollbackResult | None,
    timeout_seconds: float | None = None,
) -> str:
    window = f" after {format_duration(timeout_seconds)}" if timeout_seconds else ""
    if target is None or result is None:
        return f"⏰ Timeout{window}, no artifact to roll back; waiting one more window"
    return (
        f"⏰ Timeout{window}, rolled back '{target.alias}' to "
        f"{result.current.label()}; waiting one more window"
    )


def _ref_lines(ref: ArtifactRef | None, url: str | None) -> list[str]:
    if ref is None:
        return []
    lines = []
    if ref.build_id:
        lines.append(f"  🏷 {ref.build_id}")
    else:
        lines.append("  found but build unknown")
    lines.append(f"  🔑 {ref.native_id}")
    if url:
        lines.append(f"  🌐 {url}")
    return lines


def _alias_lines(label: str, alias: AliasStatus) -> list[str]:
    mark = "✅" if alias.present else "❌"
    lines = [f"• {label} ({alias.location}): {mark}"]
    lines.extend(_ref_lines(alias.ref, alias.console_url))
    return lines


def render_set_status(status: SetStatus) -> str:
    lines = [f"📚 {status.artifact_set.display()} (region {status.artifact_set.region})"]
    lines.extend(_alias_lines(status.latest.alias, status.latest))
    lines.extend(_alias_lines(status.rollback.alias, status.rollback))
    if status.last_pushed is None:
        lines.append("• last pushed: ❌")
    else:
        lines.append("• last pushed: ✅")
        lines.extend(_ref_lines(status.last_pushed, status.last_pushed_url))
    return "\n".join(lines)


def render_promotion(result: PromotionResult) -> str:
    if not result.changed:
        return f"✅ '{result.alias}' already points at {result.build_id}; nothing to do"
    lines = [f"🚀 Promoted {result.build_id} to '{result.alias}' in {result.artifact_set}"]
    if result.previous is not None:
        if result.rollback_archived:
            lines.append(f"↩️  Archived {result.previous.label()} to '{result.rollback_alias}'")
        elif result.rollback_inconsistent:
            lines.append(
                f"⚠️ '{result.rollback_alias}' already held {result.previous.label()}; not archived"
            )
    else:
        lines.append(f"• '{result.alias}' was unbound; '{result.rollback_alias}' left untouched")
    return "\n".join(lines)


def render_rollback(result: RollbackResult) -> str:
    if result.swapped:
        header = "⏪ Rolled back (swap enabled):"
    elif result.previous is None:
        header = f"⏪ Rolled back ('{result.alias}' was absent):"
    else:
        header = "⏪ Rolled back:"
    lines = [header, f"• {result.alias}: {result.current.label()}"]
    if result.rollback_after is not None:
        lines.append(f"• {result.rollback_alias}: {result.rollback_after.label()}")
    return "\n".join(lines)


def render_push(result: PushResult, url: str | None = None) -> str:
    if result.uploaded:
        lines = [f"📤 Uploaded {result.build_id}", f"🗄️  {result.ref.location}"]
    else:
        lines = [
            f"✅ Already present: {result.ref.location} (skipping; use --force to overwrite)"
        ]
    if url:
        lines.append(f"🌐 Console: {url}")
    return "\n".join(lines)


class ConsoleRolloutReporter:
    """Rollout reporter that draws a single-line spinner on stderr."""

    def __init__(
        self,
        region: str | None = None,
        *,
        interactive: bool = True,
        timeout_seconds: float | None = None,
    ) -> None:
        self.region = region
        self.interactive = interactive
        self.timeout_seconds = timeout_seconds

    def _line(self, text: str) -> None:
        click.echo(text, err=True)

    def started(self, session: RolloutSession) -> None:
        self._line(render_rollout_started(session, self.region))

    def poll(self, session: RolloutSession, elapsed: float) -> None:
        text = render_rollout_progress(session.last, session.group, elapsed, session.polls - 1)
        if self.interactive:
            click.echo(f"\r{text}", err=True, nl=False)
        else:
            self._line(text)

    def escalation(
        self,
        session: RolloutSession,
        target: EscalationTarget | None,
        result: RollbackResult | None,
    ) -> None:
        prefix = "\n" if self.interactive else ""
        self._line(prefix + render_escalation(target, result, self.timeout_seconds))

    def finished(self, session: RolloutSession, elapsed: float) -> None:
        prefix = "\n" if self.interactive and session.polls else ""
        self._line(prefix + render_rollout_finished(session, elapsed))


__all__ = [
    "SPINNER_FRAMES",
    "STATUS_GLYPHS",
    "ConsoleRolloutReporter",
    "format_duration",
    "render_escalation",
    "render_promotion",
    "render_push",
    "render_rollback",
    "render_rollout_finished",
    "render_rollout_progress",
    "render_rollout_started",
    "render_set_status",
    "spinner_frame",
    "status_glyph",
]
