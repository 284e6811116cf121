"""Markdown mailbox transcript of a simulation run."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from ..state.schema import TickResult, WorldState


@dataclass
class MailboxTranscript:
    """Complete transcript of a simulation run."""

    world: WorldState
    results: list[TickResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    cost_summary: str = ""

    def to_markdown(self) -> str:
        """Convert transcript to markdown format."""
        world = self.world
        lines = [
            "# Mailbox Transcript",
            "",
            f"- **Date:** {self.started_at.strftime('%Y-%m-%d %H:%M:%S')}",
            f"- **World:** {world.id}",
            f"- **Ticks:** {len(self.results)}",
            f"- **Emails:** {len(world.emails)}",
            f"- **Threads:** {len(world.threads)}",
            "",
            "---",
            "",
        ]

        for thread in world.threads:
            emails = world.thread_emails(thread.id)
            if not emails:
                continue
            lines.append(f"## {thread.subject}")
            lines.append("")
            lines.append(f"*{thread.origin_type.value} · {len(emails)} message(s)*")
            lines.append("")

            for email in emails:
                to = ", ".join(r.display_name for r in email.to)
                stamp = email.sent_at.strftime("%Y-%m-%d %H:%M")
                lines.append(f"**{email.sender.display_name}** → {to} ({stamp})")
                if email.generated_by and email.generated_by.template_fallback:
                    lines.append("*(template)*")
                lines.append("")
                lines.append(email.body)
                lines.append("")
                lines.append("---")
                lines.append("")

        # Add summary
        lines.append("## Ticks")
        lines.append("")
        for result in self.results:
            m = result.metrics
            lines.append(
                f"- Tick {result.tick_number}: {m.events_generated} events, "
                f"{m.emails_generated} emails, {m.tensions_resolved} resolving, {m.duration_ms}ms"
            )
        lines.append("")

        if world.tensions:
            lines.append("## Tensions")
            lines.append("")
            for tension in world.tensions:
                lines.append(f"- {tension.description}: {tension.status.value} ({tension.intensity:.2f})")
            lines.append("")

        if self.cost_summary:
            lines.append("## Cost")
            lines.append("")
            lines.append("```")
            lines.append(self.cost_summary)
            lines.append("```")
            lines.append("")

        return "\n".join(lines)

    def save(self, transcripts_dir: Path) -> Path:
        """Save transcript to file. Returns the file path."""
        transcripts_dir.mkdir(parents=True, exist_ok=True)

        timestamp = self.started_at.strftime("%Y-%m-%d_%H%M%S")
        filepath = transcripts_dir / f"mailbox_{timestamp}_{self.world.id}.md"

        filepath.write_text(self.to_markdown(), encoding="utf-8")
        return filepath
