"""Parse ticket definitions from Markdown files."""

from __future__ import annotations

import re

# ## TICKET-ID
# **Description:**
# text up to the next heading or horizontal rule
TICKET_SECTION = re.compile(
    r"##\s+([A-Z0-9_-]+)\s*\n\s*\*\*Description:\*\*\s*\n([\s\S]*?)(?=\n##|\n---|\Z)",
    re.IGNORECASE,
)


def parse_markdown_tickets(content: str) -> list[tuple[str, str]]:
    """Extract ``(id, description)`` pairs, skipping sections with an empty description."""
    tickets = []
    for match in TICKET_SECTION.finditer(content):
        ticket_id = match.group(1).strip()
        description = match.group(2).strip()
        if ticket_id and description:
            tickets.append((ticket_id, description))
    return tickets
