"""Prompt template rendering.

Templates use ``${NAME}`` placeholders. Every occurrence is replaced, values
are inserted verbatim and unknown placeholders are left as they are.
"""

from __future__ import annotations

from string import Template


def render_template(template: str, **values: str) -> str:
    """Substitute ``${KEY}`` placeholders in a single pass."""
    return Template(template).safe_substitute(values)


def render_resolution_prompt(template: str, ticket_id: str, description: str) -> str:
    """Prompt describing the ticket to the agent."""
    return render_template(template, ID=ticket_id, DESCRIPTION=description)


def render_command_prompt(template: str, prompt_file: str) -> str:
    """Short instruction pointing the agent CLI at the saved prompt file."""
    return render_template(template, FILE=prompt_file)
