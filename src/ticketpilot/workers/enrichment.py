"""EnrichmentAgent - Commit messages and change summaries from a diff."""

from __future__ import annotations

import html
import logging
import re
from typing import TYPE_CHECKING, Any

import httpx

from ticketpilot.config import DEFAULT_ENRICHMENT_MODEL
from ticketpilot.logging import sanitize_for_log
from ticketpilot.workers.exceptions import EnrichmentFailure

if TYPE_CHECKING:
    from ticketpilot.config import PilotConfig

logger = logging.getLogger("ticketpilot.workers.enrichment")

COMMIT_DIFF_LIMIT = 3000
SUMMARY_DIFF_LIMIT = 8000
COMMIT_MESSAGE_MAX_LENGTH = 60

COMMIT_MESSAGE_PROMPT = """You are a git commit message generator. Based on the following git diff, generate a concise commit message in English.

RULES:
- Maximum 60 characters
- Be specific about what changed
- Use imperative mood (e.g., "Add feature" not "Added feature")
- Focus on WHAT changed, not HOW
- Do NOT include the ticket ID (it will be added automatically)
- Do NOT include prefixes like [feat], [fix], etc. (they will be added automatically)
- Return ONLY the commit message, nothing else

GIT DIFF:
{diff}

Generate the commit message:"""

SUMMARY_PROMPT = """You write technical HTML summaries of the changes made for a development ticket.

TICKET ID: {ticket_id}
{commit_line}
GIT DIFF:
{diff}

Produce an HTML fragment (no <html>, <head> or <body> tags) covering:

1. **Summary**: a short description of the changes
2. **Files**: each file touched and whether it was created, modified or deleted
3. **Classes and functions**: new or changed classes and methods
4. **Logic**: new conditions, loops and validations
5. **Dependencies**: libraries added or removed
6. **Configuration**: changes to configuration files

Omit any section with no changes. Be specific about file, class and method names.

Generate the HTML:"""


def failure_summary(ticket_id: str, reason: str) -> str:
    """Minimal HTML notice stored when no real summary could be produced."""
    return (
        '<div style="font-family: Arial, sans-serif; padding: 20px;">'
        '<h2 style="color: #f44336;">Summary unavailable</h2>'
        f"<p>No summary could be generated for ticket {html.escape(ticket_id)}.</p>"
        f'<p style="color: #666; font-size: 14px;">Error: {html.escape(reason)}</p>'
        "</div>"
    )


def clean_commit_message(text: str) -> str:
    """Strip quotes, keep the first line and cap the length."""
    message = text.strip().split("\n")[0].strip()
    message = re.sub(r"^[\"']|[\"']$", "", message).strip()
    return message[:COMMIT_MESSAGE_MAX_LENGTH]


def clean_summary(text: str) -> str:
    """Remove Markdown code fences wrapped around generated HTML."""
    summary = text.strip()
    summary = re.sub(r"^```html\s*", "", summary, flags=re.IGNORECASE)
    summary = re.sub(r"^```\s*", "", summary)
    summary = re.sub(r"```\s*$", "", summary)
    return summary.strip()


class EnrichmentAgent:
    """Client for an OpenAI-compatible chat-completions endpoint.

    Both generators are best-effort from the caller's point of view: every
    transport, HTTP or response-shape problem surfaces as EnrichmentFailure,
    and callers substitute a fallback.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        model: str = DEFAULT_ENRICHMENT_MODEL,
        timeout: float = 60.0,
    ) -> None:
        """Initialize the enrichment agent.

        Args:
            base_url: API root, e.g. "https://api.openai.com/v1"
            api_key: Bearer token (optional for local endpoints)
            model: Chat model name
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client: httpx.Client | None = None

    @classmethod
    def from_config(cls, config: PilotConfig) -> EnrichmentAgent | None:
        """Build an agent from configuration, or None when no endpoint is set."""
        if not config.enrichment_base_url:
            return None
        return cls(
            base_url=config.enrichment_base_url,
            api_key=config.enrichment_api_key,
            model=config.enrichment_model,
        )

    @property
    def client(self) -> httpx.Client:
        """Get or create HTTP client for the completions API."""
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.Client(headers=headers, timeout=self.timeout)
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def _complete(self, prompt: str) -> str:
        """Send a single-message chat completion and return the reply text.

        Raises:
            EnrichmentFailure: If the request fails or the reply is malformed
        """
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        try:
            response = self.client.post(f"{self.base_url}/chat/completions", json=payload)
        except httpx.HTTPError as e:
            raise EnrichmentFailure(f"Enrichment request failed: {e}") from e

        if response.status_code != 200:
            raise EnrichmentFailure(
                f"Enrichment request failed: {response.status_code} - "
                f"{sanitize_for_log(response.text[:200])}"
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise EnrichmentFailure(f"Unexpected enrichment response: {e}") from e

        if not isinstance(content, str):
            raise EnrichmentFailure("Unexpected enrichment response: content is not text")
        return content

    def generate_commit_message(self, diff: str, ticket_id: str) -> str:
        """Generate a short imperative commit subject for a diff.

        Raises:
            EnrichmentFailure: If generation fails or yields nothing
        """
        logger.info("Generating commit message for %s", ticket_id)
        prompt = COMMIT_MESSAGE_PROMPT.format(diff=diff[:COMMIT_DIFF_LIMIT])
        message = clean_commit_message(self._complete(prompt))
        if not message:
            raise EnrichmentFailure("Generated commit message was empty")
        logger.info("Generated commit message: %s", message)
        return message

    def generate_summary(
        self, ticket_id: str, diff: str, commit_message: str | None = None
    ) -> str:
        """Generate an HTML report of the changes made for a ticket.

        Raises:
            EnrichmentFailure: If generation fails or yields nothing
        """
        logger.info("Generating summary for %s", ticket_id)
        prompt = SUMMARY_PROMPT.format(
            ticket_id=ticket_id,
            commit_line=f"COMMIT MESSAGE: {commit_message}\n" if commit_message else "",
            diff=diff[:SUMMARY_DIFF_LIMIT],
        )
        summary = clean_summary(self._complete(prompt))
        if not summary:
            raise EnrichmentFailure("Generated summary was empty")
        return summary
