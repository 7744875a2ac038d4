"""Workers package for ticketpilot.

Contains the code-generation agent and the enrichment agent.
"""

from ticketpilot.workers.coder import CodeAgent
from ticketpilot.workers.enrichment import EnrichmentAgent, failure_summary
from ticketpilot.workers.exceptions import AgentExecutionError, EnrichmentFailure, WorkerError
from ticketpilot.workers.models import CodingResult
from ticketpilot.workers.prompts import render_template

__all__ = [
    "AgentExecutionError",
    "CodeAgent",
    "CodingResult",
    "EnrichmentAgent",
    "EnrichmentFailure",
    "WorkerError",
    "failure_summary",
    "render_template",
]
