"""Code Agent - Code-generation CLI integration."""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
import time
from pathlib import Path
from typing import TYPE_CHECKING

from ticketpilot.config import (
    DEFAULT_AGENT_COMMAND,
    DEFAULT_COMMAND_PROMPT,
    DEFAULT_RESOLUTION_PROMPT,
    default_home,
)
from ticketpilot.logging import agent_output_logger, truncate_output
from ticketpilot.workers.models import CodingResult, StreamingResult
from ticketpilot.workers.prompts import render_command_prompt, render_resolution_prompt

if TYPE_CHECKING:
    from collections.abc import Callable

    from ticketpilot.config import PilotConfig

logger = logging.getLogger("ticketpilot.workers.coder")

AGENT_FLAGS = ("--allow-all", "--no-ask-user", "--silent")


class CodeAgent:
    """Invokes the code-generation CLI inside a ticket's worktree.

    The full ticket prompt is rendered from the resolution template and saved
    under ``prompts_dir``; the CLI itself receives a short instruction that
    references that file. The agent never raises: a missing binary, an OS
    error, a timeout or a non-zero exit all come back as a failed CodingResult.
    """

    def __init__(
        self,
        command: str = DEFAULT_AGENT_COMMAND,
        model: str | None = None,
        prompts_dir: str | Path | None = None,
        resolution_prompt: str = DEFAULT_RESOLUTION_PROMPT,
        command_prompt: str = DEFAULT_COMMAND_PROMPT,
        timeout: int | None = None,
    ) -> None:
        """Initialize the Code Agent.

        Args:
            command: Agent executable, optionally with leading arguments.
            model: Default model passed with ``--model`` (optional).
            prompts_dir: Where rendered prompts are saved.
            resolution_prompt: Template with ``${ID}`` and ``${DESCRIPTION}``.
            command_prompt: Template with ``${FILE}``.
            timeout: Optional timeout in seconds. None means no timeout.
        """
        self.command = command
        self.model = model
        self.prompts_dir = Path(prompts_dir) if prompts_dir else default_home() / "prompts"
        self.resolution_prompt = resolution_prompt
        self.command_prompt = command_prompt
        self.timeout = timeout
        self.log_callback: Callable[[str], None] | None = None

    @classmethod
    def from_config(cls, config: PilotConfig) -> CodeAgent:
        """Build an agent from the loaded configuration."""
        return cls(
            command=config.agent_command,
            model=config.model,
            prompts_dir=config.prompts_dir,
            resolution_prompt=config.ticket_resolution_prompt,
            command_prompt=config.ticket_command_prompt,
        )

    def is_available(self) -> bool:
        """Whether the agent CLI can be executed (``<command> --version`` succeeds)."""
        try:
            subprocess.run(
                [*shlex.split(self.command), "--version"],
                capture_output=True,
                check=True,
                timeout=30,
            )
            return True
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError, ValueError):
            return False

    def build_prompt(self, ticket_id: str, description: str) -> str:
        """Render the resolution prompt for a ticket."""
        return render_resolution_prompt(self.resolution_prompt, ticket_id, description)

    def save_prompt(self, prompt: str, ticket_id: str) -> Path:
        """Write a prompt to ``{prompts_dir}/{timestamp}_{ticket_id}.md``."""
        self.prompts_dir.mkdir(parents=True, exist_ok=True)
        safe_id = re.sub(r"[^\w.-]", "_", ticket_id)
        path = self.prompts_dir / f"{int(time.time() * 1000)}_{safe_id}.md"
        path.write_text(prompt, encoding="utf-8")
        logger.debug("Prompt saved: %s", path)
        return path

    def build_command(self, prompt_file: str | Path, model: str | None = None) -> list[str]:
        """Argument list for one agent run."""
        instruction = render_command_prompt(self.command_prompt, str(prompt_file))
        cmd = [*shlex.split(self.command), "-p", instruction, *AGENT_FLAGS]
        model = model or self.model
        if model:
            cmd.extend(["--model", model])
        return cmd

    def resolve(
        self,
        working_dir: str | Path,
        ticket_id: str,
        description: str,
        model: str | None = None,
    ) -> CodingResult:
        """Run the agent on a ticket, blocking until it exits.

        Args:
            working_dir: The ticket's worktree.
            ticket_id: The ticket's id.
            description: The ticket's description.
            model: Model override for this run (optional).

        Returns:
            CodingResult with success status and output.
        """
        logger.info("Resolving ticket %s in %s", ticket_id, working_dir)

        prompt = self.build_prompt(ticket_id, description)
        logger.debug("Built prompt (%d chars)", len(prompt))

        try:
            prompt_file = self.save_prompt(prompt, ticket_id)
        except OSError as e:
            logger.error("Failed to save prompt for %s: %s", ticket_id, e)
            return CodingResult(success=False, output="", error=f"Failed to save prompt: {e}")

        executable = (self.command.split() or [self.command])[0]
        try:
            cmd = self.build_command(prompt_file, model)
            logger.info("Running %s...", executable)
            on_line = self.log_callback or agent_output_logger(ticket_id)
            result = self._run_agent(cmd, Path(working_dir), on_line)
            coding_result = self._process_result(result)
            coding_result.prompt_file = str(prompt_file)
            if coding_result.success:
                logger.info("Agent completed successfully for %s", ticket_id)
            else:
                logger.error("Agent failed for %s: %s", ticket_id, coding_result.error)
            logger.debug("Output: %s", truncate_output(coding_result.output) or "(empty)")
            return coding_result
        except subprocess.TimeoutExpired:
            logger.error("Agent timed out after %s seconds", self.timeout)
            return CodingResult(
                success=False,
                output="",
                error=f"Agent timed out after {self.timeout} seconds",
                prompt_file=str(prompt_file),
            )
        except FileNotFoundError:
            logger.error("Agent CLI %r not found in PATH", executable)
            return CodingResult(
                success=False,
                output="",
                error=f"Agent CLI not found. Ensure '{executable}' is installed and in PATH.",
                prompt_file=str(prompt_file),
            )
        except (OSError, ValueError) as e:
            logger.error("Failed to execute agent: %s", e)
            return CodingResult(
                success=False,
                output="",
                error=f"Failed to execute agent: {e}",
                prompt_file=str(prompt_file),
            )

    def _run_agent(
        self, cmd: list[str], cwd: Path, on_line: Callable[[str], None] | None = None
    ) -> StreamingResult:
        """Run the agent subprocess, streaming merged stdout/stderr line by line."""
        process = subprocess.Popen(
            cmd,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
        )

        output_lines: list[str] = []
        try:
            if process.stdout:
                for raw_line in process.stdout:
                    stripped_line = raw_line.rstrip("\n")
                    output_lines.append(stripped_line)
                    if on_line:
                        on_line(stripped_line)

            process.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
            raise

        return StreamingResult(
            returncode=process.returncode or 0,
            output="\n".join(output_lines),
        )

    def _process_result(self, result: StreamingResult) -> CodingResult:
        if result.returncode == 0:
            return CodingResult(success=True, output=result.output or "Agent completed")
        return CodingResult(
            success=False,
            output=result.output,
            error=f"Agent exited with code {result.returncode}",
        )
