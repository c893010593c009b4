"""
Verify agent integration.

Runs the configured "verify" stage command (claude by default) with the
prompt on stdin or as an argument, and parses a verdict JSON object out
of its reply.
"""

import json
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from foreman.lib.agents_config import (
    AgentsConfig,
    load_agents_config,
    get_stage_command,
    get_stage_binary,
    check_binary_available,
)
from foreman.lib.constants import DEFAULT_AI_TIMEOUT
from foreman.lib.validate import validate, ValidationError

logger = logging.getLogger(__name__)

VERIFY_STAGE = "verify"


class AIUnavailable(Exception):
    """No agent is configured, or the agent call failed."""
    pass


def extract_json_block(text: str) -> str:
    """Pull the JSON body out of a reply that may wrap it in a code fence."""
    inner = text.strip()
    if "```" not in inner:
        return inner

    start = inner.find("```json")
    if start == -1:
        start = inner.find("```")
    newline_after_open = inner.find("\n", start)
    if newline_after_open == -1:
        return inner
    close = inner.find("\n```", newline_after_open)
    if close == -1:
        return inner
    return inner[newline_after_open + 1:close].strip()


def parse_agent_output(stdout: str, output_format: Optional[str]) -> dict:
    """Parse and validate the agent's verdict.

    With --output-format json the CLI wraps the reply as {"result": "..."}.

    Raises:
        AIUnavailable: if the reply is not a valid verdict
    """
    text = stdout.strip()
    if output_format == "json":
        try:
            wrapper = json.loads(text)
        except json.JSONDecodeError as e:
            raise AIUnavailable(f"Agent returned invalid JSON wrapper: {e}") from e
        if isinstance(wrapper, dict) and "result" in wrapper:
            text = str(wrapper["result"])

    try:
        data = json.loads(extract_json_block(text))
    except json.JSONDecodeError as e:
        raise AIUnavailable(f"Agent verdict is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise AIUnavailable("Agent verdict is not a JSON object")

    try:
        validate(data, "agent_verdict")
    except ValidationError as e:
        raise AIUnavailable(f"Agent verdict failed schema validation: {e}") from e
    return data


@dataclass
class VerifyAgent:
    """Callable wrapper around the configured verify command."""
    config: AgentsConfig
    timeout: int = DEFAULT_AI_TIMEOUT

    def is_available(self) -> bool:
        return check_binary_available(get_stage_binary(self.config, VERIFY_STAGE))

    def verify(self, prompt: str, cwd: Path) -> dict:
        """Ask the agent for a verdict.

        Raises:
            AIUnavailable: agent missing, timed out, exited nonzero or replied badly
        """
        binary = get_stage_binary(self.config, VERIFY_STAGE)
        if not check_binary_available(binary):
            raise AIUnavailable(f"Verify agent '{binary or '(disabled)'}' is not available")

        stage_cmd = get_stage_command(self.config, VERIFY_STAGE, {"prompt": prompt})

        # Let the CLI use its own stored credentials
        env = {k: v for k, v in os.environ.items() if k != "ANTHROPIC_API_KEY"}

        try:
            result = subprocess.run(
                stage_cmd.cmd,
                cwd=str(cwd),
                input=stage_cmd.get_stdin_input(prompt),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            raise AIUnavailable(f"Verify agent timed out after {self.timeout}s") from e
        except OSError as e:
            raise AIUnavailable(f"Verify agent failed to start: {e}") from e

        if result.returncode != 0:
            raise AIUnavailable(
                f"Verify agent exited with code {result.returncode}: {result.stderr.strip()[:500]}"
            )

        return parse_agent_output(result.stdout, stage_cmd.output_format)


def load_verify_agent(project_dir: Path, timeout: int = DEFAULT_AI_TIMEOUT) -> Optional[VerifyAgent]:
    """The project's verify agent, or None when none is usable."""
    agent = VerifyAgent(config=load_agents_config(project_dir), timeout=timeout)
    if not agent.is_available():
        binary = get_stage_binary(agent.config, VERIFY_STAGE)
        logger.warning(f"Verify agent '{binary or '(disabled)'}' not found, AI verification will be skipped")
        return None
    return agent
