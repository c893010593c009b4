"""
Agent command configuration.

Loads ai/agents.yaml to determine which CLI command runs each AI stage.
If no config file exists, the defaults below are used.

Templates support {variable} substitution. {prompt} is special: if it is
present in the template the prompt is passed as a CLI argument, otherwise
it is sent on stdin.
"""

import logging
import re
import shlex
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .constants import AGENTS_CONFIG_FILE

logger = logging.getLogger(__name__)


DEFAULT_STAGE_COMMANDS = {
    # Acceptance-criteria verification: diff + criteria -> verdict JSON
    "verify": "claude -p --output-format json",
}


@dataclass
class AgentsConfig:
    """Agent configuration from agents.yaml."""
    stages: dict[str, str] = field(default_factory=lambda: DEFAULT_STAGE_COMMANDS.copy())


def load_agents_config(project_dir: Optional[Path]) -> AgentsConfig:
    """Load ai/agents.yaml and return AgentsConfig.

    If project_dir is None or the file doesn't exist, returns defaults.
    A stage set to an empty value disables that stage.
    """
    if project_dir is None:
        return AgentsConfig()

    config_path = project_dir / AGENTS_CONFIG_FILE
    if not config_path.exists():
        return AgentsConfig()

    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse {config_path}: {e}")
        return AgentsConfig()

    stages = DEFAULT_STAGE_COMMANDS.copy()
    if isinstance(data, dict) and isinstance(data.get("stages"), dict):
        for stage, command in data["stages"].items():
            stages[stage] = command or ""
    return AgentsConfig(stages=stages)


@dataclass
class StageCommand:
    """Result of building a stage command."""
    cmd: list[str]  # Command ready for subprocess
    prompt_via_stdin: bool  # True if prompt should be passed via stdin
    output_format: str | None  # "json" if --output-format json, else None

    def get_stdin_input(self, prompt: str) -> str | None:
        """Return prompt if it should be passed via stdin, else None."""
        return prompt if self.prompt_via_stdin else None


def _detect_output_format(template: str) -> str | None:
    parts = shlex.split(template.replace("{prompt}", "X"))
    for i, part in enumerate(parts):
        if part == "--output-format" and i + 1 < len(parts):
            return parts[i + 1]
        if part.startswith("--output-format="):
            return part.split("=", 1)[1]
    return None


def get_stage_command(
    config: AgentsConfig,
    stage: str,
    context: dict[str, str] | None = None,
) -> StageCommand:
    """Build command list for a stage with variable substitution.

    Raises:
        ValueError: If the stage is unknown or disabled.

    Example:
        >>> get_stage_command(AgentsConfig(), "verify", {"prompt": "check"}).cmd
        ['claude', '-p', '--output-format', 'json']
    """
    cmd_template = config.stages.get(stage)
    if not cmd_template:
        raise ValueError(f"Unknown or disabled stage: {stage}")

    prompt_via_stdin = "{prompt}" not in cmd_template
    output_format = _detect_output_format(cmd_template)

    # Keep the prompt out of shlex so quotes inside it survive
    prompt_value = None
    if context and "prompt" in context:
        prompt_value = context["prompt"]
        cmd_template = cmd_template.replace("{prompt}", "__PROMPT_PLACEHOLDER__")

    if context:
        for key, value in context.items():
            if key != "prompt":
                cmd_template = cmd_template.replace(f"{{{key}}}", value)

    remaining_vars = re.findall(r'\{(\w+)\}', cmd_template)
    if remaining_vars:
        logger.error(
            f"Stage '{stage}' has unsubstituted variables: {remaining_vars}. "
            f"Template: {cmd_template}"
        )

    cmd = shlex.split(cmd_template)
    if prompt_value is not None:
        cmd = [prompt_value if arg == "__PROMPT_PLACEHOLDER__" else arg for arg in cmd]

    return StageCommand(cmd=cmd, prompt_via_stdin=prompt_via_stdin, output_format=output_format)


def get_stage_binary(config: AgentsConfig, stage: str) -> str:
    """Get the binary name for a stage (first element of command), or "" if disabled."""
    cmd_template = config.stages.get(stage)
    if not cmd_template:
        return ""
    parts = shlex.split(cmd_template)
    return parts[0] if parts else ""


def check_binary_available(binary: str) -> bool:
    """Check if a binary is available in PATH."""
    return bool(binary) and shutil.which(binary) is not None
