"""
Configuration loaders for foreman.

Loads the project's check commands from ai/project_profile.env.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import envparse
from .constants import (
    PROJECT_PROFILE_FILE,
    DEFAULT_CHECK_TIMEOUT,
    DEFAULT_AI_TIMEOUT,
    DEFAULT_SOURCE_ROOT,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LearnedTemplates:
    """Selective test templates captured once per project.

    Either both templates exist or the whole object is absent.
    """
    file_template: str  # contains {files}
    name_template: str  # contains {pattern}


@dataclass(frozen=True)
class E2EProfile:
    """End-to-end test configuration."""
    command: str
    framework: Optional[str] = None  # playwright, cypress, puppeteer
    grep_template: Optional[str] = None  # contains {tags}


@dataclass
class ProjectProfile:
    """Check commands and timeouts from project_profile.env"""
    test_command: Optional[str] = None
    test_framework: Optional[str] = None
    lint_command: Optional[str] = None
    typecheck_command: Optional[str] = None
    build_command: Optional[str] = None
    e2e: Optional[E2EProfile] = None
    learned_templates: Optional[LearnedTemplates] = None
    check_timeout: int = DEFAULT_CHECK_TIMEOUT
    ai_timeout: int = DEFAULT_AI_TIMEOUT
    source_root: str = DEFAULT_SOURCE_ROOT

    @property
    def has_tests(self) -> bool:
        return bool(self.test_command)


def _learned_templates(env: dict[str, str]) -> Optional[LearnedTemplates]:
    file_template = env.get("SELECTIVE_FILE_TEMPLATE")
    name_template = env.get("SELECTIVE_NAME_TEMPLATE")
    if file_template and name_template:
        return LearnedTemplates(file_template=file_template, name_template=name_template)
    if file_template or name_template:
        logger.warning(
            "Ignoring learned test templates: SELECTIVE_FILE_TEMPLATE and "
            "SELECTIVE_NAME_TEMPLATE must both be set"
        )
    return None


def profile_from_env(env: dict[str, str]) -> ProjectProfile:
    """Build a ProjectProfile from parsed env values."""
    e2e = None
    if env.get("E2E_COMMAND"):
        e2e = E2EProfile(
            command=env["E2E_COMMAND"],
            framework=env.get("E2E_FRAMEWORK") or None,
            grep_template=env.get("E2E_GREP_TEMPLATE") or None,
        )

    return ProjectProfile(
        test_command=env.get("TEST_COMMAND") or None,
        test_framework=env.get("TEST_FRAMEWORK") or None,
        lint_command=env.get("LINT_COMMAND") or None,
        typecheck_command=env.get("TYPECHECK_COMMAND") or None,
        build_command=env.get("BUILD_COMMAND") or None,
        e2e=e2e,
        learned_templates=_learned_templates(env),
        check_timeout=int(env.get("CHECK_TIMEOUT", str(DEFAULT_CHECK_TIMEOUT))),
        ai_timeout=int(env.get("AI_TIMEOUT", str(DEFAULT_AI_TIMEOUT))),
        source_root=env.get("SOURCE_ROOT", DEFAULT_SOURCE_ROOT).strip("/") or DEFAULT_SOURCE_ROOT,
    )


def load_project_profile(cwd: Path) -> ProjectProfile:
    """Load ai/project_profile.env and return ProjectProfile.

    A missing file yields an empty profile (no configured checks).
    """
    profile_path = cwd / PROJECT_PROFILE_FILE
    if not profile_path.exists():
        logger.debug(f"No project profile at {profile_path}, using empty profile")
        return ProjectProfile()
    return profile_from_env(envparse.load_env(profile_path))
