"""
Safe .env file parser.

Parses KEY=value files without shell execution. Values that look like
shell tricks are rejected, and that includes the command keys
(TEST_COMMAND, LINT_COMMAND, ...): a value such as `cd web && npm test`
or `pytest | tee out.log` is refused even though checks later run through
the shell. Put multi-step commands in a script or a package.json / Makefile
target and reference that instead.
"""

import re
from pathlib import Path

FORBIDDEN_PATTERNS = [
    r'`',           # backticks
    r'\$\(',        # command substitution
    r'\$\{',        # variable expansion
    r';',           # command chaining
    r'&&',          # AND chaining
    r'\|\|',        # OR chaining
    r'\|',          # pipe
]

KEY_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')


def parse_env(text: str) -> dict[str, str]:
    """
    Parse env-formatted text, return dict.

    Raises:
        ValueError: if syntax invalid or forbidden pattern found
    """
    result = {}

    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()

        if not line or line.startswith('#'):
            continue

        if '=' not in line:
            raise ValueError(f"Line {lineno}: Invalid syntax (no '=')")

        key, _, value = line.partition('=')
        key = key.strip()
        value = value.strip()

        if not KEY_PATTERN.match(key):
            raise ValueError(f"Line {lineno}: Invalid key '{key}'")

        # Strip quotes if present
        if len(value) >= 2:
            if (value.startswith('"') and value.endswith('"')) or \
               (value.startswith("'") and value.endswith("'")):
                value = value[1:-1]

        for pattern in FORBIDDEN_PATTERNS:
            if re.search(pattern, value):
                raise ValueError(f"Line {lineno}: Forbidden pattern in value of {key}")

        result[key] = value

    return result


def load_env(filepath: Path) -> dict[str, str]:
    """
    Parse env file safely, return dict.

    Raises:
        FileNotFoundError: if file doesn't exist
        ValueError: if syntax invalid or forbidden pattern found
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Env file not found: {filepath}")
    return parse_env(path.read_text())
