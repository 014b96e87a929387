"""Input validation for service names, commands and environments."""

import re
from collections.abc import Iterable

from lars.errors import InvalidInput

MAX_NAME_LENGTH = 64

_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Launchers whose first positional argument is the interesting name
_PACKAGE_RUNNERS = {"npx", "bunx", "pnpx"}


def validate_service_name(name: str) -> str:
    """Validate a service name.

    Names are 1-64 characters of letters, digits, underscores and hyphens.
    They end up in tmux targets and file names, so anything else is refused.

    Raises:
        InvalidInput: If the name is empty, too long or has bad characters.
    """
    if not name or len(name) > MAX_NAME_LENGTH:
        raise InvalidInput(
            f"Name must be 1-{MAX_NAME_LENGTH} characters, got {len(name)}"
        )
    if not _NAME_RE.match(name):
        raise InvalidInput(
            "Name can only contain alphanumeric characters, underscores, and hyphens"
        )
    return name


def validate_command(command: str) -> str:
    """Validate a service command (non-blank, no NUL byte)."""
    if "\0" in command:
        raise InvalidInput("Command contains null byte")
    if not command.strip():
        raise InvalidInput("Command cannot be empty")
    return command


def validate_env_key(key: str) -> str:
    if not _ENV_KEY_RE.match(key):
        raise InvalidInput(f"Invalid environment variable name: {key!r}")
    return key


def parse_env_pairs(pairs: Iterable[str]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` strings into a mapping.

    Later pairs win when a key repeats.

    Raises:
        InvalidInput: On a pair without ``=`` or with an invalid key.
    """
    env: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise InvalidInput(
                f"Invalid environment variable format: {pair}. Expected KEY=VALUE"
            )
        env[validate_env_key(key)] = value
    return env


def _is_env_assignment(word: str) -> bool:
    key, sep, _ = word.partition("=")
    return bool(sep) and bool(_ENV_KEY_RE.match(key))


def generate_service_name(command: str) -> str:
    """Derive a service name from its command.

    - Leading ``VAR=value`` words are skipped
    - The executable's basename is used (``/usr/bin/python`` -> ``python``)
    - For npx/bunx/pnpx the package name is used, minus any version suffix
    - Characters outside the allowed set are dropped

    Examples:
        >>> generate_service_name("PORT=3000 npx vibe-kanban@latest")
        'vibe-kanban'
        >>> generate_service_name("/usr/bin/python script.py")
        'python'
    """
    words = [w for w in command.split() if not _is_env_assignment(w)]
    if not words:
        return "service"

    executable = words[0].rsplit("/", 1)[-1]
    source = executable
    if executable in _PACKAGE_RUNNERS:
        source = next((w for w in words[1:] if not w.startswith("-")), executable)

    # Scoped packages look like @org/pkg@1.2.3
    if source.startswith("@"):
        source = source.rsplit("/", 1)[-1]
    source = source.split("@", 1)[0]

    sanitized = "".join(c for c in source if c.isalnum() or c in "_-")
    sanitized = sanitized[:MAX_NAME_LENGTH]
    if not sanitized or not _NAME_RE.match(sanitized):
        return "service"
    return sanitized


def unique_name(base: str, taken: Iterable[str]) -> str:
    """Return ``base`` or the first free ``base-N`` suffix."""
    existing = set(taken)
    if base not in existing:
        return base
    counter = 1
    while True:
        suffix = f"-{counter}"
        candidate = f"{base[: MAX_NAME_LENGTH - len(suffix)]}{suffix}"
        if candidate not in existing:
            return candidate
        counter += 1
