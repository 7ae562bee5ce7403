"""Utility functions."""
import re
from pathlib import Path

from errors import ValidationError

SAFE_COMPONENT = re.compile(r"^[A-Za-z0-9_-]+$")


def resolve_under_root(root: Path, candidate: Path) -> Path:
    """Resolve a path ensuring it's under the root directory."""
    root = root.resolve()
    real = candidate.resolve()
    if root not in real.parents and real != root:
        raise ValidationError("Path is outside root")
    return real


def safe_component(value: str, what: str = "name") -> str:
    """Reject anything that can't be used verbatim as a single path segment."""
    if not value or not SAFE_COMPONENT.match(value):
        raise ValidationError(f"Invalid {what}: {value!r}")
    return value
