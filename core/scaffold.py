"""Starter pattern files — detect the project type and write a .lockguard.

Detection looks for marker files in the project root; the first template
whose markers exist wins, otherwise the generic template is used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from core.errors import ValidationError, from_os_error

logger = logging.getLogger(__name__)

_SECRETS = (".env", ".env.*", "!.env.example")
_KEYS = ("**/*.key", "**/*.pem")


@dataclass(frozen=True)
class ProjectTemplate:
    name: str
    markers: tuple[str, ...]
    patterns: tuple[str, ...]


TEMPLATES: tuple[ProjectTemplate, ...] = (
    ProjectTemplate(
        name="Node.js",
        markers=("package.json",),
        patterns=(*_SECRETS, "config/*.json", "config/*.yaml", *_KEYS, "**/secrets.json"),
    ),
    ProjectTemplate(
        name="Docker",
        markers=("docker-compose.yml", "docker-compose.yaml", "Dockerfile"),
        patterns=(
            *_SECRETS,
            "docker-compose.yml",
            "docker-compose.*.yml",
            "Dockerfile.prod",
            "k8s/**/*.yaml",
            "config/*.yaml",
            *_KEYS,
        ),
    ),
    ProjectTemplate(
        name="Python",
        markers=("pyproject.toml", "setup.py", "requirements.txt"),
        patterns=(
            *_SECRETS,
            "config/*.json",
            "config/*.yaml",
            *_KEYS,
            "**/secrets.json",
            "*.db",
            "*.sqlite",
        ),
    ),
)

GENERIC = ProjectTemplate(
    name="Generic", markers=(), patterns=(*_SECRETS, *_KEYS, "**/secrets.json")
)


def detect_project(root: Path) -> ProjectTemplate:
    for template in TEMPLATES:
        if any((root / marker).exists() for marker in template.markers):
            return template
    return GENERIC


def render_pattern_file(template: ProjectTemplate) -> str:
    lines = [
        "# lockguard patterns",
        f"# Generated for a {template.name} project.",
        "# Gitignore syntax; later lines override earlier ones, '!' re-includes.",
        "",
        *template.patterns,
        "",
        "# Add your own patterns below:",
        "",
    ]
    return "\n".join(lines)


def write_pattern_file(path: Path, template: ProjectTemplate, *, force: bool = False) -> Path:
    """Write a starter pattern file for *template* to *path*.

    Refuses to replace an existing file unless *force* is set.
    """
    if path.exists() and not force:
        raise ValidationError(
            f"{path.name} already exists (use --force to overwrite)", path=path
        )
    try:
        path.write_text(render_pattern_file(template), encoding="utf-8")
    except OSError as exc:
        raise from_os_error(exc, path) from exc
    logger.info("Wrote %s pattern file to %s", template.name, path)
    return path
