"""Codebase detection and manifest parsing.

Detection checks manifest files in a fixed priority order (first match wins)
and falls back to a ``.git`` directory. Parsing is best-effort: any failure
degrades to "type known, fields empty".
"""

from __future__ import annotations

import json
import logging
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from cairn.errors import ManifestParseFailed

logger = logging.getLogger(__name__)

# (file name, project type, declared tech stack), in priority order.
MANIFESTS: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("package.json", "nodejs", ("Node.js", "JavaScript")),
    ("Cargo.toml", "rust", ("Rust",)),
    ("pyproject.toml", "python", ("Python",)),
    ("setup.py", "python", ("Python",)),
    ("requirements.txt", "python", ("Python",)),
    ("go.mod", "go", ("Go",)),
    ("pom.xml", "java", ("Java", "Maven")),
    ("build.gradle", "java", ("Java", "Gradle")),
    ("build.gradle.kts", "kotlin", ("Kotlin", "Gradle")),
    ("Package.swift", "swift", ("Swift",)),
    ("pubspec.yaml", "dart", ("Dart", "Flutter")),
    ("Gemfile", "ruby", ("Ruby",)),
    ("composer.json", "php", ("PHP",)),
    ("CMakeLists.txt", "cpp", ("C++", "CMake")),
    ("Makefile", "make", ("Make",)),
)

_STACK_BY_TYPE: dict[str, tuple[str, ...]] = {}
for _name, _type, _stack in MANIFESTS:
    _STACK_BY_TYPE.setdefault(_type, _stack)

_RAW_LIMIT = 2000
_REQUIREMENT_NAME_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


@dataclass
class Detection:
    is_codebase: bool
    project_type: str = ""
    manifest_file: str | None = None

    @property
    def declared_stack(self) -> list[str]:
        return list(_STACK_BY_TYPE.get(self.project_type, ()))


@dataclass
class Manifest:
    """Fields lifted from a project manifest; empty when parsing failed."""

    type: str
    name: str = ""
    version: str = ""
    description: str = ""
    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    scripts: dict[str, str] = field(default_factory=dict)
    raw: str = ""

    def summary(self) -> dict[str, Any]:
        """The subset persisted on the Project record."""
        return {
            "type": self.type,
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "dependencies": dict(self.dependencies),
            "devDependencies": dict(self.dev_dependencies),
            "scripts": dict(self.scripts),
        }


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


def detect_codebase(path: str | Path) -> Detection:
    """Return whether *path* is a software project, and of which type."""
    root = Path(path)
    if not root.is_dir():
        return Detection(is_codebase=False)
    for file_name, project_type, _ in MANIFESTS:
        if (root / file_name).is_file():
            return Detection(True, project_type, file_name)
    if (root / ".git").exists():
        return Detection(True, "git", None)
    return Detection(is_codebase=False)


def discover_codebases(
    root: str | Path,
    max_depth: int = 3,
    ignore_dirs: frozenset[str] | None = None,
) -> list[str]:
    """Find codebase roots at or below *root*.

    A detected codebase is not searched further; ignored and hidden
    directories are never entered.
    """
    from cairn.projects.structure import IGNORED_DIRECTORIES

    skip = ignore_dirs if ignore_dirs is not None else IGNORED_DIRECTORIES
    found: list[str] = []

    def visit(directory: Path, depth: int) -> None:
        if detect_codebase(directory).is_codebase:
            found.append(str(directory))
            return
        if depth >= max_depth:
            return
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as exc:
            logger.debug("Cannot list %s: %s", directory, exc)
            return
        for entry in entries:
            if entry.is_dir(follow_symlinks=False) and not (
                entry.name in skip or entry.name.startswith(".")
            ):
                visit(Path(entry.path), depth + 1)

    visit(Path(root), 0)
    return found


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_manifest(path: str | Path, detection: Detection) -> Manifest:
    """Parse the detected manifest of the project at *path*.

    Never raises: a parse failure is logged and yields a type-only Manifest.
    """
    if detection.manifest_file is None:
        return Manifest(type=detection.project_type)
    manifest_path = Path(path) / detection.manifest_file
    try:
        return _parse(manifest_path, detection.project_type)
    except ManifestParseFailed as exc:
        logger.warning("%s", exc)
        return Manifest(type=detection.project_type)


def _parse(manifest_path: Path, project_type: str) -> Manifest:
    try:
        text = manifest_path.read_text(encoding="utf-8", errors="replace")
        name = manifest_path.name
        if name in ("package.json", "composer.json"):
            return _parse_package_json(text, project_type)
        if name == "Cargo.toml":
            return _parse_cargo(text, project_type)
        if name == "pyproject.toml":
            return _parse_pyproject(text, project_type)
        if name == "requirements.txt":
            return _parse_requirements(text, project_type)
        if name == "go.mod":
            return _parse_go_mod(text, project_type)
        if name == "pubspec.yaml":
            return _parse_pubspec(text, project_type)
        return Manifest(type=project_type, raw=text[:_RAW_LIMIT])
    except (OSError, ValueError, TypeError, AttributeError, yaml.YAMLError) as exc:
        # json.JSONDecodeError and tomllib.TOMLDecodeError are ValueErrors.
        raise ManifestParseFailed(f"Could not parse {manifest_path}: {exc}") from exc


def _str_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items()}


def _parse_package_json(text: str, project_type: str) -> Manifest:
    data = json.loads(text)
    return Manifest(
        type=project_type,
        name=str(data.get("name", "")),
        version=str(data.get("version", "")),
        description=str(data.get("description", "")),
        dependencies=_str_map(data.get("dependencies") or data.get("require")),
        dev_dependencies=_str_map(data.get("devDependencies") or data.get("require-dev")),
        scripts=_str_map(data.get("scripts")),
    )


def _parse_cargo(text: str, project_type: str) -> Manifest:
    data = tomllib.loads(text)
    package = data.get("package", {})
    return Manifest(
        type=project_type,
        name=str(package.get("name", "")),
        version=str(package.get("version", "")),
        description=str(package.get("description", "")),
        dependencies={k: str(v) for k, v in data.get("dependencies", {}).items()},
        dev_dependencies={k: str(v) for k, v in data.get("dev-dependencies", {}).items()},
    )


def _parse_pyproject(text: str, project_type: str) -> Manifest:
    data = tomllib.loads(text)
    project = data.get("project") or data.get("tool", {}).get("poetry", {})
    deps = project.get("dependencies", {})
    if isinstance(deps, list):
        deps = _requirement_map(deps)
    return Manifest(
        type=project_type,
        name=str(project.get("name", "")),
        version=str(project.get("version", "")),
        description=str(project.get("description", "")),
        dependencies={k: str(v) for k, v in deps.items() if k.lower() != "python"},
    )


def _parse_requirements(text: str, project_type: str) -> Manifest:
    lines = [ln for ln in text.splitlines() if ln.strip() and not ln.lstrip().startswith(("#", "-"))]
    return Manifest(type=project_type, dependencies=_requirement_map(lines), raw=text[:_RAW_LIMIT])


def _requirement_map(specs: list[str]) -> dict[str, str]:
    deps: dict[str, str] = {}
    for spec in specs:
        if m := _REQUIREMENT_NAME_RE.match(spec):
            deps[m.group(1).lower()] = spec[m.end():].strip()
    return deps


def _parse_go_mod(text: str, project_type: str) -> Manifest:
    m = re.search(r"^module\s+(\S+)", text, re.MULTILINE)
    return Manifest(type=project_type, name=m.group(1) if m else "", raw=text[:_RAW_LIMIT])


def _parse_pubspec(text: str, project_type: str) -> Manifest:
    data = yaml.safe_load(text) or {}
    return Manifest(
        type=project_type,
        name=str(data.get("name", "")),
        version=str(data.get("version", "")),
        description=str(data.get("description", "")),
        dependencies=_str_map(data.get("dependencies")),
        dev_dependencies=_str_map(data.get("dev_dependencies")),
    )
