"""Bounded walk of a codebase's directory tree."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)

IGNORED_DIRECTORIES = frozenset(
    {
        "node_modules",
        ".git",
        ".svn",
        ".hg",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        "venv",
        ".venv",
        "env",
        ".env",
        "dist",
        "build",
        "target",
        ".next",
        ".nuxt",
        "coverage",
        ".idea",
        ".vscode",
        ".DS_Store",
        "vendor",
        "Pods",
        ".gradle",
        "bin",
        "obj",
    }
)

KEY_DIRECTORIES = frozenset(
    {"src", "lib", "app", "components", "services", "utils", "api", "core", "modules"}
)
TEST_DIRECTORIES = frozenset({"test", "tests", "__tests__", "spec", "specs"})
DOC_DIRECTORIES = frozenset({"docs", "documentation", "doc"})
README_NAMES = frozenset({"readme.md", "readme.txt"})

ENTRY_POINTS = frozenset(
    {
        "main.ts",
        "main.js",
        "index.ts",
        "index.js",
        "app.ts",
        "app.js",
        "server.ts",
        "server.js",
        "main.py",
        "app.py",
        "__main__.py",
        "main.go",
        "main.rs",
        "lib.rs",
        "Main.java",
        "App.java",
        "main.swift",
        "AppDelegate.swift",
        "main.dart",
        "main.c",
        "main.cpp",
    }
)

CONFIG_FILES = frozenset(
    {
        "tsconfig.json",
        "jsconfig.json",
        ".eslintrc",
        ".eslintrc.js",
        ".eslintrc.json",
        ".prettierrc",
        ".prettierrc.js",
        ".prettierrc.json",
        "babel.config.js",
        "webpack.config.js",
        "vite.config.ts",
        "vite.config.js",
        "next.config.js",
        "next.config.mjs",
        "nuxt.config.ts",
        "tailwind.config.js",
        "tailwind.config.ts",
        "jest.config.js",
        "vitest.config.ts",
        ".env.example",
        "docker-compose.yml",
        "Dockerfile",
        ".dockerignore",
        ".gitignore",
        "Makefile",
    }
)

# Depth limits (root = 0) for recording notable paths.
_NOTABLE_DEPTH = 2


class DirEntryLike(Protocol):
    name: str
    path: str

    def is_dir(self) -> bool: ...


@dataclass
class CodebaseStructure:
    total_files: int = 0
    total_directories: int = 0
    files_by_extension: dict[str, int] = field(default_factory=dict)
    key_directories: list[str] = field(default_factory=list)
    entry_points: list[str] = field(default_factory=list)
    config_files: list[str] = field(default_factory=list)
    has_tests: bool = False
    has_documentation: bool = False

    def merge(self, other: CodebaseStructure) -> None:
        """Fold a subdirectory's result into this one."""
        self.total_files += other.total_files
        self.total_directories += other.total_directories
        for ext, count in other.files_by_extension.items():
            self.files_by_extension[ext] = self.files_by_extension.get(ext, 0) + count
        self.key_directories.extend(other.key_directories)
        self.entry_points.extend(other.entry_points)
        self.config_files.extend(other.config_files)
        self.has_tests = self.has_tests or other.has_tests
        self.has_documentation = self.has_documentation or other.has_documentation

    def top_extensions(self, limit: int = 10) -> list[tuple[str, int]]:
        return sorted(self.files_by_extension.items(), key=lambda kv: -kv[1])[:limit]


def _list_dir(path: str) -> list[os.DirEntry]:
    with os.scandir(path) as it:
        return sorted(it, key=lambda e: e.name)


def scan_structure(
    root: str,
    max_depth: int = 4,
    max_files: int = 5000,
    *,
    ignore_dirs: Iterable[str] = (),
    list_dir: Callable[[str], Iterable[DirEntryLike]] = _list_dir,
) -> tuple[CodebaseStructure, bool]:
    """Walk *root* and summarise its layout.

    The remaining file budget is passed down each recursive call; the walk
    stops as soon as ``total_files`` reaches *max_files*, leaving any further
    entries untouched.

    Args:
        root: Codebase root directory.
        max_depth: Deepest directory level (root = 0) whose entries are read.
        max_files: File cap for the whole walk.
        ignore_dirs: Directory names skipped in addition to IGNORED_DIRECTORIES.
        list_dir: Directory lister, injectable for tests.

    Returns:
        ``(structure, truncated)`` where *truncated* is True when the cap cut
        the walk short.
    """
    ignored = IGNORED_DIRECTORIES | frozenset(ignore_dirs)

    def visit(directory: str, depth: int, budget: int) -> tuple[CodebaseStructure, bool]:
        found = CodebaseStructure()
        if depth > max_depth:
            return found, False
        try:
            entries = list_dir(directory)
        except OSError as exc:
            logger.debug("Cannot list %s: %s", directory, exc)
            return found, False

        for entry in entries:
            if found.total_files >= budget:
                return found, True
            rel = os.path.relpath(entry.path, root)

            if entry.is_dir():
                if entry.name in ignored or entry.name.startswith("."):
                    continue
                found.total_directories += 1
                if depth <= _NOTABLE_DEPTH:
                    lower = entry.name.lower()
                    if lower in KEY_DIRECTORIES:
                        found.key_directories.append(rel)
                    if lower in TEST_DIRECTORIES:
                        found.has_tests = True
                    if lower in DOC_DIRECTORIES:
                        found.has_documentation = True
                sub, truncated = visit(entry.path, depth + 1, budget - found.total_files)
                found.merge(sub)
                if truncated:
                    return found, True
                continue

            found.total_files += 1
            ext = os.path.splitext(entry.name)[1].lower()
            if ext:
                found.files_by_extension[ext] = found.files_by_extension.get(ext, 0) + 1
            if depth <= _NOTABLE_DEPTH and entry.name in ENTRY_POINTS:
                found.entry_points.append(rel)
            if depth == 0 and entry.name in CONFIG_FILES:
                found.config_files.append(rel)
            if entry.name.lower() in README_NAMES:
                found.has_documentation = True
        return found, False

    structure, truncated = visit(root, 0, max_files)
    if truncated:
        logger.info("Structure walk of %s stopped at %d files", root, max_files)
    return structure, truncated
