"""Knowledge documents: the searchable markdown description of a project.

The template is the fast default. An LLM can either write the whole document
from README / entry-point / config samples, or add a short summary paragraph
on top of the template. Any LLM failure falls back to the plain template.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from pathlib import Path
from typing import Protocol

from cairn.projects.manifests import Manifest
from cairn.projects.structure import CodebaseStructure

logger = logging.getLogger(__name__)

_SAMPLE_CHARS = 5000
_PROMPT_SAMPLE_CHARS = 2000
_README_NAMES = ("README.md", "README.txt", "readme.md", "Readme.md")
_IMPORTANT_CONFIGS = ("tsconfig.json", "package.json", "Cargo.toml", "pyproject.toml", "go.mod")

ANALYSIS_SYSTEM_PROMPT = """\
You are an expert software architect analyzing a codebase.
Your task is to generate a concise knowledge document about the project.
Focus on:
1. What the project does (purpose)
2. Architecture and design patterns
3. Key components and their roles
4. Technology stack and dependencies
5. Project structure insights

Be factual and concise. Use markdown formatting.
Do NOT make up information - only report what you can infer from the provided context."""

SUMMARY_SYSTEM_PROMPT = (
    "You are a software architect. Give a brief 2-3 sentence summary of what this "
    "project does based on the provided information. Be concise and factual. "
    "Do not make up information."
)


class SupportsComplete(Protocol):
    def complete(
        self, system_prompt: str, user_prompt: str, timeout: float | None = None
    ) -> str: ...


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def render_template(
    name: str,
    project_type: str,
    manifest: Manifest | None,
    structure: CodebaseStructure,
    tech_stack: list[str],
    summary: str | None = None,
) -> str:
    """Deterministic markdown knowledge document."""
    parts = [f"# {name}\n"]
    if summary:
        parts.append(f"## Summary\n{summary}\n")

    overview = f"A {project_type} project"
    if manifest is not None and manifest.description:
        overview += f": {manifest.description}"
    parts.append(f"## Overview\n{overview}.\n")

    parts.append("## Tech Stack\n" + "\n".join(f"- {t}" for t in tech_stack) + "\n")
    parts.append(
        "## Project Structure\n"
        f"- **Total Files**: {structure.total_files}\n"
        f"- **Total Directories**: {structure.total_directories}\n"
        f"- **Has Tests**: {_yes_no(structure.has_tests)}\n"
        f"- **Has Documentation**: {_yes_no(structure.has_documentation)}\n"
    )
    if structure.key_directories:
        parts.append(
            "## Key Directories\n" + "\n".join(f"- {d}" for d in structure.key_directories) + "\n"
        )
    if structure.entry_points:
        parts.append(
            "## Entry Points\n" + "\n".join(f"- {e}" for e in structure.entry_points) + "\n"
        )

    distribution = "\n".join(
        f"- {ext}: {count} files" for ext, count in structure.top_extensions()
    )
    doc = "\n".join(parts) + "\n## File Distribution\n" + distribution + "\n"

    if manifest is not None and manifest.dependencies:
        doc += (
            "\n## Dependencies\n"
            f"Total: {len(manifest.dependencies)} production dependencies\n"
        )
        if manifest.dev_dependencies:
            doc += f"Dev: {len(manifest.dev_dependencies)} development dependencies\n"
    return doc


def read_sample_files(root: str | Path, structure: CodebaseStructure) -> dict[str, str]:
    """README, the first two entry points and up to three key config files.

    Each sample is truncated; unreadable files are skipped.
    """
    base = Path(root)
    samples: dict[str, str] = {}

    def read(rel: str) -> str | None:
        try:
            return (base / rel).read_text(encoding="utf-8", errors="replace")[:_SAMPLE_CHARS]
        except OSError as exc:
            logger.debug("Cannot read sample %s: %s", rel, exc)
            return None

    for name in _README_NAMES:
        if (base / name).is_file():
            text = read(name)
            if text is not None:
                samples["README"] = text
            break

    for entry in structure.entry_points[:2]:
        text = read(entry)
        if text is not None:
            samples[entry] = text

    configs = 0
    for name in _IMPORTANT_CONFIGS:
        if configs >= 3:
            break
        if (base / name).is_file():
            text = read(name)
            if text is not None:
                samples[name] = text
                configs += 1
    return samples


def build_analysis_prompt(
    name: str,
    project_type: str,
    manifest: Manifest | None,
    structure: CodebaseStructure,
    tech_stack: list[str],
    samples: dict[str, str],
) -> str:
    lines = [
        f'Analyze this {project_type} project named "{name}" and generate a knowledge document.',
        "",
        "## Project Structure",
        f"- Total files: {structure.total_files}",
        f"- Total directories: {structure.total_directories}",
        f"- Has tests: {structure.has_tests}",
        f"- Has documentation: {structure.has_documentation}",
    ]
    if structure.key_directories:
        lines.append(f"- Key directories: {', '.join(structure.key_directories)}")
    if structure.entry_points:
        lines.append(f"- Entry points: {', '.join(structure.entry_points)}")

    lines += ["", "## File Distribution"]
    lines += [f"- {ext}: {count} files" for ext, count in structure.top_extensions()]
    lines += ["", "## Detected Tech Stack", ", ".join(tech_stack)]

    if manifest is not None:
        lines += ["", "## Manifest Information"]
        if manifest.name:
            lines.append(f"- Name: {manifest.name}")
        if manifest.version:
            lines.append(f"- Version: {manifest.version}")
        if manifest.description:
            lines.append(f"- Description: {manifest.description}")
        if manifest.dependencies:
            deps = list(manifest.dependencies)
            more = "..." if len(deps) > 10 else ""
            lines.append(f"- Dependencies ({len(deps)} total): {', '.join(deps[:10])}{more}")
        if manifest.dev_dependencies:
            dev = list(manifest.dev_dependencies)
            more = "..." if len(dev) > 5 else ""
            lines.append(f"- Dev dependencies ({len(dev)} total): {', '.join(dev[:5])}{more}")
        if manifest.scripts:
            lines.append(f"- Available scripts: {', '.join(manifest.scripts)}")

    if samples:
        lines += ["", "## Sample Files"]
        for file_name, content in samples.items():
            lines += ["", f"### {file_name}", "```", content[:_PROMPT_SAMPLE_CHARS], "```"]

    lines += ["", "---", "Generate a comprehensive knowledge document in markdown format."]
    return "\n".join(lines)


def build_summary_prompt(
    name: str,
    project_type: str,
    manifest: Manifest | None,
    structure: CodebaseStructure,
    tech_stack: list[str],
) -> str:
    lines = [f'Project: "{name}" ({project_type})', f"Tech Stack: {', '.join(tech_stack)}"]
    if manifest is not None and manifest.description:
        lines.append(f"Description from manifest: {manifest.description}")
    if structure.key_directories:
        lines.append(f"Key directories: {', '.join(structure.key_directories[:5])}")
    if structure.entry_points:
        lines.append(f"Entry points: {', '.join(structure.entry_points[:3])}")
    lines.append(
        f"Files: {structure.total_files}, Has tests: {structure.has_tests}, "
        f"Has docs: {structure.has_documentation}"
    )
    if manifest is not None and manifest.dependencies:
        lines.append(f"Key dependencies: {', '.join(list(manifest.dependencies)[:8])}")
    lines += ["", "What does this project do? Summarize in 2-3 sentences."]
    return "\n".join(lines)


def generate_llm_document(
    llm: SupportsComplete,
    name: str,
    project_type: str,
    manifest: Manifest | None,
    structure: CodebaseStructure,
    tech_stack: list[str],
    samples: dict[str, str],
) -> str:
    """LLM-written knowledge document; the template if the call fails or is empty."""
    prompt = build_analysis_prompt(name, project_type, manifest, structure, tech_stack, samples)
    try:
        text = llm.complete(ANALYSIS_SYSTEM_PROMPT, prompt)
    except Exception as exc:
        logger.warning("LLM analysis failed, using template: %s", exc)
        text = ""
    if not text.strip():
        return render_template(name, project_type, manifest, structure, tech_stack)
    return text.strip()


def generate_quick_summary(
    llm: SupportsComplete,
    name: str,
    project_type: str,
    manifest: Manifest | None,
    structure: CodebaseStructure,
    tech_stack: list[str],
    timeout: float,
) -> str | None:
    """Short LLM summary, or None on failure or when *timeout* seconds pass."""
    prompt = build_summary_prompt(name, project_type, manifest, structure, tech_stack)
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cairn-summary")
    future = pool.submit(llm.complete, SUMMARY_SYSTEM_PROMPT, prompt, timeout)
    try:
        text = future.result(timeout=timeout)
    except FutureTimeout:
        logger.info("Quick summary timed out after %.1fs, using template only", timeout)
        return None
    except Exception as exc:
        logger.warning("Quick summary failed: %s", exc)
        return None
    finally:
        pool.shutdown(wait=False)
    return text.strip() or None
