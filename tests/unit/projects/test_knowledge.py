"""Tests for knowledge document generation."""

from __future__ import annotations

import threading

import pytest

from cairn.projects.knowledge import (
    ANALYSIS_SYSTEM_PROMPT,
    build_analysis_prompt,
    generate_llm_document,
    generate_quick_summary,
    read_sample_files,
    render_template,
)
from cairn.projects.manifests import Manifest
from cairn.projects.structure import CodebaseStructure, scan_structure


class StubLLM:
    def __init__(self, reply: str = "", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[tuple[str, str]] = []

    def complete(self, system_prompt, user_prompt, timeout=None):
        self.prompts.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.reply


class BlockingLLM:
    """Never answers until released."""

    def __init__(self) -> None:
        self.release = threading.Event()

    def complete(self, system_prompt, user_prompt, timeout=None):
        self.release.wait(5)
        return "too late"


@pytest.fixture
def manifest():
    return Manifest(
        type="nodejs",
        name="webapp",
        description="Demo web app",
        dependencies={"react": "^18.0.0", "express": "^4.0.0"},
        dev_dependencies={"typescript": "^5.0.0"},
    )


@pytest.fixture
def structure():
    return CodebaseStructure(
        total_files=7,
        total_directories=3,
        files_by_extension={".ts": 3, ".json": 2},
        key_directories=["src"],
        entry_points=["src/index.ts"],
        has_documentation=True,
    )


STACK = ["Node.js", "TypeScript"]


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------


def test_template_sections(manifest, structure):
    doc = render_template("webapp", "nodejs", manifest, structure, STACK)
    assert doc.startswith("# webapp\n")
    assert "## Overview\nA nodejs project: Demo web app.\n" in doc
    assert "- Node.js\n- TypeScript" in doc
    assert "- **Has Tests**: No" in doc
    assert "- **Has Documentation**: Yes" in doc
    assert "## Key Directories\n- src" in doc
    assert "## Entry Points\n- src/index.ts" in doc
    assert "- .ts: 3 files" in doc
    assert "Total: 2 production dependencies" in doc
    assert "Dev: 1 development dependencies" in doc
    assert "## Summary" not in doc


def test_template_with_summary_and_no_manifest(structure):
    doc = render_template("tool", "git", None, structure, [], summary="It does things.")
    assert "## Summary\nIt does things.\n" in doc
    assert "## Overview\nA git project.\n" in doc
    assert "## Dependencies" not in doc


# ---------------------------------------------------------------------------
# Sample files and prompts
# ---------------------------------------------------------------------------


def test_read_sample_files(node_project):
    structure, _ = scan_structure(str(node_project))
    samples = read_sample_files(node_project, structure)
    assert samples["README"].startswith("# Webapp")
    assert "export function main" in samples["src/index.ts"]
    assert set(samples) == {"README", "src/index.ts", "tsconfig.json", "package.json"}


def test_analysis_prompt_includes_manifest_and_samples(manifest, structure):
    prompt = build_analysis_prompt(
        "webapp", "nodejs", manifest, structure, STACK, {"README": "hello"}
    )
    assert 'project named "webapp"' in prompt
    assert "- Dependencies (2 total): react, express" in prompt
    assert "### README\n```\nhello\n```" in prompt


# ---------------------------------------------------------------------------
# LLM paths
# ---------------------------------------------------------------------------


def test_llm_document_used_when_returned(manifest, structure):
    llm = StubLLM(reply="  # webapp\n\nAn LLM view.  ")
    doc = generate_llm_document(llm, "webapp", "nodejs", manifest, structure, STACK, {})
    assert doc == "# webapp\n\nAn LLM view."
    assert llm.prompts[0][0] == ANALYSIS_SYSTEM_PROMPT


@pytest.mark.parametrize("llm", [StubLLM(error=RuntimeError("down")), StubLLM(reply="  ")])
def test_llm_failure_falls_back_to_template(llm, manifest, structure):
    doc = generate_llm_document(llm, "webapp", "nodejs", manifest, structure, STACK, {})
    assert doc == render_template("webapp", "nodejs", manifest, structure, STACK)


def test_quick_summary(manifest, structure):
    llm = StubLLM(reply="A demo app.\n")
    summary = generate_quick_summary(llm, "webapp", "nodejs", manifest, structure, STACK, 5)
    assert summary == "A demo app."
    assert "Description from manifest: Demo web app" in llm.prompts[0][1]


def test_quick_summary_timeout_returns_none(manifest, structure):
    llm = BlockingLLM()
    try:
        summary = generate_quick_summary(
            llm, "webapp", "nodejs", manifest, structure, STACK, timeout=0.05
        )
    finally:
        llm.release.set()
    assert summary is None


def test_quick_summary_error_returns_none(manifest, structure):
    llm = StubLLM(error=RuntimeError("quota"))
    assert generate_quick_summary(llm, "w", "nodejs", manifest, structure, STACK, 5) is None
