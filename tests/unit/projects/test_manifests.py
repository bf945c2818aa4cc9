"""Tests for codebase detection, discovery and manifest parsing."""

from __future__ import annotations

import json

from cairn.projects.manifests import (
    Detection,
    detect_codebase,
    discover_codebases,
    parse_manifest,
)


# ---------------------------------------------------------------------------
# detect_codebase
# ---------------------------------------------------------------------------


def test_detect_node(node_project):
    detection = detect_codebase(node_project)
    assert detection == Detection(True, "nodejs", "package.json")
    assert detection.declared_stack == ["Node.js", "JavaScript"]


def test_cargo_only_is_rust(rust_project):
    detection = detect_codebase(rust_project)
    assert detection.project_type == "rust"
    assert detection.declared_stack == ["Rust"]


def test_priority_first_match_wins(tmp_path):
    (tmp_path / "requirements.txt").write_text("flask\n")
    (tmp_path / "package.json").write_text("{}")
    assert detect_codebase(tmp_path).manifest_file == "package.json"


def test_git_fallback(tmp_path):
    (tmp_path / ".git").mkdir()
    detection = detect_codebase(tmp_path)
    assert detection.is_codebase
    assert detection.project_type == "git"
    assert detection.manifest_file is None
    assert detection.declared_stack == []


def test_plain_directory_is_not_a_codebase(tmp_path):
    (tmp_path / "notes.txt").write_text("hi")
    assert not detect_codebase(tmp_path).is_codebase


def test_missing_path_is_not_a_codebase(tmp_path):
    assert not detect_codebase(tmp_path / "nope").is_codebase


# ---------------------------------------------------------------------------
# discover_codebases
# ---------------------------------------------------------------------------


def test_discover_stops_at_codebase_roots(tmp_path, node_project, rust_project):
    nested = node_project / "packages" / "inner"
    nested.mkdir(parents=True)
    (nested / "package.json").write_text("{}")
    hidden = tmp_path / ".cache" / "thing"
    hidden.mkdir(parents=True)
    (hidden / "go.mod").write_text("module x\n")

    found = discover_codebases(tmp_path)

    assert found == sorted([str(rust_project), str(node_project)])


def test_discover_respects_max_depth(tmp_path):
    deep = tmp_path / "a" / "b" / "c" / "d"
    deep.mkdir(parents=True)
    (deep / "go.mod").write_text("module deep\n")
    assert discover_codebases(tmp_path, max_depth=3) == []
    assert discover_codebases(tmp_path, max_depth=4) == [str(deep)]


# ---------------------------------------------------------------------------
# parse_manifest
# ---------------------------------------------------------------------------


def test_parse_package_json(node_project):
    manifest = parse_manifest(node_project, detect_codebase(node_project))
    assert manifest.name == "webapp"
    assert manifest.version == "1.2.0"
    assert manifest.dependencies == {"react": "^18.0.0", "express": "^4.0.0"}
    summary = manifest.summary()
    assert summary["devDependencies"] == {"typescript": "^5.0.0"}
    assert summary["scripts"] == {"build": "tsc"}


def test_parse_cargo(rust_project):
    manifest = parse_manifest(rust_project, detect_codebase(rust_project))
    assert (manifest.name, manifest.version) == ("crate", "0.1.0")
    assert manifest.dependencies == {"serde": "1"}


def test_parse_pyproject_list_dependencies(tmp_path):
    (tmp_path / "pyproject.toml").write_text(
        '[project]\nname = "tool"\nversion = "2.0"\n'
        'dependencies = ["Django>=4.2", "requests"]\n'
    )
    manifest = parse_manifest(tmp_path, detect_codebase(tmp_path))
    assert manifest.name == "tool"
    assert manifest.dependencies == {"django": ">=4.2", "requests": ""}


def test_parse_poetry_drops_python(tmp_path):
    (tmp_path / "pyproject.toml").write_text(
        '[tool.poetry]\nname = "svc"\n\n[tool.poetry.dependencies]\n'
        'python = "^3.11"\nfastapi = "^0.110"\n'
    )
    manifest = parse_manifest(tmp_path, detect_codebase(tmp_path))
    assert manifest.dependencies == {"fastapi": "^0.110"}


def test_parse_requirements_skips_comments_and_options(tmp_path):
    (tmp_path / "requirements.txt").write_text("# pinned\n-r base.txt\nflask==3.0\n\npytest\n")
    manifest = parse_manifest(tmp_path, detect_codebase(tmp_path))
    assert manifest.dependencies == {"flask": "==3.0", "pytest": ""}


def test_parse_go_mod(tmp_path):
    (tmp_path / "go.mod").write_text("module github.com/acme/tool\n\ngo 1.22\n")
    assert parse_manifest(tmp_path, detect_codebase(tmp_path)).name == "github.com/acme/tool"


def test_parse_pubspec(tmp_path):
    (tmp_path / "pubspec.yaml").write_text("name: app\nversion: 1.0.0\ndependencies:\n  http: ^1.0\n")
    manifest = parse_manifest(tmp_path, detect_codebase(tmp_path))
    assert manifest.type == "dart"
    assert manifest.dependencies == {"http": "^1.0"}


def test_unparsed_manifest_keeps_raw_text(tmp_path):
    (tmp_path / "Makefile").write_text("all:\n\techo hi\n")
    manifest = parse_manifest(tmp_path, detect_codebase(tmp_path))
    assert manifest.type == "make"
    assert manifest.raw.startswith("all:")


def test_broken_manifest_degrades_to_type_only(tmp_path, caplog):
    (tmp_path / "package.json").write_text("{not json")
    manifest = parse_manifest(tmp_path, detect_codebase(tmp_path))
    assert manifest.type == "nodejs"
    assert manifest.name == "" and manifest.dependencies == {}
    assert "Could not parse" in caplog.text


def test_git_only_manifest_is_type_only(tmp_path):
    (tmp_path / ".git").mkdir()
    manifest = parse_manifest(tmp_path, detect_codebase(tmp_path))
    assert manifest.type == "git"
    assert manifest.summary()["dependencies"] == {}
