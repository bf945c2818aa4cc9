"""Cairn configuration loader.

Priority (high → low):
  1. CLI flags              (handled at call site, not in this module)
  2. Environment variables  (CAIRN_EMBEDDING_MODEL, CAIRN_GENERATION_MODEL, CAIRN_DB)
  3. Per-directory cairn.yaml
  4. Global ~/.cairn/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".cairn"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_LOCAL_CONFIG_NAME: str = "cairn.yaml"

# Key names that look like credentials. Does not match max_tokens, batch_size etc.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    [
        "database",
        "embedding",
        "generation",
        "transcription",
        "captioning",
        "ingest",
        "projects",
        "search",
    ]
)

MAX_FILE_BYTES = 1024 * 1024 * 1024  # 1 GiB
DEFAULT_CONCURRENCY = 10
MAX_CONCURRENCY = 50


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class DatabaseCfg:
    """Location of the knowledge base (cairn.yaml: database:)."""

    path: str = str(_GLOBAL_CONFIG_DIR / "cairn.db")


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (cairn.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    batch_size: int = 64


@dataclass
class GenerationCfg:
    """LLM used for knowledge documents (cairn.yaml: generation:)."""

    model: str = "openai/gpt-4o-mini"
    timeout: float = 8.0


@dataclass
class TranscriptionCfg:
    model: str = "openai/whisper-1"


@dataclass
class CaptioningCfg:
    """Vision model used to caption images (cairn.yaml: captioning:).

    Attributes:
        model: LiteLLM model string with vision support.
        retries: Extra attempts after the first failure.
        retry_delay: Seconds to wait between attempts.
    """

    model: str = "openai/gpt-4o-mini"
    retries: int = 2
    retry_delay: float = 2.0


@dataclass
class IngestCfg:
    """Batch ingest limits (cairn.yaml: ingest:)."""

    concurrency: int = DEFAULT_CONCURRENCY
    max_file_bytes: int = MAX_FILE_BYTES


@dataclass
class ProjectsCfg:
    """Codebase walk limits (cairn.yaml: projects:)."""

    max_depth: int = 4
    max_files: int = 5000
    skeleton_max_depth: int = 5
    skeleton_max_files: int = 500


@dataclass
class SearchCfg:
    project_limit: int = 5
    code_limit: int = 10
    document_limit: int = 10


@dataclass
class CairnConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    transcription: TranscriptionCfg = field(default_factory=TranscriptionCfg)
    captioning: CaptioningCfg = field(default_factory=CaptioningCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)
    projects: ProjectsCfg = field(default_factory=ProjectsCfg)
    search: SearchCfg = field(default_factory=SearchCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}', ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: CairnConfig) -> None:
    if cfg.embedding.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}")
    if not 1 <= cfg.ingest.concurrency <= MAX_CONCURRENCY:
        raise ConfigError(
            f"ingest.concurrency must be between 1 and {MAX_CONCURRENCY}, "
            f"got {cfg.ingest.concurrency}"
        )
    if cfg.ingest.max_file_bytes > MAX_FILE_BYTES:
        raise ConfigError("ingest.max_file_bytes cannot exceed 1 GiB")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> CairnConfig:
    """Build a *CairnConfig* from a merged raw YAML dict."""
    cfg = CairnConfig()

    if "database" in data:
        d = data["database"]
        cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

    if "embedding" in data:
        e = data["embedding"]
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
        )

    if "generation" in data:
        g = data["generation"]
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            timeout=float(g.get("timeout", cfg.generation.timeout)),
        )

    if "transcription" in data:
        t = data["transcription"]
        cfg.transcription = TranscriptionCfg(
            model=str(t.get("model", cfg.transcription.model)),
        )

    if "captioning" in data:
        c = data["captioning"]
        cfg.captioning = CaptioningCfg(
            model=str(c.get("model", cfg.captioning.model)),
            retries=int(c.get("retries", cfg.captioning.retries)),
            retry_delay=float(c.get("retry_delay", cfg.captioning.retry_delay)),
        )

    if "ingest" in data:
        i = data["ingest"]
        cfg.ingest = IngestCfg(
            concurrency=int(i.get("concurrency", cfg.ingest.concurrency)),
            max_file_bytes=int(i.get("max_file_bytes", cfg.ingest.max_file_bytes)),
        )

    if "projects" in data:
        p = data["projects"]
        cfg.projects = ProjectsCfg(
            max_depth=int(p.get("max_depth", cfg.projects.max_depth)),
            max_files=int(p.get("max_files", cfg.projects.max_files)),
            skeleton_max_depth=int(
                p.get("skeleton_max_depth", cfg.projects.skeleton_max_depth)
            ),
            skeleton_max_files=int(
                p.get("skeleton_max_files", cfg.projects.skeleton_max_files)
            ),
        )

    if "search" in data:
        s = data["search"]
        cfg.search = SearchCfg(
            project_limit=int(s.get("project_limit", cfg.search.project_limit)),
            code_limit=int(s.get("code_limit", cfg.search.code_limit)),
            document_limit=int(s.get("document_limit", cfg.search.document_limit)),
        )

    return cfg


def _apply_env_overrides(cfg: CairnConfig) -> CairnConfig:
    """Apply CAIRN_* environment variable overrides."""
    if model := os.environ.get("CAIRN_GENERATION_MODEL"):
        cfg.generation.model = model
    if model := os.environ.get("CAIRN_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if db := os.environ.get("CAIRN_DB"):
        cfg.database.path = db
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    config_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> CairnConfig:
    """Load and return a merged *CairnConfig*.

    Applies layers in order: global → per-directory → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        config_dir: Directory to search for *cairn.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields or a value
            is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = config_dir if config_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    local_path = search_dir / _LOCAL_CONFIG_NAME
    if local_path.exists():
        raw_local = yaml.safe_load(local_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_local, local_path)
        merged = _deep_merge(merged, raw_local)

    cfg = _cfg_from_dict(merged)
    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg


def ensure_global_config(global_config_path: Path | None = None) -> Path:
    """Create ``~/.cairn/config.yaml`` with defaults if it does not exist.

    The directory is created with mode 0o700 and the file with 0o600.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# Cairn global configuration: model defaults only.\n"
            "# NEVER store API keys here, use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "  dimensions: 1536\n"
            "\n"
            "generation:\n"
            "  model: openai/gpt-4o-mini\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
