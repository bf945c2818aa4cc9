"""Code skeletons: declaration and signature lines per source file.

A skeleton keeps only the outline of a file (imports, types, function and
method signatures) so code search embeds structure rather than bodies.
Extraction is regex-based per language, deliberately shallow and fast.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_SKELETON_LINES = 100
MAX_SOURCE_CHARS = 100_000
_MAX_DOCSTRINGS = 5

DEFAULT_IGNORE_DIRS = frozenset(
    {
        # dependencies
        "node_modules", "bower_components", "jspm_packages", "vendor", "packages", ".pnpm",
        # version control
        ".git", ".svn", ".hg", ".bzr",
        # build output
        "dist", "build", "out", "output", "_build", "target", "bin", "obj",
        # caches
        ".cache", ".parcel-cache", ".turbo", ".nx", "__pycache__", ".pytest_cache",
        ".mypy_cache", ".ruff_cache", ".tox",
        # frameworks
        ".next", ".nuxt", ".svelte-kit", ".vercel", ".netlify", ".serverless",
        # editors
        ".vscode", ".idea", ".vs", ".eclipse",
        # virtual environments
        "venv", "env", ".env", ".venv", "virtualenv", "conda-env",
        # coverage
        "coverage", ".nyc_output", "htmlcov",
        # docs, logs, scratch
        "docs", "_docs", "documentation", "logs", "log", "tmp", "temp", ".tmp",
        ".DS_Store", "Thumbs.db",
    }
)

TEST_PATTERNS = frozenset(
    {"*.test.ts", "*.test.js", "*.spec.ts", "*.spec.js", "__tests__", "__mocks__"}
)

DEFAULT_IGNORE_FILES = frozenset(
    {
        # lock files
        "package-lock.json", "yarn.lock", "pnpm-lock.yaml", "Gemfile.lock", "Cargo.lock",
        "poetry.lock", "composer.lock",
        # tool config
        ".gitignore", ".gitattributes", ".npmrc", ".yarnrc", ".editorconfig", ".prettierrc",
        ".eslintrc", ".stylelintrc", "tsconfig.json", "jsconfig.json", "babel.config.js",
        "webpack.config.js", "rollup.config.js", "vite.config.js", "jest.config.js",
        "vitest.config.js",
        # environment
        ".env", ".env.local", ".env.development", ".env.production", ".env.test",
        # bundled, mapped or generated
        "*.min.js", "*.min.css", "*.bundle.js", "*.chunk.js", "*.map", "*.js.map",
        "*.css.map", "*.generated.ts", "*.generated.js", "*.d.ts",
    }
) | TEST_PATTERNS

DEFAULT_IGNORE_EXTENSIONS = frozenset(
    {
        ".lock", ".log", ".map", ".min.js", ".min.css", ".svg", ".png", ".jpg", ".jpeg",
        ".gif", ".ico", ".woff", ".woff2", ".ttf", ".eot", ".mp3", ".mp4", ".webm", ".pdf",
        ".zip", ".tar", ".gz", ".rar",
    }
)


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.MULTILINE) for p in patterns)


_TS_TYPE = r"[\w<>\[\]|&, \t]+"

_TYPESCRIPT = _compile(
    r"^export[ \t]+(?:default[ \t]+)?(?:async[ \t]+)?"
    r"(?:function|class|interface|type|enum|const|let|var)[ \t]+[\w<>, \t]+",
    r"^(?:export[ \t]+)?(?:abstract[ \t]+)?class[ \t]+\w+"
    r"(?:[ \t]+extends[ \t]+[\w<>., \t]+?)?(?:[ \t]+implements[ \t]+[\w<>., \t]+?)?[ \t]*\{",
    r"^(?:export[ \t]+)?interface[ \t]+\w+(?:[ \t]+extends[ \t]+[\w<>., \t]+?)?[ \t]*\{",
    r"^(?:export[ \t]+)?type[ \t]+\w+(?:<[^>\n]+>)?[ \t]*=",
    r"^(?:export[ \t]+)?(?:async[ \t]+)?function\*?[ \t]+\w+[ \t]*(?:<[^>\n]+>)?[ \t]*"
    rf"\([^)]*\)(?:[ \t]*:{_TS_TYPE})?",
    rf"^(?:export[ \t]+)?(?:const|let|var)[ \t]+\w+[ \t]*(?::{_TS_TYPE})?=[ \t]*"
    rf"(?:async[ \t]+)?\([^)]*\)[ \t]*(?::{_TS_TYPE})?=>",
    r"^[ \t]+(?:(?:public|private|protected|static|async|readonly)[ \t]+)*"
    r"(?!(?:if|for|while|switch|catch|return|function|else|new|await|typeof)\b)"
    rf"\w+[ \t]*(?:<[^>\n]+>)?[ \t]*\([^)]*\)(?:[ \t]*:{_TS_TYPE})?",
    r"^@\w+\([^)]*\)",
)

_PYTHON = _compile(
    r"^class[ \t]+\w+(?:\([^)]*\))?[ \t]*:",
    r"^(?:async[ \t]+)?def[ \t]+\w+[ \t]*\([^)]*\)(?:[ \t]*->[^:\n]+)?[ \t]*:",
    r"^[ \t]+(?:async[ \t]+)?def[ \t]+\w+[ \t]*\([^)]*\)(?:[ \t]*->[^:\n]+)?[ \t]*:",
    r"^@[\w.]+(?:\([^)]*\))?",
    r"^from[ \t]+[\w.]+[ \t]+import[ \t]+[\w, \t*]+",
    r"^import[ \t]+[\w.]+(?:[ \t]+as[ \t]+\w+)?",
)
_PY_DOCSTRING = re.compile(r'"""[\s\S]*?"""')

_RUST = _compile(
    r"^[ \t]*(?:pub(?:\([\w:]+\))?[ \t]+)?struct[ \t]+\w+(?:<[^>\n]+>)?"
    r"(?:[ \t]+where[^{\n]+)?[ \t]*\{?",
    r"^[ \t]*(?:pub(?:\([\w:]+\))?[ \t]+)?enum[ \t]+\w+(?:<[^>\n]+>)?[ \t]*\{",
    r"^[ \t]*(?:pub(?:\([\w:]+\))?[ \t]+)?trait[ \t]+\w+(?:<[^>\n]+>)?"
    r"(?:[ \t]*:[\w \t+<>]+)?[ \t]*\{",
    r"^impl(?:<[^>\n]+>)?[ \t]+(?:[\w:]+(?:<[^>\n]+>)?[ \t]+for[ \t]+)?"
    r"[\w:]+(?:<[^>\n]+>)?[ \t]*\{",
    r"^[ \t]*(?:pub(?:\([\w:]+\))?[ \t]+)?(?:async[ \t]+)?fn[ \t]+\w+(?:<[^>\n]+>)?[ \t]*"
    r"\([^)]*\)(?:[ \t]*->[ \t]*[\w<>&\[\]', \t:]+)?",
    r"^use[ \t]+[\w:{}*, \t]+;",
    r"^(?:pub[ \t]+)?mod[ \t]+\w+;?",
)

_GO = _compile(
    r"^package[ \t]+\w+",
    r"^type[ \t]+\w+[ \t]+struct[ \t]*\{",
    r"^type[ \t]+\w+[ \t]+interface[ \t]*\{",
    r"^func[ \t]+(?:\([^)]+\)[ \t]*)?\w+(?:\[[^\]\n]+\])?[ \t]*\([^)]*\)"
    r"(?:[ \t]*\([^)]*\)|[ \t]*[\w*\[\].]+)?",
    r"^import[ \t]+(?:\([^)]+\)|\"[^\"]+\"|[\w.]+)",
    r"^(?:const|var)[ \t]+(?:\([^)]+\)|\w+(?:[ \t]+[\w*\[\].]+)?(?:[ \t]*=)?)",
)

_JAVA = _compile(
    r"^package[ \t]+[\w.]+;",
    r"^import[ \t]+(?:static[ \t]+)?[\w.*]+;",
    r"^[ \t]*(?:(?:public|private|protected|abstract|final|static)[ \t]+)*class[ \t]+\w+"
    r"(?:<[^>\n]+>)?(?:[ \t]+extends[ \t]+[\w<>,.]+)?"
    r"(?:[ \t]+implements[ \t]+[\w<>,. \t]+?)?[ \t]*\{",
    r"^[ \t]*(?:(?:public|private|protected)[ \t]+)?interface[ \t]+\w+(?:<[^>\n]+>)?"
    r"(?:[ \t]+extends[ \t]+[\w<>,. \t]+?)?[ \t]*\{",
    r"^[ \t]*(?:(?:public|private|protected)[ \t]+)?enum[ \t]+\w+"
    r"(?:[ \t]+implements[ \t]+[\w<>,. \t]+?)?[ \t]*\{",
    r"^[ \t]*(?:(?:public|private|protected|static|final|abstract|synchronized)[ \t]+)*"
    r"(?:<[^>\n]+>[ \t]+)?(?!(?:return|new|else|throw)\b)[\w<>\[\],.]+[ \t]+"
    r"(?!(?:if|for|while|switch|catch)\b)\w+[ \t]*\([^)]*\)"
    r"(?:[ \t]+throws[ \t]+[\w,. \t]+)?",
    r"^@\w+(?:\([^)]*\))?",
)

_SWIFT_ACCESS = r"(?:(?:public|private|internal|fileprivate|open|final)[ \t]+)*"
_SWIFT = _compile(
    r"^import[ \t]+\w+",
    rf"^[ \t]*{_SWIFT_ACCESS}class[ \t]+\w+(?:<[^>\n]+>)?(?:[ \t]*:[\w<>,. \t]+?)?[ \t]*\{{",
    rf"^[ \t]*{_SWIFT_ACCESS}struct[ \t]+\w+(?:<[^>\n]+>)?(?:[ \t]*:[\w<>,. \t]+?)?[ \t]*\{{",
    rf"^[ \t]*{_SWIFT_ACCESS}enum[ \t]+\w+(?:<[^>\n]+>)?(?:[ \t]*:[\w<>,. \t]+?)?[ \t]*\{{",
    rf"^[ \t]*{_SWIFT_ACCESS}protocol[ \t]+\w+(?:[ \t]*:[\w<>,. \t]+?)?[ \t]*\{{",
    r"^[ \t]*(?:@\w+[ \t]+)*"
    r"(?:(?:public|private|internal|fileprivate|open|static|class|override|mutating|final)[ \t]+)*"
    r"func[ \t]+\w+(?:<[^>\n]+>)?[ \t]*\([^)]*\)"
    r"(?:[ \t]*(?:async[ \t]*)?(?:throws|rethrows))?(?:[ \t]*->[ \t]*[\w<>\[\]?!.,: \t]+)?",
    r"^[ \t]*(?:(?:public|private|internal|fileprivate|static|class|lazy|weak|unowned)[ \t]+)*"
    r"(?:let|var)[ \t]+\w+[ \t]*:[ \t]*[\w<>\[\]?!.]+",
    r"^@\w+(?:\([^)]*\))?",
)

_RUBY = _compile(
    r"^[ \t]*class[ \t]+[\w:]+(?:[ \t]*<[ \t]*[\w:]+)?",
    r"^[ \t]*module[ \t]+[\w:]+",
    r"^[ \t]*def[ \t]+(?:self\.)?\w+[?!=]?(?:\([^)]*\))?",
    r"^[ \t]*attr_(?:reader|writer|accessor)[ \t]+[\w:, \t]+",
    r"^[ \t]*(?:include|extend|prepend)[ \t]+[\w:]+",
    r"^require(?:_relative)?[ \t]+['\"][\w/.-]+['\"]",
)

_PHP = _compile(
    r"^namespace[ \t]+[\w\\]+;",
    r"^use[ \t]+[\w\\]+(?:[ \t]+as[ \t]+\w+)?;",
    r"^(?:(?:abstract|final)[ \t]+)?class[ \t]+\w+(?:[ \t]+extends[ \t]+[\w\\]+)?"
    r"(?:[ \t]+implements[ \t]+[\w\\, \t]+)?[ \t]*\{?",
    r"^interface[ \t]+\w+(?:[ \t]+extends[ \t]+[\w\\, \t]+)?",
    r"^trait[ \t]+\w+",
    r"^[ \t]*(?:(?:public|private|protected|static|abstract|final)[ \t]+)*function[ \t]+\w+"
    r"[ \t]*\([^)]*\)(?:[ \t]*:[ \t]*\??[\w\\]+)?",
)


def _collect(content: str, patterns: Iterable[re.Pattern[str]]) -> list[str]:
    """Matched lines in pattern order, whitespace-collapsed and de-duplicated."""
    lines: dict[str, None] = {}
    for pattern in patterns:
        for match in pattern.finditer(content):
            cleaned = " ".join(match.group(0).split())
            if cleaned:
                lines[cleaned] = None
    return list(lines)


def extract_typescript(content: str) -> str:
    return "\n".join(_collect(content, _TYPESCRIPT)[:MAX_SKELETON_LINES])


def extract_python(content: str) -> str:
    lines = _collect(content, _PYTHON)
    for doc in _PY_DOCSTRING.findall(content)[:_MAX_DOCSTRINGS]:
        first = doc.split("\n", 1)[0].replace('"""', "").strip()
        note = f"# {first}"
        if first and len(first) < 100 and note not in lines:
            lines.append(note)
    return "\n".join(lines[:MAX_SKELETON_LINES])


def _extractor_for(patterns: tuple[re.Pattern[str], ...]) -> Callable[[str], str]:
    def extract(content: str) -> str:
        return "\n".join(_collect(content, patterns)[:MAX_SKELETON_LINES])

    return extract


# extension -> (language, extractor)
LANGUAGES: dict[str, tuple[str, Callable[[str], str]]] = {
    ".ts": ("typescript", extract_typescript),
    ".tsx": ("typescript", extract_typescript),
    ".js": ("javascript", extract_typescript),
    ".jsx": ("javascript", extract_typescript),
    ".mjs": ("javascript", extract_typescript),
    ".py": ("python", extract_python),
    ".rs": ("rust", _extractor_for(_RUST)),
    ".go": ("go", _extractor_for(_GO)),
    ".java": ("java", _extractor_for(_JAVA)),
    ".swift": ("swift", _extractor_for(_SWIFT)),
    ".rb": ("ruby", _extractor_for(_RUBY)),
    ".php": ("php", _extractor_for(_PHP)),
}


@dataclass
class FileSkeleton:
    file_path: str
    language: str
    content: str


@dataclass
class SkeletonOptions:
    """Walk limits and ignore lists for skeleton extraction.

    Custom ignores are added to the defaults. With *include_tests* the test
    file patterns (``*.test.ts``, ``__tests__`` ...) are no longer skipped.
    """

    max_depth: int = 5
    max_files: int = 500
    ignore_dirs: list[str] = field(default_factory=list)
    ignore_files: list[str] = field(default_factory=list)
    ignore_extensions: list[str] = field(default_factory=list)
    include_tests: bool = False

    def dir_ignores(self) -> frozenset[str]:
        return DEFAULT_IGNORE_DIRS | frozenset(self.ignore_dirs)

    def file_ignores(self) -> frozenset[str]:
        files = DEFAULT_IGNORE_FILES | frozenset(self.ignore_files)
        if self.include_tests:
            files -= TEST_PATTERNS
        return files

    def extension_ignores(self) -> frozenset[str]:
        extra = (e.lower() if e.startswith(".") else f".{e.lower()}" for e in self.ignore_extensions)
        return DEFAULT_IGNORE_EXTENSIONS | frozenset(extra)


def should_skip_file(
    file_name: str, ignore_files: frozenset[str], ignore_extensions: frozenset[str]
) -> bool:
    """Exact name, extension, or ``*suffix`` wildcard match."""
    if file_name in ignore_files:
        return True
    if os.path.splitext(file_name)[1].lower() in ignore_extensions:
        return True
    return any(p.startswith("*") and file_name.endswith(p[1:]) for p in ignore_files)


def extract_file_skeleton(path: str) -> FileSkeleton | None:
    """Skeleton for one source file, or None.

    None for unsupported languages, unreadable or oversized files, and files
    with no recognisable declarations.
    """
    ext = Path(path).suffix.lower()
    lang = LANGUAGES.get(ext)
    if lang is None:
        return None
    language, extractor = lang
    try:
        content = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return None
    if len(content) > MAX_SOURCE_CHARS:
        logger.debug("Skipping large file: %s", path)
        return None

    skeleton = extractor(content)
    if not skeleton.strip():
        return None
    return FileSkeleton(
        file_path=path,
        language=language,
        content=f"// File: {os.path.basename(path)}\n{skeleton}",
    )


def extract_project_skeletons(
    root: str, options: SkeletonOptions | None = None
) -> list[FileSkeleton]:
    """Skeletons for the source files under *root*, capped at ``max_files``.

    Only files that produce a non-empty skeleton count against the cap.
    Hidden and ignored directories are not entered.
    """
    opts = options or SkeletonOptions()
    skip_dirs = opts.dir_ignores()
    skip_files = opts.file_ignores()
    skip_exts = opts.extension_ignores()

    def visit(directory: str, depth: int, budget: int) -> list[FileSkeleton]:
        found: list[FileSkeleton] = []
        if depth > opts.max_depth or budget <= 0:
            return found
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            logger.debug("Cannot list %s: %s", directory, exc)
            return found

        for entry in entries:
            if len(found) >= budget:
                break
            if entry.is_dir(follow_symlinks=False):
                name = entry.name
                if name in skip_dirs or name in skip_files or name.startswith("."):
                    continue
                found.extend(visit(entry.path, depth + 1, budget - len(found)))
            elif entry.is_file() and not should_skip_file(entry.name, skip_files, skip_exts):
                skeleton = extract_file_skeleton(entry.path)
                if skeleton is not None:
                    found.append(skeleton)
        return found

    skeletons = visit(root, 0, opts.max_files)
    logger.info("Extracted %d skeleton(s) from %s", len(skeletons), root)
    return skeletons
