"""Tech stack and tag inference from detection, manifest and structure."""

from __future__ import annotations

import re

from cairn.projects.manifests import Detection, Manifest
from cairn.projects.structure import CodebaseStructure

EXTENSION_TECH: dict[str, tuple[str, ...]] = {
    ".ts": ("TypeScript",),
    ".tsx": ("TypeScript", "React"),
    ".jsx": ("React",),
    ".vue": ("Vue.js",),
    ".svelte": ("Svelte",),
    ".py": ("Python",),
    ".rs": ("Rust",),
    ".go": ("Go",),
    ".java": ("Java",),
    ".kt": ("Kotlin",),
    ".swift": ("Swift",),
    ".dart": ("Dart",),
    ".rb": ("Ruby",),
    ".php": ("PHP",),
}

DEPENDENCY_TECH: dict[str, str] = {
    "react": "React",
    "vue": "Vue.js",
    "svelte": "Svelte",
    "@angular/core": "Angular",
    "next": "Next.js",
    "nuxt": "Nuxt",
    "express": "Express",
    "fastify": "Fastify",
    "@nestjs/core": "NestJS",
    "prisma": "Prisma",
    "@prisma/client": "Prisma",
    "typeorm": "TypeORM",
    "mongoose": "MongoDB",
    "pg": "PostgreSQL",
    "postgres": "PostgreSQL",
    "mysql": "MySQL",
    "mysql2": "MySQL",
    "redis": "Redis",
    "ioredis": "Redis",
    "tailwindcss": "Tailwind CSS",
    "jest": "Jest",
    "vitest": "Vitest",
    "webpack": "Webpack",
    "vite": "Vite",
    "docker-compose": "Docker",
    # Python
    "django": "Django",
    "flask": "Flask",
    "fastapi": "FastAPI",
    "sqlalchemy": "SQLAlchemy",
    "pytest": "pytest",
    # Rust
    "tokio": "Tokio",
    "actix-web": "Actix",
    "axum": "Axum",
}

_DOCKER_MARKERS = ("dockerfile", "docker-compose")


def _is_docker_file(path: str) -> bool:
    lower = path.lower()
    return any(marker in lower for marker in _DOCKER_MARKERS)


def infer_tech_stack(
    detection: Detection,
    manifest: Manifest | None,
    structure: CodebaseStructure,
) -> list[str]:
    """Declared stack, then extension- and dependency-implied tech, then Docker.

    Order is first-seen; duplicates are dropped.
    """
    stack: dict[str, None] = dict.fromkeys(detection.declared_stack)

    for ext, count in structure.files_by_extension.items():
        if count > 0:
            stack.update(dict.fromkeys(EXTENSION_TECH.get(ext, ())))

    if manifest is not None:
        deps = {**manifest.dependencies, **manifest.dev_dependencies}
        for dep in deps:
            tech = DEPENDENCY_TECH.get(dep.lower())
            if tech:
                stack[tech] = None

    if any(_is_docker_file(f) for f in structure.config_files):
        stack["Docker"] = None
    return list(stack)


def _tag(tech: str) -> str:
    return re.sub(r"[^a-z0-9]", "-", tech.lower())


def generate_tags(
    detection: Detection,
    structure: CodebaseStructure,
    tech_stack: list[str],
) -> list[str]:
    tags: dict[str, None] = dict.fromkeys(_tag(t) for t in tech_stack)
    tags[detection.project_type] = None

    if structure.has_tests:
        tags["tested"] = None
    if structure.has_documentation:
        tags["documented"] = None
    if any(_is_docker_file(f) for f in structure.config_files):
        tags["containerized"] = None

    if structure.total_files > 100:
        tags["large-project"] = None
    elif structure.total_files > 20:
        tags["medium-project"] = None
    else:
        tags["small-project"] = None

    dirs = structure.key_directories
    if any("api" in d or "routes" in d for d in dirs):
        tags.update(dict.fromkeys(("api", "backend")))
    if any("components" in d or "views" in d for d in dirs):
        tags.update(dict.fromkeys(("frontend", "ui")))
    if any("cli" in d or "commands" in d for d in dirs):
        tags["cli"] = None
    return list(tags)
