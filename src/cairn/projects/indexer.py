"""Project indexer: analyse a codebase and persist it as a searchable Project.

index_project() runs its steps in a fixed order:

  1. delete any Project (and knowledge document) already stored at the path
  2. detect the codebase type, or raise NotACodebase
  3. walk the structure
  4. infer tech stack and tags
  5. build the knowledge document (template, quick summary, or LLM)
  6. persist the Project, then its code skeletons
  7. persist the knowledge document as a text Document

Re-indexing a path therefore replaces everything previously stored for it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from cairn.config import GenerationCfg, ProjectsCfg
from cairn.db.models import CodeSkeleton, Project
from cairn.db.store import VectorStore
from cairn.errors import CairnError, NotACodebase, NotFound, PersistenceFailed
from cairn.ingest.media import TEXT
from cairn.ingest.models import OperationResult
from cairn.projects.inference import generate_tags, infer_tech_stack
from cairn.projects.knowledge import (
    SupportsComplete,
    generate_llm_document,
    generate_quick_summary,
    read_sample_files,
    render_template,
)
from cairn.projects.manifests import (
    Manifest,
    detect_codebase,
    discover_codebases,
    parse_manifest,
)
from cairn.projects.skeletons import SkeletonOptions, extract_project_skeletons
from cairn.projects.structure import CodebaseStructure, scan_structure

logger = logging.getLogger(__name__)

KNOWLEDGE_DOCUMENT_TYPE = "knowledge"


@dataclass
class IndexOptions:
    """Per-call options for index_project().

    ``max_depth`` / ``max_files`` default to the ``projects:`` config section.
    ``use_llm`` has the LLM write the whole knowledge document from sample
    files; ``quick_summary`` only prepends a short LLM summary to the template.
    """

    name: str | None = None
    max_depth: int | None = None
    max_files: int | None = None
    use_llm: bool = False
    quick_summary: bool = False
    skip_skeletons: bool = False
    include_tests: bool = False
    ignore_dirs: list[str] = field(default_factory=list)
    ignore_files: list[str] = field(default_factory=list)
    ignore_extensions: list[str] = field(default_factory=list)


@dataclass
class ProjectDetails:
    project: Project
    knowledge_document: str
    skeleton_count: int = 0
    truncated: bool = False
    elapsed_ms: int = 0

    @property
    def message(self) -> str:
        return (
            f'Project "{self.project.name}" indexed successfully with '
            f"{self.project.file_count} files ({self.elapsed_ms}ms)"
        )


@dataclass
class ScanResult:
    indexed: list[ProjectDetails] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def normalize_path(path: str | Path) -> str:
    return str(Path(path).expanduser().resolve())


class ProjectIndexer:
    """Index codebases into the vector store.

    Args:
        store: Vector store holding projects, skeletons and documents.
        llm: Optional completion capability for knowledge documents. Without
            one, ``use_llm`` and ``quick_summary`` fall back to the template.
        config: Walk limits (``projects:`` config section).
        generation: LLM settings; its timeout bounds the quick summary.
    """

    def __init__(
        self,
        store: VectorStore,
        llm: SupportsComplete | None = None,
        config: ProjectsCfg | None = None,
        generation: GenerationCfg | None = None,
    ) -> None:
        self._store = store
        self._llm = llm
        self._cfg = config or ProjectsCfg()
        self._generation = generation or GenerationCfg()

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def index_project(
        self, path: str | Path, options: IndexOptions | None = None
    ) -> ProjectDetails:
        """Analyse the codebase at *path* and store it.

        Raises:
            NotACodebase: If no manifest or ``.git`` is found at *path*.
            PersistenceFailed: If the store rejects a write.
        """
        opts = options or IndexOptions()
        root = normalize_path(path)
        start = time.monotonic()
        logger.info("Indexing project at %s", root)

        # 1. supersede
        existing = self._store.get_project_by_path(root)
        if existing is not None:
            logger.info("Re-indexing existing project %s", existing.id)
            self._store.delete_project(existing.id)
        self._store.delete_documents_by_path(root)

        # 2. detect
        detection = detect_codebase(root)
        if not detection.is_codebase:
            raise NotACodebase(root)
        manifest = parse_manifest(root, detection)

        # 3. structure
        structure, truncated = scan_structure(
            root,
            max_depth=opts.max_depth or self._cfg.max_depth,
            max_files=opts.max_files or self._cfg.max_files,
            ignore_dirs=opts.ignore_dirs,
        )

        # 4. inference
        tech_stack = infer_tech_stack(detection, manifest, structure)
        tags = generate_tags(detection, structure, tech_stack)
        name = opts.name or manifest.name or Path(root).name

        # 5. knowledge document
        knowledge = self._knowledge_document(
            root, name, detection.project_type, manifest, structure, tech_stack, opts
        )

        # 6. project + skeletons
        project_id = self._store.add_project(
            name=name,
            path=root,
            description=knowledge,
            tech_stack=tech_stack,
            tags=tags,
            manifest=manifest.summary(),
            file_count=structure.total_files,
        )
        skeleton_count = 0
        if not opts.skip_skeletons:
            skeleton_count = self._index_skeletons(project_id, root, opts)

        # 7. knowledge as a searchable document
        self._store.add_text_document(
            knowledge,
            root,
            {
                "mediaType": TEXT,
                "documentType": KNOWLEDGE_DOCUMENT_TYPE,
                "projectId": project_id,
                "projectName": name,
            },
        )

        project = self._store.get_project(project_id)
        if project is None:
            raise PersistenceFailed(f"Project '{project_id}' missing after insert")
        details = ProjectDetails(
            project=project,
            knowledge_document=knowledge,
            skeleton_count=skeleton_count,
            truncated=truncated,
            elapsed_ms=int((time.monotonic() - start) * 1000),
        )
        logger.info("%s", details.message)
        return details

    def _knowledge_document(
        self,
        root: str,
        name: str,
        project_type: str,
        manifest: Manifest,
        structure: CodebaseStructure,
        tech_stack: list[str],
        opts: IndexOptions,
    ) -> str:
        if self._llm is not None and opts.use_llm:
            samples = read_sample_files(root, structure)
            return generate_llm_document(
                self._llm, name, project_type, manifest, structure, tech_stack, samples
            )
        summary = None
        if self._llm is not None and opts.quick_summary:
            summary = generate_quick_summary(
                self._llm,
                name,
                project_type,
                manifest,
                structure,
                tech_stack,
                timeout=self._generation.timeout,
            )
        elif opts.use_llm or opts.quick_summary:
            logger.warning("No LLM configured; using the template knowledge document")
        return render_template(name, project_type, manifest, structure, tech_stack, summary)

    def _index_skeletons(self, project_id: str, root: str, opts: IndexOptions) -> int:
        files = extract_project_skeletons(
            root,
            SkeletonOptions(
                max_depth=self._cfg.skeleton_max_depth,
                max_files=self._cfg.skeleton_max_files,
                ignore_dirs=opts.ignore_dirs,
                ignore_files=opts.ignore_files,
                ignore_extensions=opts.ignore_extensions,
                include_tests=opts.include_tests,
            ),
        )
        ids = self._store.add_code_skeletons_batch(
            [
                CodeSkeleton(
                    project_id=project_id,
                    file_path=f.file_path,
                    content=f.content,
                    language=f.language,
                )
                for f in files
            ]
        )
        return len(ids)

    def reindex(self, project_id: str, options: IndexOptions | None = None) -> ProjectDetails:
        """Index an already stored project again from its path.

        Raises:
            NotFound: If *project_id* is unknown.
        """
        project = self._store.get_project(project_id)
        if project is None:
            raise NotFound(f"Project '{project_id}' not found")
        opts = options or IndexOptions(name=project.name)
        return self.index_project(project.path, opts)

    def scan_and_index_all(
        self,
        root: str | Path,
        max_depth: int = 3,
        options: IndexOptions | None = None,
    ) -> ScanResult:
        """Discover every codebase under *root* and index each one.

        A failure on one codebase is recorded and does not stop the scan.
        """
        result = ScanResult()
        for path in discover_codebases(normalize_path(root), max_depth=max_depth):
            try:
                result.indexed.append(self.index_project(path, options))
            except CairnError as exc:
                logger.warning("Failed to index %s: %s", path, exc)
                result.failed[path] = str(exc)
        logger.info(
            "Scan of %s: %d indexed, %d failed", root, len(result.indexed), len(result.failed)
        )
        return result

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def list_projects(self) -> list[Project]:
        return self._store.list_projects()

    def get_project(self, project_id: str) -> Project | None:
        return self._store.get_project(project_id)

    def get_project_skeletons(self, project_id: str) -> list[CodeSkeleton]:
        return self._store.get_skeletons_by_project(project_id)

    def delete_project(self, project_id: str) -> OperationResult:
        """Delete a project, its skeletons and its knowledge document."""
        project = self._store.get_project(project_id)
        if project is None:
            return OperationResult(success=False, message=f'Project "{project_id}" not found')
        self._store.delete_project(project_id)
        self._store.delete_documents_by_path(project.path)
        logger.info("Deleted project %s (%s)", project.name, project_id)
        return OperationResult(
            success=True, message=f'Project "{project.name}" deleted successfully'
        )
