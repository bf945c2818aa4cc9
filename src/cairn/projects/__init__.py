"""Cairn codebase analysis and project indexing."""

from cairn.projects.indexer import IndexOptions, ProjectDetails, ProjectIndexer, ScanResult
from cairn.projects.manifests import Detection, Manifest, detect_codebase, discover_codebases
from cairn.projects.skeletons import SkeletonOptions, extract_file_skeleton
from cairn.projects.structure import CodebaseStructure, scan_structure

__all__ = [
    "CodebaseStructure",
    "Detection",
    "IndexOptions",
    "Manifest",
    "ProjectDetails",
    "ProjectIndexer",
    "ScanResult",
    "SkeletonOptions",
    "detect_codebase",
    "discover_codebases",
    "extract_file_skeleton",
    "scan_structure",
]
