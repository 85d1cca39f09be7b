"""The tagged codebase index: files, packages, tags and import edges."""

from lixen.index.builder import IndexBuilder, build_index
from lixen.index.models import CodebaseIndex, DependencyAnalysis, FileInfo, PackageInfo

__all__ = [
    "CodebaseIndex",
    "DependencyAnalysis",
    "FileInfo",
    "IndexBuilder",
    "PackageInfo",
    "build_index",
]
