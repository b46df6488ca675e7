"""Typed models for extracted file content."""

from __future__ import annotations

from dataclasses import dataclass

from repo_index.adapters.base import ClassInfo, CommentInfo, ExportInfo, FunctionInfo, ImportInfo

DEFAULT_MAX_FILE_SIZE = 1024 * 1024
DEFAULT_CHUNK_SIZE = 10 * 1024


@dataclass(slots=True, frozen=True)
class ContentChunk:
    """Contiguous byte range of a file.

    ``content`` is the range decoded with ``surrogateescape`` so undecodable bytes
    survive; ``payload`` gives the original bytes back.
    """

    chunk_index: int
    chunk_number: int
    chunk_count: int
    start_offset: int
    end_offset: int
    content: str
    chunk_id: str

    @property
    def payload(self) -> bytes:
        return self.content.encode("utf-8", errors="surrogateescape")


@dataclass(slots=True, frozen=True)
class StructureBlock:
    """Control-flow block (if/for/while/try/switch...) with nesting depth."""

    type: str
    start_line: int
    end_line: int
    depth: int


@dataclass(slots=True, frozen=True)
class CodeStructure:
    """Block layout and cyclomatic complexity of one file."""

    blocks: tuple[StructureBlock, ...]
    complexity: int
    max_nesting_depth: int


@dataclass(slots=True, frozen=True)
class ExtractedContent:
    """Everything derived from one file's text."""

    path: str
    language: str
    content: str
    size: int
    line_count: int
    char_count: int
    imports: tuple[ImportInfo, ...]
    exports: tuple[ExportInfo, ...]
    functions: tuple[FunctionInfo, ...]
    classes: tuple[ClassInfo, ...]
    comments: tuple[CommentInfo, ...]
    structure: CodeStructure
    content_hash: str
    chunks: tuple[ContentChunk, ...] = ()


@dataclass(slots=True, frozen=True)
class ExtractionOptions:
    """Extractor limits and fact toggles."""

    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    chunk_size: int = DEFAULT_CHUNK_SIZE
    include_comments: bool = True
    extract_functions: bool = True
    extract_classes: bool = True
    extract_imports: bool = True
    extract_exports: bool = True


class ExtractionError(Exception):
    """Raised when a file cannot be read for extraction."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to extract {path}: {reason}")
        self.path = path
        self.reason = reason
