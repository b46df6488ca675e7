"""File content extraction and chunking."""

from .chunking import build_chunk_id, chunk_boundaries, chunk_content
from .extractor import ContentExtractor, ExtractionBatch
from .models import (
    CodeStructure,
    ContentChunk,
    ExtractedContent,
    ExtractionError,
    ExtractionOptions,
    StructureBlock,
)
from .structure import analyze_structure, cyclomatic_complexity

__all__ = [
    "CodeStructure",
    "ContentChunk",
    "ContentExtractor",
    "ExtractedContent",
    "ExtractionBatch",
    "ExtractionError",
    "ExtractionOptions",
    "StructureBlock",
    "analyze_structure",
    "build_chunk_id",
    "chunk_boundaries",
    "chunk_content",
    "cyclomatic_complexity",
]
