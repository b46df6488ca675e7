"""Structural fact extraction for scanned files."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from repo_index.adapters.base import validate_facts
from repo_index.adapters.lexical import mask_comments_and_strings
from repo_index.adapters.registry import RulesRegistry
from repo_index.adapters.runtime import build_rules_registry
from repo_index.extraction.chunking import chunk_content
from repo_index.extraction.models import ExtractedContent, ExtractionError, ExtractionOptions
from repo_index.extraction.structure import analyze_structure
from repo_index.scanner.models import FileMetadata


@dataclass(slots=True, frozen=True)
class ExtractionBatch:
    """Point-wise outcome of ``extract_files``."""

    contents: tuple[ExtractedContent, ...]
    skipped: tuple[str, ...]
    failures: tuple[ExtractionError, ...]


class ContentExtractor:
    """Read files and derive imports, symbols, comments, structure and chunks."""

    def __init__(
        self,
        options: ExtractionOptions | None = None,
        registry: RulesRegistry | None = None,
    ) -> None:
        self._options = options or ExtractionOptions()
        self._registry = registry or build_rules_registry()

    @property
    def options(self) -> ExtractionOptions:
        return self._options

    def extract_file(self, metadata: FileMetadata) -> ExtractedContent | None:
        """Return extracted facts, or None for binary and oversize files."""
        return self._extract(metadata, with_chunks=False)

    def extract_and_chunk_file(self, metadata: FileMetadata) -> ExtractedContent | None:
        """Like ``extract_file`` plus byte-offset chunks when content exceeds chunk_size."""
        return self._extract(metadata, with_chunks=True)

    def extract_files(
        self, metadatas: list[FileMetadata], *, with_chunks: bool = False
    ) -> ExtractionBatch:
        contents: list[ExtractedContent] = []
        skipped: list[str] = []
        failures: list[ExtractionError] = []
        for metadata in metadatas:
            try:
                extracted = self._extract(metadata, with_chunks=with_chunks)
            except ExtractionError as exc:
                failures.append(exc)
                continue
            if extracted is None:
                skipped.append(metadata.relative_path)
                continue
            contents.append(extracted)
        return ExtractionBatch(
            contents=tuple(contents),
            skipped=tuple(skipped),
            failures=tuple(failures),
        )

    def should_skip(self, metadata: FileMetadata) -> bool:
        return metadata.is_binary or metadata.size > self._options.max_file_size

    def _extract(self, metadata: FileMetadata, *, with_chunks: bool) -> ExtractedContent | None:
        if self.should_skip(metadata):
            return None
        try:
            data = metadata.path.read_bytes()
        except OSError as exc:
            raise ExtractionError(metadata.relative_path, str(exc)) from exc
        if len(data) > self._options.max_file_size:
            return None

        content = data.decode("utf-8", errors="replace")
        rules = self._registry.select(metadata.language)
        options = self._options
        imports = rules.imports(content) if options.extract_imports else []
        exports = rules.exports(content) if options.extract_exports else []
        functions = rules.functions(content) if options.extract_functions else []
        classes = rules.classes(content) if options.extract_classes else []
        comments = rules.comments(content) if options.include_comments else []
        for facts in (imports, exports, functions, classes):
            validate_facts(facts)

        masked = mask_comments_and_strings(content, rules.lexical_rules)
        structure = analyze_structure(
            masked,
            block_style=rules.block_style,
            complexity_keywords=rules.complexity_keywords,
        )
        chunks = (
            chunk_content(metadata.relative_path, data, options.chunk_size)
            if with_chunks
            else ()
        )
        return ExtractedContent(
            path=metadata.relative_path,
            language=metadata.language,
            content=content,
            size=len(data),
            line_count=len(content.splitlines()),
            char_count=len(content),
            imports=tuple(imports),
            exports=tuple(exports),
            functions=tuple(functions),
            classes=tuple(classes),
            comments=tuple(comments),
            structure=structure,
            content_hash=hashlib.sha256(data).hexdigest(),
            chunks=chunks,
        )
