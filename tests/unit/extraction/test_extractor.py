from __future__ import annotations

import hashlib
from pathlib import Path

from repo_index.extraction import ContentExtractor, ExtractionOptions
from repo_index.scanner import FileMetadata, FileScanner, ScanOptions


def _metadata(root: Path, rel: str) -> FileMetadata:
    metadata = FileScanner(ScanOptions(root=root)).scan_file(rel)
    assert metadata is not None
    return metadata


def test_extract_file_collects_facts_and_hash(tmp_path: Path) -> None:
    source = "import { b } from './b';\n\nexport function a(x: number) {\n  return b(x);\n}\n"
    (tmp_path / "a.ts").write_text(source, encoding="utf-8")

    extracted = ContentExtractor().extract_file(_metadata(tmp_path, "a.ts"))

    assert extracted is not None
    assert extracted.path == "a.ts"
    assert extracted.language == "TypeScript"
    assert extracted.line_count == 5
    assert extracted.char_count == len(source)
    assert extracted.content_hash == hashlib.sha256(source.encode("utf-8")).hexdigest()
    assert [item.module for item in extracted.imports] == ["./b"]
    assert [item.name for item in extracted.exports] == ["a"]
    assert [item.name for item in extracted.functions] == ["a"]
    assert extracted.chunks == ()


def test_extract_and_chunk_splits_large_files(tmp_path: Path) -> None:
    source = "".join(f"// line {index}\n" for index in range(100))
    (tmp_path / "big.ts").write_text(source, encoding="utf-8")
    extractor = ContentExtractor(ExtractionOptions(chunk_size=128))

    extracted = extractor.extract_and_chunk_file(_metadata(tmp_path, "big.ts"))

    assert extracted is not None
    assert len(extracted.chunks) > 1
    assert "".join(chunk.content for chunk in extracted.chunks) == source


def test_oversize_and_binary_files_are_skipped(tmp_path: Path) -> None:
    (tmp_path / "large.py").write_text("x = 1\n" * 100, encoding="utf-8")
    (tmp_path / "data.bin").write_bytes(b"\x00\x01\x02")
    (tmp_path / "ok.py").write_text("y = 2\n", encoding="utf-8")
    extractor = ContentExtractor(ExtractionOptions(max_file_size=64))

    batch = extractor.extract_files(
        [
            _metadata(tmp_path, "large.py"),
            _metadata(tmp_path, "data.bin"),
            _metadata(tmp_path, "ok.py"),
        ]
    )

    assert [item.path for item in batch.contents] == ["ok.py"]
    assert batch.skipped == ("large.py", "data.bin")
    assert batch.failures == ()


def test_unreadable_file_is_reported_as_failure(tmp_path: Path) -> None:
    (tmp_path / "gone.py").write_text("z = 3\n", encoding="utf-8")
    metadata = _metadata(tmp_path, "gone.py")
    (tmp_path / "gone.py").unlink()

    batch = ContentExtractor().extract_files([metadata])

    assert batch.contents == ()
    assert len(batch.failures) == 1
    assert batch.failures[0].path == "gone.py"


def test_fact_toggles_disable_extraction(tmp_path: Path) -> None:
    (tmp_path / "m.py").write_text("import os\n# note\ndef f():\n    pass\n", encoding="utf-8")
    options = ExtractionOptions(extract_imports=False, include_comments=False)

    extracted = ContentExtractor(options).extract_file(_metadata(tmp_path, "m.py"))

    assert extracted is not None
    assert extracted.imports == ()
    assert extracted.comments == ()
    assert [item.name for item in extracted.functions] == ["f"]


def test_chunks_follow_file_bytes_for_invalid_utf8(tmp_path: Path) -> None:
    data = b"x = 1\n" * 10 + b"# caf\xe9\n" + b"y = 2\n" * 2000
    (tmp_path / "legacy.py").write_bytes(data)
    extractor = ContentExtractor(ExtractionOptions(chunk_size=1024))

    extracted = extractor.extract_and_chunk_file(_metadata(tmp_path, "legacy.py"))

    assert extracted is not None
    assert extracted.size == len(data)
    assert extracted.chunks[-1].end_offset == len(data)
    assert b"".join(chunk.payload for chunk in extracted.chunks) == data
