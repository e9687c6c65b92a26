"""
Turn vault files into text for extraction.

Each extractor returns ExtractedContent(title, extracted_text, date,
metadata). Read errors propagate to the caller.
"""

import csv
import io
import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from notegraph.core.documents import ExtractedContent
from notegraph.core.frontmatter import parse_frontmatter

JSON_TEXT_LIMIT = 50000


def _stem(relative_path: str) -> str:
    return Path(relative_path).stem


def _as_date(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _read_text(path: Path) -> str:
    return Path(path).read_text(encoding="utf-8", errors="replace")


def extract_markdown(relative_path: str, text: str) -> ExtractedContent:
    meta, body = parse_frontmatter(text)
    title = meta.get("title")
    return ExtractedContent(
        title=str(title) if title else _stem(relative_path),
        extracted_text=body,
        date=_as_date(meta.get("date")),
        metadata=meta,
    )


def extract_text(relative_path: str, text: str) -> ExtractedContent:
    return ExtractedContent(title=_stem(relative_path), extracted_text=text)


def extract_csv(relative_path: str, text: str) -> ExtractedContent:
    """Render each row as ``header=value`` pairs, one row per line."""
    delimiter = "\t" if relative_path.lower().endswith(".tsv") else ","
    rows = [r for r in csv.reader(io.StringIO(text), delimiter=delimiter) if any(c.strip() for c in r)]
    if not rows:
        return ExtractedContent(title=_stem(relative_path), extracted_text="", metadata={"headers": []})

    headers = [h.strip() for h in rows[0]]
    lines = []
    for row in rows[1:]:
        pairs = [
            f"{header}={row[i].strip() if i < len(row) else ''}"
            for i, header in enumerate(headers)
        ]
        lines.append(", ".join(pairs))

    return ExtractedContent(
        title=_stem(relative_path),
        extracted_text="\n".join(lines),
        metadata={"headers": headers, "rows": len(rows) - 1},
    )


def extract_json(relative_path: str, text: str) -> ExtractedContent:
    """Pretty-print the document; title and date come from top-level keys."""
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return ExtractedContent(
            title=_stem(relative_path),
            extracted_text=text[:JSON_TEXT_LIMIT],
            metadata={"invalid_json": True},
        )

    title = None
    doc_date = None
    if isinstance(parsed, dict):
        title = parsed.get("title") or parsed.get("name")
        doc_date = _as_date(parsed.get("date") or parsed.get("created"))

    return ExtractedContent(
        title=str(title) if title else _stem(relative_path),
        extracted_text=json.dumps(parsed, indent=2, ensure_ascii=False)[:JSON_TEXT_LIMIT],
        date=doc_date,
    )


EXTRACTORS: Dict[str, Callable[[str, str], ExtractedContent]] = {
    "markdown": extract_markdown,
    "text": extract_text,
    "csv": extract_csv,
    "json": extract_json,
}


def extract_content(relative_path: str, absolute_path: Path, file_type: str) -> ExtractedContent:
    """Read a file and extract title, date, text and metadata.

    Raises:
        OSError: the file cannot be read
    """
    text = _read_text(absolute_path)
    extractor = EXTRACTORS.get(file_type, extract_text)
    return extractor(relative_path, text)
