"""Text extraction from uploaded documents.

Supports PDF (PyMuPDF), DOCX and XLSX (their XML parts), CSV previews,
HTML and plain text/markdown. Parsing is blocking and runs in the default
executor.
"""

import asyncio
import csv
import io
import logging
import re
import zipfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from xml.etree import ElementTree as ET

import pymupdf as fitz
from bs4 import BeautifulSoup

from sourcefetch.core.constants import (
    CSV_PREVIEW_ROWS,
    FORMAT_PARSER,
    MAX_FILE_BYTES,
    SUMMARY_CHARS,
)
from sourcefetch.core.errors import EmptyContentError, SourceUnavailableError
from sourcefetch.core.source import Confidence, RawResult, SourceKind
from sourcefetch.strategies.base import ExtractionStrategy

logger = logging.getLogger(__name__)

EXTENSION_FORMATS = {
    ".pdf": "pdf",
    ".docx": "docx",
    ".xlsx": "xlsx",
    ".csv": "csv",
    ".txt": "text",
    ".md": "text",
    ".markdown": "text",
    ".html": "html",
    ".htm": "html",
}

MIME_FORMATS = {
    "application/pdf": "pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "text/csv": "csv",
    "text/plain": "text",
    "text/markdown": "text",
    "text/html": "html",
}

XLSX_PREVIEW_ROWS = 50


def excerpt(text: str, limit: int = SUMMARY_CHARS) -> str:
    """First ``limit`` characters of ``text``, cut at a word boundary."""
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) <= limit:
        return text
    return text[:limit].rsplit(" ", 1)[0] + "..."


def detect_format(
    path: Path, data: bytes, hints: Dict[str, Any]
) -> Optional[str]:
    """Work out the document format from hints, extension, then content."""
    mime_type = (hints.get("mime_type") or "").split(";")[0].strip().lower()
    if mime_type in MIME_FORMATS:
        return MIME_FORMATS[mime_type]

    name = hints.get("filename") or path.name
    suffix = Path(name).suffix.lower()
    if suffix in EXTENSION_FORMATS:
        return EXTENSION_FORMATS[suffix]

    if data.startswith(b"%PDF-"):
        return "pdf"
    if data.startswith(b"PK\x03\x04"):
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                names = archive.namelist()
        except zipfile.BadZipFile:
            return None
        if "word/document.xml" in names:
            return "docx"
        if "xl/workbook.xml" in names:
            return "xlsx"
    return None


def _xml_texts(element: ET.Element, local_name: str) -> List[str]:
    return [
        node.text
        for node in element.iter()
        if node.tag.endswith("}" + local_name) and node.text
    ]


def parse_pdf(data: bytes) -> Tuple[str, Optional[str], Dict[str, Any]]:
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except RuntimeError as e:
        raise SourceUnavailableError(f"Unreadable PDF: {e}") from e

    try:
        pages = [page.get_text() for page in doc]
        title = (doc.metadata or {}).get("title") or None
        meta = {"page_count": len(doc)}
    finally:
        doc.close()

    text = "\n\n".join(p.strip() for p in pages if p.strip())
    return text, title, meta


def parse_docx(data: bytes) -> Tuple[str, Optional[str], Dict[str, Any]]:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            root = ET.fromstring(archive.read("word/document.xml"))
    except (zipfile.BadZipFile, KeyError, ET.ParseError) as e:
        raise SourceUnavailableError(f"Unreadable DOCX: {e}") from e

    paragraphs = []
    for paragraph in root.iter():
        if paragraph.tag.endswith("}p"):
            text = "".join(_xml_texts(paragraph, "t")).strip()
            if text:
                paragraphs.append(text)
    return "\n\n".join(paragraphs), None, {"paragraphs": len(paragraphs)}


def parse_xlsx(
    data: bytes, max_rows: int = XLSX_PREVIEW_ROWS
) -> Tuple[str, Optional[str], Dict[str, Any]]:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = archive.namelist()
            shared: List[str] = []
            if "xl/sharedStrings.xml" in names:
                strings_root = ET.fromstring(archive.read("xl/sharedStrings.xml"))
                shared = [
                    "".join(_xml_texts(item, "t"))
                    for item in strings_root
                    if item.tag.endswith("}si")
                ]
            sheet_names = sorted(
                n
                for n in names
                if n.startswith("xl/worksheets/sheet") and n.endswith(".xml")
            )
            sheets = [(n, ET.fromstring(archive.read(n))) for n in sheet_names]
    except (zipfile.BadZipFile, KeyError, ET.ParseError) as e:
        raise SourceUnavailableError(f"Unreadable XLSX: {e}") from e

    sections = []
    for index, (_, sheet) in enumerate(sheets, start=1):
        rows = []
        for row in sheet.iter():
            if not row.tag.endswith("}row"):
                continue
            cells = []
            for cell in row:
                if not cell.tag.endswith("}c"):
                    continue
                values = _xml_texts(cell, "v") or _xml_texts(cell, "t")
                value = values[0] if values else ""
                if cell.get("t") == "s" and value.isdigit() and int(value) < len(shared):
                    value = shared[int(value)]
                cells.append(value.strip())
            if any(cells):
                rows.append(" | ".join(cells))
            if len(rows) >= max_rows:
                break
        if rows:
            sections.append(f"## Sheet {index}\n\n" + "\n".join(rows))
    return "\n\n".join(sections), None, {"sheets": len(sheets)}


def parse_csv(
    data: bytes, preview_rows: int = CSV_PREVIEW_ROWS
) -> Tuple[str, Optional[str], Dict[str, Any]]:
    rows = list(csv.reader(io.StringIO(data.decode("utf-8", errors="replace"))))
    rows = [r for r in rows if any(cell.strip() for cell in r)]
    if not rows:
        return "", None, {"rows": 0}

    lines = [" | ".join(cell.strip() for cell in r) for r in rows[:preview_rows]]
    if len(rows) > preview_rows:
        lines.append(f"\n[Showing first {preview_rows} of {len(rows)} rows]")
    return "\n".join(lines), None, {"rows": len(rows)}


def parse_html(data: bytes) -> Tuple[str, Optional[str], Dict[str, Any]]:
    soup = BeautifulSoup(data, "html.parser")
    for tag in soup.find_all(["script", "style", "noscript"]):
        tag.decompose()
    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else None
    return soup.get_text("\n", strip=True), title or None, {}


def parse_text(data: bytes) -> Tuple[str, Optional[str], Dict[str, Any]]:
    return data.decode("utf-8", errors="replace"), None, {}


class FormatParserStrategy(ExtractionStrategy):
    """Extract text from a local document file."""

    kind = SourceKind.DOCUMENT
    confidence = Confidence.PRIMARY

    def __init__(
        self,
        max_file_bytes: int = MAX_FILE_BYTES,
        csv_preview_rows: int = CSV_PREVIEW_ROWS,
    ):
        self.max_file_bytes = max_file_bytes
        self.csv_preview_rows = csv_preview_rows
        self._parsers: Dict[str, Callable[[bytes], Tuple[str, Optional[str], Dict]]] = {
            "pdf": parse_pdf,
            "docx": parse_docx,
            "xlsx": parse_xlsx,
            "csv": lambda data: parse_csv(data, self.csv_preview_rows),
            "html": parse_html,
            "text": parse_text,
        }

    @property
    def strategy_id(self) -> str:
        return FORMAT_PARSER

    def parse_file(self, reference: str, hints: Dict[str, Any]) -> RawResult:
        """Blocking read and parse of one file."""
        path = Path(reference).expanduser()
        if not path.is_file():
            raise SourceUnavailableError(f"Document not found: {reference}")

        size = path.stat().st_size
        if size > self.max_file_bytes:
            raise SourceUnavailableError(
                f"Document is {size} bytes; limit is {self.max_file_bytes}"
            )

        data = path.read_bytes()
        doc_format = detect_format(path, data, hints)
        if doc_format is None:
            raise SourceUnavailableError(f"Unsupported document format: {path.name}")

        text, title, meta = self._parsers[doc_format](data)
        if not text.strip():
            raise EmptyContentError(f"No text extracted from {path.name}")

        logger.info(f"Parsed {path.name} as {doc_format}: {len(text)} chars")
        return RawResult(
            body=text,
            strategy_id=self.strategy_id,
            confidence=self.confidence,
            title=title or hints.get("filename") or path.name,
            summary=excerpt(text),
            metadata={"format": doc_format, "file_bytes": size, **meta},
        )

    async def extract(
        self, reference: str, hints: Dict[str, Any], budget: float
    ) -> RawResult:
        loop = asyncio.get_running_loop()
        return await asyncio.wait_for(
            loop.run_in_executor(None, self.parse_file, reference, hints),
            timeout=budget,
        )
