"""Turn uploaded documents into study text."""

from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Any, Callable, Optional

from .errors import ExtractionError
from .models import Material

__all__ = [
    "DEFAULT_MAX_CHARS",
    "TRUNCATION_MARKER",
    "SUPPORTED_EXTENSIONS",
    "extract_text",
    "truncate_text",
    "material_from_file",
]

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHARS = 30000
TRUNCATION_MARKER = "\n\n[Content truncated for processing...]"

_MARKITDOWN_EXTENSIONS = frozenset({"pdf", "docx", "html", "htm"})
_PLAIN_EXTENSIONS = frozenset({"txt", "md", "markdown"})
SUPPORTED_EXTENSIONS = _MARKITDOWN_EXTENSIONS | _PLAIN_EXTENSIONS

Converter = Callable[[Path], str]


def extract_text(path: Path, *, converter: Optional[Converter] = None) -> str:
    """Return the text content of ``path``.

    Plain-text formats are read directly; everything else goes through
    ``converter`` (MarkItDown by default).
    """

    source = Path(path)
    if not source.is_file():
        raise ExtractionError(f"File not found: {source}")
    extension = source.suffix.lstrip(".").lower()
    if extension not in SUPPORTED_EXTENSIONS:
        supported = ", ".join(sorted(SUPPORTED_EXTENSIONS))
        raise ExtractionError(
            f"Unsupported file type '.{extension}'. Supported: {supported}."
        )

    if extension in _PLAIN_EXTENSIONS:
        try:
            text = source.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise ExtractionError(f"Failed to read {source.name}") from exc
    else:
        convert = converter or _markitdown_converter()
        try:
            text = convert(source)
        except ExtractionError:
            raise
        except Exception as exc:
            logger.warning(
                "Document conversion failed",
                exc_info=True,
                extra={"source": source},
            )
            raise ExtractionError(
                f"Failed to extract text from {source.name}. Please try "
                "again or paste text directly."
            ) from exc

    text = (text or "").strip()
    if not text:
        raise ExtractionError(f"No text could be extracted from {source.name}.")
    logger.info(
        "Extracted document text",
        extra={"source": source, "characters": len(text)},
    )
    return text


def truncate_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    logger.warning(
        "Text truncated from %d to %d characters", len(text), max_chars
    )
    return text[:max_chars] + TRUNCATION_MARKER


def material_from_file(
    path: Path,
    *,
    title: Optional[str] = None,
    max_chars: int = DEFAULT_MAX_CHARS,
    converter: Optional[Converter] = None,
) -> Material:
    """Extract ``path`` and wrap it as :class:`Material`.

    The title defaults to the file name without its extension.
    """

    source = Path(path)
    text = truncate_text(extract_text(source, converter=converter), max_chars)
    return Material.create(title or source.stem, text)


def _markitdown_converter() -> Converter:
    engine = _import_markitdown().MarkItDown()

    def convert(source: Path) -> str:
        markdown = _coerce_markdown_result(engine.convert(str(source)))
        if markdown is None:
            raise ExtractionError(
                "markitdown returned an unsupported response; expected text."
            )
        return markdown

    return convert


def _import_markitdown() -> Any:
    try:
        return importlib.import_module("markitdown")
    except ImportError as exc:
        raise ExtractionError(
            "The 'markitdown' package is required to read PDF, DOCX and HTML "
            "files. Install it with `pip install \"markitdown[pdf,docx]\"`."
        ) from exc


def _coerce_markdown_result(result: Any) -> Optional[str]:
    for attribute in ("markdown", "text_content"):
        value = getattr(result, attribute, None)
        if isinstance(value, str):
            return value
    if isinstance(result, str):
        return result
    return None
