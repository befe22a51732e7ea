"""Fixed catalog of the formats the service accepts and produces."""

from pathlib import PurePath
from typing import Dict, List, Optional

# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

INPUT_FORMATS: List[Dict] = [
    {"value": "markdown", "label": "Markdown", "extensions": [".md", ".markdown"]},
    {"value": "html", "label": "HTML", "extensions": [".html", ".htm"]},
    {"value": "docx", "label": "Word (DOCX)", "extensions": [".docx"]},
    {"value": "odt", "label": "OpenDocument", "extensions": [".odt"]},
    {"value": "epub", "label": "EPUB", "extensions": [".epub"]},
    {"value": "latex", "label": "LaTeX", "extensions": [".tex"]},
    {"value": "rst", "label": "reStructuredText", "extensions": [".rst"]},
    {"value": "textile", "label": "Textile", "extensions": [".textile"]},
    {"value": "org", "label": "Org Mode", "extensions": [".org"]},
    {"value": "mediawiki", "label": "MediaWiki", "extensions": [".wiki"]},
    {"value": "rtf", "label": "Rich Text Format", "extensions": [".rtf"]},
    {"value": "json", "label": "Pandoc JSON", "extensions": [".json"]},
]

OUTPUT_FORMATS: List[Dict] = [
    {"value": "markdown", "label": "Markdown", "extension": ".md"},
    {"value": "html", "label": "HTML", "extension": ".html"},
    {"value": "docx", "label": "Word (DOCX)", "extension": ".docx"},
    {"value": "odt", "label": "OpenDocument", "extension": ".odt"},
    {"value": "epub", "label": "EPUB", "extension": ".epub"},
    {"value": "pdf", "label": "PDF", "extension": ".pdf"},
    {"value": "latex", "label": "LaTeX", "extension": ".tex"},
    {"value": "rst", "label": "reStructuredText", "extension": ".rst"},
    {"value": "textile", "label": "Textile", "extension": ".textile"},
    {"value": "org", "label": "Org Mode", "extension": ".org"},
    {"value": "mediawiki", "label": "MediaWiki", "extension": ".wiki"},
    {"value": "rtf", "label": "Rich Text Format", "extension": ".rtf"},
    {"value": "plain", "label": "Plain Text", "extension": ".txt"},
    {"value": "json", "label": "Pandoc JSON", "extension": ".json"},
]

DEFAULT_INPUT_FORMAT = "markdown"
DEFAULT_EXTENSION = ".txt"

_OUTPUT_EXTENSIONS = {fmt["value"]: fmt["extension"] for fmt in OUTPUT_FORMATS}
_INPUT_BY_EXTENSION = {
    ext: fmt["value"] for fmt in INPUT_FORMATS for ext in fmt["extensions"]
}

INPUT_FORMAT_NAMES = frozenset(fmt["value"] for fmt in INPUT_FORMATS)
OUTPUT_FORMAT_NAMES = frozenset(_OUTPUT_EXTENSIONS)


def is_input_format(value: Optional[str]) -> bool:
    return value in INPUT_FORMAT_NAMES


def is_output_format(value: Optional[str]) -> bool:
    return value in OUTPUT_FORMAT_NAMES


def output_extension(fmt: str) -> str:
    """File extension for an output format; unknown formats get ``.txt``."""
    return _OUTPUT_EXTENSIONS.get(fmt, DEFAULT_EXTENSION)


def guess_input_format(filename: Optional[str]) -> str:
    """Infer the source format from an upload's extension, else Markdown."""
    if not filename:
        return DEFAULT_INPUT_FORMAT
    suffix = PurePath(filename).suffix.lower()
    return _INPUT_BY_EXTENSION.get(suffix, DEFAULT_INPUT_FORMAT)
