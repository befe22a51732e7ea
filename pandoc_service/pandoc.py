"""Pandoc command building and subprocess execution."""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from .config import Settings
from .formats import is_input_format, is_output_format
from .schemas import ConversionOptions

logger = logging.getLogger("pandoc_service.pandoc")

PathLike = Union[str, Path]

STANDALONE_FORMATS = frozenset({"html", "docx", "odt", "epub", "pdf"})
TOC_FORMATS = frozenset({"html", "pdf", "docx", "epub"})
MEDIA_SOURCE_FORMATS = frozenset({"docx", "odt", "epub"})
SMART_READER_FORMATS = frozenset(
    {"markdown", "html", "epub", "latex", "rst", "textile", "org", "mediawiki"}
)

TOC_DEPTH = 6
PDF_ENGINE = "pdflatex"
PDF_MARGIN = "1in"
HIGHLIGHT_STYLE = "pygments"
DEFAULT_MEDIA_DIR = "./uploads/media"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class PandocError(Exception):
    """Base class for failures talking to pandoc."""


class EngineUnavailableError(PandocError):
    """pandoc is missing or cannot be executed."""


class UnsupportedFormatError(PandocError):
    """A format name is not in the catalog."""


class ConversionError(PandocError):
    """pandoc ran but did not convert the document."""


class ConversionTimeoutError(ConversionError):
    """pandoc did not finish within the configured timeout."""


# ---------------------------------------------------------------------------
# Command builder
# ---------------------------------------------------------------------------

def validate_formats(from_format: str, to_format: str) -> None:
    if not is_input_format(from_format):
        raise UnsupportedFormatError(f"Unsupported input format: {from_format!r}")
    if not is_output_format(to_format):
        raise UnsupportedFormatError(f"Unsupported output format: {to_format!r}")


def build_pandoc_command(
    input_path: PathLike,
    output_path: PathLike,
    from_format: str,
    to_format: str,
    options: Optional[ConversionOptions] = None,
    pandoc_bin: str = "pandoc",
    media_dir: PathLike = DEFAULT_MEDIA_DIR,
    reference_doc: str = "reference.docx",
    css_path: str = "style.css",
) -> List[str]:
    """Return the pandoc argument vector for one conversion."""
    validate_formats(from_format, to_format)
    options = options or ConversionOptions()

    # smart typography is a reader extension; docx, odt, rtf and json readers lack it
    reader = f"{from_format}+smart" if from_format in SMART_READER_FORMATS else from_format

    cmd = [
        pandoc_bin, str(input_path),
        "-f", reader,
        "-t", to_format,
        "-o", str(output_path),
    ]

    if to_format in STANDALONE_FORMATS:
        cmd.append("--standalone")

    if options.toc and to_format in TOC_FORMATS:
        cmd += ["--toc", f"--toc-depth={TOC_DEPTH}"]

    if options.number_sections:
        cmd.append("--number-sections")

    cmd.append("--preserve-tabs")

    # Compound documents carry their images inside the archive
    if from_format in MEDIA_SOURCE_FORMATS:
        cmd.append(f"--extract-media={media_dir}")

    if to_format == "html":
        cmd += ["--self-contained", "--mathjax"]
        if options.css:
            cmd.append(f"--css={css_path}")

    if to_format == "pdf":
        cmd += [f"--pdf-engine={PDF_ENGINE}", f"--variable=geometry:margin={PDF_MARGIN}"]

    if to_format == "docx":
        cmd.append(f"--reference-doc={reference_doc}")

    cmd += [f"--highlight-style={HIGHLIGHT_STYLE}", "--wrap=preserve"]

    if options.bibliography:
        cmd.append("--citeproc")

    return cmd


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

def check_pandoc(pandoc_bin: str = "pandoc", timeout: float = 10) -> str:
    """Return the first line of ``pandoc --version`` or raise EngineUnavailableError."""
    if not shutil.which(pandoc_bin):
        raise EngineUnavailableError("Pandoc is not installed or not in PATH")
    try:
        result = subprocess.run(
            [pandoc_bin, "--version"],
            capture_output=True, text=True, timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise EngineUnavailableError(f"Pandoc could not be started: {exc}") from exc
    if result.returncode != 0:
        raise EngineUnavailableError("Pandoc is not installed or not in PATH")
    return result.stdout.split("\n")[0]


def convert_file(
    input_path: PathLike,
    output_path: PathLike,
    from_format: str,
    to_format: str,
    options: Optional[ConversionOptions] = None,
    *,
    settings: Settings,
    media_dir: Optional[PathLike] = None,
) -> Path:
    """Run pandoc on one file and return ``output_path``.

    Blocks until pandoc exits or ``settings.timeout`` expires. The output
    file itself is not checked; that is pandoc's contract.
    """
    cmd = build_pandoc_command(
        input_path, output_path, from_format, to_format, options,
        pandoc_bin=settings.pandoc_bin,
        media_dir=media_dir if media_dir is not None else settings.media_root,
        reference_doc=settings.reference_doc,
        css_path=settings.css_path,
    )
    logger.info("Executing: %s", " ".join(cmd))

    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, timeout=settings.timeout,
        )
    except FileNotFoundError as exc:
        raise EngineUnavailableError("Pandoc is not installed or not in PATH") from exc
    except subprocess.TimeoutExpired as exc:
        logger.error("pandoc timed out after %s seconds", settings.timeout)
        raise ConversionTimeoutError(
            f"Conversion timed out after {settings.timeout:g} seconds"
        ) from exc

    captured = len(result.stdout or "") + len(result.stderr or "")
    if captured > settings.max_output_capture:
        logger.error("pandoc output exceeded capture limit (%d chars)", captured)
        raise ConversionError("Conversion failed: pandoc output exceeded capture limit")

    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        logger.error("Pandoc error: %s", stderr)
        reason = stderr or f"pandoc exited with status {result.returncode}"
        raise ConversionError(f"Conversion failed: {reason}")

    return Path(output_path)
