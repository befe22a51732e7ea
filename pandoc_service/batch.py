"""Sequential batch conversion and zip packaging."""

import logging
import zipfile
from pathlib import Path
from typing import Callable, List, NamedTuple, Optional, Sequence, Set

from .formats import output_extension
from .pandoc import PandocError
from .schemas import ConversionOptions, ConversionResult
from .storage import original_stem

logger = logging.getLogger("pandoc_service.batch")

ARCHIVE_NAME = "converted-documents.zip"

# (input_path, output_path, from_format, to_format, options) -> output_path
Converter = Callable[[Path, Path, str, str, ConversionOptions], Path]


class BatchItem(NamedTuple):
    original_name: str
    input_path: Path
    output_path: Path


def convert_batch(
    items: Sequence[BatchItem],
    from_format: str,
    to_format: str,
    options: ConversionOptions,
    *,
    convert: Converter,
) -> List[ConversionResult]:
    """Convert ``items`` one at a time; a failed item never stops the batch.

    Results are returned in the same order as ``items``.
    """
    results: List[ConversionResult] = []
    for item in items:
        try:
            output_path = convert(
                item.input_path, item.output_path, from_format, to_format, options
            )
            if not Path(output_path).is_file():
                raise PandocError("Conversion produced no output file")
        except (PandocError, OSError) as exc:
            logger.error("Batch item %s failed: %s", item.original_name, exc)
            results.append(
                ConversionResult(
                    original_name=item.original_name, success=False, error=str(exc)
                )
            )
            continue
        results.append(
            ConversionResult(
                original_name=item.original_name,
                success=True,
                output_path=Path(output_path),
            )
        )

    succeeded = sum(1 for r in results if r.success)
    logger.info(
        "Batch finished: %d converted, %d failed", succeeded, len(results) - succeeded
    )
    return results


def _unique_name(name: str, used: Set[str]) -> str:
    if name not in used:
        return name
    stem, suffix = Path(name).stem, Path(name).suffix
    n = 2
    while f"{stem}-{n}{suffix}" in used:
        n += 1
    return f"{stem}-{n}{suffix}"


def archive_entry_names(
    results: Sequence[ConversionResult], to_format: str
) -> List[Optional[str]]:
    """Entry name per result (``None`` for failures); duplicates get ``-2``, ``-3``..."""
    extension = output_extension(to_format)
    used: Set[str] = set()
    names: List[Optional[str]] = []
    for result in results:
        if not result.success:
            names.append(None)
            continue
        name = _unique_name(f"{original_stem(result.original_name)}{extension}", used)
        used.add(name)
        names.append(name)
    return names


def build_archive(
    results: Sequence[ConversionResult], archive_path: Path, to_format: str
) -> int:
    """Write the successful outputs into a zip and return the entry count."""
    count = 0
    with zipfile.ZipFile(
        archive_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9
    ) as zf:
        for result, name in zip(results, archive_entry_names(results, to_format)):
            if name is None or result.output_path is None:
                continue
            zf.write(result.output_path, arcname=name)
            count += 1
    logger.info("Archive %s written with %d entries", archive_path, count)
    return count
