"""Pydantic request/response models for the conversion service."""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class InvalidOptionsError(ValueError):
    """Raised when the ``options`` form field is not a valid option set."""


# ---------------------------------------------------------------------------
# Conversion options (the ``options`` form field)
# ---------------------------------------------------------------------------

class ConversionOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    toc: bool = False
    number_sections: bool = Field(False, alias="numberSections")
    bibliography: bool = False
    css: bool = False

    @classmethod
    def parse_field(cls, raw: Optional[str]) -> "ConversionOptions":
        """Parse the JSON-encoded form field; a missing or blank field means defaults."""
        if raw is None or not raw.strip():
            return cls()
        try:
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            raise InvalidOptionsError(f"Invalid options: {exc.errors()[0]['msg']}") from exc


# ---------------------------------------------------------------------------
# Per-file batch outcome
# ---------------------------------------------------------------------------

class ConversionResult(BaseModel):
    original_name: str
    success: bool
    output_path: Optional[Path] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# /api/check-pandoc
# ---------------------------------------------------------------------------

class PandocStatus(BaseModel):
    available: bool
    version: Optional[str] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# /api/formats
# ---------------------------------------------------------------------------

class InputFormat(BaseModel):
    value: str
    label: str
    extensions: List[str]


class OutputFormat(BaseModel):
    value: str
    label: str
    extension: str


class FormatCatalog(BaseModel):
    input: List[InputFormat]
    output: List[OutputFormat]
