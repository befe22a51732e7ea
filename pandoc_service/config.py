"""Runtime settings for the conversion service, read from the environment."""

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

MAX_FILE_SIZE = 100 * 1024 * 1024  # 100 MB per upload
MAX_BATCH_FILES = 50
MAX_OUTPUT_CAPTURE = 10 * 1024 * 1024


class Settings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    pandoc_bin: str = "pandoc"
    upload_dir: Path = Path("uploads")
    download_dir: Path = Path("downloads")
    timeout: float = 120.0
    reference_doc: str = "reference.docx"
    css_path: str = "style.css"
    max_file_size: int = MAX_FILE_SIZE
    max_batch_files: int = MAX_BATCH_FILES
    max_output_capture: int = MAX_OUTPUT_CAPTURE

    @property
    def media_root(self) -> Path:
        return self.upload_dir / "media"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            pandoc_bin=os.getenv("PANDOC_PATH", "pandoc"),
            upload_dir=Path(os.getenv("UPLOAD_DIR", "uploads")),
            download_dir=Path(os.getenv("DOWNLOAD_DIR", "downloads")),
            timeout=float(os.getenv("PANDOC_TIMEOUT", "120")),
            reference_doc=os.getenv("PANDOC_REFERENCE_DOC", "reference.docx"),
            css_path=os.getenv("PANDOC_CSS", "style.css"),
        )

    def ensure_directories(self) -> None:
        for directory in (self.upload_dir, self.download_dir, self.media_root):
            directory.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings; overridden in tests through FastAPI dependencies."""
    return Settings.from_env()
