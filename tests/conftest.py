from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from pandoc_service import pandoc
from pandoc_service.config import Settings, get_settings
from pandoc_service.main import app

CORRUPT_MARKER = b"CORRUPT"


class FakePandoc:
    """Stands in for the pandoc executable.

    Writes ``converted:<input bytes>`` to the ``-o`` path and fails with a
    parse error when the input contains ``CORRUPT``.
    """

    version = "pandoc 3.1.9"

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        if cmd[1:] == ["--version"]:
            return subprocess.CompletedProcess(
                cmd, 0, stdout=f"{self.version}\nFeatures: +server\n", stderr=""
            )
        source = Path(cmd[1])
        target = Path(cmd[cmd.index("-o") + 1])
        data = source.read_bytes()
        if CORRUPT_MARKER in data:
            return subprocess.CompletedProcess(
                cmd, 64, stdout="", stderr="Error parsing input at line 1"
            )
        target.write_bytes(b"converted:" + data)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


@pytest.fixture(name="settings")
def _settings_fixture(tmp_path: Path) -> Settings:
    return Settings(
        upload_dir=tmp_path / "uploads",
        download_dir=tmp_path / "downloads",
        timeout=5,
    )


@pytest.fixture(name="fake_pandoc")
def _fake_pandoc_fixture(monkeypatch) -> FakePandoc:
    fake = FakePandoc()
    monkeypatch.setattr(pandoc.subprocess, "run", fake)
    monkeypatch.setattr(pandoc.shutil, "which", lambda name: f"/usr/bin/{name}")
    return fake


@pytest.fixture(name="client")
def _client_fixture(settings: Settings) -> Iterator[TestClient]:
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def scratch_files(settings: Settings) -> list[Path]:
    """Every file left under the upload and download directories."""
    found: list[Path] = []
    for root in (settings.upload_dir, settings.download_dir):
        if root.exists():
            found.extend(p for p in root.rglob("*") if p.is_file())
    return found
