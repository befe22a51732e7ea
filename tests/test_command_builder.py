from __future__ import annotations

import pytest

from pandoc_service.formats import INPUT_FORMAT_NAMES, OUTPUT_FORMAT_NAMES
from pandoc_service.pandoc import (
    UnsupportedFormatError,
    build_pandoc_command,
)
from pandoc_service.schemas import ConversionOptions

ALL_PAIRS = [
    (src, dst)
    for src in sorted(INPUT_FORMAT_NAMES)
    for dst in sorted(OUTPUT_FORMAT_NAMES)
]


def _build(src="markdown", dst="html", **opts):
    return build_pandoc_command(
        "in.md", "out.html", src, dst, ConversionOptions(**opts)
    )


def test_base_arguments_are_discrete_and_ordered():
    cmd = _build("markdown", "rst")

    assert cmd[:8] == [
        "pandoc", "in.md", "-f", "markdown+smart", "-t", "rst", "-o", "out.html",
    ]
    assert cmd[-2:] == ["--highlight-style=pygments", "--wrap=preserve"]
    assert "--preserve-tabs" in cmd


@pytest.mark.parametrize("src,dst", ALL_PAIRS)
def test_standalone_only_for_document_targets(src, dst):
    cmd = _build(src, dst)
    expected = dst in {"html", "docx", "odt", "epub", "pdf"}
    assert ("--standalone" in cmd) is expected


@pytest.mark.parametrize("src,dst", ALL_PAIRS)
def test_toc_requires_option_and_supported_target(src, dst):
    with_toc = _build(src, dst, toc=True)
    without_toc = _build(src, dst, toc=False)

    expected = dst in {"html", "pdf", "docx", "epub"}
    assert ("--toc" in with_toc) is expected
    assert ("--toc-depth=6" in with_toc) is expected
    assert "--toc" not in without_toc


def test_toc_never_added_for_markdown_target():
    assert "--toc" not in _build("html", "markdown", toc=True)


@pytest.mark.parametrize("dst", sorted(OUTPUT_FORMAT_NAMES))
def test_number_sections_independent_of_target(dst):
    assert "--number-sections" in _build("markdown", dst, numberSections=True)
    assert "--number-sections" not in _build("markdown", dst)


@pytest.mark.parametrize("src", ["docx", "odt", "epub"])
def test_compound_sources_extract_media(src):
    cmd = build_pandoc_command(
        "in", "out", src, "markdown", media_dir="/tmp/media/abc"
    )
    assert "--extract-media=/tmp/media/abc" in cmd


def test_default_media_dir_is_relative_uploads_media():
    cmd = build_pandoc_command("in", "out", "docx", "markdown")
    assert "--extract-media=./uploads/media" in cmd


def test_plain_sources_do_not_extract_media():
    assert not any(a.startswith("--extract-media") for a in _build("markdown", "docx"))


def test_html_target_is_self_contained_with_mathjax():
    cmd = _build("markdown", "html")
    assert "--self-contained" in cmd
    assert "--mathjax" in cmd
    assert not any(a.startswith("--css") for a in cmd)


def test_html_css_option_attaches_stylesheet():
    assert "--css=style.css" in _build("markdown", "html", css=True)
    # stylesheet only applies to HTML
    assert not any(a.startswith("--css") for a in _build("markdown", "pdf", css=True))


def test_pdf_target_uses_pdflatex_and_one_inch_margins():
    cmd = _build("markdown", "pdf")
    assert "--pdf-engine=pdflatex" in cmd
    assert "--variable=geometry:margin=1in" in cmd


def test_docx_target_uses_reference_doc():
    cmd = build_pandoc_command(
        "in", "out", "markdown", "docx", reference_doc="templates/ref.docx"
    )
    assert "--reference-doc=templates/ref.docx" in cmd


def test_bibliography_enables_citeproc():
    assert "--citeproc" in _build(bibliography=True)
    assert "--citeproc" not in _build()


def test_paths_with_spaces_stay_single_arguments():
    cmd = build_pandoc_command("my notes.md", "out dir/x.html", "markdown", "html")
    assert cmd[1] == "my notes.md"
    assert cmd[7] == "out dir/x.html"


@pytest.mark.parametrize(
    "src,dst",
    [
        ("markdown; rm -rf /", "html"),
        ("markdown", "html --lua-filter=x.lua"),
        ("pdf", "markdown"),
        ("markdown", "pptx"),
        ("", "html"),
    ],
)
def test_unknown_formats_are_rejected(src, dst):
    with pytest.raises(UnsupportedFormatError):
        build_pandoc_command("in", "out", src, dst)


@pytest.mark.parametrize("src,dst", ALL_PAIRS)
def test_removed_smart_flag_is_never_passed(src, dst):
    cmd = _build(src, dst, toc=True, numberSections=True, bibliography=True, css=True)
    assert "--smart" not in cmd
    assert "-S" not in cmd


@pytest.mark.parametrize(
    "src", ["markdown", "html", "epub", "latex", "rst", "textile", "org", "mediawiki"]
)
def test_smart_typography_enabled_on_reader(src):
    cmd = _build(src, "html")
    assert cmd[cmd.index("-f") + 1] == f"{src}+smart"


@pytest.mark.parametrize("src", ["docx", "odt", "rtf", "json"])
def test_readers_without_smart_extension_left_plain(src):
    cmd = _build(src, "markdown")
    assert cmd[cmd.index("-f") + 1] == src


def test_citeproc_and_smart_typography_coexist():
    cmd = _build("markdown", "html", bibliography=True)
    assert "--citeproc" in cmd
    assert cmd[cmd.index("-f") + 1] == "markdown+smart"
