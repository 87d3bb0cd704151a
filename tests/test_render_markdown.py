from __future__ import annotations

import pytest
from pydantic import ValidationError

from mdpdf import render_file, render_markdown
from mdpdf.exceptions import CanvasError
from mdpdf.models import RenderOptions
from mdpdf.parser import parse_markdown
from mdpdf.renderer import PdfRenderer, build_canvas, render_markdown_with_report

DOCUMENT = """\
# Study Notes

See [the summary](#summary) for the short version, or [the site](https://example.com).

* **Key idea:** containers nest
* plain item
  1. first
  2. second

> A quoted *remark* with `code`.

| Term | Meaning |
|------|---------|
| PDF | Portable Document Format |
| TTF | TrueType font |

---

```
def f():
    return 1
```

## Summary

Done.
"""


def test_render_markdown_returns_pdf() -> None:
    pdf_bytes = render_markdown(DOCUMENT)

    assert pdf_bytes.startswith(b"%PDF")


def test_render_with_options() -> None:
    options = RenderOptions(title="Notes", author="Jane Doe", page_size="LETTER",
                            orientation="landscape", margin_mm=10, font_family="Times")

    pdf_bytes = render_markdown(DOCUMENT, options)

    assert pdf_bytes.startswith(b"%PDF")


def test_build_canvas_applies_page_options() -> None:
    pdf = build_canvas(RenderOptions(page_size="LETTER", orientation="landscape", margin_mm=0))

    assert pdf.get_page_size() == (792.0, 612.0)
    assert pdf.get_left_margin() == 0


def test_long_document_spans_pages() -> None:
    markdown = "\n\n".join(f"Paragraph {i} " + "filler text " * 30 for i in range(60))
    pdf = build_canvas(RenderOptions())

    PdfRenderer(pdf).render(parse_markdown(markdown))

    assert pdf.page_no() > 1
    assert pdf.output().startswith(b"%PDF")


def test_images_are_embedded_or_reported(png_factory, tmp_path) -> None:
    png_factory("img/found.png")
    options = RenderOptions(image_path_prefix=f"{tmp_path}/img/")

    pdf_bytes, skipped = render_markdown_with_report(
        "![found](found.png)\n\n![lost](lost.png)\n", options
    )

    assert pdf_bytes.startswith(b"%PDF")
    assert skipped == ["lost.png"]


def test_alternative_image_prefix(png_factory, tmp_path) -> None:
    png_factory("hires/pic.png", size=(300, 150))
    options = RenderOptions(
        image_path_prefix=f"{tmp_path}/lowres/",
        image_path_alternative_prefix=f"{tmp_path}/hires/",
    )

    pdf_bytes, skipped = render_markdown_with_report("![pic](pic.png)\n", options)

    assert pdf_bytes.startswith(b"%PDF")
    assert skipped == []


def test_forward_and_unknown_internal_links_render() -> None:
    pdf_bytes = render_markdown("[ahead](#later) and [nowhere](#missing)\n\n# Later\n")

    assert pdf_bytes.startswith(b"%PDF")


def test_render_file_uses_stem_as_title(tmp_path) -> None:
    source = tmp_path / "notes.md"
    source.write_text(DOCUMENT, encoding="utf-8")

    target = render_file(source, tmp_path / "notes.pdf")

    data = target.read_bytes()
    assert data.startswith(b"%PDF")
    assert b"notes" in data


def test_render_file_write_failure_raises_canvas_error(tmp_path) -> None:
    source = tmp_path / "notes.md"
    source.write_text("# Notes\n", encoding="utf-8")

    with pytest.raises(CanvasError):
        render_file(source, tmp_path / "missing" / "notes.pdf")


def test_unknown_font_family_requires_files() -> None:
    with pytest.raises(ValidationError):
        RenderOptions(font_family="Roboto")


def test_margin_is_bounded() -> None:
    with pytest.raises(ValidationError):
        RenderOptions(margin_mm=80)
