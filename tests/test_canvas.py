from __future__ import annotations

import pytest

from mdpdf.canvas import ReportLabCanvas
from mdpdf.exceptions import CanvasError
from mdpdf.styles import FontStyle, Style


@pytest.fixture()
def pdf() -> ReportLabCanvas:
    canvas = ReportLabCanvas(page_size=(300.0, 400.0), margin=20.0)
    canvas.set_style(Style())
    return canvas


def test_font_name_follows_flags(pdf: ReportLabCanvas) -> None:
    assert pdf.font_name(Style()) == "Helvetica"
    assert pdf.font_name(Style(flags=FontStyle.BOLD)) == "Helvetica-Bold"
    assert pdf.font_name(Style("Times", flags=FontStyle.ITALIC)) == "Times-Italic"
    assert pdf.font_name(Style("Courier", flags=FontStyle.BOLD | FontStyle.ITALIC)) == "Courier-BoldOblique"


def test_write_wraps_at_right_margin(pdf: ReportLabCanvas) -> None:
    pdf.write(14, "word " * 60)

    x, y = pdf.get_xy()
    assert y > 20.0
    assert x <= pdf.right_edge


def test_write_newline_forces_break(pdf: ReportLabCanvas) -> None:
    pdf.write(14, "one\ntwo")

    assert pdf.get_xy()[1] == 34.0


def test_set_left_margin_moves_cursor_forward_only(pdf: ReportLabCanvas) -> None:
    pdf.set_left_margin(60.0)
    assert pdf.get_xy()[0] == 60.0

    pdf.set_x(120.0)
    pdf.set_left_margin(80.0)
    assert pdf.get_xy()[0] == 120.0
    assert pdf.get_left_margin() == 80.0


def test_cell_line_modes(pdf: ReportLabCanvas) -> None:
    pdf.cell(50, 10, "a")
    assert pdf.get_xy() == (70.0, 20.0)

    pdf.cell(50, 10, "b", ln=2)
    assert pdf.get_xy() == (70.0, 30.0)

    pdf.cell(50, 10, "c", ln=1)
    assert pdf.get_xy() == (20.0, 40.0)


def test_ln_reuses_last_height(pdf: ReportLabCanvas) -> None:
    pdf.cell(50, 12, "a")
    pdf.ln()

    assert pdf.get_xy() == (20.0, 32.0)


def test_page_break_starts_new_page(pdf: ReportLabCanvas) -> None:
    assert pdf.page_no() == 1

    for _ in range(40):
        pdf.cell(0, 14, "line", ln=1)

    assert pdf.page_no() > 1
    assert pdf.get_xy()[1] <= 400.0 - 20.0


def test_links_are_unique(pdf: ReportLabCanvas) -> None:
    first = pdf.add_link()
    second = pdf.add_link()

    assert first != second


def test_link_target_moves_to_next_page_with_its_text(pdf: ReportLabCanvas) -> None:
    pdf.set_xy(20.0, 375.0)
    link = pdf.add_link()

    pdf.set_link(link)

    assert pdf.page_no() == 2
    assert pdf.get_xy()[1] == 20.0


def test_output_is_pdf(pdf: ReportLabCanvas) -> None:
    link = pdf.add_link()
    pdf.set_link(link)
    pdf.write(14, "target")
    pdf.write(14, " jump", link=link)
    pdf.write(14, " site", url="https://example.com")

    assert pdf.output().startswith(b"%PDF")


def test_dangling_link_still_produces_output(pdf: ReportLabCanvas) -> None:
    link = pdf.add_link()
    pdf.write(14, "nowhere", link=link)

    assert pdf.output().startswith(b"%PDF")


def test_path_fill_and_output(pdf: ReportLabCanvas) -> None:
    pdf.move_to(20, 20)
    pdf.line_to(280, 20)
    pdf.line_to(280, 23)
    pdf.close_path()
    pdf.draw_path("F")

    assert pdf.output().startswith(b"%PDF")


def test_image_size_from_pixels(pdf: ReportLabCanvas, png_factory) -> None:
    path = png_factory("plain.png", size=(144, 72))

    w, h = pdf.image(str(path))

    assert (w, h) == (144.0, 72.0)
    assert pdf.get_xy()[1] == 20.0 + 72.0


def test_image_dpi_multiplier_shrinks_image(pdf: ReportLabCanvas, png_factory) -> None:
    path = png_factory("hires.png", size=(144, 72))

    w, h = pdf.image(str(path), dpi_multiplier=3)

    assert w == pytest.approx(48.0)
    assert h == pytest.approx(24.0)


def test_image_uses_stored_dpi(pdf: ReportLabCanvas, png_factory) -> None:
    path = png_factory("dpi.png", size=(144, 72), dpi=144)

    w, h = pdf.image(str(path))

    assert w == pytest.approx(72.0, rel=1e-3)
    assert h == pytest.approx(36.0, rel=1e-3)


def test_inline_image_advances_x(pdf: ReportLabCanvas, png_factory) -> None:
    path = png_factory("inline.png", size=(30, 10))
    pdf.write(14, "see ")
    x_before, y_before = pdf.get_xy()

    pdf.image(str(path), inline=True)

    assert pdf.get_xy() == (pytest.approx(x_before + 30.0), y_before)


def test_wide_image_is_scaled_to_text_width(pdf: ReportLabCanvas, png_factory) -> None:
    path = png_factory("wide.png", size=(520, 52))

    w, h = pdf.image(str(path))

    assert w == pytest.approx(260.0)
    assert h == pytest.approx(26.0)


def test_save_into_missing_directory_fails(pdf: ReportLabCanvas, tmp_path) -> None:
    with pytest.raises(CanvasError):
        pdf.save(tmp_path / "missing" / "out.pdf")


def test_save_writes_file(pdf: ReportLabCanvas, tmp_path) -> None:
    target = pdf.save(tmp_path / "out.pdf")

    assert target.read_bytes().startswith(b"%PDF")
