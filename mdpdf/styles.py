"""
Style tokens and design configuration for PDF rendering.

This module defines the style registry (one style slot per semantic role),
colors, page sizes and the fixed layout constants used by the renderer.

License: MIT
"""

from dataclasses import dataclass, field, replace
from enum import Flag, auto
from typing import Dict, Tuple

RGB = Tuple[float, float, float]


class FontStyle(Flag):
    """Font style flags; presence is set membership."""
    NONE = 0
    BOLD = auto()
    ITALIC = auto()
    UNDERLINE = auto()


@dataclass
class Colors:
    """Color palette in RGB tuples (0-1 range for ReportLab)."""

    # Text
    text_primary: RGB = (0.0, 0.0, 0.0)
    link: RGB = (0.0, 0.0, 1.0)
    blockquote: RGB = (0.294, 0.294, 0.294)  # #4B4B4B

    # Code
    code_bg: RGB = (0.961, 0.961, 0.961)  # #F5F5F5

    # Tables
    table_header_bg: RGB = (0.706, 0.706, 1.0)  # #B4B4FF
    table_row_bg: RGB = (0.878, 0.922, 1.0)  # #E0EBFF
    table_border: RGB = (0.502, 0.0, 0.0)  # #800000

    # Rules
    rule: RGB = (0.784, 0.784, 0.784)  # #C8C8C8

    white: RGB = (1.0, 1.0, 1.0)
    black: RGB = (0.0, 0.0, 0.0)


@dataclass
class PageConfig:
    """Page size configurations in points (1 pt = 1/72 inch)."""

    sizes: Dict[str, Tuple[float, float]] = field(default_factory=lambda: {
        "A4": (595.27, 841.89),  # 210 x 297 mm
        "LETTER": (612.0, 792.0),  # 8.5 x 11 in
        "LEGAL": (612.0, 1008.0),  # 8.5 x 14 in
    })

    default_margin_mm: float = 20.0

    @staticmethod
    def mm_to_points(mm: float) -> float:
        """Convert millimeters to points."""
        return mm * 2.83465

    def page_size(self, name: str, landscape: bool = False) -> Tuple[float, float]:
        """Return (width, height) for a named page size."""
        width, height = self.sizes[name]
        if landscape:
            return height, width
        return width, height


@dataclass(frozen=True)
class Style:
    """
    Font descriptor for one semantic role.

    Instances are immutable; emphasis and strong toggles produce copies so a
    frame never mutates a style shared with its ancestors or the registry.
    """
    family: str = "Helvetica"
    size: float = 12
    flags: FontStyle = FontStyle.NONE
    spacing: float = 2
    color: RGB = (0.0, 0.0, 0.0)
    fill: RGB = (1.0, 1.0, 1.0)

    @property
    def line_height(self) -> float:
        return self.size + self.spacing

    @property
    def bold(self) -> bool:
        return FontStyle.BOLD in self.flags

    @property
    def italic(self) -> bool:
        return FontStyle.ITALIC in self.flags

    @property
    def underline(self) -> bool:
        return FontStyle.UNDERLINE in self.flags

    def with_flag(self, flag: FontStyle) -> "Style":
        if flag in self.flags:
            return self
        return replace(self, flags=self.flags | flag)

    def without_flag(self, flag: FontStyle) -> "Style":
        if flag not in self.flags:
            return self
        return replace(self, flags=self.flags & ~flag)


@dataclass(frozen=True)
class StyleRegistry:
    """Style slots consulted by the renderer; configured once per render."""
    normal: Style
    h1: Style
    h2: Style
    h3: Style
    h4: Style
    h5: Style
    h6: Style
    backtick: Style
    blockquote: Style
    link: Style
    theader: Style
    tbody: Style
    indent: float = 36  # one indent unit (half an inch)

    def heading(self, level: int) -> Style:
        """Return the heading style for levels 1-6."""
        return {
            1: self.h1,
            2: self.h2,
            3: self.h3,
            4: self.h4,
            5: self.h5,
            6: self.h6,
        }[level]

    @classmethod
    def default(cls, family: str = "Helvetica", code_family: str = "Courier") -> "StyleRegistry":
        """Build the stock registry for a body font family."""
        bold = FontStyle.BOLD
        return cls(
            normal=Style(family, 12, spacing=2),
            h1=Style(family, 24, bold, spacing=5),
            h2=Style(family, 22, bold, spacing=5),
            h3=Style(family, 20, bold, spacing=5),
            h4=Style(family, 18, bold, spacing=5),
            h5=Style(family, 16, bold, spacing=5),
            h6=Style(family, 14, bold, spacing=5),
            backtick=Style(code_family, 12, spacing=2, fill=colors.code_bg),
            blockquote=Style(family, 14, FontStyle.ITALIC, spacing=2, color=colors.blockquote),
            link=Style(family, 12, FontStyle.UNDERLINE, spacing=2, color=colors.link),
            theader=Style(family, 12, bold, spacing=2, fill=colors.table_header_bg),
            tbody=Style(family, 12, spacing=2, fill=colors.table_row_bg),
        )


# Standard PDF font families: (regular, bold, italic, bold-italic)
STANDARD_FONTS: Dict[str, Tuple[str, str, str, str]] = {
    "Helvetica": ("Helvetica", "Helvetica-Bold", "Helvetica-Oblique", "Helvetica-BoldOblique"),
    "Courier": ("Courier", "Courier-Bold", "Courier-Oblique", "Courier-BoldOblique"),
    "Times": ("Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic"),
}

# Fixed layout constants
BULLET = "*"
BULLET_COLUMN_EMS = 3  # width of the bullet / ordinal cell
ITEM_TEXT_EMS = 4  # item text starts this many ems past the list margin
HR_THICKNESS = 3
TABLE_BORDER_WIDTH = 0.3
CELL_PADDING_EMS = 0.5  # body cell text inset from the left border
DPI_ALTERNATIVE_MULTIPLIER = 3


# Global style instances (singletons)
colors = Colors()
page_config = PageConfig()
