"""
Pydantic models for render configuration and API payloads.

License: MIT
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from mdpdf.styles import STANDARD_FONTS


class FontFiles(BaseModel):
    """TrueType files for a custom font family."""
    regular: str = Field(..., description="Path to the regular face")
    bold: Optional[str] = Field(default=None, description="Path to the bold face")
    italic: Optional[str] = Field(default=None, description="Path to the italic face")
    bold_italic: Optional[str] = Field(default=None, description="Path to the bold-italic face")


class RenderOptions(BaseModel):
    """Page, font and image settings for one render."""
    title: Optional[str] = Field(default=None, description="Document title")
    author: Optional[str] = Field(default=None, description="Document author")
    page_size: Literal["A4", "LETTER", "LEGAL"] = Field(default="A4", description="Page size")
    orientation: Literal["portrait", "landscape"] = Field(default="portrait", description="Page orientation")
    margin_mm: float = Field(default=20.0, ge=0, le=50, description="Page margin in millimeters")
    font_family: str = Field(default="Helvetica", description="Body font family")
    font_files: Optional[FontFiles] = Field(default=None, description="TTF files registered as font_family")
    image_path_prefix: str = Field(default="", description="Prefix tried first for image paths")
    image_path_alternative_prefix: str = Field(
        default="", description="Fallback prefix for high-resolution images (rendered at 3x DPI)"
    )

    @model_validator(mode="after")
    def validate_font_files(self):
        """Ensure a non-standard family comes with its font files."""
        if self.font_files is None and self.font_family not in STANDARD_FONTS:
            raise ValueError(
                f"font_family '{self.font_family}' is not a standard PDF font "
                f"({', '.join(sorted(STANDARD_FONTS))}); provide font_files"
            )
        return self


class RenderRequest(BaseModel):
    """Markdown document plus render options."""
    markdown: str = Field(..., description="Markdown source")
    options: RenderOptions = Field(default_factory=RenderOptions, description="Render options")

    class Config:
        """Pydantic configuration."""
        json_schema_extra = {
            "example": {
                "markdown": "# Introduction\n\nThis is **important** information.\n",
                "options": {
                    "title": "Study Notes",
                    "author": "Jane Doe",
                    "page_size": "A4",
                    "margin_mm": 20
                }
            }
        }
