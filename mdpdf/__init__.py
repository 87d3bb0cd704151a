"""
Markdown to PDF rendering.

License: MIT
"""

from mdpdf.renderer import PdfRenderer, render_file, render_markdown

__version__ = "1.0.0"

__all__ = ["PdfRenderer", "render_file", "render_markdown", "__version__"]
