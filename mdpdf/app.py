"""
FastAPI application for the markdown to PDF service.

Provides REST API endpoints for rendering markdown with error handling,
logging, and health checks.

License: MIT
"""

import base64
import json
import logging
import time
from typing import Any, Dict, List, Tuple

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from mdpdf.models import RenderRequest
from mdpdf.renderer import render_markdown_with_report

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Markdown to PDF API",
    version="1.0.0",
    description="Renders markdown documents into paginated, styled PDFs",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing information."""
    start_time = time.time()

    response = await call_next(request)

    duration = time.time() - start_time
    logger.info(
        f"{request.method} {request.url.path} "
        f"completed in {duration:.3f}s with status {response.status_code}"
    )

    return response


@app.get("/health")
async def health_check() -> Dict[str, str]:
    """
    Health check endpoint.

    Returns:
        Status dictionary indicating service health
    """
    return {"status": "ok"}


async def _read_body(request: Request) -> str:
    raw = await request.body()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Body is not UTF-8: {e}")


def _render_request(raw_body: str) -> Tuple[RenderRequest, bytes, List[str], float]:
    """
    Validate a raw JSON body and render it.

    Returns:
        Tuple of (request, pdf_bytes, skipped_images, render_time)

    Raises:
        HTTPException: On malformed JSON or invalid options
    """
    start_time = time.time()

    try:
        data = json.loads(raw_body)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Invalid JSON: {e}")

    try:
        render_request = RenderRequest(**data)
    except ValidationError as e:
        logger.error(f"Validation error: {str(e)}")
        raise HTTPException(status_code=400, detail=f"Validation error: {str(e)}")
    except TypeError as e:
        raise HTTPException(status_code=400, detail=f"Validation error: {str(e)}")

    pdf_bytes, skipped = render_markdown_with_report(render_request.markdown, render_request.options)
    render_time = time.time() - start_time

    if skipped:
        logger.warning(f"Skipped {len(skipped)} image(s): {', '.join(skipped)}")

    return render_request, pdf_bytes, skipped, render_time


@app.post("/render")
async def render_pdf(request: Request) -> Response:
    """
    Render markdown to PDF.

    Args:
        request: Request whose JSON body matches RenderRequest

    Returns:
        PDF file as binary response

    Raises:
        HTTPException: On validation or rendering errors
    """
    try:
        render_request, pdf_bytes, skipped, render_time = _render_request(await _read_body(request))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Rendering error: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Rendering error: {str(e)}")

    logger.info(f"Rendered {len(render_request.markdown)} chars of markdown in {render_time:.3f}s")

    title = render_request.options.title or "document"
    headers = {
        "Content-Disposition": f'attachment; filename="{title}.pdf"',
        "X-Render-Time": f"{render_time:.3f}",
        "X-Skipped-Images": str(len(skipped)),
    }

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers=headers
    )


@app.post("/render-base64")
async def render_pdf_base64(request: Request) -> Dict[str, Any]:
    """
    Render markdown to PDF and return it base64-encoded in JSON.

    Useful for API clients that cannot handle binary PDF responses.

    Args:
        request: Request whose JSON body matches RenderRequest

    Returns:
        JSON with base64-encoded PDF and metadata

    Raises:
        HTTPException: On validation or rendering errors
    """
    try:
        render_request, pdf_bytes, skipped, render_time = _render_request(await _read_body(request))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Rendering error: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Rendering error: {str(e)}")

    logger.info(f"Rendered (base64) {len(render_request.markdown)} chars of markdown in {render_time:.3f}s")

    return {
        "success": True,
        "pdf_base64": base64.b64encode(pdf_bytes).decode('utf-8'),
        "filename": f"{render_request.options.title or 'document'}.pdf",
        "size_bytes": len(pdf_bytes),
        "render_time_seconds": round(render_time, 3),
        "skipped_images": skipped,
    }


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected errors."""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
