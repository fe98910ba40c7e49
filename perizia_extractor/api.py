"""FastAPI interface for perizia analysis"""
import logging
from fastapi import FastAPI, HTTPException, UploadFile, File, Query
from fastapi.responses import Response
from .config import LOG_LEVEL
from .debug_images import read_debug_image
from .errors import (
    AllEnginesFailed,
    CompletionError,
    DebugImageError,
    DocumentTooLarge,
    InvalidDocument,
    PeriziaError,
    QualityRejected,
    SchemaInvalid,
)
from .extractor import PeriziaExtractor
from .provider import make_provider

logger = logging.getLogger(__name__)

app = FastAPI(title="Perizia Extractor API", version="0.1.0")


# Initialized on startup
extractor = None
provider = None


def status_for(error: PeriziaError) -> int:
    """HTTP status code for a pipeline error"""
    if isinstance(error, DocumentTooLarge):
        return 413
    if isinstance(error, InvalidDocument):
        return 400
    if isinstance(error, QualityRejected):
        return 422
    if isinstance(error, (AllEnginesFailed, SchemaInvalid, CompletionError)):
        return 502
    if isinstance(error, DebugImageError):
        return 404 if error.not_found else 400
    return 500


@app.on_event("startup")
async def startup_event():
    """Initialize extractor on startup"""
    global extractor, provider
    logging.basicConfig(level=LOG_LEVEL)
    try:
        extractor = PeriziaExtractor()
        provider = make_provider()
    except Exception as e:
        logger.warning("Failed to initialize extractor: %s", e)


@app.post("/analyze")
def analyze_upload(
    pdf_file: UploadFile = File(...),
    summary: bool = Query(False, description="Add the operative summary")
):
    """
    Analyze an uploaded perizia.

    Returns the four field results (status, confidence, citations,
    candidates), the analysis mode and debug information.
    """
    if extractor is None:
        raise HTTPException(status_code=500, detail="Extractor not initialized")

    pdf_bytes = pdf_file.file.read()

    try:
        result = extractor.analyze(pdf_bytes)
        data = result.to_dict()
        if summary and provider is not None:
            data["summary"] = provider.summarize(result.fields, result.pages).model_dump()
    except PeriziaError as e:
        logger.warning("Analysis of %s failed: %s", pdf_file.filename, e.message)
        raise HTTPException(status_code=status_for(e), detail=e.to_dict())

    data["filename"] = pdf_file.filename
    return data


@app.get("/debug/image")
async def debug_image(docId: str = Query(...), page: int = Query(...)):
    """Serve a rendered page image kept for debugging"""
    try:
        content, media_type = read_debug_image(docId, page)
    except DebugImageError as e:
        raise HTTPException(status_code=status_for(e), detail=e.to_dict())
    return Response(content=content, media_type=media_type,
                    headers={"Cache-Control": "no-store"})


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "extractor_initialized": extractor is not None,
        "vision_ocr": extractor is not None and extractor.vision_ocr is not None,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
