"""Configuration settings for the perizia extractor"""
import os
import tempfile
from dotenv import load_dotenv

load_dotenv()


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# LLM Configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
VISION_MODEL = os.getenv("VISION_MODEL", "gpt-4o-mini")
SUMMARY_MODEL = os.getenv("SUMMARY_MODEL", "gpt-4o-mini")
LLM_TIMEOUT_SECONDS = _get_float("LLM_TIMEOUT_SECONDS", 90.0)

# Intake limits
MAX_PDF_MB = _get_int("MAX_PDF_MB", 15)
MIN_ENGINE_CHARS = 200  # Layout engine output accepted directly above this

# Page rendering
RENDER_SCALE = _get_float("RENDER_SCALE", 2.5)
RENDER_JPEG_QUALITY = _get_int("RENDER_JPEG_QUALITY", 90)
RENDER_MAX_PAGES = _get_int("RENDER_MAX_PAGES", 10)
TEMP_ROOT = os.getenv("PERIZIA_TEMP_ROOT", tempfile.gettempdir())
KEEP_DEBUG_IMAGES = _get_bool("KEEP_DEBUG_IMAGES", False)

# Vision OCR
OCR_BATCH_SIZE = 2
OCR_MAX_RETRIES = _get_int("OCR_MAX_RETRIES", 3)
OCR_BASE_DELAY_SECONDS = _get_float("OCR_BASE_DELAY_SECONDS", 2.0)

# Section finding
MAX_CANDIDATES = 5  # Top windows kept per field

# Summary
SUMMARY_MAX_CHARS = _get_int("SUMMARY_MAX_CHARS", 60000)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
