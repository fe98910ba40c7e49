"""Read-only access to rendered page images kept for debugging"""
import os
import re
from typing import Optional, Tuple

from .config import TEMP_ROOT
from .errors import DebugImageError
from .renderer import page_image_path, workspace_dir

DOC_ID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}(-[a-z]+)?$"
)
MAX_PAGE = 999

MEDIA_TYPES = (("jpg", "image/jpeg"), ("png", "image/png"))


def validate_request(doc_id: str, page: int) -> None:
    if not doc_id or not DOC_ID_RE.match(doc_id):
        raise DebugImageError("docId non valido")
    if not 1 <= page <= MAX_PAGE:
        raise DebugImageError(f"Pagina non valida: {page}")


def _inside(path: str, root: str) -> bool:
    real_root = os.path.realpath(root)
    return os.path.commonpath([os.path.realpath(path), real_root]) == real_root


def read_debug_image(doc_id: str, page: int, root: Optional[str] = None) -> Tuple[bytes, str]:
    """
    Load a rendered page image

    Args:
        doc_id: Request identifier (UUID with an optional lowercase suffix)
        page: 1-based page number, at most 999
        root: Workspace root, defaults to TEMP_ROOT

    Returns:
        (image bytes, media type); JPEG is preferred over PNG

    Raises:
        DebugImageError: invalid identifier or page, a path escaping the
            workspace, or no image on disk (``not_found`` set)
    """
    validate_request(doc_id, page)
    root = root or TEMP_ROOT
    workspace = workspace_dir(doc_id, root)

    for extension, media_type in MEDIA_TYPES:
        path = page_image_path(doc_id, page, root, extension)
        if not _inside(path, workspace):
            raise DebugImageError("Percorso non consentito")
        if os.path.isfile(path):
            with open(path, "rb") as f:
                return f.read(), media_type

    raise DebugImageError(f"Immagine non trovata: {doc_id} pagina {page}", not_found=True)
