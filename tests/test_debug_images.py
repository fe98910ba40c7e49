"""Tests for debug image retrieval."""
import os

import pytest

from perizia_extractor.debug_images import read_debug_image
from perizia_extractor.errors import DebugImageError
from perizia_extractor.renderer import page_image_path, workspace_dir

DOC_ID = "0f8fad5b-d9cb-469f-a165-70867728950e"


def write_image(root, doc_id, page, data, extension="jpg"):
    os.makedirs(workspace_dir(doc_id, root), exist_ok=True)
    with open(page_image_path(doc_id, page, root, extension), "wb") as f:
        f.write(data)


def test_reads_jpeg(tmp_path):
    write_image(str(tmp_path), DOC_ID, 2, b"\xff\xd8\xffjpeg")
    assert read_debug_image(DOC_ID, 2, root=str(tmp_path)) == (b"\xff\xd8\xffjpeg", "image/jpeg")


def test_falls_back_to_png(tmp_path):
    write_image(str(tmp_path), DOC_ID, 1, b"\x89PNGpng", extension="png")
    assert read_debug_image(DOC_ID, 1, root=str(tmp_path)) == (b"\x89PNGpng", "image/png")


def test_suffixed_id_is_accepted(tmp_path):
    doc_id = DOC_ID + "-ocr"
    write_image(str(tmp_path), doc_id, 1, b"data")
    assert read_debug_image(doc_id, 1, root=str(tmp_path))[0] == b"data"


def test_missing_image(tmp_path):
    with pytest.raises(DebugImageError) as excinfo:
        read_debug_image(DOC_ID, 3, root=str(tmp_path))
    assert excinfo.value.not_found


@pytest.mark.parametrize("doc_id, page", [
    ("../../etc/passwd", 1),
    (DOC_ID + "/../x", 1),
    ("", 1),
    (DOC_ID.upper(), 1),
    (DOC_ID + "-OCR", 1),
    (DOC_ID, 0),
    (DOC_ID, 1000),
])
def test_rejects_invalid_requests(tmp_path, doc_id, page):
    with pytest.raises(DebugImageError) as excinfo:
        read_debug_image(doc_id, page, root=str(tmp_path))
    assert not excinfo.value.not_found
