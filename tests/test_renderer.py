"""Tests for page rendering, blank detection and the workspace."""
import os

import pytest

from perizia_extractor import renderer as renderer_module
from perizia_extractor.errors import RenderFailure
from perizia_extractor.renderer import (
    PageRenderer,
    RenderWorkspace,
    compute_whiteness,
    is_blank_page,
    select_default_pages,
)

DOC_ID = "0f8fad5b-d9cb-469f-a165-70867728950e"


def test_blank_page_boundaries():
    assert is_blank_page(0.971, 20000)
    assert not is_blank_page(0.969, 20000)
    assert is_blank_page(0.5, 7999)
    assert not is_blank_page(0.5, 8001)


def test_unknown_whiteness_alone_is_not_blank():
    assert not is_blank_page(-1.0, 20000)
    assert is_blank_page(-1.0, 100)


def test_compute_whiteness():
    assert compute_whiteness(bytes([255] * 300), 3) == 1.0
    assert compute_whiteness(bytes([0] * 300), 3) == 0.0
    assert compute_whiteness(bytes([255] * 10), 3) == -1.0


def test_select_default_pages():
    assert select_default_pages(26, 10) == [1, 2, 3, 4, 5, 6, 7, 8, 25, 26]
    assert select_default_pages(4, 10) == [1, 2, 3, 4]
    assert select_default_pages(11, 10) == [1, 2, 3, 4, 5, 6, 7, 8, 10, 11]


def test_workspace_removed_on_exit(tmp_path):
    with RenderWorkspace(DOC_ID, str(tmp_path)) as workspace:
        assert os.path.isdir(workspace.path)
        assert workspace.page_path(3).endswith("page-3.jpg")
    assert not os.path.exists(workspace.path)


def test_workspace_kept_on_request_but_not_on_error(tmp_path):
    with RenderWorkspace(DOC_ID, str(tmp_path), keep=True) as workspace:
        pass
    assert os.path.isdir(workspace.path)

    with pytest.raises(RuntimeError):
        with RenderWorkspace(DOC_ID, str(tmp_path), keep=True) as workspace:
            raise RuntimeError("boom")
    assert not os.path.exists(workspace.path)


def test_render_writes_pages_and_flags_blank(tmp_path, make_pdf):
    pdf_bytes = make_pdf([[], ["Pagina con una riga di testo"], []])
    renderer = PageRenderer(scale=1.0, jpeg_quality=80)

    with RenderWorkspace(DOC_ID, str(tmp_path), keep=True) as workspace:
        batch = renderer.render(pdf_bytes, workspace, page_list=[1, 3, 7])

    assert batch.total_pages == 3
    assert batch.pages_requested == [1, 3]
    assert [p.page_number for p in batch.pages] == [1, 3]
    assert batch.blank_pages == [1, 3]
    for page in batch.pages:
        assert page.image_bytes.startswith(b"\xff\xd8\xff")
        assert os.path.isfile(page.disk_path)
        assert page.whiteness > 0.97


def test_render_rejects_unreadable_document(tmp_path, monkeypatch):
    def broken_open(*args, **kwargs):
        raise RuntimeError("cannot open document")

    monkeypatch.setattr(renderer_module.fitz, "open", broken_open)
    with RenderWorkspace(DOC_ID, str(tmp_path)) as workspace:
        with pytest.raises(RenderFailure) as excinfo:
            PageRenderer().render(b"%PDF-1.4", workspace)
    assert "cannot open document" in excinfo.value.message


def test_page_failure_becomes_placeholder(tmp_path, make_pdf, monkeypatch):
    original = PageRenderer._render_page

    def flaky(self, doc, page_number, disk_path):
        if page_number == 2:
            raise RenderFailure("pixmap error", page=2)
        return original(self, doc, page_number, disk_path)

    monkeypatch.setattr(PageRenderer, "_render_page", flaky)
    with RenderWorkspace(DOC_ID, str(tmp_path)) as workspace:
        batch = PageRenderer(scale=1.0).render(make_pdf([[], []]), workspace)

    failed = batch.pages[1]
    assert failed.page_number == 2
    assert failed.image_bytes == b""
    assert failed.is_blank
    assert failed.whiteness == -1.0
    assert failed.error == "pagina 2: pixmap error"
    assert batch.pages[0].error is None
