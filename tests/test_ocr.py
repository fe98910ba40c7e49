"""Tests for the vision OCR orchestrator."""
from perizia_extractor.errors import CompletionError, RateLimited
from perizia_extractor.models import OcrPageResult, OcrStatus, PageText, RenderedPage
from perizia_extractor.ocr import (
    EMPTY_PAGE_PLACEHOLDER,
    VisionOcr,
    build_ocr_payload,
    build_ocr_prompt,
    ocr_avg_chars,
    ocr_pages_to_text,
    parse_batch_response,
    rank_pages_by_keywords,
)

JPEG = b"\xff\xd8\xff" + b"\x00" * 20000
BODY = "Il più probabile valore di mercato dell'immobile è pari a € 185.000,00."


def rendered(page, blank=False, image=JPEG):
    return RenderedPage(page_number=page, image_bytes=image, width=100, height=100,
                        whiteness=0.99 if blank else 0.8, is_blank=blank)


def test_batched_transcription(fake_client, no_wait_policy):
    client = fake_client(f"===PAGINA 1===\n{BODY}\n===PAGINA 2===\nBLANK")
    results = VisionOcr(client, no_wait_policy).transcribe([rendered(1), rendered(2)])

    assert len(client.calls) == 1
    assert len(client.calls[0][2]) == 2
    assert [r.status for r in results] == [OcrStatus.OK, OcrStatus.EMPTY]
    assert results[0].text == BODY
    assert results[0].chars == len(BODY)


def test_blank_and_unrendered_pages_are_not_sent(fake_client, no_wait_policy):
    client = fake_client(BODY)
    pages = [rendered(1, blank=True), rendered(2, image=b""), rendered(3)]
    results = VisionOcr(client, no_wait_policy).transcribe(pages)

    assert len(client.calls) == 1
    assert "Pagina 3" in client.calls[0][1]
    assert [r.status for r in results] == [OcrStatus.SKIPPED_BLANK, OcrStatus.FAILED, OcrStatus.OK]


def test_pages_are_sent_two_at_a_time(fake_client, no_wait_policy):
    client = fake_client("")
    VisionOcr(client, no_wait_policy).transcribe([rendered(n) for n in range(1, 6)])
    assert [len(images) for _, _, images in client.calls] == [2, 2, 1]


def test_rate_limit_after_retries(fake_client, no_wait_policy):
    client = fake_client(RateLimited())
    results = VisionOcr(client, no_wait_policy).transcribe([rendered(4), rendered(5)])

    assert len(client.calls) == 4
    assert [r.status for r in results] == [OcrStatus.RATE_LIMITED, OcrStatus.RATE_LIMITED]


def test_other_failures_are_not_retried(fake_client, no_wait_policy):
    client = fake_client(CompletionError("server error"))
    results = VisionOcr(client, no_wait_policy).transcribe([rendered(1)])

    assert len(client.calls) == 1
    assert results[0].status == OcrStatus.FAILED
    assert results[0].note == "server error"


def test_missing_marker_in_batch(fake_client, no_wait_policy):
    client = fake_client(f"===PAGINA 1===\n{BODY}")
    results = VisionOcr(client, no_wait_policy).transcribe([rendered(1), rendered(2)])

    assert results[0].status == OcrStatus.OK
    assert results[1].status == OcrStatus.EMPTY
    assert results[1].note.startswith("[batch parse failed]")


def test_short_transcription_is_empty(fake_client, no_wait_policy):
    results = VisionOcr(fake_client("poche parole"), no_wait_policy).transcribe([rendered(1)])
    assert results[0].status == OcrStatus.EMPTY
    assert results[0].text == "poche parole"


def test_prompt_lists_image_order():
    assert "Pagina 7" in build_ocr_prompt([7])
    prompt = build_ocr_prompt([3, 4])
    assert "immagine 1 = Pagina 3, immagine 2 = Pagina 4" in prompt
    assert "===PAGINA 4===" in prompt


def test_parse_single_page_without_marker():
    assert parse_batch_response("  testo  ", [9]) == {9: "testo"}


def ocr_result(page, text, status=OcrStatus.OK):
    return OcrPageResult(page=page, text=text, chars=len(text), status=status)


def test_avg_chars_and_usable_pages():
    results = [ocr_result(2, "b" * 100), ocr_result(1, "a" * 60),
               ocr_result(3, "", OcrStatus.FAILED)]
    assert ocr_avg_chars(results) == 80.0
    assert ocr_avg_chars([]) == 0.0
    assert ocr_pages_to_text(results) == [PageText(1, "a" * 60), PageText(2, "b" * 100)]


def test_rank_pages_by_keywords():
    results = [ocr_result(1, "introduzione"), ocr_result(2, "prezzo base e valore di stima"),
               ocr_result(3, "ipoteca")]
    assert [r.page for r in rank_pages_by_keywords(results)] == [2, 3, 1]


def test_payload_keeps_page_order_and_placeholder():
    payload = build_ocr_payload([ocr_result(2, "secondo"), ocr_result(1, "")])
    assert payload == f"===PAGINA 1===\n{EMPTY_PAGE_PLACEHOLDER}\n\n===PAGINA 2===\nsecondo"


def test_payload_budget_drops_least_relevant_pages():
    results = [ocr_result(1, "x" * 100), ocr_result(2, "ipoteca " + "y" * 100),
               ocr_result(3, "z" * 100)]
    payload = build_ocr_payload(results, max_chars=130)
    assert payload.startswith("===PAGINA 2===")
    assert "===PAGINA 1===" not in payload

    tiny = build_ocr_payload(results, max_chars=20)
    assert tiny == "===PAGINA 2===\nipote"
