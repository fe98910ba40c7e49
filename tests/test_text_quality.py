"""Tests for the text quality classifier."""
from perizia_extractor.models import TextQualityMetrics
from perizia_extractor.text_quality import classify_text, decide, measure


def metrics(length=3000, avg=600.0, watermarks=0, repetition=0.0, unique=0.6):
    return TextQualityMetrics(length, avg, watermarks, repetition, unique)


def test_short_text_rejected_regardless_of_other_metrics():
    reason, message = decide(metrics(length=900, avg=5000.0, repetition=0.0, unique=1.0))
    assert reason == "too_short"
    assert "900" in message


def test_rule_order():
    assert decide(metrics(avg=150.0))[0] == "low_avg_chars_per_page"
    # Repetition is checked before watermark density
    assert decide(metrics(length=2000, repetition=0.5, watermarks=40))[0] == "repeated_disclaimer"
    assert decide(metrics(length=2000, watermarks=20))[0] == "watermark_dominated"
    assert decide(metrics(length=3000, unique=0.05))[0] == "low_unique_tokens"
    assert decide(metrics())[0] == "ok"


def test_density_rules_only_apply_to_shorter_texts():
    assert decide(metrics(length=9000, watermarks=100))[0] == "ok"
    assert decide(metrics(length=7000, unique=0.05))[0] == "ok"


def test_classify_empty_text():
    result = classify_text("", page_count=3)
    assert not result.usable
    assert result.reason == "too_short"
    assert result.metrics.length == 0


def test_classify_sparse_document():
    result = classify_text("parola diversa " * 100, page_count=10)
    assert result.reason == "low_avg_chars_per_page"
    assert result.metrics.avg_chars_per_page == 150.0


def test_classify_real_pages(mock_pages):
    text = "\n\n".join(p.text for p in mock_pages)
    result = classify_text(text, page_count=5)
    assert result.usable
    assert result.reason == "ok"
    assert result.metrics.watermark_hits == 0


def test_measure_repeated_disclaimer():
    text = "\n".join(["Pubblicazione ufficiale ad uso esclusivo personale"] * 30)
    result = measure(text, page_count=2)
    assert result.repetition_score == 1.0
    assert result.watermark_hits == 60
    assert decide(result)[0] == "repeated_disclaimer"
