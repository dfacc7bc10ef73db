# ============================================================================
# tests/unit/test_ocr_engine.py
# ============================================================================
"""
Unit tests for the OCR engine with Tesseract mocked out
"""

from unittest.mock import patch

import pytest
from PIL import Image

from document_intake.constants import DocumentType
from document_intake.extractors import OcrEngine
from document_intake.extractors.ocr_engine import PAGE_BREAK
from document_intake.utils.exceptions import OcrEngineError


def _tesseract_data(words):
    """image_to_data dict for (text, conf, block, par, line) tuples"""
    return {
        "text": [w[0] for w in words],
        "conf": [w[1] for w in words],
        "block_num": [w[2] for w in words],
        "par_num": [w[3] for w in words],
        "line_num": [w[4] for w in words],
    }


PAGE_WORDS = [
    ("Re:", 96, 1, 1, 1),
    ("Jane", 90, 1, 1, 1),
    ("Doe", 84, 1, 1, 1),
    ("", -1, 1, 1, 2),
    ("Referral", 70, 1, 1, 2),
    ("letter", 80, 1, 1, 2),
]


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / "scan.png"
    Image.new("RGB", (40, 20), "white").save(path)
    return path


@pytest.fixture
def engine():
    return OcrEngine(dpi=150, language="eng")


def test_image_rebuilds_lines(engine, image_file):
    with patch("document_intake.extractors.ocr_engine.pytesseract.image_to_data",
               return_value=_tesseract_data(PAGE_WORDS)) as image_to_data:
        output = engine.process(image_file, "image/png")

    assert output.text == "Re: Jane Doe\nReferral letter"
    assert output.confidence == pytest.approx(0.84)
    assert output.document_type == DocumentType.REFERRAL
    assert image_to_data.call_args.kwargs["lang"] == "eng"


def test_pages_joined(engine, image_file):
    pages = [Image.new("L", (10, 10)), Image.new("L", (10, 10))]
    first = _tesseract_data([("Page", 80, 1, 1, 1), ("one", 80, 1, 1, 1)])
    second = _tesseract_data([("Page", 60, 1, 1, 1), ("two", 60, 1, 1, 1)])

    with patch.object(engine, "_pdf_to_images", return_value=pages), \
         patch("document_intake.extractors.ocr_engine.pytesseract.image_to_data",
               side_effect=[first, second]):
        output = engine.process(image_file.with_suffix(".pdf"), "application/pdf")

    assert output.text == "Page one" + PAGE_BREAK + "Page two"
    assert output.confidence == pytest.approx(0.7)
    assert output.document_type == DocumentType.UNKNOWN


def test_no_pages(engine, tmp_path):
    with patch.object(engine, "_pdf_to_images", return_value=[]):
        with pytest.raises(OcrEngineError, match="No pages"):
            engine.process(tmp_path / "empty.pdf", "application/pdf")


def test_unreadable_file(engine, tmp_path):
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"not an image")

    with pytest.raises(OcrEngineError):
        engine.process(bad, "image/png")


def test_blank_page_zero_confidence(engine, image_file):
    with patch("document_intake.extractors.ocr_engine.pytesseract.image_to_data",
               return_value=_tesseract_data([("", -1, 1, 1, 1)])):
        output = engine.process(image_file, "image/png")

    assert output.text == ""
    assert output.confidence == 0.0


def test_enhance_image_grayscale(engine):
    enhanced = engine.enhance_image(Image.new("RGBA", (10, 10)))
    assert enhanced.mode == "L"
