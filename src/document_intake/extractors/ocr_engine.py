# ============================================================================
# src/document_intake/extractors/ocr_engine.py
# ============================================================================
"""
OCR Engine

Reads scanned documents into text:
- PDFs rendered page by page with pypdfium2
- Images opened with Pillow
- Grayscale + contrast + sharpen before recognition
- Tesseract (pytesseract) for text and word confidences

Output is the joined page text, the mean engine confidence in [0, 1]
and a keyword document-type guess.

Blocking: callers on an event loop should run process() in a thread.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import pypdfium2
import pytesseract
from PIL import Image, ImageEnhance, ImageFilter

from ..classifiers import DocumentClassifier
from ..config import processing_settings
from ..constants import DocumentType
from ..utils.exceptions import OcrEngineError
from ..utils.logging import log_performance

logger = logging.getLogger(__name__)

PAGE_BREAK = "\n\n---PAGE BREAK---\n\n"
PDF_MIME_TYPE = "application/pdf"


@dataclass
class OcrOutput:
    text: str
    confidence: float  # 0-1
    document_type: DocumentType


class OcrEngine:
    """
    Tesseract-backed OCR for PDFs and images.

    Config:
        dpi: PDF rendering resolution (default: OCR_DPI)
        language: Tesseract language code (default: OCR_LANGUAGE)
        classifier: document-type classifier for the recognized text
    """

    def __init__(
        self,
        dpi: Optional[int] = None,
        language: Optional[str] = None,
        classifier: Optional[DocumentClassifier] = None,
    ):
        self.dpi = dpi or processing_settings.OCR_DPI
        self.language = language or processing_settings.OCR_LANGUAGE
        self.classifier = classifier or DocumentClassifier()
        self.logger = logger

    @log_performance(logger, "OCR")
    def process(self, file_path: Path, mime_type: Optional[str]) -> OcrOutput:
        """
        OCR every page of the file.

        Raises:
            OcrEngineError: the file couldn't be rendered or recognized
        """
        file_path = Path(file_path)
        try:
            images = self._load_pages(file_path, mime_type)
            if not images:
                raise OcrEngineError(f"No pages found in {file_path.name}")

            texts: List[str] = []
            confidences: List[float] = []
            for page_num, image in enumerate(images):
                text, confidence = self._recognize(self.enhance_image(image))
                self.logger.debug(f"Page {page_num + 1}: {len(text)} chars, confidence {confidence:.2f}")
                texts.append(text)
                confidences.append(confidence)

        except OcrEngineError:
            raise
        except Exception as e:
            raise OcrEngineError(f"OCR failed for {file_path.name}: {e}") from e

        full_text = PAGE_BREAK.join(texts)
        return OcrOutput(
            text=full_text,
            confidence=sum(confidences) / len(confidences),
            document_type=self.classifier.classify(full_text),
        )

    def _load_pages(self, file_path: Path, mime_type: Optional[str]) -> List[Image.Image]:
        if mime_type == PDF_MIME_TYPE or file_path.suffix.lower() == ".pdf":
            return self._pdf_to_images(file_path)
        with Image.open(file_path) as image:
            image.load()
            return [image.copy()]

    def _pdf_to_images(self, pdf_path: Path) -> List[Image.Image]:
        """Render every PDF page to a PIL Image."""
        scale = self.dpi / 72.0  # PDF points to pixels
        pdf = pypdfium2.PdfDocument(str(pdf_path))
        try:
            return [pdf[page_num].render(scale=scale).to_pil() for page_num in range(len(pdf))]
        finally:
            pdf.close()

    def enhance_image(self, image: Image.Image) -> Image.Image:
        """Grayscale, boost contrast and sharpen."""
        if image.mode not in ('RGB', 'L'):
            image = image.convert('RGB')
        gray = image.convert('L') if image.mode == 'RGB' else image

        enhanced = ImageEnhance.Contrast(gray).enhance(1.5)
        return enhanced.filter(ImageFilter.SHARPEN)

    def _recognize(self, image: Image.Image) -> Tuple[str, float]:
        """
        Run Tesseract once and rebuild line-broken text from word data.

        Line breaks matter: several extraction rules anchor on them.
        """
        data = pytesseract.image_to_data(
            image, lang=self.language, output_type=pytesseract.Output.DICT
        )

        lines = {}
        confidences = []
        for i, word in enumerate(data['text']):
            word = (word or '').strip()
            conf = float(data['conf'][i])
            if not word or conf < 0:
                continue
            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            lines.setdefault(key, []).append(word)
            confidences.append(conf / 100.0)  # Normalize to 0-1

        text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return text, confidence
