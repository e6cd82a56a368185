"""
Text OCR for pages without a text layer.

Scanned pages carry no extractable text, which starves classification and
similarity. This module recognizes their text with Tesseract. The OCR engine
is an optional collaborator: when it is missing or fails, the page keeps an
empty text and the run continues.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import numpy as np

from .errors import AnalysisDegradation, EngineUnavailable

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class OCRResult:
    """OCR result for one page image."""
    text: str
    confidence: float
    lines: List[str] = field(default_factory=list)
    engine_used: str = "tesseract"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "engine": self.engine_used,
        }


# ============================================================================
# Tesseract Recognizer
# ============================================================================

class PageTextRecognizer:
    """
    OCR using Tesseract.

    Args:
        language: Tesseract language code(s), e.g. "eng" or "eng+deu"
        config: Extra Tesseract command-line configuration
    """

    def __init__(
        self,
        language: str = "eng",
        config: str = "--oem 3 --psm 3"
    ):
        self.language = language
        self.config = config
        self._pytesseract = None

    @property
    def pytesseract(self):
        if self._pytesseract is None:
            try:
                import pytesseract
                # Test that tesseract is installed
                pytesseract.get_tesseract_version()
            except Exception as e:
                raise EngineUnavailable(
                    "ocr",
                    f"Tesseract not available: {e}. Install with: pip install pytesseract "
                    "and the tesseract-ocr system package"
                )
            self._pytesseract = pytesseract
        return self._pytesseract

    def _preprocess_for_ocr(self, image: np.ndarray) -> np.ndarray:
        """Grayscale and binarize a page image."""
        import cv2

        if len(image.shape) == 3:
            gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        else:
            gray = image.copy()

        # Otsu works well on full pages with uneven scan contrast
        _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        return binary

    def recognize(self, image: np.ndarray) -> OCRResult:
        """
        Recognize the text of a page image.

        Raises:
            EngineUnavailable: If Tesseract is not installed
            AnalysisDegradation: If Tesseract fails on this image
        """
        processed = self._preprocess_for_ocr(image)

        try:
            data = self.pytesseract.image_to_data(
                processed,
                lang=self.language,
                config=self.config,
                output_type=self.pytesseract.Output.DICT
            )
        except AnalysisDegradation:
            raise
        except Exception as e:
            raise AnalysisDegradation("ocr", f"Tesseract error: {e}")

        lines: Dict[Tuple[int, int, int], List[str]] = {}
        confidences = []
        for i in range(len(data['text'])):
            text = data['text'][i].strip()
            conf = float(data['conf'][i])
            if conf < 0 or not text:  # -1 means no valid confidence
                continue
            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            lines.setdefault(key, []).append(text)
            confidences.append(conf / 100.0)

        line_texts = [' '.join(words) for _, words in sorted(lines.items())]
        return OCRResult(
            text='\n'.join(line_texts),
            confidence=float(np.mean(confidences)) if confidences else 0.0,
            lines=line_texts,
        )
