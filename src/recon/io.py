"""
I/O utilities for the reconstruction pipeline.

Handles:
- Reading the source PDF and extracting the page corpus
- PDF page rendering to images
- JSON serialization
- Atomic file writes and directory management
- Stage progress tracking
"""

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

import numpy as np

from .corpus import Page, PageCorpus
from .errors import ExtractionFailure

logger = logging.getLogger(__name__)


# ============================================================================
# Source Loading and Extraction
# ============================================================================

def read_source(source: Union[str, Path, bytes]) -> bytes:
    """
    Read the source document.

    Args:
        source: Path to a PDF file, or its raw bytes

    Returns:
        PDF bytes

    Raises:
        ExtractionFailure: If the file is missing, unreadable or not a PDF
    """
    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
    else:
        path = Path(source)
        if not path.exists():
            raise ExtractionFailure(f"PDF file not found: {path}")
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ExtractionFailure(f"Cannot read {path}: {e}") from e

    # The header may be preceded by up to 1 KB of junk
    if b"%PDF" not in data[:1024]:
        raise ExtractionFailure("Input is not a PDF document")
    return data


def extract_corpus(pdf_bytes: bytes) -> PageCorpus:
    """
    Extract text, size and rotation for every page using PyMuPDF.

    Args:
        pdf_bytes: Source PDF bytes

    Returns:
        PageCorpus in source order

    Raises:
        ExtractionFailure: If the document cannot be parsed or has no pages
    """
    import fitz  # PyMuPDF

    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as e:
        raise ExtractionFailure(f"Failed to parse PDF: {e}") from e

    try:
        if doc.needs_pass:
            raise ExtractionFailure("PDF is encrypted")
        if doc.page_count == 0:
            raise ExtractionFailure("PDF has no pages")

        pages = []
        for i, fitz_page in enumerate(doc):
            rect = fitz_page.rect
            pages.append(Page(
                index=i,
                text=fitz_page.get_text("text"),
                width=float(rect.width),
                height=float(rect.height),
                rotation=int(fitz_page.rotation),
            ))
    except ExtractionFailure:
        raise
    except Exception as e:
        raise ExtractionFailure(f"Failed to extract pages: {e}") from e
    finally:
        doc.close()

    logger.info(f"Extracted {len(pages)} pages from PDF")
    return PageCorpus(tuple(pages))


# ============================================================================
# PDF to Image Conversion
# ============================================================================

def render_page_images(
    pdf_bytes: bytes,
    dpi: int = 72,
    first_page: Optional[int] = None,
    last_page: Optional[int] = None
) -> List[np.ndarray]:
    """
    Render PDF pages to images using pdf2image (poppler backend).

    Args:
        pdf_bytes: PDF bytes
        dpi: Resolution for rendering (low values suffice for signatures)
        first_page: First page to convert (1-indexed, None = first)
        last_page: Last page to convert (1-indexed, None = last)

    Returns:
        List of numpy arrays (BGR format), one per page

    Raises:
        ImportError: If pdf2image is not installed
        RuntimeError: If poppler is missing or the PDF cannot be rendered
    """
    try:
        from pdf2image import convert_from_bytes
        from pdf2image.exceptions import PDFPageCountError, PDFSyntaxError
    except ImportError:
        raise ImportError(
            "pdf2image is required. Install with: pip install pdf2image\n"
            "Also ensure poppler is installed on your system."
        )

    try:
        logger.info(f"Rendering PDF pages at {dpi} DPI")
        pil_images = convert_from_bytes(
            pdf_bytes,
            dpi=dpi,
            first_page=first_page,
            last_page=last_page,
            fmt='png',
            thread_count=4
        )
    except (PDFPageCountError, PDFSyntaxError) as e:
        raise RuntimeError(f"Failed to render PDF: {e}")
    except Exception as e:
        if "poppler" in str(e).lower():
            raise RuntimeError(
                "Poppler is not installed. Install with:\n"
                "  macOS: brew install poppler\n"
                "  Linux: sudo apt-get install poppler-utils"
            )
        raise

    images = []
    for pil_img in pil_images:
        img_array = np.array(pil_img.convert("RGB"))
        # RGB -> BGR for OpenCV compatibility
        images.append(img_array[:, :, ::-1].copy())

    logger.info(f"Rendered {len(images)} pages")
    return images


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy values, enums and dataclasses."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, Enum):
            return obj.value
        if hasattr(obj, 'to_dict'):
            return obj.to_dict()
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    text = json.dumps(data, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)
    output_path = atomic_write_text(output_path, text)
    logger.debug(f"Saved JSON: {output_path}")
    return output_path


# ============================================================================
# File Writing and Directory Management
# ============================================================================

def ensure_dir(path: Union[str, Path]) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write_bytes(output_path: Union[str, Path], data: bytes) -> Path:
    """
    Write bytes so that the destination only ever holds complete content.

    Data goes to a temporary file in the destination directory which then
    replaces the target in one rename. On any failure the temporary file is
    removed and the target is left untouched.

    Args:
        output_path: Destination file
        data: Content to write

    Returns:
        Path to the written file
    """
    output_path = Path(output_path)
    ensure_dir(output_path.parent)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{output_path.name}.", suffix=".part", dir=str(output_path.parent)
    )
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, output_path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    return output_path


def atomic_write_text(output_path: Union[str, Path], text: str) -> Path:
    return atomic_write_bytes(output_path, text.encode('utf-8'))


# ============================================================================
# Progress Tracking
# ============================================================================

@dataclass
class ProcessingProgress:
    """Track progress of a reconstruction run across stages."""
    stages: List[str] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)
    current_stage: str = ""
    callback: Optional[Callable[[str, float], None]] = None

    @property
    def percent_complete(self) -> float:
        if not self.stages:
            return 0.0
        return (len(self.completed) / len(self.stages)) * 100

    def start(self, stage: str):
        self.current_stage = stage

    def complete(self, stage: str):
        if stage not in self.completed:
            self.completed.append(stage)
        if self.callback is not None:
            self.callback(stage, self.percent_complete)
