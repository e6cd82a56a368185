"""
Configuration and constants for the page-order reconstruction pipeline.

This module provides:
- Global configuration settings
- Per-stage thresholds and switches
- config.json loading and environment overrides
"""

import os
import json
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Optional, Dict, Any, Tuple, Union
from pathlib import Path
import logging

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("page_recon")


# ============================================================================
# Directory Paths
# ============================================================================

PROJECT_ROOT = Path(__file__).parent.parent
CACHE_DIR = PROJECT_ROOT / ".cache"
DEFAULT_CONFIG_FILE = "config.json"


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class ExtractionConfig:
    """Text extraction and OCR configuration."""
    ocr_enabled: bool = True
    ocr_language: str = "eng"
    tesseract_config: str = "--oem 3 --psm 3"
    # Resolution for page rendering (OCR needs more than signatures)
    ocr_dpi: int = 300
    signature_dpi: int = 72


@dataclass
class ClassifierConfig:
    """Page role classification configuration."""
    content_min_words: int = 40


@dataclass
class OrderConfig:
    """Order planning configuration."""
    numbering_min_fraction: float = 0.7
    structure_min_fraction: float = 0.6
    numbering_confidence_cap: float = 0.95
    structure_confidence_cap: float = 0.8
    chain_confidence_cap: float = 0.9


@dataclass
class DuplicateConfig:
    """Duplicate detection configuration."""
    enabled: bool = True
    use_image_hash: bool = True
    jaccard_threshold: float = 0.9
    hamming_threshold: int = 6
    hash_size: int = 8


@dataclass
class MissingConfig:
    """Missing page analysis configuration."""
    min_numbered_fraction: float = 0.5
    max_gap_span: Optional[int] = None  # None = report every gap


@dataclass
class TocConfig:
    """Table of contents synthesis configuration."""
    enabled: bool = True
    heading_scan_lines: int = 5
    min_heading_length: int = 3
    max_heading_length: int = 80
    max_heading_words: int = 10
    content_run_min: int = 3


@dataclass
class EmbeddingConfig:
    """Embedding model configuration."""
    enabled: bool = True
    model_name: str = "sentence-transformers/all-MiniLM-L6-v2"
    cache_dir: str = str(CACHE_DIR / "transformers")
    device: str = "cpu"


@dataclass
class ExportConfig:
    """Export configuration."""
    embed_toc: bool = True
    add_bookmarks: bool = True
    toc_title: str = "Table of Contents"
    toc_page_size: Tuple[float, float] = (595.0, 842.0)  # A4
    output_name: str = "ordered.pdf"
    write_reports: bool = True


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    order: OrderConfig = field(default_factory=OrderConfig)
    duplicates: DuplicateConfig = field(default_factory=DuplicateConfig)
    missing: MissingConfig = field(default_factory=MissingConfig)
    toc: TocConfig = field(default_factory=TocConfig)
    embeddings: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    # Global settings
    parallel_analysis: bool = True
    debug_mode: bool = False


# Flat keys accepted at the top level or under "processing" in config.json
FLAT_KEYS = {
    "embeddings": ("embeddings", "enabled"),
    "phash": ("duplicates", "use_image_hash"),
    "ocrLang": ("extraction", "ocr_language"),
    "jaccardThreshold": ("duplicates", "jaccard_threshold"),
    "hammingThreshold": ("duplicates", "hamming_threshold"),
    "embeddingModel": ("embeddings", "model_name"),
    "modelCacheDir": ("embeddings", "cache_dir"),
    "embedToc": ("export", "embed_toc"),
    "debug": (None, "debug_mode"),
}


def _apply_section(section: Any, values: Dict[str, Any]):
    """Overlay known keys from a dict onto a config dataclass."""
    known = {f.name for f in fields(section)}
    for key, value in values.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key: {key}")
            continue
        current = getattr(section, key)
        if is_dataclass(current) and isinstance(value, dict):
            _apply_section(current, value)
        elif isinstance(current, tuple) and isinstance(value, list):
            setattr(section, key, tuple(value))
        else:
            setattr(section, key, value)


def apply_overrides(config: PipelineConfig, data: Dict[str, Any]) -> PipelineConfig:
    """
    Overlay a parsed config.json onto a configuration.

    Section objects ("order", "duplicates", ...) map onto the matching
    dataclass. Flat keys (e.g. "jaccardThreshold") are accepted at the top
    level or inside a "processing" object.
    """
    flat = dict(data.get("processing") or {})
    sections = {}
    for key, value in data.items():
        if key == "processing":
            continue
        if key in FLAT_KEYS:
            flat[key] = value
        else:
            sections[key] = value

    _apply_section(config, sections)

    for key, value in flat.items():
        if key not in FLAT_KEYS:
            logger.warning(f"Ignoring unknown config key: {key}")
            continue
        section_name, attribute = FLAT_KEYS[key]
        target = getattr(config, section_name) if section_name else config
        setattr(target, attribute, value)

    return config


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_config(config_path: Optional[Union[str, Path]] = None) -> PipelineConfig:
    """
    Get the pipeline configuration.

    Defaults are overlaid with config.json (the given path, or ./config.json
    when present) and then with environment variables. An explicit path that
    does not exist raises FileNotFoundError.
    """
    config = PipelineConfig()

    path = Path(config_path) if config_path else Path.cwd() / DEFAULT_CONFIG_FILE
    if config_path and not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    if path.exists():
        try:
            with open(path, 'r', encoding='utf-8') as f:
                apply_overrides(config, json.load(f))
            logger.info(f"Loaded configuration from {path}")
        except (OSError, json.JSONDecodeError) as e:
            if config_path:
                raise
            logger.warning(f"Failed to load {path}, using defaults: {e}")

    # Override from environment variables
    if os.environ.get("PAGE_RECON_DEBUG", "").lower() == "true":
        config.debug_mode = True

    if os.environ.get("PAGE_RECON_EMBEDDINGS", "").lower() == "false":
        config.embeddings.enabled = False

    if os.environ.get("PAGE_RECON_PHASH", "").lower() == "false":
        config.duplicates.use_image_hash = False

    if os.environ.get("PAGE_RECON_OCR_LANG"):
        config.extraction.ocr_language = os.environ["PAGE_RECON_OCR_LANG"]

    return config
