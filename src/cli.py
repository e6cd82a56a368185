#!/usr/bin/env python
"""
Command-line interface for PDF page-order reconstruction.

Usage:
    python src/cli.py --input <pdf> --output <output_dir> [options]

Examples:
    # Reorder a shuffled PDF and write reports
    python src/cli.py --input shuffled.pdf --output ./output

    # Skip the embedding model and image signatures
    python src/cli.py --input shuffled.pdf --output ./output --no-embeddings --no-phash
"""

import sys
from pathlib import Path

# Add src directory to path for imports when running as script
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import argparse
import logging
import time
from typing import List, Optional

logger = logging.getLogger("page_recon")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        description="PDF Page-Order Reconstruction - Recover the reading order of shuffled PDFs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Reorder a PDF with all analyses:
    python -m src.cli --input shuffled.pdf --output ./output

  Text-only analysis (no embedding model, no image signatures, no OCR):
    python -m src.cli --input shuffled.pdf --output ./output --no-embeddings --no-phash --no-ocr

  Stricter duplicate detection:
    python -m src.cli --input shuffled.pdf --output ./output --jaccard-threshold 0.95
        """
    )

    # Required arguments
    parser.add_argument(
        "--input", "-i",
        required=True,
        help="Input PDF file"
    )

    parser.add_argument(
        "--output", "-o",
        required=True,
        help="Output directory for ordered.pdf and reports"
    )

    # Optional arguments
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.json (default: ./config.json when present)"
    )

    parser.add_argument(
        "--no-toc",
        action="store_true",
        help="Do not insert a table-of-contents page"
    )

    parser.add_argument(
        "--no-embeddings",
        action="store_true",
        help="Disable the sentence embedding model (lexical similarity only)"
    )

    parser.add_argument(
        "--no-phash",
        action="store_true",
        help="Disable image signatures for duplicate detection"
    )

    parser.add_argument(
        "--no-ocr",
        action="store_true",
        help="Disable OCR for pages without a text layer"
    )

    parser.add_argument(
        "--ocr-lang",
        default=None,
        help="Tesseract language code(s), e.g. 'eng' or 'eng+deu'"
    )

    parser.add_argument(
        "--jaccard-threshold",
        type=float,
        default=None,
        help="Token Jaccard similarity at which pages are duplicates (default: 0.9)"
    )

    parser.add_argument(
        "--hamming-threshold",
        type=int,
        default=None,
        help="Signature Hamming distance at which pages are duplicates (default: 6)"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Re-raise unexpected errors with a traceback"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 1.0.0"
    )

    return parser


def build_config(args):
    """Load the configuration and apply command-line overrides."""
    from config import get_config

    config = get_config(args.config)

    if args.no_toc:
        config.export.embed_toc = False
    if args.no_embeddings:
        config.embeddings.enabled = False
    if args.no_phash:
        config.duplicates.use_image_hash = False
    if args.no_ocr:
        config.extraction.ocr_enabled = False
    if args.ocr_lang:
        config.extraction.ocr_language = args.ocr_lang
    if args.jaccard_threshold is not None:
        config.duplicates.jaccard_threshold = args.jaccard_threshold
    if args.hamming_threshold is not None:
        config.duplicates.hamming_threshold = args.hamming_threshold
    if args.debug:
        config.debug_mode = True

    return config


def run_pipeline(args) -> int:
    """Run the reconstruction pipeline."""
    from recon.errors import ReconstructionError
    from recon.pipeline import ReconstructionPipeline

    start_time = time.time()

    input_path = Path(args.input)
    output_dir = Path(args.output)

    config = build_config(args)
    pipeline = ReconstructionPipeline(config)

    logger.info(f"Reconstructing {input_path}...")
    try:
        result = pipeline.run(input_path, output_dir=output_dir)
    except ReconstructionError as e:
        logger.error(f"Reconstruction failed at stage '{e.stage}': {e.message}")
        if config.debug_mode:
            raise
        return 1

    elapsed = time.time() - start_time
    order = result.order

    if not args.quiet:
        print("\n" + "="*60)
        print("PAGE ORDER RECONSTRUCTION COMPLETE")
        print("="*60)
        print(f"Source: {input_path}")
        print(f"Output: {result.output_path}")
        print(f"Pages processed: {len(result.corpus)}")
        print(f"Processing time: {elapsed:.2f}s")
        print()
        print(f"Strategy: {order.strategy.value}")
        print(f"Confidence: {order.confidence:.2f}")
        print(f"Order: {' -> '.join(str(i + 1) for i in order.order)}")
        print(f"Duplicate groups: {len(result.duplicates)}")
        print(f"Missing pages: {', '.join(str(g.number) for g in result.missing) or 'none'}")
        print(f"TOC entries: {len(result.toc)}")
        if result.degradations:
            print()
            print("Degraded analyses:")
            for degradation in result.degradations:
                print(f"  - {degradation.stage}: {degradation.message}")
        print("="*60)

    return 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    try:
        exit_code = run_pipeline(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.debug:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
