#!/usr/bin/env python3
"""
pdftool.py - PDF compress / split / merge and image reduce CLI.

Usage:
    python pdftool.py compress input.pdf -o output.pdf
    python pdftool.py compress input.pdf -q 0.5 -w 1200
    python pdftool.py split input.pdf --output-dir ./pages/
    python pdftool.py merge a.pdf b.pdf c.pdf -o merged.pdf
    python pdftool.py reduce-image photo.jpg --width 350 --height 450
"""

import argparse
import logging
import sys
from pathlib import Path

# Add parent to path when running as script
if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).parent))

from pdf_toolkit.config import (
    DEFAULT_MAX_WIDTH,
    DEFAULT_QUALITY,
    IMAGE_FORMATS,
    PDF_FORMATS,
    CompressOptions,
    ImageReduceOptions,
    MergeOptions,
)
from pdf_toolkit.errors import ToolkitError
from pdf_toolkit.images import reduce_image
from pdf_toolkit.pipeline import Pipeline


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Compress, split and merge PDFs; resize images.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python pdftool.py compress scan.pdf -o small.pdf
  python pdftool.py split report.pdf --output-dir ./pages/
  python pdftool.py merge a.pdf b.pdf -o merged.pdf
  python pdftool.py reduce-image photo.png --width 200 --height 230 -f jpeg

Compressed PDFs are fully rasterized (no selectable text).
"""
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    compress = commands.add_parser("compress", help="Rasterize and recompress a PDF")
    compress.add_argument("input", type=Path, help="Input PDF file")
    compress.add_argument("-o", "--output", type=Path, help="Output file")
    compress.add_argument(
        "-q", "--quality",
        type=float,
        default=DEFAULT_QUALITY,
        help=f"JPEG quality 0-1 (default: {DEFAULT_QUALITY})"
    )
    compress.add_argument(
        "-w", "--max-width",
        type=int,
        default=DEFAULT_MAX_WIDTH,
        help=f"Maximum page width in pixels (default: {DEFAULT_MAX_WIDTH})"
    )
    compress.add_argument(
        "-f", "--format",
        choices=PDF_FORMATS,
        default="jpeg",
        help="Page image format (default: jpeg)"
    )
    compress.add_argument(
        "-g", "--grayscale",
        action="store_true",
        help="Store colourless pages as grayscale JPEG"
    )

    split = commands.add_parser("split", help="Split a PDF into single pages")
    split.add_argument("input", type=Path, help="Input PDF file")
    split.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Output directory (default: current directory)"
    )

    merge = commands.add_parser("merge", help="Merge PDFs in the given order")
    merge.add_argument("input", nargs="+", type=Path, help="Input PDF files, in order")
    merge.add_argument(
        "-o", "--output",
        type=Path,
        default=Path("merged.pdf"),
        help="Output file (default: merged.pdf)"
    )

    reduce = commands.add_parser("reduce-image", help="Resize and recompress an image")
    reduce.add_argument("input", type=Path, help="Input JPG, PNG or WEBP")
    reduce.add_argument("-o", "--output", type=Path, help="Output file")
    reduce.add_argument("--width", type=int, default=0, help="Target width (0 = half size)")
    reduce.add_argument("--height", type=int, default=0, help="Target height (0 = half size)")
    reduce.add_argument(
        "-q", "--quality",
        type=int,
        default=80,
        help="Quality 1-100, ignored for PNG (default: 80)"
    )
    reduce.add_argument(
        "-f", "--format",
        choices=IMAGE_FORMATS,
        default="jpeg",
        help="Output format (default: jpeg)"
    )

    return parser.parse_args(argv)


def print_progress(phase: str, current: int, total: int):
    """Print progress bar."""
    if total == 0:
        return
    width = 40
    filled = int(width * current / total)
    bar = "=" * filled + "-" * (width - filled)
    pct = current / total * 100
    print(f"\r[{bar}] {current}/{total} ({pct:.0f}%) {phase}", end="", file=sys.stderr)
    if current == total:
        print(file=sys.stderr)


def read_pdf(path: Path) -> bytes:
    if not path.exists():
        raise ToolkitError(f"File not found: {path}")
    if path.suffix.lower() != ".pdf":
        raise ToolkitError(f"Not a PDF: {path}")
    return path.read_bytes()


def cmd_compress(args) -> int:
    options = CompressOptions(
        quality_fraction=args.quality,
        target_max_width_px=args.max_width,
        image_format=args.format,
        auto_grayscale=args.grayscale
    )
    result = Pipeline().rasterize_compress(
        read_pdf(args.input),
        options,
        name=args.input.name,
        progress_callback=print_progress
    )
    output = result.outputs[0]
    output_path = args.output or args.input.with_name(output.filename)
    output_path.write_bytes(output.data)
    print(f"\n{result.summary()}")
    print(f"Saved {output_path}")
    return 0


def cmd_split(args) -> int:
    result = Pipeline().split(
        read_pdf(args.input),
        name=args.input.name,
        progress_callback=print_progress
    )
    args.output_dir.mkdir(parents=True, exist_ok=True)
    for output in result.outputs:
        (args.output_dir / output.filename).write_bytes(output.data)
    print(f"\n{result.summary()}")
    for failure in result.failures:
        print(f"Error: page {failure.page_num}: {failure.error}", file=sys.stderr)
    return 0 if not result.failures else 1


def cmd_merge(args) -> int:
    sources = [(str(path), read_pdf(path)) for path in args.input]
    result = Pipeline().merge(
        sources,
        MergeOptions(),
        progress_callback=print_progress
    )
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_bytes(result.outputs[0].data)
    print(f"\n{result.summary()}")
    print(f"Saved {args.output}")
    return 0


def cmd_reduce_image(args) -> int:
    if not args.input.exists():
        raise ToolkitError(f"File not found: {args.input}")
    options = ImageReduceOptions(
        width=args.width,
        height=args.height,
        quality=args.quality,
        image_format=args.format
    )
    original = args.input.read_bytes()
    reduced = reduce_image(original, options)
    output_path = args.output or args.input.with_name(reduced.filename)
    output_path.write_bytes(reduced.data)

    reduction = (1 - reduced.size / len(original)) * 100 if original else 0
    print(
        f"{args.input.name} ({len(original):,} bytes) -> "
        f"{output_path.name} ({reduced.size:,} bytes, {reduced.width}x{reduced.height})\n"
        f"Reduction: {reduction:.1f}%"
    )
    return 0


COMMANDS = {
    "compress": cmd_compress,
    "split": cmd_split,
    "merge": cmd_merge,
    "reduce-image": cmd_reduce_image,
}


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        code = COMMANDS[args.command](args)
    except ToolkitError as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
