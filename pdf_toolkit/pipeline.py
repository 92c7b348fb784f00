"""
pipeline.py - Page-wise PDF pipelines.

rasterCompress:
1. Open the document
2. Per page: render at <= max width, encode JPEG, embed as a full page
3. Serialize

split: one output per page, pages copied without rasterization.
merge: every page of every input, in caller order, into one output.

Pages are processed strictly one after another; the renderer of a
document is not reentrant.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from . import __version__
from .compression import encode_surface
from .config import DEFAULT_LIMITS, CompressOptions, Limits, MergeOptions
from .decoder import SourceDocument, open_document
from .errors import (
    InvalidOptionsError,
    PipelineCancelled,
    RenderError,
    ResourceLimitError,
    ToolkitError,
)
from .pdf_writer import OutputDocument
from .rasterize import render_page

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
PRODUCER = f"pdf-toolkit {__version__}"

ProgressCallback = Callable[[str, int, int], None]
MergeSources = Union[Mapping[str, bytes], Sequence[Tuple[str, bytes]]]


class PipelineState(Enum):
    IDLE = "idle"
    READING = "reading"
    RENDERING = "rendering"
    SPLITTING = "splitting"
    MERGING = "merging"
    FINALIZING = "finalizing"
    DONE = "done"
    ERRORED = "errored"
    CANCELLED = "cancelled"


class Mode(Enum):
    RASTER_COMPRESS = "rasterCompress"
    SPLIT = "split"
    MERGE = "merge"

    @classmethod
    def parse(cls, value: Union[str, "Mode"]) -> "Mode":
        if isinstance(value, cls):
            return value
        aliases = {
            "rastercompress": cls.RASTER_COMPRESS,
            "raster_compress": cls.RASTER_COMPRESS,
            "compress": cls.RASTER_COMPRESS,
            "split": cls.SPLIT,
            "merge": cls.MERGE,
        }
        try:
            return aliases[str(value).lower()]
        except KeyError:
            raise InvalidOptionsError(f"Unknown pipeline mode: {value}") from None


@dataclass
class PipelineProgress:
    """Progress of the current run; current never decreases."""
    state: PipelineState = PipelineState.IDLE
    current: int = 0
    total: int = 0

    @property
    def phase(self) -> str:
        return self.state.value

    def reset(self):
        self.state = PipelineState.IDLE
        self.current = 0
        self.total = 0


class CancellationToken:
    """Set by the caller to stop a run between pages."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class OutputFile:
    """One produced document."""
    data: bytes
    filename: str
    mime_type: str = PDF_MIME
    page_count: int = 0

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class PageFailure:
    """A page that could not be produced (split mode only)."""
    page_index: int
    error: str

    @property
    def page_num(self) -> int:
        return self.page_index + 1


@dataclass
class PipelineResult:
    """Result of one pipeline run."""
    mode: Mode
    outputs: List[OutputFile] = field(default_factory=list)
    failures: List[PageFailure] = field(default_factory=list)

    page_count: int = 0
    input_size: int = 0
    total_time: float = 0.0

    @property
    def output_size(self) -> int:
        return sum(o.size for o in self.outputs)

    @property
    def success(self) -> bool:
        return bool(self.outputs) and not self.failures

    @property
    def reduction_pct(self) -> float:
        if self.input_size == 0:
            return 0
        return (1 - self.output_size / self.input_size) * 100

    def summary(self) -> str:
        lines = [
            f"Mode: {self.mode.value}",
            f"Input:  {self.input_size:,} bytes, {self.page_count} pages",
            f"Output: {len(self.outputs)} file(s), {self.output_size:,} bytes",
        ]
        if self.mode is Mode.RASTER_COMPRESS:
            lines.append(f"Reduction: {self.reduction_pct:.1f}%")
        if self.failures:
            failed = ", ".join(str(f.page_num) for f in self.failures)
            lines.append(f"Failed pages: {failed}")
        lines.append(f"Time: {self.total_time:.1f}s")
        return "\n".join(lines)


def split_filename(name: str, page_num: int) -> str:
    stem = PurePath(name).stem or "document"
    return f"{stem}_page_{page_num}.pdf"


def compressed_filename(name: str) -> str:
    return f"optimized-{PurePath(name).name or 'file.pdf'}"


def _normalize_sources(sources: MergeSources) -> List[Tuple[str, bytes]]:
    if isinstance(sources, Mapping):
        return list(sources.items())
    return [(str(name), data) for name, data in sources]


class Pipeline:
    """
    Runs one document pipeline at a time.

    state and progress describe the current (or last) run. Concurrent
    runs need separate Pipeline instances.
    """

    def __init__(self, limits: Limits = DEFAULT_LIMITS):
        self.limits = limits
        self.state = PipelineState.IDLE
        self.progress = PipelineProgress()
        self._callback: Optional[ProgressCallback] = None
        self._cancel_token: Optional[CancellationToken] = None

    # -- run bookkeeping -------------------------------------------------

    def _begin(self, progress_callback, cancel_token):
        self.progress.reset()
        self.state = PipelineState.IDLE
        self._callback = progress_callback
        self._cancel_token = cancel_token

    def _enter(self, state: PipelineState):
        self.state = state
        self.progress.state = state

    def _report(self, state: PipelineState, current: int, total: int):
        self._enter(state)
        self.progress.current = max(self.progress.current, current)
        self.progress.total = total
        if self._callback:
            self._callback(state.value, self.progress.current, total)

    def _check_cancelled(self):
        if self._cancel_token is not None and self._cancel_token.cancelled:
            self._enter(PipelineState.CANCELLED)
            logger.info(
                f"Run cancelled at page {self.progress.current}/{self.progress.total}"
            )
            raise PipelineCancelled("Pipeline cancelled by caller")

    def _fail(self, error: Exception):
        if self.state is not PipelineState.CANCELLED:
            self._enter(PipelineState.ERRORED)
            logger.error(f"Pipeline failed: {error}")

    def _check_size(self, data: bytes, name: str):
        limit = self.limits.max_input_bytes
        if limit is not None and len(data) > limit:
            raise ResourceLimitError(
                f"{name} is {len(data):,} bytes, limit is {limit:,} bytes"
            )

    def _finish(self, output: OutputDocument) -> bytes:
        self._enter(PipelineState.FINALIZING)
        output.set_metadata({"/Producer": PRODUCER})
        return output.serialize()

    # -- modes ------------------------------------------------------------

    def rasterize_compress(
        self,
        data: bytes,
        options: Optional[CompressOptions] = None,
        name: str = "document.pdf",
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> PipelineResult:
        """
        Rasterize every page and rebuild the PDF from the images.

        Any page failure aborts the run; no partial PDF is returned.
        """
        options = (options or CompressOptions()).validate()
        self._begin(progress_callback, cancel_token)
        result = PipelineResult(mode=Mode.RASTER_COMPRESS, input_size=len(data))
        start_time = time.time()

        try:
            self._enter(PipelineState.READING)
            self._check_size(data, name)

            with open_document(data, name) as source:
                total = source.page_count
                if total:
                    # Fail here, not mid-run, if MuPDF cannot open what pikepdf repaired
                    source.renderer
                result.page_count = total
                self._report(PipelineState.READING, 0, total)

                logger.info(
                    f"Compressing {name}: {total} pages, {len(data):,} bytes, "
                    f"max width {options.target_max_width_px}px, "
                    f"quality {options.quality_fraction}"
                )

                output = OutputDocument()
                try:
                    for index in range(total):
                        self._check_cancelled()
                        self._report(PipelineState.RENDERING, index + 1, total)

                        surface = render_page(source.get_page(index), options.target_max_width_px)
                        encoded = encode_surface(
                            surface,
                            options.quality_fraction,
                            image_format=options.image_format,
                            auto_grayscale=options.auto_grayscale
                        )
                        del surface
                        output.add_image_page(encoded)
                        del encoded

                    self._check_cancelled()
                    pdf_bytes = self._finish(output)
                finally:
                    output.close()

            result.outputs.append(OutputFile(
                data=pdf_bytes,
                filename=compressed_filename(name),
                page_count=total
            ))
        except (ToolkitError, IndexError) as e:
            self._fail(e)
            raise

        result.total_time = time.time() - start_time
        self._enter(PipelineState.DONE)
        logger.info(f"\n{result.summary()}")
        return result

    def split(
        self,
        data: bytes,
        name: str = "document.pdf",
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> PipelineResult:
        """
        Split a document into one single-page PDF per page.

        Pages are independent outputs: a page that fails is recorded in
        result.failures and the remaining pages are still produced.
        """
        self._begin(progress_callback, cancel_token)
        result = PipelineResult(mode=Mode.SPLIT, input_size=len(data))
        start_time = time.time()

        try:
            self._enter(PipelineState.READING)
            self._check_size(data, name)

            with open_document(data, name) as source:
                total = source.page_count
                result.page_count = total
                self._report(PipelineState.READING, 0, total)
                logger.info(f"Splitting {name}: {total} pages")

                for index in range(total):
                    self._check_cancelled()
                    self._report(PipelineState.SPLITTING, index + 1, total)

                    output = OutputDocument()
                    try:
                        output.add_copied_page(source, index)
                        output.set_metadata({"/Producer": PRODUCER})
                        pdf_bytes = output.serialize()
                    except ToolkitError as e:
                        logger.warning(f"Skipping page {index + 1} of {name}: {e}")
                        result.failures.append(PageFailure(index, str(e)))
                        continue
                    finally:
                        output.close()

                    result.outputs.append(OutputFile(
                        data=pdf_bytes,
                        filename=split_filename(name, index + 1),
                        page_count=1
                    ))

                self._enter(PipelineState.FINALIZING)
        except ToolkitError as e:
            self._fail(e)
            raise

        result.total_time = time.time() - start_time
        self._enter(PipelineState.DONE)
        logger.info(f"\n{result.summary()}")
        return result

    def merge(
        self,
        sources: MergeSources,
        options: Optional[MergeOptions] = None,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> PipelineResult:
        """
        Concatenate every page of every source, in order.

        sources maps identifiers to PDF bytes (or is a sequence of
        (identifier, bytes) pairs); options.order, when given, selects
        and orders them. All inputs are decoded before any page is
        copied, and any failure aborts the merge.
        """
        options = (options or MergeOptions()).validate()
        self._begin(progress_callback, cancel_token)
        result = PipelineResult(mode=Mode.MERGE)
        start_time = time.time()

        opened: List[SourceDocument] = []
        try:
            self._enter(PipelineState.READING)
            ordered = self._order_sources(_normalize_sources(sources), options)
            result.input_size = sum(len(data) for _, data in ordered)

            for doc_name, data in ordered:
                self._check_cancelled()
                opened.append(open_document(data, doc_name))

            total = sum(doc.page_count for doc in opened)
            result.page_count = total
            self._report(PipelineState.READING, 0, total)
            logger.info(f"Merging {len(opened)} documents, {total} pages")

            output = OutputDocument()
            try:
                done = 0
                for doc in opened:
                    for index in range(doc.page_count):
                        self._check_cancelled()
                        done += 1
                        self._report(PipelineState.MERGING, done, total)
                        output.add_copied_page(doc, index)

                self._check_cancelled()
                pdf_bytes = self._finish(output)
            finally:
                output.close()

            result.outputs.append(OutputFile(
                data=pdf_bytes,
                filename="merged.pdf",
                page_count=total
            ))
        except (ToolkitError, IndexError) as e:
            self._fail(e)
            raise
        finally:
            for doc in opened:
                doc.close()

        result.total_time = time.time() - start_time
        self._enter(PipelineState.DONE)
        logger.info(f"\n{result.summary()}")
        return result

    def _order_sources(
        self,
        sources: List[Tuple[str, bytes]],
        options: MergeOptions
    ) -> List[Tuple[str, bytes]]:
        if options.order is not None:
            names = [key for key, _ in sources]
            duplicates = sorted({key for key in names if names.count(key) > 1})
            if duplicates:
                raise InvalidOptionsError(f"Duplicate document identifiers: {duplicates}")
            by_name: Dict[str, bytes] = dict(sources)
            missing = [key for key in options.order if key not in by_name]
            if missing:
                raise InvalidOptionsError(f"Unknown documents in merge order: {missing}")
            sources = [(key, by_name[key]) for key in options.order]

        limits = self.limits
        if len(sources) < limits.min_merge_files:
            raise InvalidOptionsError(
                f"Select at least {limits.min_merge_files} PDF files to merge"
            )
        if limits.max_merge_files is not None and len(sources) > limits.max_merge_files:
            raise ResourceLimitError(
                f"Cannot merge more than {limits.max_merge_files} files"
            )
        total_size = sum(len(data) for _, data in sources)
        if limits.max_merge_total_bytes is not None and total_size > limits.max_merge_total_bytes:
            raise ResourceLimitError(
                f"Total size {total_size:,} bytes exceeds {limits.max_merge_total_bytes:,} bytes"
            )
        for doc_name, data in sources:
            self._check_size(data, doc_name)
        return sources

    def run(
        self,
        mode: Union[str, Mode],
        sources,
        options=None,
        name: str = "document.pdf",
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> PipelineResult:
        """Dispatch to the pipeline for mode."""
        mode = Mode.parse(mode)
        if mode is Mode.RASTER_COMPRESS:
            return self.rasterize_compress(
                sources, options, name=name,
                progress_callback=progress_callback, cancel_token=cancel_token
            )
        if mode is Mode.SPLIT:
            return self.split(
                sources, name=name,
                progress_callback=progress_callback, cancel_token=cancel_token
            )
        return self.merge(
            sources, options,
            progress_callback=progress_callback, cancel_token=cancel_token
        )


def rasterize_compress(data: bytes, options: Optional[CompressOptions] = None, **kwargs) -> PipelineResult:
    return Pipeline().rasterize_compress(data, options, **kwargs)


def split_pdf(data: bytes, **kwargs) -> PipelineResult:
    return Pipeline().split(data, **kwargs)


def merge_pdfs(sources: MergeSources, options: Optional[MergeOptions] = None, **kwargs) -> PipelineResult:
    return Pipeline().merge(sources, options, **kwargs)


def run(mode: Union[str, Mode], sources, options=None, **kwargs) -> PipelineResult:
    return Pipeline().run(mode, sources, options, **kwargs)
