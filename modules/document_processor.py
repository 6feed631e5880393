"""Per-file pipeline: download, OCR, LLM analysis, page pricing."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional, Sequence

from core.exceptions import CertQuoteError, ConfigurationError
from logging_config import get_logger
from models.document import ProcessedFile, StepStatus, StoredFile
from models.quote import FileAnalysis
from modules.file_naming import guess_mime
from modules.pricing import QuoteCalculator

FileCallback = Callable[[ProcessedFile, int, int], None]


class DocumentProcessor:
    """
    Runs OCR and analysis for each uploaded file and prices its pages.

    Thread-Per-File:
        - process_all() fans files out to a ThreadPoolExecutor
        - Each worker builds its own OCR client and analyzer through the
          factories, so no HTTP session is shared between threads
        - Results and callbacks are delivered on the calling thread, which
          is the only one that touches the database

    A vendor failure never aborts the batch. It is recorded on the file as
    a ``failed`` status with the error message; a missing vendor
    configuration is recorded as ``skipped``.
    """

    def __init__(
        self,
        fetch_bytes: Callable[[str], bytes],
        ocr_factory: Callable[[], object],
        analyzer_factory: Callable[[], object],
        calculator: QuoteCalculator,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """
        Args:
            fetch_bytes: Storage path -> file bytes (StorageService.fetch_bytes)
            ocr_factory: Builds an OCR client (see modules.ocr.build_ocr_client)
            analyzer_factory: Builds a GeminiAnalyzer
            calculator: Prices pages once word counts and complexities are known
            logger: Defaults to this module's logger
        """
        self.fetch_bytes = fetch_bytes
        self.ocr_factory = ocr_factory
        self.analyzer_factory = analyzer_factory
        self.calculator = calculator
        self.logger = logger or get_logger(__name__)

    def process(self, stored: StoredFile) -> ProcessedFile:
        """Run the full pipeline for one file. Never raises for vendor errors."""
        result = ProcessedFile(file=stored)
        mime_type = stored.mime_type
        if not mime_type or mime_type == "application/octet-stream":
            mime_type = guess_mime(stored.file_name)

        try:
            content = self.fetch_bytes(stored.storage_path)
        except CertQuoteError as e:
            self.logger.error(f"Download failed for {stored.storage_path}: {e.message}")
            result.ocr_status = StepStatus.FAILED
            result.ocr_message = f"Download failed: {e.message}"
            result.analysis_status = StepStatus.SKIPPED
            result.analysis_message = "File could not be downloaded"
            result.file_analysis = self._empty_analysis(stored)
            return result

        self._run_ocr(result, content, mime_type)
        self._run_analysis(result, content, mime_type)
        result.file_analysis = self._price(result)
        return result

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    def _run_ocr(self, result: ProcessedFile, content: bytes, mime_type: str) -> None:
        name = result.file.file_name
        client = None
        try:
            client = self.ocr_factory()
            if not client.supports(mime_type):
                result.ocr_status = StepStatus.SKIPPED
                result.ocr_message = f"{client.vendor} OCR does not support {mime_type}"
                return
            result.ocr = client.extract(content, mime_type)
            result.ocr_status = StepStatus.COMPLETED
            if result.ocr.page_count == 0:
                result.ocr_message = "No text detected in document"
        except ConfigurationError as e:
            self.logger.warning(f"OCR skipped for {name}: {e.message}")
            result.ocr_status = StepStatus.SKIPPED
            result.ocr_message = e.message
        except CertQuoteError as e:
            self.logger.error(f"OCR failed for {name}: {e}")
            result.ocr_status = StepStatus.FAILED
            result.ocr_message = e.message
        except Exception as e:
            self.logger.exception(f"Unexpected OCR error for {name}")
            result.ocr_status = StepStatus.FAILED
            result.ocr_message = f"Unexpected error: {e}"
        finally:
            if client is not None:
                client.close()

    def _run_analysis(self, result: ProcessedFile, content: bytes, mime_type: str) -> None:
        name = result.file.file_name
        if not result.has_pages:
            result.analysis_status = StepStatus.SKIPPED
            result.analysis_message = "No OCR pages to classify"
            return
        try:
            analyzer = self.analyzer_factory()
            if analyzer.too_large(len(content)):
                result.analysis_status = StepStatus.SKIPPED
                result.analysis_message = (
                    f"File too large for inline analysis: {len(content) / 1024 / 1024:.1f}MB"
                )
                return
            result.analysis = analyzer.analyze(content, mime_type, name)
            result.analysis_status = StepStatus.COMPLETED
            if result.analysis.parse_error:
                result.analysis_message = result.analysis.parse_error
        except ConfigurationError as e:
            self.logger.warning(f"Analysis skipped for {name}: {e.message}")
            result.analysis_status = StepStatus.SKIPPED
            result.analysis_message = e.message
        except CertQuoteError as e:
            self.logger.error(f"Analysis failed for {name}: {e}")
            result.analysis_status = StepStatus.FAILED
            result.analysis_message = e.message
        except Exception as e:
            self.logger.exception(f"Unexpected analysis error for {name}")
            result.analysis_status = StepStatus.FAILED
            result.analysis_message = f"Unexpected error: {e}"

    def _price(self, result: ProcessedFile) -> FileAnalysis:
        if not result.has_pages:
            return self._empty_analysis(result.file)
        complexities = {}
        if result.analysis is not None:
            complexities = {
                n: result.analysis.complexity_for(n)
                for n in range(1, result.ocr.page_count + 1)
            }
        return self.calculator.build_file_analysis(
            file_id=result.file.storage_path,
            filename=result.file.file_name,
            words_per_page=result.ocr.words_per_page,
            complexities=complexities,
        )

    @staticmethod
    def _empty_analysis(stored: StoredFile) -> FileAnalysis:
        return FileAnalysis(file_id=stored.storage_path, filename=stored.file_name)

    # -------------------------------------------------------------------------
    # Batch
    # -------------------------------------------------------------------------

    def process_all(
        self,
        files: Sequence[StoredFile],
        max_workers: int = 4,
        on_file_done: Optional[FileCallback] = None,
    ) -> List[ProcessedFile]:
        """
        Process files concurrently.

        Args:
            files: Files to process
            max_workers: Upper bound on concurrent files
            on_file_done: Called on the calling thread as
                ``(processed, done_count, total)`` when each file finishes

        Returns:
            ProcessedFile per input file, in input order
        """
        if not files:
            return []

        results: List[Optional[ProcessedFile]] = [None] * len(files)
        workers = max(1, min(max_workers, len(files)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="FileWorker") as pool:
            futures = {pool.submit(self.process, f): i for i, f in enumerate(files)}
            done = 0
            for future in as_completed(futures):
                index = futures[future]
                processed = future.result()
                results[index] = processed
                done += 1
                if on_file_done is not None:
                    on_file_done(processed, done, len(files))

        return [r for r in results if r is not None]
