"""Chunked, parallel invocation of the Apertium command-line translator.

Many texts are joined with a sentinel separator and translated in one engine
run, so the engine start-up cost is paid once per chunk instead of once per
text. Apertium drops newlines, hence the unusual separator.
"""
from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
import tempfile
import threading
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from itertools import islice
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, TypeVar, Union

LOGGER = logging.getLogger(__name__)

ARTICLE_SEPARATOR = "☃☃¤"
DEFAULT_CHUNK_SIZE = 100
DEFAULT_WORKERS = 4
APERTIUM_BIN = os.environ.get("APERTIUM_BIN", "apertium")

T = TypeVar("T")
ChunkCallback = Callable[[List[str], List[str]], None]


class TranslationError(Exception):
    """Base class for failures scoped to a single chunk."""

    def __init__(self, message: str, chunk_index: Optional[int] = None) -> None:
        super().__init__(message)
        self.chunk_index = chunk_index


class EngineInvocationError(TranslationError):
    """The engine is missing, exited non-zero or timed out."""


class AlignmentMismatchError(TranslationError):
    """The translated chunk does not split back into one segment per input text."""

    def __init__(self, message: str, chunk_index: Optional[int] = None, expected: int = 0, actual: int = 0) -> None:
        super().__init__(message, chunk_index)
        self.expected = expected
        self.actual = actual


def chunked(items: Iterable[T], size: int) -> Iterator[List[T]]:
    if size < 1:
        raise ValueError(f"Chunk size must be at least 1, got {size}")
    iterator = iter(items)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch


def join_chunk(texts: Sequence[str], chunk_index: Optional[int] = None) -> str:
    for text in texts:
        if ARTICLE_SEPARATOR in text:
            raise AlignmentMismatchError(
                f"Chunk {chunk_index}: input text already contains the article separator",
                chunk_index,
                expected=len(texts),
                actual=len(texts) + text.count(ARTICLE_SEPARATOR),
            )
    return ARTICLE_SEPARATOR.join(texts)


def split_chunk(blob: str, expected: int, chunk_index: Optional[int] = None) -> List[str]:
    segments = [segment.strip() for segment in blob.split(ARTICLE_SEPARATOR)]
    if len(segments) != expected:
        raise AlignmentMismatchError(
            f"Chunk {chunk_index}: expected {expected} segments after translation, got {len(segments)}",
            chunk_index,
            expected=expected,
            actual=len(segments),
        )
    return segments


class ApertiumRunner:
    def __init__(
        self,
        from_code: str,
        to_code: str,
        engine: Union[str, Sequence[str]] = APERTIUM_BIN,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        workers: int = DEFAULT_WORKERS,
        timeout: Optional[float] = None,
        skip_failed_chunks: bool = False,
    ) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        self.from_code = from_code
        self.to_code = to_code
        self.engine = shlex.split(engine) if isinstance(engine, str) else list(engine)
        self.chunk_size = chunk_size
        self.workers = workers
        self.timeout = timeout
        self.skip_failed_chunks = skip_failed_chunks

    @property
    def pair(self) -> str:
        return f"{self.from_code}-{self.to_code}"

    def translate(self, text: str, chunk_index: int = 0) -> str:
        """Run the engine once over ``text`` and return its standard output."""
        fd, input_path = tempfile.mkstemp(prefix="apertium-input", suffix=f".{self.from_code}")
        command = [*self.engine, self.pair, input_path]
        try:
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(text)
            except UnicodeEncodeError as exc:
                raise TranslationError(
                    f"Chunk {chunk_index}: input cannot be encoded as UTF-8: {exc.reason}", chunk_index
                ) from exc
            result = subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
                encoding="utf-8",
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise EngineInvocationError(
                f"Chunk {chunk_index}: translation engine not found: {self.engine[0]}", chunk_index
            ) from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip()
            raise EngineInvocationError(
                f"Chunk {chunk_index}: {self.engine[0]} exited with status {exc.returncode}: {stderr}",
                chunk_index,
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise EngineInvocationError(
                f"Chunk {chunk_index}: {self.engine[0]} timed out after {self.timeout}s", chunk_index
            ) from exc
        finally:
            Path(input_path).unlink(missing_ok=True)
        return result.stdout.strip()

    def translate_chunk(self, texts: Sequence[str], chunk_index: int = 0) -> List[str]:
        blob = join_chunk(texts, chunk_index)
        LOGGER.info("Started translating chunk %s (%s texts) %s", chunk_index, len(texts), self.pair)
        translated = self.translate(blob, chunk_index)
        segments = split_chunk(translated, len(texts), chunk_index)
        LOGGER.info("Done translating chunk %s", chunk_index)
        return segments

    def _run_chunk(
        self, texts: List[str], chunk_index: int, on_chunk: Optional[ChunkCallback]
    ) -> Optional[List[str]]:
        try:
            translations = self.translate_chunk(texts, chunk_index)
        except TranslationError as exc:
            if not self.skip_failed_chunks:
                raise
            LOGGER.warning("Skipping chunk %s: %s", chunk_index, exc)
            return None
        if on_chunk is not None:
            on_chunk(texts, translations)
        return translations

    def translate_batch(
        self, texts: Sequence[str], on_chunk: Optional[ChunkCallback] = None
    ) -> List[Optional[str]]:
        """Translate ``texts`` chunk by chunk on a bounded thread pool.

        ``on_chunk(originals, translations)`` runs on the worker thread as soon
        as a chunk succeeds, so it must do its own locking. The returned list
        follows input order; units of a skipped chunk are ``None``.
        """
        chunks = list(chunked(texts, self.chunk_size))
        if not chunks:
            return []
        results: Dict[int, Optional[List[str]]] = {}
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="apertium") as executor:
            futures: Dict[Future, int] = {
                executor.submit(self._run_chunk, chunk, index, on_chunk): index
                for index, chunk in enumerate(chunks)
            }
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in done:
                error = future.exception()
                if error is not None:
                    for other in pending:
                        other.cancel()
                    raise error
                results[futures[future]] = future.result()

        merged: List[Optional[str]] = []
        for index, chunk in enumerate(chunks):
            translations = results.get(index)
            if translations is None:
                merged.extend([None] * len(chunk))
            else:
                merged.extend(translations)
        return merged


class TranslationSink:
    """Append-only JSON-lines file of original/translation pairs shared by worker threads."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self.records_written = 0

    def reset(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists():
            self.path.unlink()
        self.path.touch()
        self.records_written = 0

    def write_pairs(self, originals: Sequence[str], translations: Sequence[str]) -> None:
        lines = [
            json.dumps({"original": original, "translation": translation}, ensure_ascii=False) + "\n"
            for original, translation in zip(originals, translations)
        ]
        with self._lock:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.writelines(lines)
            self.records_written += len(lines)
