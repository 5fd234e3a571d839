"""Translate the Nynorsk and Bokmål Wikipedia dumps into each other with Apertium.

Writes one JSON-lines file per direction with ``{"original", "translation"}`` records.
"""
from __future__ import annotations

import argparse
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import requests

from .apertium import (
    APERTIUM_BIN,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_WORKERS,
    ApertiumRunner,
    TranslationError,
    TranslationSink,
    chunked,
)
from .wiki import BOKMAAL, NYNORSK, Language, iter_articles, resolve_dump

LOGGER = logging.getLogger(__name__)
# Articles read from the dump before being handed to the worker pool.
ARTICLE_GROUP_SIZE = 10000


@dataclass
class TranslatorConfig:
    nn_trans: Path
    nb_trans: Path
    nn_dump: Optional[Path] = None
    nb_dump: Optional[Path] = None
    engine: str = APERTIUM_BIN
    chunk_size: int = DEFAULT_CHUNK_SIZE
    workers: int = DEFAULT_WORKERS
    timeout: Optional[float] = None
    skip_failed_chunks: bool = False
    download_dir: Path = Path(tempfile.gettempdir())


def translate_dump(
    dump: Path,
    from_language: Language,
    to_language: Language,
    sink: TranslationSink,
    config: TranslatorConfig,
) -> int:
    runner = ApertiumRunner(
        from_language.apertium,
        to_language.apertium,
        config.engine,
        chunk_size=config.chunk_size,
        workers=config.workers,
        timeout=config.timeout,
        skip_failed_chunks=config.skip_failed_chunks,
    )
    LOGGER.info("Translating %s from %s to %s into %s", dump, from_language.name, to_language.name, sink.path)
    for group in chunked(iter_articles(dump), ARTICLE_GROUP_SIZE):
        runner.translate_batch(group, on_chunk=sink.write_pairs)
    LOGGER.info("Wrote %s translated articles to %s", sink.records_written, sink.path)
    return sink.records_written


def run(config: TranslatorConfig) -> None:
    nn_to_nb = TranslationSink(config.nn_trans)
    nb_to_nn = TranslationSink(config.nb_trans)
    nn_to_nb.reset()
    nb_to_nn.reset()

    nynorsk_dump = resolve_dump(config.nn_dump, NYNORSK, config.download_dir)
    bokmaal_dump = resolve_dump(config.nb_dump, BOKMAAL, config.download_dir)

    LOGGER.info("Dumps resolved, starting translation")
    translate_dump(bokmaal_dump, BOKMAAL, NYNORSK, nb_to_nn, config)
    translate_dump(nynorsk_dump, NYNORSK, BOKMAAL, nn_to_nb, config)


def parse_args(argv: Optional[Sequence[str]] = None) -> TranslatorConfig:
    parser = argparse.ArgumentParser(prog="WikiExtractor", description=__doc__)
    parser.add_argument("--nndump", type=Path, default=None, help="Nynorsk dump (downloaded when omitted)")
    parser.add_argument("--nbdump", type=Path, default=None, help="Bokmål dump (downloaded when omitted)")
    parser.add_argument("--nntrans", type=Path, required=True, help="Output for Nynorsk to Bokmål translations")
    parser.add_argument("--nbtrans", type=Path, required=True, help="Output for Bokmål to Nynorsk translations")
    parser.add_argument("--engine", default=APERTIUM_BIN, help="Apertium command (default: $APERTIUM_BIN or apertium)")
    parser.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE, help="Articles per engine invocation")
    parser.add_argument("--workers", type=int, default=DEFAULT_WORKERS, help="Parallel engine invocations")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds before an engine run is abandoned")
    parser.add_argument(
        "--skip-failed-chunks",
        action="store_true",
        help="Log and skip chunks that fail to translate instead of aborting",
    )
    parser.add_argument(
        "--download-dir",
        type=Path,
        default=Path(tempfile.gettempdir()),
        help="Where downloaded dumps are stored",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(message)s")
    return TranslatorConfig(
        nn_trans=args.nntrans,
        nb_trans=args.nbtrans,
        nn_dump=args.nndump,
        nb_dump=args.nbdump,
        engine=args.engine,
        chunk_size=args.chunk_size,
        workers=args.workers,
        timeout=args.timeout,
        skip_failed_chunks=args.skip_failed_chunks,
        download_dir=args.download_dir,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    config = parse_args(argv)
    try:
        run(config)
    except (TranslationError, OSError, ValueError, requests.RequestException) as exc:
        LOGGER.error("Uncaught exception, exiting. %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
