"""Build a Nynorsk/Bokmål dictionary by diffing Wikipedia sentences against their Apertium translations."""
from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from .align import token_discrepancy
from .apertium import APERTIUM_BIN, DEFAULT_CHUNK_SIZE, DEFAULT_WORKERS, ApertiumRunner, TranslationError, chunked
from .counter import TranslationCounter
from .segment import SentenceSegmenter, load_model
from .wiki import iter_articles

LOGGER = logging.getLogger(__name__)
# Articles segmented and translated together before their pairs are counted.
ARTICLE_BATCH_SIZE = 1000


@dataclass
class DictionaryConfig:
    input_file: Path
    output_file: Path
    from_code: str = "nno"
    to_code: str = "nob"
    limit: Optional[int] = None
    top_n: int = 1
    source_tf: int = 5
    source_df: float = 0.5
    trans_tf: int = 5
    trans_df: float = 0.5
    engine: str = APERTIUM_BIN
    chunk_size: int = DEFAULT_CHUNK_SIZE
    workers: int = DEFAULT_WORKERS
    timeout: Optional[float] = None
    skip_failed_chunks: bool = False
    spacy_model: Optional[str] = None


def text_to_pairs(sentences: Sequence[str], translations: Sequence[Optional[str]]) -> Iterator[Tuple[str, str]]:
    for sentence, translation in zip(sentences, translations):
        if translation is None:
            continue
        yield from token_discrepancy(sentence, translation)


def wiki_to_counts(
    articles: Iterable[str],
    segmenter: SentenceSegmenter,
    runner: ApertiumRunner,
    counter: TranslationCounter,
    batch_size: int = ARTICLE_BATCH_SIZE,
) -> TranslationCounter:
    """Fold every article's candidate pairs into ``counter``, one article per update."""
    for batch_number, batch in enumerate(chunked(articles, batch_size), start=1):
        article_sentences: List[List[str]] = list(segmenter.segment_many(batch))
        flat = [sentence for sentences in article_sentences for sentence in sentences]
        LOGGER.info("Batch %s: %s articles, %s sentences", batch_number, len(batch), len(flat))
        translations = runner.translate_batch(flat)

        offset = 0
        for sentences in article_sentences:
            article_translations = translations[offset : offset + len(sentences)]
            offset += len(sentences)
            counter.update(text_to_pairs(sentences, article_translations))
    return counter


def build_dictionary(config: DictionaryConfig) -> TranslationCounter:
    if not config.input_file.exists():
        raise FileNotFoundError(f"{config.input_file} does not exist.")
    if config.limit is not None:
        LOGGER.info("Reading %s articles from %s", config.limit, config.input_file.resolve())
    else:
        LOGGER.info("Reading all articles from %s", config.input_file.resolve())

    runner = ApertiumRunner(
        config.from_code,
        config.to_code,
        config.engine,
        chunk_size=config.chunk_size,
        workers=config.workers,
        timeout=config.timeout,
        skip_failed_chunks=config.skip_failed_chunks,
    )
    segmenter = SentenceSegmenter(load_model(config.spacy_model))
    counter = TranslationCounter(
        source_tf_filter=config.source_tf,
        source_df_filter=config.source_df,
        trans_tf_filter=config.trans_tf,
        trans_df_filter=config.trans_df,
        top_n=config.top_n,
    )
    articles = iter_articles(config.input_file, limit=config.limit)
    wiki_to_counts(articles, segmenter, runner, counter)
    LOGGER.info("Counted %s distinct pairs over %s articles", len(counter), counter.documents)
    counter.write(config.output_file)
    return counter


def _direction(value: str) -> Tuple[str, str]:
    parts = value.split("-")
    if len(parts) != 2 or not all(parts):
        raise argparse.ArgumentTypeError(f"Direction must look like nno-nob, got {value!r}")
    return parts[0], parts[1]


def parse_args(argv: Optional[Sequence[str]] = None) -> DictionaryConfig:
    parser = argparse.ArgumentParser(prog="DictionaryBuilder", description=__doc__)
    parser.add_argument(
        "-d", "--direction", type=_direction, default=("nno", "nob"),
        help="Translation direction (ex. nno-nob).",
    )
    parser.add_argument("-l", "--limit", type=int, default=None, help="Maximum number of articles to process.")
    parser.add_argument("-i", "--input-file", type=Path, required=True, help="Input wikipedia dump")
    parser.add_argument("-o", "--output-file", type=Path, required=True, help="Output dictionary file")
    parser.add_argument("-S", "--source-tf-filter", type=int, default=5, help="Minimum term frequency for source words")
    parser.add_argument("-s", "--source-df-filter", type=float, default=0.5, help="Maximum doc frequency for source words")
    parser.add_argument("-T", "--trans-tf-filter", type=int, default=5, help="Minimum term frequency for translated words")
    parser.add_argument("-t", "--trans-df-filter", type=float, default=0.5, help="Maximum doc frequency for translated words")
    parser.add_argument("-n", "--top-n", type=int, default=1, help="Number of translations to keep")
    parser.add_argument("--engine", default=APERTIUM_BIN, help="Apertium command (default: $APERTIUM_BIN or apertium)")
    parser.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE, help="Sentences per engine invocation")
    parser.add_argument("--workers", type=int, default=DEFAULT_WORKERS, help="Parallel engine invocations")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds before an engine run is abandoned")
    parser.add_argument(
        "--skip-failed-chunks",
        action="store_true",
        help="Log and skip chunks that fail to translate instead of aborting",
    )
    parser.add_argument("--spacy-model", default=None, help="Force a specific spaCy model name")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(message)s")
    from_code, to_code = args.direction
    return DictionaryConfig(
        input_file=args.input_file,
        output_file=args.output_file,
        from_code=from_code,
        to_code=to_code,
        limit=args.limit,
        top_n=args.top_n,
        source_tf=args.source_tf_filter,
        source_df=args.source_df_filter,
        trans_tf=args.trans_tf_filter,
        trans_df=args.trans_df_filter,
        engine=args.engine,
        chunk_size=args.chunk_size,
        workers=args.workers,
        timeout=args.timeout,
        skip_failed_chunks=args.skip_failed_chunks,
        spacy_model=args.spacy_model,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    config = parse_args(argv)
    try:
        build_dictionary(config)
    except (TranslationError, OSError, ValueError) as exc:
        LOGGER.error("Dictionary build failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
