"""Wikipedia CirrusSearch dumps: language table, article reader and download of the latest dump."""
from __future__ import annotations

import gzip
import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import requests

LOGGER = logging.getLogger(__name__)

DUMP_INDEX_URL = "https://dumps.wikimedia.org/other/cirrussearch/current/"
DATE_PATTERN = re.compile(r"20\d{6}")
MIN_ARTICLE_LENGTH = 100


@dataclass(frozen=True)
class Language:
    apertium: str
    wiki: str
    name: str


NYNORSK = Language(apertium="nno", wiki="nn", name="nn")
BOKMAAL = Language(apertium="nob", wiki="no", name="nb")
LANGUAGES = {language.apertium: language for language in (NYNORSK, BOKMAAL)}


def language_for_code(code: str) -> Language:
    try:
        return LANGUAGES[code]
    except KeyError:
        raise ValueError(f"Unknown language code {code!r}; expected one of {sorted(LANGUAGES)}") from None


def iter_articles(path: Path | str, limit: Optional[int] = None, min_length: int = MIN_ARTICLE_LENGTH) -> Iterator[str]:
    """Yield the text of every article in a gzip JSON-lines dump longer than ``min_length``.

    Lines that are not valid UTF-8 JSON objects are logged and skipped.
    """
    path = Path(path)
    admitted = 0
    skipped = 0
    if limit is not None and limit <= 0:
        return
    # Decoded line by line so one bad byte sequence only costs its own record.
    with gzip.open(path, "rb") as handle:
        for line_number, raw in enumerate(handle, start=1):
            raw = raw.strip()
            if not raw:
                continue
            try:
                line = raw.decode("utf-8")
            except UnicodeDecodeError as exc:
                skipped += 1
                LOGGER.warning("Skipping undecodable line %s of %s: %s", line_number, path.name, exc)
                continue
            try:
                blob = json.loads(line)
            except json.JSONDecodeError as exc:
                skipped += 1
                LOGGER.warning("Skipping malformed JSON on line %s of %s: %s", line_number, path.name, exc)
                continue
            if not isinstance(blob, dict):
                skipped += 1
                LOGGER.warning("Skipping non-object record on line %s of %s", line_number, path.name)
                continue
            text = blob.get("text")
            if not isinstance(text, str) or len(text) <= min_length:
                continue
            yield text
            admitted += 1
            if limit is not None and admitted >= limit:
                break
    LOGGER.info("Read %s articles from %s (%s malformed lines skipped)", admitted, path.name, skipped)


def find_latest_dump_url(language: Language, session: Optional[requests.Session] = None) -> str:
    http = session or requests
    response = http.get(DUMP_INDEX_URL, timeout=60)
    response.raise_for_status()
    marker = f"{language.wiki}wiki-"
    dates = []
    for line in response.text.splitlines():
        if marker not in line:
            continue
        match = DATE_PATTERN.search(line)
        if match and match.group(0) not in dates:
            dates.append(match.group(0))
    if len(dates) != 1:
        raise ValueError(f"Unable to find latest date for {language.wiki} wiki dump (found {dates})")
    return f"{DUMP_INDEX_URL}{language.wiki}wiki-{dates[0]}-cirrussearch-content.json.gz"


def download_latest(
    language: Language,
    dest_dir: Path | str = Path(tempfile.gettempdir()),
    session: Optional[requests.Session] = None,
) -> Path:
    url = find_latest_dump_url(language, session)
    dest = Path(dest_dir) / f"{language.name}.gz"
    dest.parent.mkdir(parents=True, exist_ok=True)
    http = session or requests
    LOGGER.info("Downloading %s", url)
    with http.get(url, stream=True, timeout=60) as response:
        response.raise_for_status()
        with tempfile.NamedTemporaryFile(delete=False, dir=dest.parent) as tmp:
            try:
                for chunk in response.iter_content(chunk_size=1 << 20):
                    if chunk:
                        tmp.write(chunk)
            except BaseException:
                tmp.close()
                Path(tmp.name).unlink(missing_ok=True)
                raise
    os.replace(tmp.name, dest)
    LOGGER.info("Done downloading %s", url)
    return dest


def resolve_dump(
    dump: Optional[Path | str],
    language: Language,
    download_dir: Path | str = Path(tempfile.gettempdir()),
    session: Optional[requests.Session] = None,
) -> Path:
    if dump is not None:
        path = Path(dump)
        if not path.exists():
            raise FileNotFoundError(f"{path} does not exist.")
        return path
    return download_latest(language, download_dir, session)
