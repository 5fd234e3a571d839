"""Pytest configuration and fixtures."""

import gzip
import json
import shlex
import sys
from pathlib import Path

import pytest
import spacy

# Stand-in for the apertium binary: `<script> <pair> <file>`, swaps a handful of
# Nynorsk/Bokmål words and writes the result to stdout.
# Markers in the input trigger failures: CRASH exits non-zero, BROKEN eats one
# article separator, SLEEP hangs for a while.
FAKE_ENGINE = r'''
import re
import sys
import time

NN_NB = {"ikkje": "ikke", "heime": "hjemme", "eg": "jeg", "kva": "hva", "berre": "bare"}

pair, path = sys.argv[1], sys.argv[2]
if pair not in ("nno-nob", "nob-nno"):
    sys.stderr.write("unknown pair " + pair + "\n")
    sys.exit(2)
with open(path, encoding="utf-8") as handle:
    text = handle.read()
if "CRASH" in text:
    sys.stderr.write("engine crashed\n")
    sys.exit(3)
if "SLEEP" in text:
    time.sleep(10)
if "BROKEN" in text:
    text = text.replace("☃☃¤", " ", 1)
words = NN_NB if pair == "nno-nob" else {v: k for k, v in NN_NB.items()}
text = re.sub(r"\w+", lambda m: words.get(m.group(0), m.group(0)), text)
sys.stdout.reconfigure(encoding="utf-8")
sys.stdout.write(text + "\n")
'''


@pytest.fixture
def fake_engine(tmp_path: Path) -> list:
    script = tmp_path / "fake_apertium.py"
    script.write_text(FAKE_ENGINE, encoding="utf-8")
    return [sys.executable, str(script)]


@pytest.fixture
def fake_engine_command(fake_engine: list) -> str:
    return " ".join(shlex.quote(part) for part in fake_engine)


@pytest.fixture
def sentence_nlp():
    """Rule-based pipeline so tests do not need a downloaded spaCy model."""
    nlp = spacy.blank("en")
    nlp.add_pipe("sentencizer")
    return nlp


def write_dump(path: Path, lines: list) -> Path:
    """Write a gzip JSON-lines dump; dicts are serialized, strings written verbatim."""
    with gzip.open(path, "wt", encoding="utf-8") as handle:
        for line in lines:
            if isinstance(line, str):
                handle.write(line + "\n")
            else:
                handle.write(json.dumps(line, ensure_ascii=False) + "\n")
    return path


@pytest.fixture
def dump_writer():
    return write_dump
