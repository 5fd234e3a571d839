"""Tests for chunk framing, engine invocation and the parallel batch translator."""

import json
import subprocess
import tempfile
import threading
from pathlib import Path

import pytest

from samnorsk import apertium
from samnorsk.apertium import (
    ARTICLE_SEPARATOR,
    AlignmentMismatchError,
    ApertiumRunner,
    EngineInvocationError,
    TranslationError,
    TranslationSink,
    chunked,
    join_chunk,
    split_chunk,
)


@pytest.fixture
def recorded_commands(monkeypatch):
    """Record every command passed to subprocess.run while still running it."""
    commands = []
    real_run = subprocess.run

    def spy(command, **kwargs):
        commands.append(list(command))
        return real_run(command, **kwargs)

    monkeypatch.setattr(apertium.subprocess, "run", spy)
    return commands


class TestFraming:
    def test_round_trip(self):
        texts = ["første artikkel", "andre artikkel", "tredje"]
        blob = join_chunk(texts)

        assert blob.count(ARTICLE_SEPARATOR) == 2
        assert split_chunk(blob, len(texts)) == texts

    def test_segments_are_trimmed(self):
        blob = f" a {ARTICLE_SEPARATOR}  b\n"
        assert split_chunk(blob, 2) == ["a", "b"]

    def test_count_mismatch(self):
        with pytest.raises(AlignmentMismatchError) as excinfo:
            split_chunk(f"a{ARTICLE_SEPARATOR}b", 3, chunk_index=7)

        assert excinfo.value.chunk_index == 7
        assert excinfo.value.expected == 3
        assert excinfo.value.actual == 2

    def test_separator_inside_content_is_rejected(self):
        with pytest.raises(AlignmentMismatchError):
            join_chunk(["clean", f"dirty {ARTICLE_SEPARATOR} text"])


class TestChunked:
    def test_batches(self):
        assert list(chunked(range(5), 2)) == [[0, 1], [2, 3], [4]]

    def test_empty(self):
        assert list(chunked([], 3)) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            list(chunked([1], 0))


class TestTranslate:
    def test_invokes_engine_with_pair_and_file(self, fake_engine, recorded_commands):
        runner = ApertiumRunner("nno", "nob", fake_engine)

        assert runner.translate("eg er ikkje heime") == "jeg er ikke hjemme"

        command = recorded_commands[0]
        assert command[:-2] == fake_engine
        assert command[-2] == "nno-nob"
        assert not Path(command[-1]).exists()

    def test_engine_string_is_split(self, fake_engine_command, fake_engine):
        runner = ApertiumRunner("nob", "nno", fake_engine_command)

        assert runner.engine == fake_engine
        assert runner.translate("jeg er ikke hjemme") == "eg er ikkje heime"

    def test_non_zero_exit(self, fake_engine, recorded_commands):
        runner = ApertiumRunner("nno", "nob", fake_engine)

        with pytest.raises(EngineInvocationError, match="engine crashed"):
            runner.translate("CRASH now", chunk_index=4)

        assert not Path(recorded_commands[0][-1]).exists()

    def test_missing_engine(self, tmp_path):
        runner = ApertiumRunner("nno", "nob", [str(tmp_path / "no-such-apertium")])

        with pytest.raises(EngineInvocationError, match="not found"):
            runner.translate("tekst")

    def test_unencodable_input_is_a_translation_error(self, fake_engine, tmp_path, monkeypatch):
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(scratch))
        runner = ApertiumRunner("nno", "nob", fake_engine)

        with pytest.raises(TranslationError, match="cannot be encoded"):
            runner.translate("bad \ud800 tekst", chunk_index=6)

        assert list(scratch.iterdir()) == []

    def test_timeout(self, fake_engine):
        runner = ApertiumRunner("nno", "nob", fake_engine, timeout=0.5)

        with pytest.raises(EngineInvocationError, match="timed out"):
            runner.translate("SLEEP")

    def test_translate_chunk(self, fake_engine):
        runner = ApertiumRunner("nno", "nob", fake_engine)

        assert runner.translate_chunk(["eg", "kva", "berre hus"]) == ["jeg", "hva", "bare hus"]

    def test_translate_chunk_detects_dropped_separator(self, fake_engine):
        runner = ApertiumRunner("nno", "nob", fake_engine)

        with pytest.raises(AlignmentMismatchError):
            runner.translate_chunk(["BROKEN", "eg", "kva"], chunk_index=2)

    def test_invalid_settings(self):
        with pytest.raises(ValueError):
            ApertiumRunner("nno", "nob", chunk_size=0)
        with pytest.raises(ValueError):
            ApertiumRunner("nno", "nob", workers=0)


class TestTranslateBatch:
    def test_preserves_input_order(self, fake_engine):
        runner = ApertiumRunner("nno", "nob", fake_engine, chunk_size=2, workers=3)
        texts = [f"eg {index}" for index in range(7)] + ["kva"]
        seen = []
        lock = threading.Lock()

        def on_chunk(originals, translations):
            with lock:
                seen.append((list(originals), list(translations)))

        result = runner.translate_batch(texts, on_chunk=on_chunk)

        assert result == [f"jeg {index}" for index in range(7)] + ["hva"]
        assert len(seen) == 4
        for originals, translations in seen:
            assert len(originals) == len(translations)

    def test_empty_input(self, fake_engine):
        assert ApertiumRunner("nno", "nob", fake_engine).translate_batch([]) == []

    def test_fail_fast_by_default(self, fake_engine):
        runner = ApertiumRunner("nno", "nob", fake_engine, chunk_size=2, workers=2)

        with pytest.raises(AlignmentMismatchError):
            runner.translate_batch(["eg", "kva", "BROKEN", "berre"])

    def test_engine_failure_propagates(self, fake_engine):
        runner = ApertiumRunner("nno", "nob", fake_engine, chunk_size=1, workers=2)

        with pytest.raises(EngineInvocationError):
            runner.translate_batch(["eg", "CRASH"])

    def test_skip_failed_chunks(self, fake_engine):
        runner = ApertiumRunner("nno", "nob", fake_engine, chunk_size=2, workers=2, skip_failed_chunks=True)
        calls = []

        result = runner.translate_batch(
            ["eg", "kva", "BROKEN", "berre", "CRASH", "ikkje", "heime"],
            on_chunk=lambda originals, translations: calls.append(list(originals)),
        )

        assert result == ["jeg", "hva", None, None, None, None, "hjemme"]
        assert sorted(calls) == [["eg", "kva"], ["heime"]]

    def test_unencodable_chunk_is_skipped(self, fake_engine):
        runner = ApertiumRunner("nno", "nob", fake_engine, chunk_size=1, workers=2, skip_failed_chunks=True)

        assert runner.translate_batch(["eg", "bad \ud800 kva"]) == ["jeg", None]


class TestTranslationSink:
    def test_reset_and_append(self, tmp_path):
        sink = TranslationSink(tmp_path / "out" / "pairs.jsonl")
        sink.reset()
        sink.write_pairs(["eg er her"], ["jeg er her"])

        lines = sink.path.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line) for line in lines] == [{"original": "eg er her", "translation": "jeg er her"}]

        sink.reset()
        assert sink.path.read_text(encoding="utf-8") == ""
        assert sink.records_written == 0

    def test_concurrent_writers(self, tmp_path):
        sink = TranslationSink(tmp_path / "pairs.jsonl")
        sink.reset()

        def writer(worker):
            for batch in range(20):
                originals = [f"{worker}-{batch}-{i} " + "x" * 200 for i in range(5)]
                sink.write_pairs(originals, [text.upper() for text in originals])

        threads = [threading.Thread(target=writer, args=(worker,)) for worker in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        records = [json.loads(line) for line in sink.path.read_text(encoding="utf-8").splitlines()]
        assert len(records) == 8 * 20 * 5
        assert sink.records_written == len(records)
        assert all(record["translation"] == record["original"].upper() for record in records)
