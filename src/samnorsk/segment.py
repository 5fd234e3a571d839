"""Sentence segmentation of article text with spaCy."""
from __future__ import annotations

import logging
import os
import unicodedata
from typing import Iterable, Iterator, List, Optional

import ftfy
import spacy
from spacy.language import Language

LOGGER = logging.getLogger(__name__)

SPACY_MODEL = os.environ.get("SAMNORSK_SPACY_MODEL")
NORWEGIAN_MODELS = ["nb_core_news_lg", "nb_core_news_md", "nb_core_news_sm"]
# Wikipedia articles can be far longer than spaCy's default limit.
MAX_TEXT_LENGTH = 5_000_000


def normalize_text(raw_text: str) -> str:
    text = ftfy.fix_text(raw_text)
    text = text.replace("\r\n", "\n")
    text = text.replace("\xa0", " ")
    text = unicodedata.normalize("NFC", text)
    return text


def load_model(force_name: Optional[str] = None, blank_language: str = "nb") -> Language:
    """Load the best available Norwegian pipeline, or a rule-based sentencizer as a last resort."""
    force_name = force_name or SPACY_MODEL
    candidates = [force_name] if force_name else NORWEGIAN_MODELS
    nlp: Optional[Language] = None
    for name in candidates:
        try:
            LOGGER.info("Loading spaCy model %s", name)
            nlp = spacy.load(name, exclude=["ner", "lemmatizer", "attribute_ruler"])
            break
        except OSError:
            LOGGER.info("spaCy model %s not found", name)
    if nlp is None:
        LOGGER.warning(
            "No Norwegian spaCy model available; falling back to rule-based sentence splitting. "
            "Install one with python -m spacy download nb_core_news_sm."
        )
        nlp = spacy.blank(blank_language)
        nlp.add_pipe("sentencizer")
    nlp.max_length = max(nlp.max_length, MAX_TEXT_LENGTH)
    return nlp


class SentenceSegmenter:
    def __init__(self, nlp: Optional[Language] = None, batch_size: int = 8) -> None:
        self.nlp = nlp if nlp is not None else load_model()
        self.batch_size = batch_size

    @staticmethod
    def _sentences(doc) -> List[str]:
        if not len(doc):
            return []
        sentences = []
        for sent in doc.sents:
            text = sent.text.strip()
            if text:
                sentences.append(text)
        return sentences

    def segment(self, text: str) -> List[str]:
        """Return the trimmed, non-empty sentences of ``text`` in order."""
        if not text or not text.strip():
            return []
        return self._sentences(self.nlp(normalize_text(text)))

    def segment_many(self, texts: Iterable[str]) -> Iterator[List[str]]:
        normalized = (normalize_text(text) for text in texts)
        for doc in self.nlp.pipe(normalized, batch_size=self.batch_size):
            yield self._sentences(doc)
