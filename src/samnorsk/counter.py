"""Corpus-wide statistics over candidate pairs and the filtered dictionary built from them.

Counts are collected one article at a time with ``update``. Term frequency (TF)
counts every occurrence, document frequency (DF) counts articles. Filtering and
ranking run exactly once, in ``finalize``, after the corpus pass is over.
"""
from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

LOGGER = logging.getLogger(__name__)

Pair = Tuple[str, str]


@dataclass
class DictionaryEntry:
    source: str
    translations: List[Tuple[str, int]] = field(default_factory=list)

    @property
    def targets(self) -> List[str]:
        return [target for target, _ in self.translations]


class TranslationCounter:
    def __init__(
        self,
        source_tf_filter: int = 5,
        source_df_filter: float = 0.5,
        trans_tf_filter: int = 5,
        trans_df_filter: float = 0.5,
        top_n: Optional[int] = 1,
    ) -> None:
        if top_n is not None and top_n < 1:
            raise ValueError(f"top_n must be at least 1, got {top_n}")
        self.source_tf_filter = source_tf_filter
        self.source_df_filter = source_df_filter
        self.trans_tf_filter = trans_tf_filter
        self.trans_df_filter = trans_df_filter
        self.top_n = top_n

        self.pair_tf: Counter[Pair] = Counter()
        self.pair_df: Counter[Pair] = Counter()
        self.source_tf: Counter[str] = Counter()
        self.source_df: Counter[str] = Counter()
        self.trans_tf: Counter[str] = Counter()
        self.trans_df: Counter[str] = Counter()
        self.documents = 0

        self._lock = threading.Lock()
        self._entries: Optional[List[DictionaryEntry]] = None

    def __len__(self) -> int:
        return len(self.pair_tf)

    @property
    def finalized(self) -> bool:
        return self._entries is not None

    def update(self, pairs: Iterable[Pair]) -> None:
        """Fold the candidate pairs of one article into the aggregate."""
        article_pairs = list(pairs)
        with self._lock:
            if self._entries is not None:
                raise RuntimeError("Counter is already finalized; no further updates allowed.")
            for source, target in article_pairs:
                self.pair_tf[(source, target)] += 1
                self.source_tf[source] += 1
                self.trans_tf[target] += 1
            # DF counts each distinct key at most once per article.
            distinct = set(article_pairs)
            self.pair_df.update(distinct)
            self.source_df.update({source for source, _ in distinct})
            self.trans_df.update({target for _, target in distinct})
            self.documents += 1

    def source_df_ratio(self, source: str) -> float:
        if not self.documents:
            return 0.0
        return self.source_df[source] / self.documents

    def trans_df_ratio(self, target: str) -> float:
        if not self.documents:
            return 0.0
        return self.trans_df[target] / self.documents

    def _keep_source(self, source: str, tf_filter: int, df_filter: float) -> bool:
        return self.source_tf[source] >= tf_filter and self.source_df_ratio(source) <= df_filter

    def _keep_target(self, target: str, tf_filter: int, df_filter: float) -> bool:
        return self.trans_tf[target] >= tf_filter and self.trans_df_ratio(target) <= df_filter

    def finalize(
        self,
        source_tf_filter: Optional[int] = None,
        source_df_filter: Optional[float] = None,
        trans_tf_filter: Optional[int] = None,
        trans_df_filter: Optional[float] = None,
        top_n: Optional[int] = None,
    ) -> List[DictionaryEntry]:
        """Filter and rank the accumulated pairs. Arguments override the constructor settings."""
        source_tf_filter = self.source_tf_filter if source_tf_filter is None else source_tf_filter
        source_df_filter = self.source_df_filter if source_df_filter is None else source_df_filter
        trans_tf_filter = self.trans_tf_filter if trans_tf_filter is None else trans_tf_filter
        trans_df_filter = self.trans_df_filter if trans_df_filter is None else trans_df_filter
        top_n = self.top_n if top_n is None else top_n
        if top_n is not None and top_n < 1:
            raise ValueError(f"top_n must be at least 1, got {top_n}")

        with self._lock:
            candidates: Dict[str, List[Tuple[str, int]]] = {}
            if self.documents:
                for (source, target), frequency in self.pair_tf.items():
                    if not self._keep_source(source, source_tf_filter, source_df_filter):
                        continue
                    if not self._keep_target(target, trans_tf_filter, trans_df_filter):
                        continue
                    candidates.setdefault(source, []).append((target, frequency))

            entries: List[DictionaryEntry] = []
            for source in sorted(candidates):
                ranked = sorted(candidates[source], key=lambda item: (-item[1], item[0]))
                if top_n is not None:
                    ranked = ranked[:top_n]
                entries.append(DictionaryEntry(source=source, translations=ranked))
            self._entries = entries

        LOGGER.info(
            "Finalized dictionary: %s of %s source words kept from %s articles",
            len(entries),
            len(self.source_tf),
            self.documents,
        )
        return entries

    def to_frame(self) -> pd.DataFrame:
        entries = self._entries if self._entries is not None else self.finalize()
        records = [
            {
                "source": entry.source,
                "translations": "; ".join(entry.targets),
                "frequencies": "; ".join(str(freq) for _, freq in entry.translations),
            }
            for entry in entries
        ]
        return pd.DataFrame(records, columns=["source", "translations", "frequencies"])

    def write(self, destination: Path | str) -> Path:
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        frame = self.to_frame()
        LOGGER.info("Writing %s dictionary entries to %s", len(frame), destination)
        frame.to_csv(destination, index=False, encoding="utf-8")
        return destination
