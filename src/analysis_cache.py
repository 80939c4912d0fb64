"""
Content-hash memoization for structural analysis.

Hosts re-run analysis after every edit; most runs see a part list that has
not actually changed (selection, camera moves). CachedAnalyzer keys reports
on a SHA-256 of the canonical part JSON plus the stress settings, so an
unchanged assembly returns the same read-only report object without
rescoring.
"""
import hashlib
import json
import logging
from collections import OrderedDict
from typing import Dict, Optional, Sequence, Tuple

from assembly import Part
from contact_graph import PairSource
from structural_scoring import StructuralConfig, StructuralReport, analyze

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str, float]


def _canonical_json(payload: object) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def parts_fingerprint(parts: Sequence[Part]) -> str:
    """SHA-256 of the part list, independent of list order."""
    ordered = sorted(parts, key=lambda p: p.part_id)
    canonical = _canonical_json([p.to_dict() for p in ordered])
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class CachedAnalyzer:
    """Bounded LRU cache in front of ``structural_scoring.analyze``."""

    def __init__(
        self,
        max_entries: int = 16,
        config: Optional[StructuralConfig] = None,
        pair_source: Optional[PairSource] = None,
    ):
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.max_entries = max_entries
        self.config = config
        self.pair_source = pair_source
        self.hits = 0
        self.misses = 0
        self._reports: "OrderedDict[CacheKey, StructuralReport]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._reports)

    def analyze(
        self,
        parts: Sequence[Part],
        stress_scenario: str = "baseline",
        stress_intensity: float = 0.6,
    ) -> StructuralReport:
        key = (parts_fingerprint(parts), stress_scenario, float(stress_intensity))
        cached = self._reports.get(key)
        if cached is not None:
            self.hits += 1
            self._reports.move_to_end(key)
            logger.debug("Analysis cache hit %s (%s)", key[0][:12], stress_scenario)
            return cached

        self.misses += 1
        report = analyze(
            parts,
            config=self.config,
            stress_scenario=stress_scenario,
            stress_intensity=stress_intensity,
            pair_source=self.pair_source,
        )
        self._reports[key] = report
        while len(self._reports) > self.max_entries:
            self._reports.popitem(last=False)
        return report

    def clear(self) -> None:
        self._reports.clear()

    def stats(self) -> Dict[str, int]:
        return {"entries": len(self._reports), "hits": self.hits, "misses": self.misses}
