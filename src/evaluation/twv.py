"""Term-Weighted Value (TWV) metrics for keyword search.

For a keyword with ``Ntrue`` reference occurrences, at a score threshold t::

    TWV(t) = P_corr(t) - beta * P_fa(t)
    P_corr(t) = Ncorr(t) / Ntrue
    P_fa(t) = Nfa(t) / (audio_duration - Ntrue)
    beta = (cost_fa / value_corr) * (1 / prior_probability - 1)

Metrics are averaged over keywords that have at least one reference
occurrence. Option names follow the Babel KWS15 evaluation plan.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

import numpy as np

from src.kws.alignment import FalseAlarm, KwsAlignment, Matched, Miss
from src.kws.errors import TwvConfigurationError

logger = logging.getLogger(__name__)

# Absorbs float error when binning scores that sit exactly on a grid threshold
_BIN_EPS = 1e-6


@dataclass
class TwvMetricsOptions:
    """TWV cost model and sweep parameters."""

    cost_fa: float = 0.1  # The cost of an incorrect detection
    value_corr: float = 1.0  # The value of a correct detection
    prior_probability: float = 1e-4  # The prior probability of a keyword
    score_threshold: float = 0.5  # Decision threshold for ATWV
    sweep_step: float = 0.05  # Bin size of the oracle threshold sweep
    audio_duration: Optional[float] = None  # Total audio duration in seconds, required

    @property
    def beta(self) -> float:
        return (self.cost_fa / self.value_corr) * (1.0 / self.prior_probability - 1.0)

    def validate(self) -> List[str]:
        """Return a list of issues (empty if the options are usable)."""
        issues = []
        if self.audio_duration is None:
            issues.append("twv.audio_duration must be set (total audio duration in seconds)")
        elif self.audio_duration <= 0:
            issues.append(f"twv.audio_duration must be > 0, got {self.audio_duration}")
        if self.cost_fa < 0:
            issues.append(f"twv.cost_fa must be >= 0, got {self.cost_fa}")
        if self.value_corr <= 0:
            issues.append(f"twv.value_corr must be > 0, got {self.value_corr}")
        if not 0 < self.prior_probability < 1:
            issues.append(f"twv.prior_probability must be in (0, 1), got {self.prior_probability}")
        if self.sweep_step <= 0:
            issues.append(f"twv.sweep_step must be > 0, got {self.sweep_step}")
        return issues


@dataclass
class KeywordStats:
    """Accumulated detection events of one keyword."""

    ntrue: int = 0
    hit_scores: List[float] = field(default_factory=list)
    fa_scores: List[float] = field(default_factory=list)


class OracleMeasures(NamedTuple):
    mtwv: float
    mtwv_threshold: float
    otwv: float


class TwvMetrics:
    """Cumulative TWV scorer.

    Feed one or more alignments with ``add_alignment``; statistics keep
    growing until ``reset``. Metrics are computed on demand from the raw
    per-keyword events, so alignments (or whole engines, via ``merge``)
    can be combined before any threshold sweep.
    """

    def __init__(self, opts: Optional[TwvMetricsOptions] = None):
        self.opts = opts or TwvMetricsOptions()
        self._issues = self.opts.validate()
        self.beta: Optional[float] = None if self._issues else self.opts.beta
        self._stats: Dict[str, KeywordStats] = {}

    def add_alignment(self, ali: KwsAlignment) -> None:
        """Accumulate the events of an alignment."""
        for entry in ali:
            stats = self._stats.setdefault(entry.kw_id, KeywordStats())
            if isinstance(entry, Matched):
                stats.ntrue += 1
                stats.hit_scores.append(entry.hyp.score)
            elif isinstance(entry, Miss):
                stats.ntrue += 1
            elif isinstance(entry, FalseAlarm):
                stats.fa_scores.append(entry.hyp.score)
            else:
                raise TypeError(f"Unexpected alignment entry: {entry!r}")
        logger.debug(f"Added alignment with {len(ali)} entries ({len(self._stats)} keywords so far)")

    def merge(self, other: "TwvMetrics") -> "TwvMetrics":
        """Add another engine's raw statistics into this one."""
        for kw_id, theirs in other._stats.items():
            ours = self._stats.setdefault(kw_id, KeywordStats())
            ours.ntrue += theirs.ntrue
            ours.hit_scores.extend(theirs.hit_scores)
            ours.fa_scores.extend(theirs.fa_scores)
        return self

    def reset(self) -> None:
        """Forget the accumulated statistics."""
        self._stats = {}

    @property
    def keywords(self) -> List[str]:
        return sorted(self._stats)

    def atwv(self) -> float:
        """Actual TWV at the configured score threshold."""
        keywords = self._scored_keywords()
        if not keywords:
            return 0.0

        threshold = self.opts.score_threshold
        nhit = np.array([sum(1 for s in st.hit_scores if s >= threshold) for _, st in keywords], dtype=float)
        nfa = np.array([sum(1 for s in st.fa_scores if s >= threshold) for _, st in keywords], dtype=float)
        ntrue = np.array([st.ntrue for _, st in keywords], dtype=float)
        return float(np.mean(self._twv(nhit, nfa, ntrue)))

    def stwv(self) -> float:
        """Supreme TWV: every keyword scored at its own best exact threshold."""
        keywords = self._scored_keywords()
        if not keywords:
            return 0.0

        best = np.zeros(len(keywords), dtype=float)
        for i, (_, st) in enumerate(keywords):
            if not st.hit_scores and not st.fa_scores:
                continue
            scores = np.array(st.hit_scores + st.fa_scores, dtype=float)
            is_hit = np.concatenate([np.ones(len(st.hit_scores)), np.zeros(len(st.fa_scores))])
            order = np.argsort(-scores, kind="stable")
            scores = scores[order]
            cum_hit = np.cumsum(is_hit[order])
            cum_fa = np.cumsum(1.0 - is_hit[order])
            # Evaluate once per distinct score, after all events tied at it
            last_of_group = np.append(scores[1:] != scores[:-1], True)
            twv = self._twv(cum_hit[last_of_group], cum_fa[last_of_group], float(st.ntrue))
            # Thresholds above every score accept nothing, TWV 0
            best[i] = max(0.0, float(twv.max()))
        return float(np.mean(best))

    def get_oracle_measures(self) -> OracleMeasures:
        """Compute MTWV, its threshold and OTWV in one sweep.

        Thresholds are ``k * sweep_step`` over the bins occupied by event
        scores, plus one threshold above every score. TWV is constant
        between occupied bins, so a (keywords x occupied bins) TWV matrix
        built from per-bin counts covers the whole grid. MTWV is the best
        column mean, OTWV the mean of the row maxima. Ties in MTWV resolve
        to the lowest threshold.
        """
        keywords = self._scored_keywords()
        step = self.opts.sweep_step
        if not keywords:
            return OracleMeasures(0.0, self.opts.score_threshold, 0.0)

        hit_bins = [self._bins(st.hit_scores) for _, st in keywords]
        fa_bins = [self._bins(st.fa_scores) for _, st in keywords]
        occupied = np.unique(np.concatenate(hit_bins + fa_bins))
        if occupied.size == 0:
            return OracleMeasures(0.0, self.opts.score_threshold, 0.0)

        # Last column accepts nothing
        n_thresholds = occupied.size + 1
        logger.debug(f"Oracle sweep over {len(keywords)} keywords x {n_thresholds} thresholds")

        hits = np.zeros((len(keywords), n_thresholds), dtype=float)
        fas = np.zeros((len(keywords), n_thresholds), dtype=float)
        for i in range(len(keywords)):
            np.add.at(hits[i], np.searchsorted(occupied, hit_bins[i]), 1.0)
            np.add.at(fas[i], np.searchsorted(occupied, fa_bins[i]), 1.0)

        # Counts at or above each occupied bin
        hits_ge = np.cumsum(hits[:, ::-1], axis=1)[:, ::-1]
        fas_ge = np.cumsum(fas[:, ::-1], axis=1)[:, ::-1]
        ntrue = np.array([st.ntrue for _, st in keywords], dtype=float)[:, None]
        twv = self._twv(hits_ge, fas_ge, ntrue)

        # Lowest grid bin giving the same counts as each column
        lowest_bins = np.append(occupied[0], occupied + 1)

        mean_twv = twv.mean(axis=0)
        best = int(np.argmax(mean_twv))
        mtwv = float(mean_twv[best])
        mtwv_threshold = round(int(lowest_bins[best]) * step, 10)
        otwv = float(twv.max(axis=1).mean())
        return OracleMeasures(mtwv, mtwv_threshold, otwv)

    def compute_all(self) -> Dict[str, Any]:
        """Compute every metric plus event counts."""
        oracle = self.get_oracle_measures()
        keywords = self._scored_keywords()
        return {
            "atwv": self.atwv(),
            "stwv": self.stwv(),
            "mtwv": oracle.mtwv,
            "mtwv_threshold": oracle.mtwv_threshold,
            "otwv": oracle.otwv,
            "num_keywords": len(keywords),
            "num_refs": sum(st.ntrue for st in self._stats.values()),
            "num_hits": sum(len(st.hit_scores) for st in self._stats.values()),
            "num_false_alarms": sum(len(st.fa_scores) for st in self._stats.values()),
        }

    def _scored_keywords(self) -> List[Tuple[str, KeywordStats]]:
        """Keywords with at least one reference, in sorted order.

        Raises:
            TwvConfigurationError: If the options are unusable
        """
        if self._issues:
            raise TwvConfigurationError("Invalid TWV configuration: " + "; ".join(self._issues))

        scored = [(kw_id, self._stats[kw_id]) for kw_id in sorted(self._stats) if self._stats[kw_id].ntrue > 0]
        skipped = len(self._stats) - len(scored)
        if skipped:
            logger.warning(f"{skipped} keyword(s) without reference occurrences excluded from TWV averages")
        return scored

    def _bins(self, scores: List[float]) -> np.ndarray:
        return np.floor(np.asarray(scores, dtype=float) / self.opts.sweep_step + _BIN_EPS).astype(np.int64)

    def _twv(self, nhit, nfa, ntrue):
        ntrials = np.maximum(self.opts.audio_duration - ntrue, 1.0)
        p_corr = np.clip(nhit / ntrue, 0.0, 1.0)
        p_fa = np.clip(nfa / ntrials, 0.0, 1.0)
        return p_corr - self.beta * p_fa
