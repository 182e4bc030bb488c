"""Greedy alignment of hypothesized keyword detections to reference occurrences."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set, Tuple

from src.kws.alignment import FalseAlarm, KwsAlignment, Matched, Miss
from src.kws.errors import ConfigError, TermValidationError
from src.kws.term import KwsTerm

logger = logging.getLogger(__name__)

AlignerScore = Callable[[KwsTerm, KwsTerm], float]
BucketKey = Tuple[int, str]


def center_distance_score(ref: KwsTerm, hyp: KwsTerm) -> float:
    """Default match score: ``1 / (1 + |center(ref) - center(hyp)|)``.

    Closer centers score higher; the hypothesis detection score is ignored.
    """
    return 1.0 / (1.0 + abs(ref.center - hyp.center))


def overlap_score(ref: KwsTerm, hyp: KwsTerm) -> float:
    """Intersection over union of the two frame spans (0 when disjoint)."""
    overlap = min(ref.end_time, hyp.end_time) - max(ref.start_time, hyp.start_time)
    union = max(ref.end_time, hyp.end_time) - min(ref.start_time, hyp.start_time)
    if overlap <= 0 or union <= 0:
        return 0.0
    return overlap / union


@dataclass
class KwsTermsAlignerOptions:
    """Aligner parameters."""

    # Maximum distance (in frames) between the centers of a ref and a hyp
    # for them to be considered a potential match. 50 frames ~ 0.5 seconds.
    max_distance: int = 50

    def validate(self) -> List[str]:
        issues = []
        if self.max_distance < 0:
            issues.append(f"aligner.max_distance must be >= 0, got {self.max_distance}")
        return issues


class KwsTermsAligner:
    """Pairs each hypothesis with at most one nearby reference.

    References are bucketed by (utterance, keyword); a hypothesis only ever
    searches its own bucket. All ``add_*`` calls must precede ``align_terms``.

    Usage:
        aligner = KwsTermsAligner(KwsTermsAlignerOptions(max_distance=50))
        for ref in refs:
            aligner.add_ref(ref)
        for hyp in hyps:
            aligner.add_hyp(hyp)
        alignment = aligner.align_terms()
    """

    def __init__(
        self,
        opts: Optional[KwsTermsAlignerOptions] = None,
        scorer: AlignerScore = center_distance_score,
    ) -> None:
        self.opts = opts or KwsTermsAlignerOptions()
        issues = self.opts.validate()
        if issues:
            raise ConfigError("; ".join(issues))
        self.scorer = scorer
        self.reset()

    def reset(self) -> None:
        """Forget every ingested term."""
        self._refs: Dict[BucketKey, List[KwsTerm]] = {}
        self._hyps: List[KwsTerm] = []
        self._nof_refs = 0
        self._nof_hyps = 0

    @property
    def nof_refs(self) -> int:
        return self._nof_refs

    @property
    def nof_hyps(self) -> int:
        return self._nof_hyps

    def add_ref(self, ref: KwsTerm) -> None:
        """Add one reference occurrence.

        Raises:
            TermValidationError: If the term is not a valid keyword occurrence
        """
        _check_term(ref, "reference")
        self._refs.setdefault((ref.utt_id, ref.kw_id), []).append(ref)
        self._nof_refs += 1

    def add_hyp(self, hyp: KwsTerm) -> None:
        """Add one hypothesized detection.

        Raises:
            TermValidationError: If the term is not a valid keyword occurrence
        """
        _check_term(hyp, "hypothesis")
        self._hyps.append(hyp)
        self._nof_hyps += 1

    def align_terms(self) -> KwsAlignment:
        """Compute the alignment over everything ingested so far.

        Hypotheses are processed in insertion order. Used references are
        tracked per call, so repeated calls return identical tables.
        """
        alignment = KwsAlignment()
        used: Dict[BucketKey, Set[int]] = {}

        for hyp in self._hyps:
            key = (hyp.utt_id, hyp.kw_id)
            best_index = self._find_best_ref_index(hyp, used.get(key, set()))
            if best_index is None:
                alignment._add(FalseAlarm(hyp))
                continue
            used.setdefault(key, set()).add(best_index)
            ref = self._refs[key][best_index]
            alignment._add(Matched(ref, hyp, self.scorer(ref, hyp)))

        self._fill_unmatched_refs(alignment, used)

        summary = alignment.summary()
        logger.info(
            f"Aligned {self._nof_refs} refs and {self._nof_hyps} hyps: "
            f"{summary['matched']} matched, {summary['missed']} missed, {summary['false_alarms']} false alarms"
        )
        return alignment

    def _find_best_ref_index(self, hyp: KwsTerm, used: Set[int]) -> Optional[int]:
        """Index of the best unused ref in the hyp's bucket, or None."""
        bucket = self._refs.get((hyp.utt_id, hyp.kw_id))
        if not bucket:
            return None

        best_index: Optional[int] = None
        best_score = 0.0
        for index, ref in enumerate(bucket):
            if index in used:
                continue
            if abs(ref.center - hyp.center) > self.opts.max_distance:
                continue
            score = self.scorer(ref, hyp)
            # Strictly greater: ties keep the earliest reference in the bucket
            if best_index is None or score > best_score:
                best_index = index
                best_score = score
        return best_index

    def _fill_unmatched_refs(self, alignment: KwsAlignment, used: Dict[BucketKey, Set[int]]) -> None:
        for key, bucket in self._refs.items():
            bucket_used = used.get(key, set())
            for index, ref in enumerate(bucket):
                if index not in bucket_used:
                    alignment._add(Miss(ref))


def _check_term(term: KwsTerm, role: str) -> None:
    if not isinstance(term, KwsTerm):
        raise TermValidationError(f"Expected a KwsTerm for the {role}, got {type(term).__name__}")
    try:
        term.check()
    except TermValidationError as e:
        raise TermValidationError(f"Invalid {role} term: {e}") from e
