"""Reference/hypothesis alignment tables.

An alignment is an ordered list of entries, each being one of:

- ``Matched(ref, hyp, score)``: the hypothesis was paired with a reference.
- ``Miss(ref)``: the reference has no matching hypothesis.
- ``FalseAlarm(hyp)``: the hypothesis has no matching reference.

Every entry still exposes ``ref`` and ``hyp``; the missing side is the
invalid sentinel term.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, TextIO, Union, overload

from src.kws.errors import ConfigError
from src.kws.term import KwsTerm

logger = logging.getLogger(__name__)

_EMPTY = KwsTerm.empty()

CSV_HEADER = [
    "language",
    "file",
    "channel",
    "termid",
    "term",
    "ref_bt",
    "ref_et",
    "sys_bt",
    "sys_et",
    "sys_score",
    "sys_decision",
    "alignment",
]


class DetectionDecision(Enum):
    """Outcome of a single alignment entry at a given decision threshold."""

    FALSE_ALARM = "FA"  # Marked incorrectly as a hit
    MISS = "MISS"  # Not marked as a hit while it should be
    CORR = "CORR"  # Marked correctly as a hit
    CORR_UNDETECTED = "CORR!DET"  # Not marked as a hit, correctly
    UNSEEN = "UNSEEN"  # Reference not present in any hypothesis list


@dataclass(frozen=True, slots=True)
class Matched:
    ref: KwsTerm
    hyp: KwsTerm
    score: float

    @property
    def kw_id(self) -> str:
        return self.ref.kw_id

    def decision(self, threshold: float) -> DetectionDecision:
        return DetectionDecision.CORR if self.hyp.score >= threshold else DetectionDecision.MISS


@dataclass(frozen=True, slots=True)
class Miss:
    ref: KwsTerm

    @property
    def hyp(self) -> KwsTerm:
        return _EMPTY

    @property
    def score(self) -> float:
        return 0.0

    @property
    def kw_id(self) -> str:
        return self.ref.kw_id

    def decision(self, threshold: float) -> DetectionDecision:
        return DetectionDecision.MISS


@dataclass(frozen=True, slots=True)
class FalseAlarm:
    hyp: KwsTerm

    @property
    def ref(self) -> KwsTerm:
        return _EMPTY

    @property
    def score(self) -> float:
        return 0.0

    @property
    def kw_id(self) -> str:
        return self.hyp.kw_id

    def decision(self, threshold: float) -> DetectionDecision:
        return DetectionDecision.FALSE_ALARM if self.hyp.score >= threshold else DetectionDecision.CORR_UNDETECTED


AlignedTermsPair = Union[Matched, Miss, FalseAlarm]


class KwsAlignment:
    """Read-only, ordered container of aligned term pairs.

    Entries are kept in discovery order so CSV exports are reproducible.
    Only the aligner appends to it.
    """

    def __init__(self) -> None:
        self._entries: list[AlignedTermsPair] = []

    def _add(self, entry: AlignedTermsPair) -> None:
        self._entries.append(entry)

    def __iter__(self) -> Iterator[AlignedTermsPair]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @overload
    def __getitem__(self, index: int) -> AlignedTermsPair: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[AlignedTermsPair, ...]: ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return tuple(self._entries[index])
        return self._entries[index]

    @property
    def matches(self) -> list[Matched]:
        return [e for e in self._entries if isinstance(e, Matched)]

    @property
    def misses(self) -> list[Miss]:
        return [e for e in self._entries if isinstance(e, Miss)]

    @property
    def false_alarms(self) -> list[FalseAlarm]:
        return [e for e in self._entries if isinstance(e, FalseAlarm)]

    def summary(self) -> dict[str, int]:
        return {
            "entries": len(self._entries),
            "matched": len(self.matches),
            "missed": len(self.misses),
            "false_alarms": len(self.false_alarms),
        }

    def write_csv(self, stream: TextIO, frames_per_sec: float, decision_threshold: float = 0.5) -> int:
        """Write the alignment as NIST-style CSV rows.

        Args:
            stream: Text stream opened with ``newline=""``
            frames_per_sec: Frame rate used to convert frame indices to seconds
            decision_threshold: Hypothesis score at or above which the system
                decision is YES

        Returns:
            Number of data rows written
        """
        if frames_per_sec <= 0:
            raise ConfigError(f"frames_per_sec must be > 0, got {frames_per_sec}")

        writer = csv.writer(stream, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for entry in self._entries:
            ref, hyp = entry.ref, entry.hyp
            row = ["", str(ref.utt_id if ref.valid else hyp.utt_id), "1", entry.kw_id, ""]
            if ref.valid:
                row += [f"{ref.start_time / frames_per_sec:.2f}", f"{ref.end_time / frames_per_sec:.2f}"]
            else:
                row += ["", ""]
            if hyp.valid:
                row += [
                    f"{hyp.start_time / frames_per_sec:.2f}",
                    f"{hyp.end_time / frames_per_sec:.2f}",
                    f"{hyp.score:.6f}",
                    "YES" if hyp.score >= decision_threshold else "NO",
                ]
            else:
                row += ["", "", "", ""]
            row.append(entry.decision(decision_threshold).value)
            writer.writerow(row)

        logger.debug(f"Wrote {len(self._entries)} alignment rows")
        return len(self._entries)
