"""Keyword occurrence value object."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from src.kws.errors import TermValidationError


@dataclass(frozen=True, slots=True)
class KwsTerm:
    """One keyword occurrence, either detected (hypothesis) or true (reference).

    Times are frame indices. A term with an empty ``kw_id`` is the invalid
    sentinel used for the missing side of a miss or a false alarm.
    """

    utt_id: int = 0
    kw_id: str = ""
    start_time: int = 0
    end_time: int = 0
    score: float = 0.0

    @classmethod
    def empty(cls) -> "KwsTerm":
        return cls()

    @classmethod
    def from_record(cls, kw_id: str, values: Sequence[float]) -> "KwsTerm":
        """Build a term from a keyword id and ``(utt_id, start, end, score)``.

        Raises:
            TermValidationError: If ``values`` does not hold exactly four numbers
                or the resulting term is not valid.
        """
        if len(values) != 4:
            raise TermValidationError(f"Term record for '{kw_id}' needs 4 values (utt_id, start, end, score), got {len(values)}")
        utt_id, start_time, end_time, score = values
        term = cls(
            utt_id=int(utt_id),
            kw_id=kw_id,
            start_time=int(start_time),
            end_time=int(end_time),
            score=float(score),
        )
        term.check()
        return term

    @property
    def valid(self) -> bool:
        return self.kw_id != ""

    @property
    def center(self) -> float:
        return (self.start_time + self.end_time) / 2.0

    @property
    def duration(self) -> int:
        return self.end_time - self.start_time

    def check(self) -> None:
        """Raise TermValidationError unless this is a well-formed valid term."""
        if not self.valid:
            raise TermValidationError(f"Term in utterance {self.utt_id} at frames {self.start_time}-{self.end_time} has an empty keyword id")
        if self.utt_id < 0:
            raise TermValidationError(f"Term '{self.kw_id}' has a negative utterance id: {self.utt_id}")
        if self.end_time < self.start_time:
            raise TermValidationError(f"Term '{self.kw_id}' in utterance {self.utt_id} ends before it starts: {self.start_time} > {self.end_time}")
