"""Readers for Kaldi-style keyword term lists.

Each non-empty line holds one occurrence::

    <kw_id> <utt_id> <start_frame> <end_frame> [<score>]

Reference lists usually omit the score, which then defaults to 0.
Lines starting with ``#`` are comments.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, List, Union

from src.kws.errors import TermValidationError
from src.kws.term import KwsTerm

logger = logging.getLogger(__name__)


def parse_term_line(line: str) -> KwsTerm:
    """Parse a single term-list line.

    Raises:
        TermValidationError: If the line has the wrong number of fields or
            non-numeric values
    """
    fields = line.split()
    if len(fields) not in (4, 5):
        raise TermValidationError(f"Expected 4 or 5 fields (kw_id utt_id start end [score]), got {len(fields)}")

    kw_id = fields[0]
    try:
        values = [float(v) for v in fields[1:]]
    except ValueError as e:
        raise TermValidationError(f"Non-numeric field in term record for '{kw_id}': {e}") from e

    for name, value in zip(("utt_id", "start", "end"), values[:3]):
        if value != int(value):
            raise TermValidationError(f"Field {name} of '{kw_id}' must be an integer, got {value}")

    if len(values) == 3:
        values.append(0.0)
    return KwsTerm.from_record(kw_id, values)


def read_terms(path: Union[str, Path]) -> Iterator[KwsTerm]:
    """Yield terms from a term-list file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        TermValidationError: On the first malformed line, naming file and line
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Term list not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                yield parse_term_line(line)
            except TermValidationError as e:
                raise TermValidationError(f"{path}:{line_no}: {e}") from e


def load_terms(path: Union[str, Path]) -> List[KwsTerm]:
    """Read a whole term-list file into memory."""
    terms = list(read_terms(path))
    logger.debug(f"Loaded {len(terms)} terms from {path}")
    return terms
