"""
Assessment export parsing.

The export is a loosely structured CSV: a few metadata lines (assessment
name, per-pillar summary scores), then the recommendation table starting at
a known header row and ending before a ``--,,`` terminator row.
"""

import csv
import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from assessment_sync.core.constants import (
    HEADER_SIGNATURE,
    KNOWN_PILLARS,
    METADATA_SCORE_LINES,
    TABLE_TERMINATOR,
)
from assessment_sync.models.category import PillarRef
from assessment_sync.models.recommendation import (
    Assessment,
    PillarScore,
    Recommendation,
)

logger = logging.getLogger(__name__)

_SCORE_PATTERN = re.compile(r"^'?\s*(\d{1,3})\s*/\s*100\s*'?$")


class InputError(Exception):
    """The export or a lookup file cannot be used. Raised before any remote call."""


class TableNotFoundError(InputError):
    """The recommendation table header is missing."""


class TableBoundsError(InputError):
    """No terminator row follows the recommendation table header."""


def find_table_bounds(
    lines: Sequence[str],
    signature: str = HEADER_SIGNATURE,
    terminator: str = TABLE_TERMINATOR,
) -> Tuple[int, int]:
    """
    Locate the recommendation table.

    Returns ``(start, end)`` where ``start`` is the index of the header row
    (matched by prefix) and ``end`` the index of the last line before the
    first terminator row after it.
    """
    start: Optional[int] = None
    for index, line in enumerate(lines):
        if line.strip().startswith(signature):
            start = index
            break
    if start is None:
        raise TableNotFoundError(f"Header row '{signature}' not found")

    for index in range(start + 1, len(lines)):
        if terminator in lines[index]:
            return start, index - 1

    raise TableBoundsError(f"No '{terminator}' terminator after header row {start}")


def parse_table(lines: Sequence[str], start: int, end: int) -> List[Dict[str, str]]:
    """Parse lines ``start..end`` (inclusive) as CSV, using the first as header."""
    reader = csv.DictReader(lines[start : end + 1], delimiter=",")
    rows = []
    for row in reader:
        # Cells beyond the header end up under the None key
        row = {k: v for k, v in row.items() if k is not None}
        if any((v or "").strip() for v in row.values()):
            rows.append(row)
    return rows


def _split_csv_line(line: str) -> List[str]:
    return next(csv.reader([line]), [])


def parse_metadata(lines: Sequence[str]) -> Tuple[str, List[PillarScore]]:
    """
    Read the assessment name (first cell of line 1) and the summary score
    lines for known pillars, ``<pillar>,<description>,'<score>/100',...``.
    """
    name = ""
    if lines:
        cells = _split_csv_line(lines[0])
        name = cells[0].strip() if cells else ""

    first, last = METADATA_SCORE_LINES
    scores: List[PillarScore] = []
    for line in lines[first - 1 : last]:
        cells = _split_csv_line(line)
        if len(cells) < 3:
            continue
        pillar = PillarRef.parse(cells[0])
        if not pillar.is_known:
            continue
        label = pillar.name
        match = _SCORE_PATTERN.match(cells[2].strip())
        if not match:
            logger.debug(f"Ignoring summary line for {label}: unrecognized score '{cells[2]}'")
            continue
        scores.append(PillarScore(pillar=label, description=cells[1].strip(), score=int(match.group(1))))

    return name, scores


def build_recommendations(rows: Iterable[Dict[str, str]]) -> List[Recommendation]:
    recommendations = []
    for line_no, row in enumerate(rows, start=1):
        try:
            recommendations.append(Recommendation.model_validate(row))
        except ValidationError as e:
            raise InputError(f"Invalid recommendation row {line_no}: {e}") from e
    return recommendations


def parse_assessment(lines: Sequence[str], signature: str = HEADER_SIGNATURE) -> Assessment:
    start, end = find_table_bounds(lines, signature=signature)
    rows = parse_table(lines, start, end)
    name, scores = parse_metadata(lines)
    columns = _split_csv_line(lines[start].strip())
    recommendations = build_recommendations(rows)
    logger.info(f"Parsed {len(recommendations)} recommendations from table at lines {start}-{end}")
    return Assessment(
        name=name,
        pillar_scores=scores,
        recommendations=recommendations,
        columns=columns,
    )


def read_lines(path: Union[str, Path]) -> List[str]:
    try:
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            return f.read().splitlines()
    except OSError as e:
        raise InputError(f"Cannot read {path}: {e}") from e


def load_assessment(path: Union[str, Path]) -> Assessment:
    """Read and parse an assessment export file."""
    assessment = parse_assessment(read_lines(path))
    if not assessment.name:
        assessment.name = Path(path).stem
    return assessment


def write_filtered_csv(
    assessment: Assessment,
    path: Union[str, Path],
    pillars: Optional[Iterable[str]] = None,
) -> int:
    """
    Write the recommendation table with the export's header, keeping only
    recommendations of the given pillars (default: the known pillars).

    Returns the number of rows written.
    """
    keep = {p.lower() for p in (pillars or KNOWN_PILLARS)}
    columns = assessment.columns or HEADER_SIGNATURE.split(",")
    written = 0
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=columns, extrasaction="ignore")
        writer.writeheader()
        for rec in assessment.recommendations:
            if rec.category.lower() not in keep:
                continue
            writer.writerow(rec.to_row())
            written += 1
    logger.info(f"Wrote {written} recommendations to {path}")
    return written
