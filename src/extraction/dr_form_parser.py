"""Heuristic parser for OCR text of Declaration of Results (DR) forms.

Scans the text line by line, recognising voter-statistic lines
(male, female, wasted, total) first and then candidate/vote pairs
using a small ordered list of regular expressions. A candidate name
on its own line is paired with the next line that carries a number.
"""

import re
from dataclasses import dataclass, field

from src.utils.logger import get_logger

logger = get_logger(__name__)

_NUMBER = r"(\d{1,3}(?:,\d{3})+|\d+)"


@dataclass
class ExtractedResult:
    """A candidate name and the votes recorded against it."""

    candidate_name: str
    votes: int


@dataclass
class VoterStats:
    """Turnout figures printed on a DR form."""

    male_voters: int = 0
    female_voters: int = 0
    wasted_ballots: int = 0
    total_voters: int = 0

    def with_computed_total(self) -> "VoterStats":
        """Fill in the total from its parts when it is missing."""
        if self.total_voters <= 0:
            self.total_voters = (
                self.male_voters + self.female_voters + self.wasted_ballots
            )
        return self


@dataclass
class DRFormExtraction:
    """Everything recovered from one DR form."""

    results: list[ExtractedResult]
    voter_stats: VoterStats
    raw_text: str
    unparsed_lines: list[str] = field(default_factory=list)


# Voter statistic patterns: (field, regex). Checked before candidate patterns.
_STAT_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (
        "female_voters",
        re.compile(r"\bfemales?\b(?:\s*voters?)?[^\d]*" + _NUMBER, re.IGNORECASE),
    ),
    (
        "male_voters",
        re.compile(r"\bmales?\b(?:\s*voters?)?[^\d]*" + _NUMBER, re.IGNORECASE),
    ),
    (
        "wasted_ballots",
        re.compile(
            r"\b(?:wasted|rejected|spoilt|spoiled|invalid)\b"
            r"(?:\s*(?:ballots?|votes?|papers?))?[^\d]*" + _NUMBER,
            re.IGNORECASE,
        ),
    ),
    (
        "total_voters",
        re.compile(
            r"\btotal\b(?:\s*(?:number\s*of\s*)?(?:voters?|votes?\s*cast|ballots?"
            r"(?:\s*cast)?|turnout))?[^\d]*" + _NUMBER,
            re.IGNORECASE,
        ),
    ),
]

# Header and label lines that carry numbers but are not candidates.
_IGNORED_LABELS = re.compile(
    r"\b(?:polling\s*station|station|district|constituency|region|date|form|"
    r"signature|signed|page|code|serial|agent|officer)\b",
    re.IGNORECASE,
)

# Candidate patterns, tried in order. The flag marks patterns whose first
# group is the vote count rather than the name.
_CANDIDATE_PATTERNS: list[tuple[re.Pattern[str], bool]] = [
    (re.compile(r"([^:]+):\s*" + _NUMBER + r"\s*votes?", re.IGNORECASE), False),
    (re.compile(r"([^0-9]+)" + _NUMBER + r"\s*votes?", re.IGNORECASE), False),
    (re.compile(r"([a-zA-Z][a-zA-Z\s.'\-]*)[^\w]?\s*" + _NUMBER), False),
    (
        re.compile(
            _NUMBER + r"\s*votes?\s*(?:for|to)?\s*([a-zA-Z][a-zA-Z\s.'\-]*)",
            re.IGNORECASE,
        ),
        True,
    ),
]

_LETTERS = re.compile(r"[a-zA-Z]{3,}")
_ANY_NUMBER = re.compile(_NUMBER)
_NAME_TRIM = " \t:;,.|-_=*#"


def parse_count(raw: str) -> int:
    """Convert an OCR number such as ``"1,234"`` to an int."""
    return int(raw.replace(",", ""))


def clean_candidate_name(raw: str) -> str | None:
    """Trim separators from a candidate name, ``None`` if it is not a name."""
    name = " ".join(raw.split()).strip(_NAME_TRIM)
    name = re.sub(r"\s*\bvotes?\b$", "", name, flags=re.IGNORECASE).strip(_NAME_TRIM)
    if len(re.findall(r"[a-zA-Z]", name)) < 2:
        return None
    return name


class DRFormParser:
    """Single-pass line parser for DR form OCR text."""

    def parse(self, text: str) -> DRFormExtraction:
        """Extract candidate results and voter statistics from OCR text.

        Args:
            text: Raw OCR text of the form.

        Returns:
            Parsed candidates, statistics (total filled in when missing)
            and the lines that matched nothing.
        """
        results: list[ExtractedResult] = []
        stats = VoterStats()
        unparsed: list[str] = []
        pending_candidate: str | None = None

        for line in text.splitlines():
            line = line.strip()
            if not line:
                continue

            if self._match_stat(line, stats):
                pending_candidate = None
                continue

            if _IGNORED_LABELS.search(line):
                continue

            result = self._match_candidate(line)
            if result is not None:
                results.append(result)
                pending_candidate = None
                continue

            has_letters = _LETTERS.search(line) is not None
            number = _ANY_NUMBER.search(line)
            if has_letters and number is None and len(line) > 3:
                pending_candidate = clean_candidate_name(line)
            elif pending_candidate and number is not None:
                votes = parse_count(number.group(1))
                if votes > 0:
                    results.append(ExtractedResult(pending_candidate, votes))
                    pending_candidate = None
            else:
                unparsed.append(line)

        stats.with_computed_total()
        logger.info(
            "Parsed %d candidate results, total voters %d",
            len(results),
            stats.total_voters,
        )
        return DRFormExtraction(
            results=results,
            voter_stats=stats,
            raw_text=text,
            unparsed_lines=unparsed,
        )

    def _match_stat(self, line: str, stats: VoterStats) -> bool:
        for field_name, pattern in _STAT_PATTERNS:
            match = pattern.search(line)
            if match:
                setattr(stats, field_name, parse_count(match.group(1)))
                logger.debug("Found %s: %s", field_name, match.group(1))
                return True
        return False

    def _match_candidate(self, line: str) -> ExtractedResult | None:
        for pattern, votes_first in _CANDIDATE_PATTERNS:
            match = pattern.search(line)
            if not match:
                continue
            raw_votes, raw_name = (
                (match.group(1), match.group(2))
                if votes_first
                else (match.group(2), match.group(1))
            )
            name = clean_candidate_name(raw_name)
            if name:
                return ExtractedResult(
                    candidate_name=name, votes=parse_count(raw_votes)
                )
        return None
