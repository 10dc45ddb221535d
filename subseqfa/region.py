# See the NOTICE file distributed with this work for additional information
# regarding copyright ownership.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Parse region strings such as ``chr1:1,000-2,000`` into reference intervals.

Chromosome names may contain any of the delimiters themselves
(``scaffold_7-3``), so the string is scanned from the right: the last
delimiter separates the start from the end and the one before it separates
the chromosome from the start.
"""

from __future__ import annotations
import re
from dataclasses import dataclass

from .errors import UsageError

DELIMITERS = ":-_ \t"

_WHITESPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"[0-9]+")

EXPECTED_FORMAT = "Expected chr:pos-end (where delimiters may be :, -, _, or whitespace)"


@dataclass(frozen=True)
class ReferenceInterval:
    """0-based half-open interval on a reference sequence."""

    chromosome: str
    start: int
    end: int

    def __len__(self) -> int:
        return self.end - self.start

    def __str__(self) -> str:
        return f"{self.chromosome}:{self.start + 1}-{self.end}"


def _rfind_delimiter(text: str, before: int) -> int:
    """Index of the last delimiter in text[:before], or -1."""
    for i in range(before - 1, -1, -1):
        if text[i] in DELIMITERS:
            return i
    return -1


def _parse_position(text: str, what: str, region: str) -> int:
    if not _NUMBER_RE.fullmatch(text):
        raise UsageError(f"Malformed region: {what} position is not a number: \"{region}\"")
    return int(text)


def normalise_region(raw: str) -> str:
    """Trim, turn whitespace runs into '-' and drop thousands separators."""
    region = _WHITESPACE_RE.sub("-", raw.strip())
    return region.replace(",", "")


def parse_region(raw: str, zero_based: bool = False) -> ReferenceInterval:
    """Parse a region string.

    Args:
        raw: Region as typed by the user, e.g. ``chr1:1,000-2,000``.
        zero_based: The region is in 0-based half-open (BED) coordinates. By
            default it is 1-based and inclusive.

    Returns:
        The region as a 0-based half-open interval.

    Raises:
        UsageError: if a boundary is missing, a position is not a number or
            the region is empty.
    """
    region = normalise_region(raw)

    end_loc = _rfind_delimiter(region, len(region))
    if end_loc < 0:
        raise UsageError(f"Malformed region: missing end boundary: {EXPECTED_FORMAT}: \"{region}\"")

    pos_loc = _rfind_delimiter(region, end_loc)
    if pos_loc < 0:
        raise UsageError(f"Malformed region: missing start boundary: {EXPECTED_FORMAT}: \"{region}\"")

    chromosome = region[:pos_loc]
    if not chromosome:
        raise UsageError(f"Malformed region: missing chromosome name: \"{region}\"")

    start = _parse_position(region[pos_loc + 1:end_loc], "start", region)
    end = _parse_position(region[end_loc + 1:], "end", region)

    if not zero_based:
        start -= 1

    if start < 0:
        raise UsageError(f"Malformed region: start position is before the first base: \"{region}\"")
    if start >= end:
        raise UsageError(f"Malformed region: empty or inverted region: \"{region}\"")

    return ReferenceInterval(chromosome, start, end)
