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

"""CIGAR operations and the projection of reference intervals onto reads."""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from .region import ReferenceInterval


class OperationKind(Enum):
    """CIGAR operation kinds; values are the BAM operation codes."""

    ALIGNMENT_MATCH = 0
    INSERTION = 1
    DELETION = 2
    REFERENCE_SKIP = 3
    SOFT_CLIP = 4
    HARD_CLIP = 5
    PADDING = 6
    SEQUENCE_MATCH = 7
    SEQUENCE_MISMATCH = 8
    # obsolete "B" operation, never consumes anything
    BACK = 9

    @property
    def symbol(self) -> str:
        return "MIDNSHP=XB"[self.value]

    @property
    def consumes_query(self) -> bool:
        return self in _QUERY_CONSUMERS

    @property
    def consumes_reference(self) -> bool:
        return self in _REF_CONSUMERS

    @classmethod
    def from_symbol(cls, symbol: str) -> "OperationKind":
        idx = "MIDNSHP=XB".find(symbol)
        if idx < 0 or not symbol:
            raise ValueError(f"Unhandled CIGAR op {symbol}")
        return cls(idx)


_QUERY_CONSUMERS = frozenset({
    OperationKind.ALIGNMENT_MATCH, OperationKind.INSERTION, OperationKind.SOFT_CLIP,
    OperationKind.SEQUENCE_MATCH, OperationKind.SEQUENCE_MISMATCH,
})
_REF_CONSUMERS = frozenset({
    OperationKind.ALIGNMENT_MATCH, OperationKind.DELETION, OperationKind.REFERENCE_SKIP,
    OperationKind.SEQUENCE_MATCH, OperationKind.SEQUENCE_MISMATCH,
})


@dataclass(frozen=True)
class CigarOperation:
    kind: OperationKind
    length: int

    def __str__(self) -> str:
        return f"{self.length}{self.kind.symbol}"


def parse_cigar(cg: str) -> Tuple[CigarOperation, ...]:
    """Decode a CIGAR text such as '3S10M2D5M'. '*' is an empty CIGAR."""
    if cg == "*":
        return ()
    num = ""
    out: List[CigarOperation] = []
    for ch in cg:
        if ch.isdigit():
            num += ch
        else:
            if not num: raise ValueError(f"Bad CIGAR: {cg}")
            out.append(CigarOperation(OperationKind.from_symbol(ch), int(num)))
            num = ""
    if num: raise ValueError(f"Trailing length in CIGAR: {cg}")
    return tuple(out)


def from_cigar_tuples(cigartuples: Optional[Iterable[Tuple[int, int]]]) -> Tuple[CigarOperation, ...]:
    """Decode pysam style (operation code, length) pairs."""
    if not cigartuples:
        return ()
    return tuple(CigarOperation(OperationKind(op), ln) for op, ln in cigartuples)


def cigar_to_string(cigar: Sequence[CigarOperation]) -> str:
    return "".join(str(op) for op in cigar) or "*"


def reference_length(cigar: Sequence[CigarOperation]) -> int:
    """Number of reference bases spanned by the alignment."""
    return sum(op.length for op in cigar if op.kind.consumes_reference)


def query_length(cigar: Sequence[CigarOperation]) -> int:
    """Number of bases the alignment expects in the stored sequence."""
    return sum(op.length for op in cigar if op.kind.consumes_query)


@dataclass(frozen=True)
class QueryInterval:
    """0-based half-open interval on the stored read sequence."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


class ProjectionStatus(Enum):
    COVERED = "covered"
    NOT_COVERED = "not_covered"
    EMPTY = "empty"


@dataclass(frozen=True)
class Projection:
    """Outcome of projecting a reference interval onto one read.

    ``interval`` is set whenever both boundaries were found, that is for
    COVERED and for EMPTY (where start == end).
    """

    status: ProjectionStatus
    interval: Optional[QueryInterval] = None

    @property
    def covered(self) -> bool:
        return self.status is ProjectionStatus.COVERED


NOT_COVERED = Projection(ProjectionStatus.NOT_COVERED)


class _Phase(Enum):
    SEEKING_START = 1
    SEEKING_END = 2
    DONE = 3


def project_ref_interval(cigar: Sequence[CigarOperation], ref_start: int,
                         interval: ReferenceInterval) -> Projection:
    """
    Map the reference interval [interval.start, interval.end) (0-based,
    half-open) through an alignment that starts on the reference at
    ref_start with CIGAR 'cigar'. Returns read-local 0-based half-open
    coordinates, or NOT_COVERED if the alignment does not span the whole
    interval. The chromosome is not checked here.

    A boundary landing exactly on the transition between two operations is
    attributed to the position reached after the earlier operation, so an
    insertion just before the start is left out and one just before the end
    is kept. An interval ending exactly where the alignment ends stops after
    the last aligned base. A boundary inside a deletion or skip maps to the
    read position where the gap starts.
    """
    if ref_start > interval.start or ref_start + reference_length(cigar) < interval.end:
        return NOT_COVERED

    phase = _Phase.SEEKING_START
    target = interval.start
    t = ref_start      # reference cursor
    q = 0              # query cursor
    ref_q = 0          # query cursor after the last reference-consuming op
    sub_start = sub_end = 0
    i = 0
    while i < len(cigar) and phase is not _Phase.DONE:
        op = cigar[i]
        kind, ln = op.kind, op.length
        if kind.consumes_reference and t + ln > target:
            # boundary inside this op; gaps have no read bases
            at = q + (target - t) if kind.consumes_query else q
            if phase is _Phase.SEEKING_START:
                sub_start = at
                target = interval.end
                phase = _Phase.SEEKING_END
            else:
                sub_end = at
                phase = _Phase.DONE
            continue   # same op again, the end may be in it too
        if kind.consumes_query:
            q += ln
        if kind.consumes_reference:
            t += ln
            ref_q = q
        i += 1

    if phase is _Phase.SEEKING_END and t == target:
        # interval ends where the alignment ends; trailing clips stay out
        sub_end = ref_q
        phase = _Phase.DONE
    if phase is not _Phase.DONE:
        return NOT_COVERED
    if sub_end <= sub_start:
        return Projection(ProjectionStatus.EMPTY, QueryInterval(sub_start, sub_end))
    return Projection(ProjectionStatus.COVERED, QueryInterval(sub_start, sub_end))
