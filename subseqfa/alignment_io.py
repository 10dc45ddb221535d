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

"""Read alignment records from indexed SAM/BAM/CRAM files with pysam."""

from __future__ import annotations
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple

import pysam

from .cigar_map import (CigarOperation, Projection, from_cigar_tuples, parse_cigar,
                        project_ref_interval, reference_length)
from .errors import InputNotFoundError, SourceError
from .fasta_io import encode_sequence
from .region import ReferenceInterval

logger = logging.getLogger("subseqfa")


@dataclass(frozen=True)
class AlignmentRecord:
    query_name: str
    reference_id: Optional[int]
    reference_start: int       # 0-based start on the reference
    cigar: Tuple[CigarOperation, ...]
    sequence_codes: bytes      # 4-bit codes, one per stored base

    @property
    def reference_end(self) -> int:
        return self.reference_start + reference_length(self.cigar)

    def project(self, interval: ReferenceInterval) -> Projection:
        return project_ref_interval(self.cigar, self.reference_start, interval)

    @classmethod
    def from_text(cls, query_name: str, reference_start: int, cigar: str, seq: str,
                  reference_id: Optional[int] = 0) -> "AlignmentRecord":
        """Build a record from SAM style fields ('*' for a missing sequence)."""
        codes = b"" if seq == "*" else encode_sequence(seq)
        return cls(query_name, reference_id, reference_start, parse_cigar(cigar), codes)

    @classmethod
    def from_segment(cls, segment: pysam.AlignedSegment) -> "AlignmentRecord":
        seq = segment.query_sequence
        return cls(
            query_name=segment.query_name,
            reference_id=segment.reference_id if segment.reference_id >= 0 else None,
            reference_start=segment.reference_start,
            cigar=from_cigar_tuples(segment.cigartuples),
            sequence_codes=encode_sequence(seq) if seq else b"",
        )


def _open_mode(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix == ".bam":
        return "rb"
    if suffix == ".cram":
        return "rc"
    return "r"


class AlignmentSource:
    """
    An indexed alignment file. Use as a context manager:

        with AlignmentSource("reads.bam") as source:
            for record in source.fetch(interval):
                ...
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._file: Optional[pysam.AlignmentFile] = None

    def __enter__(self) -> "AlignmentSource":
        if not self.path.exists():
            raise InputNotFoundError(f"Input file not found: {self.path}")
        try:
            self._file = pysam.AlignmentFile(str(self.path), _open_mode(self.path))
        except (OSError, ValueError) as e:
            raise SourceError(f"Error opening input file {self.path}: {e}") from e
        if self._file.header is None or self._file.nreferences == 0:
            self.close()
            raise SourceError(f"Error getting alignment header: {self.path}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        if self._file is not None:
            try:
                self._file.close()
            except OSError as e:
                # a corrupt file fails again on close
                logger.debug("Error closing %s: %s", self.path, e)
            self._file = None

    @property
    def alignment_file(self) -> pysam.AlignmentFile:
        if self._file is None:
            raise SourceError(f"Alignment file is not open: {self.path}")
        return self._file

    def reference_name(self, reference_id: int) -> str:
        return self.alignment_file.get_reference_name(reference_id)

    def fetch(self, interval: ReferenceInterval) -> Iterator[AlignmentRecord]:
        """Records overlapping the interval, read through the file index."""
        aln = self.alignment_file
        if not aln.has_index():
            raise SourceError(f"Error indexing region: no index found for {self.path}")
        try:
            segments = aln.fetch(interval.chromosome, interval.start, interval.end)
        except (OSError, ValueError) as e:
            raise SourceError(f"Error getting region iterator for {interval} in {self.path}: {e}") from e
        logger.debug("Fetching %s from %s", interval, self.path)
        try:
            for segment in segments:
                yield AlignmentRecord.from_segment(segment)
        except OSError as e:
            raise SourceError(f"Error reading records for {interval} from {self.path}: {e}") from e
