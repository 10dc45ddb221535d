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

"""4-bit nucleotide codes and FASTA output of read sub-sequences."""

from __future__ import annotations
from typing import Sequence, TextIO

from .cigar_map import QueryInterval

# htslib seq_nt16_str, used to encode read bases
NT16_SYMBOLS = "=ACMGRSVTWYHKDBN"

# ambiguity codes are written as '*'
SEQI_TO_CHAR = (
    "*", "A", "C", "*",
    "G", "*", "*", "*",
    "T", "*", "*", "*",
    "*", "*", "*", "N",
)

_NT16_CODES = {ch: code for code, ch in enumerate(NT16_SYMBOLS)}
_NT16_CODES.update({ch.lower(): code for ch, code in list(_NT16_CODES.items())})

LINE_WIDTH = 80


def encode_sequence(seq: str) -> bytes:
    """Encode bases to 4-bit codes; unknown characters become N (15)."""
    return bytes(_NT16_CODES.get(ch, 15) for ch in seq)


def decode_sequence(codes: Sequence[int], start: int = 0, end: int | None = None) -> str:
    """Decode codes[start:end] to sequence characters."""
    return "".join(SEQI_TO_CHAR[c & 0xF] for c in codes[start:end])


def wrap(seq: str, width: int = LINE_WIDTH) -> str:
    """Break seq into lines of 'width' characters, each ending with a newline."""
    if width < 1:
        raise ValueError(f"Invalid line width {width}")
    return "".join(seq[i:i+width] + "\n" for i in range(0, len(seq), width))


def format_record(name: str, codes: Sequence[int], interval: QueryInterval,
                  width: int = LINE_WIDTH) -> str:
    """
    Render the bases of 'codes' in [interval.start, interval.end) as a FASTA
    record headed '>name:start-end' (read coordinates, half-open).
    """
    if interval.start >= interval.end:
        raise ValueError(f"Empty interval {name}:{interval.start}-{interval.end}")
    if interval.start < 0 or interval.end > len(codes):
        raise ValueError(
            f"Interval {name}:{interval.start}-{interval.end} outside sequence (len={len(codes)})"
        )
    seq = decode_sequence(codes, interval.start, interval.end)
    return f">{name}:{interval.start}-{interval.end}\n" + wrap(seq, width)


def write_record(fh: TextIO, name: str, codes: Sequence[int], interval: QueryInterval,
                 width: int = LINE_WIDTH) -> None:
    fh.write(format_record(name, codes, interval, width))
