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

"""Fixtures building small coordinate-sorted BAM files with pysam."""

import logging
from pathlib import Path

import pysam
import pytest

HEADER = {
    "HD": {"VN": "1.6", "SO": "coordinate"},
    "SQ": [{"SN": "chr1", "LN": 1000}, {"SN": "scaffold_7-3", "LN": 500}],
}

# (name, chromosome, 0-based start, CIGAR, sequence), coordinate sorted
READS = [
    ("del_read", "chr1", 5, "5M10D10M", "ACGTNACGTNACGTN"),
    ("full_read", "chr1", 10, "20M", "ACGTACGTACGTACGTACGT"),
    ("ins_read", "chr1", 12, "5M2I13M", "AAAAACCGGGTTTTTTTTTT"),
    ("short_read", "chr1", 18, "10M", "ACGTACGTAC"),
    ("scaffold_read", "scaffold_7-3", 0, "30M", "C" * 30),
]


def write_bam(path: Path, reads=READS, index: bool = True) -> Path:
    with pysam.AlignmentFile(str(path), "wb", header=HEADER) as out:
        for name, chromosome, start, cigar, seq in reads:
            segment = pysam.AlignedSegment(out.header)
            segment.query_name = name
            segment.reference_name = chromosome
            segment.reference_start = start
            segment.mapping_quality = 60
            segment.cigarstring = cigar
            segment.query_sequence = seq
            segment.query_qualities = pysam.qualitystring_to_array("I" * len(seq))
            out.write(segment)
    if index:
        pysam.index(str(path))
    return path


@pytest.fixture
def bam_file(tmp_path):
    return write_bam(tmp_path / "reads.bam")


@pytest.fixture
def unindexed_bam_file(tmp_path):
    return write_bam(tmp_path / "unindexed.bam", index=False)


@pytest.fixture
def subseqfa_log(caplog):
    """caplog attached to the "subseqfa" logger, which does not propagate."""
    logger = logging.getLogger("subseqfa")
    logger.addHandler(caplog.handler)
    yield caplog
    logger.removeHandler(caplog.handler)


def corrupt_middle(path: Path, length: int = 200) -> Path:
    """Invert a run of bytes in the middle of a file, leaving its ends intact."""
    data = bytearray(path.read_bytes())
    mid = len(data) // 2
    data[mid:mid + length] = bytes(b ^ 0xFF for b in data[mid:mid + length])
    path.write_bytes(bytes(data))
    return path


@pytest.fixture
def corrupt_bam_file(tmp_path):
    # enough reads to span many BGZF blocks
    reads = [
        (f"read_{i}", "chr1", i * 900 // 20000, "50M", "ACGTA" * 10)
        for i in range(20000)
    ]
    return corrupt_middle(write_bam(tmp_path / "corrupt.bam", reads=reads))
