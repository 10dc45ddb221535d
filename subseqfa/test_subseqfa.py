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

import io
import logging

import pytest

from subseqfa.alignment_io import AlignmentRecord, AlignmentSource
from subseqfa.errors import (
    ERR_FILE_NOT_FOUND,
    ERR_IO,
    ERR_NONE,
    ERR_USAGE,
    InputNotFoundError,
    SourceError,
)
from subseqfa.region import ReferenceInterval, parse_region
from subseqfa.subseqfa import extract_subsequences, keep_record, main

EXPECTED = ">full_read:2-10\nGTACGTAC\n>ins_read:0-10\nAAAAACCGGG\n"


class FakeSource:
    def __init__(self, names):
        self.names = names

    def reference_name(self, reference_id):
        return self.names[reference_id]


def test_extract_subsequences(bam_file, subseqfa_log):
    out = io.StringIO()
    with subseqfa_log.at_level(logging.WARNING, logger="subseqfa"):
        written = extract_subsequences(bam_file, parse_region("chr1:13-20"), out)
    assert written == 2
    assert out.getvalue() == EXPECTED
    # del_read only has a deletion over the region
    assert "No sequence found: 5-5" in subseqfa_log.text


def test_query_name_filter(bam_file):
    out = io.StringIO()
    written = extract_subsequences(bam_file, parse_region("chr1:13-20"), out, qname="ins_read")
    assert written == 1
    assert out.getvalue() == ">ins_read:0-10\nAAAAACCGGG\n"


def test_print_locations(bam_file, capsys):
    extract_subsequences(bam_file, parse_region("chr1:13-20"), io.StringIO(), print_locations=True)
    assert capsys.readouterr().err.splitlines() == ["full_read:2-10", "ins_read:0-10"]


def test_chromosome_name_with_delimiters(bam_file):
    out = io.StringIO()
    extract_subsequences(bam_file, parse_region("scaffold_7-3:1-10"), out)
    assert out.getvalue() == ">scaffold_read:0-10\n" + "C" * 10 + "\n"


def test_keep_record():
    interval = ReferenceInterval("chr1", 10, 20)
    source = FakeSource(["chr1", "chr2"])
    record = AlignmentRecord.from_text("r1", 5, "20M", "A" * 20, reference_id=0)
    assert keep_record(record, source, interval)
    assert keep_record(record, source, interval, qname="r1")
    assert not keep_record(record, source, interval, qname="r2")
    other = AlignmentRecord.from_text("r1", 5, "20M", "A" * 20, reference_id=1)
    assert not keep_record(other, source, interval)


def test_record_without_sequence():
    record = AlignmentRecord.from_text("r1", 5, "20M", "*")
    assert record.sequence_codes == b""
    assert record.reference_end == 25


def test_missing_index(unindexed_bam_file):
    with pytest.raises(SourceError, match="no index"):
        extract_subsequences(unindexed_bam_file, parse_region("chr1:13-20"), io.StringIO())


def test_missing_file(tmp_path):
    with pytest.raises(InputNotFoundError):
        with AlignmentSource(tmp_path / "missing.bam"):
            pass


def test_reference_name(bam_file):
    with AlignmentSource(bam_file) as source:
        assert source.reference_name(1) == "scaffold_7-3"


def test_main_writes_output_file(bam_file, tmp_path):
    out = tmp_path / "out.fa"
    assert main(["-r", "chr1:13-20", "-o", str(out), str(bam_file)], prog="subseqfa") == ERR_NONE
    assert out.read_text() == EXPECTED


def test_main_standard_output(bam_file, capsys):
    assert main(["--region", "chr1 12 20", "--base0", "--width", "4", str(bam_file)]) == ERR_NONE
    assert capsys.readouterr().out == (
        ">full_read:2-10\nGTAC\nGTAC\n>ins_read:0-10\nAAAA\nACCG\nGG\n"
    )


def test_main_reads_every_file(bam_file, tmp_path):
    out = tmp_path / "out.fa"
    assert main(["-r", "chr1:13-20", "-o", str(out), str(bam_file), str(bam_file)]) == ERR_NONE
    assert out.read_text() == EXPECTED * 2


def test_main_malformed_region(bam_file, tmp_path, subseqfa_log):
    out = tmp_path / "out.fa"
    assert main(["-r", "chr1:20", "-o", str(out), str(bam_file)], prog="subseqfa") == ERR_USAGE
    assert not out.exists()
    assert "subseqfa: Malformed region" in subseqfa_log.text


@pytest.mark.parametrize(
    "argv",
    [
        ["chr1.bam"],
        ["-r", "chr1:1-10"],
        ["-r", "chr1:1-10", "--width", "0", "chr1.bam"],
        ["-r", "chr1:1-10", "--width", "wide", "chr1.bam"],
    ],
)
def test_main_usage_errors(argv):
    assert main(argv) == ERR_USAGE


def test_main_missing_input(tmp_path):
    assert main(["-r", "chr1:13-20", str(tmp_path / "missing.bam")]) == ERR_FILE_NOT_FOUND


def test_main_missing_index(unindexed_bam_file):
    assert main(["-r", "chr1:13-20", str(unindexed_bam_file)]) == ERR_IO


def test_main_unknown_chromosome(bam_file):
    assert main(["-r", "chrX:13-20", str(bam_file)]) == ERR_IO


def test_main_stops_at_first_failing_file(bam_file, tmp_path):
    out = tmp_path / "out.fa"
    argv = ["-r", "chr1:13-20", "-o", str(out), str(bam_file), str(tmp_path / "missing.bam"), str(bam_file)]
    assert main(argv) == ERR_FILE_NOT_FOUND
    assert out.read_text() == EXPECTED


class FailingOutput(io.StringIO):
    def write(self, s):
        raise OSError(28, "No space left on device")


def test_main_unreadable_input(tmp_path):
    garbage = tmp_path / "garbage.bam"
    garbage.write_bytes(b"this is not an alignment file\n" * 10)
    assert main(["-r", "chr1:13-20", str(garbage)]) == ERR_IO


def test_main_output_not_writable(bam_file, tmp_path):
    assert main(["-r", "chr1:13-20", "-o", str(tmp_path), str(bam_file)]) == ERR_IO


def test_corrupt_records(corrupt_bam_file):
    with pytest.raises(SourceError, match="Error reading records"):
        extract_subsequences(corrupt_bam_file, parse_region("chr1:1-1000"), io.StringIO())


def test_main_corrupt_records(corrupt_bam_file, tmp_path, subseqfa_log):
    out = tmp_path / "out.fa"
    assert main(["-r", "chr1:1-1000", "-o", str(out), str(corrupt_bam_file)], prog="subseqfa") == ERR_IO
    assert "subseqfa: Error reading records" in subseqfa_log.text


def test_output_write_failure(bam_file):
    with pytest.raises(SourceError, match="Error writing output"):
        extract_subsequences(bam_file, parse_region("chr1:13-20"), FailingOutput())


def test_logger_does_not_propagate():
    assert logging.getLogger("subseqfa").propagate is False
