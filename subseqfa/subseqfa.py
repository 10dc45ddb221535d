#!/usr/bin/env python3

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

""" This script extracts the part of each aligned read that covers a
    reference region and writes it as a FASTA record

    Only reads whose alignment spans the whole region are used. The
    FASTA header is the read name followed by the extracted interval in
    read coordinates (0-based, half-open).

Examples:
    subseqfa --region chr1:10,000-10,100 sample.bam > region.fa
    subseqfa --region "chr1 9999 10100" --base0 --qname read_42
        --out read_42.fa sample1.bam sample2.cram

"""

from typing import List, Optional, TextIO
import sys
import logging
import argparse
from pathlib import Path

from .alignment_io import AlignmentRecord, AlignmentSource
from .cigar_map import ProjectionStatus
from .errors import ERR_NONE, ERR_USAGE, SourceError, SubseqError, UsageError, report_error
from .fasta_io import LINE_WIDTH, write_record
from .region import ReferenceInterval, parse_region


def keep_record(
    record: AlignmentRecord,
    source: AlignmentSource,
    interval: ReferenceInterval,
    qname: Optional[str] = None,
) -> bool:
    """Apply the query name and chromosome filters.

    Args:
        record: Alignment record read from the source.
        source: The open source, used to resolve the reference name.
        interval: Region to extract.
        qname: Only keep records with this query name, if set.

    Returns:
        True if the record should be projected.
    """
    logger = logging.getLogger("subseqfa")
    if qname and record.query_name != qname:
        return False
    if record.reference_id is not None:
        reference_name = source.reference_name(record.reference_id)
        if reference_name != interval.chromosome:
            logger.debug("\t* No region for target: %s", reference_name)
            return False
    return True


def extract_subsequences(  # pylint: disable=too-many-arguments
    filename: Path,
    interval: ReferenceInterval,
    out: TextIO,
    qname: Optional[str] = None,
    print_locations: bool = False,
    width: int = LINE_WIDTH,
) -> int:
    """Write the sub-sequence of every read covering the region in one file.

    Args:
        filename: Indexed SAM/BAM/CRAM file.
        interval: Region to extract, 0-based half-open.
        out: Stream the FASTA records are written to.
        qname: Only extract from records with this query name, if set.
        print_locations: Print each extracted location on standard error.
        width: Line width of the sequence lines.

    Returns:
        The number of records written.

    Raises:
        SourceError: when the file cannot be opened or read, has no index,
            does not know the chromosome, or the output cannot be written.
    """
    logger = logging.getLogger("subseqfa")
    logger.debug("Reading %s", filename)
    written = 0
    with AlignmentSource(filename) as source:
        for record in source.fetch(interval):
            logger.debug("Record: %s", record.query_name)
            if not keep_record(record, source, interval, qname):
                continue

            projection = record.project(interval)
            if projection.status is ProjectionStatus.NOT_COVERED:
                logger.debug(
                    "\t* Record (%d - %d) does not cover query region",
                    record.reference_start,
                    record.reference_end,
                )
                continue

            sub = projection.interval
            if projection.status is ProjectionStatus.EMPTY:
                logger.warning("\t* No sequence found: %d-%d", sub.start, sub.end)
                continue
            if sub.end > len(record.sequence_codes):
                logger.warning(
                    "\t* No stored sequence for %s:%d-%d (length %d)",
                    record.query_name,
                    sub.start,
                    sub.end,
                    len(record.sequence_codes),
                )
                continue

            logger.debug("\t* Extracting: %s:%d-%d", record.query_name, sub.start, sub.end)
            if print_locations:
                print(f"{record.query_name}:{sub.start}-{sub.end}", file=sys.stderr)

            try:
                write_record(out, record.query_name, record.sequence_codes, sub, width)
            except OSError as e:
                raise SourceError(f"Error writing output: {e}") from e
            written += 1

    logger.debug("Wrote %d records from %s", written, filename)
    return written


def parse_args(prog: str, argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse the command line; argparse failures become a UsageError."""
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Extract regions from alignments and write to a FASTA file.",
        exit_on_error=False,
    )
    parser.add_argument(
        "--region", "-r", type=str, required=True,
        help="Region to extract (1-based, inclusive, chr:start-end)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Print verbose information"
    )
    parser.add_argument(
        "--out", "-o", type=str, default="", help="Output FASTA file"
    )
    parser.add_argument(
        "--base0", "-b", action="store_true",
        help="Region is in base-0 half-open coordinates (BED coordinates)",
    )
    parser.add_argument(
        "--qname", type=str, default="",
        help="Extract sequences from records with this query name (QNAME) "
        "and ignore all other alignment records",
    )
    parser.add_argument(
        "--print", dest="print_locations", action="store_true",
        help="Print extracted region names to the screen (e.g. chr*:10000-10100)",
    )
    parser.add_argument(
        "--width", type=int, default=LINE_WIDTH,
        help="Number of bases on each sequence line",
    )
    parser.add_argument("infile", nargs="+", help="Input alignment file(s)")
    try:
        args = parser.parse_args(argv)
    except argparse.ArgumentError as e:
        raise UsageError(str(e)) from e
    if args.width < 1:
        raise UsageError(f"Line width must be at least 1: {args.width}")
    return args


def run(args: argparse.Namespace, interval: ReferenceInterval, out: TextIO) -> int:
    """Extract the region from every input file, in order."""
    logger = logging.getLogger("subseqfa")
    if args.qname:
        logger.debug("Filtering by QNAME: %s", args.qname)

    total = 0
    for infile in args.infile:
        total += extract_subsequences(
            Path(infile),
            interval,
            out,
            qname=args.qname or None,
            print_locations=args.print_locations,
            width=args.width,
        )
    return total


def main(argv: Optional[List[str]] = None, prog: Optional[str] = None) -> int:
    """Extract the region and report fatal errors with the program name.

    The region is parsed before any file is opened so a malformed region
    never produces partial output.
    """
    prog = prog or Path(sys.argv[0]).name
    logger = logging.getLogger("subseqfa")
    logger.setLevel(logging.INFO)
    try:
        args = parse_args(prog, argv)
    except UsageError as e:
        return report_error(prog, e)
    except SystemExit as e:
        # --help, or a usage error argparse exits on by itself
        return ERR_NONE if not e.code else ERR_USAGE

    if args.verbose:
        logger.setLevel(logging.DEBUG)

    try:
        interval = parse_region(args.region, zero_based=args.base0)
        logger.debug("Region: %s:%d-%d", interval.chromosome, interval.start, interval.end)
        out_name = args.out.strip()
        if not out_name:
            run(args, interval, sys.stdout)
        else:
            try:
                out = open(out_name, "w", encoding="utf-8")  # pylint: disable=consider-using-with
            except OSError as e:
                raise SourceError(f"Error opening output file {out_name}: {e}") from e
            with out:
                run(args, interval, out)
    except SubseqError as e:
        return report_error(prog, e)
    except OSError as e:
        # flushing or closing the output
        return report_error(prog, SourceError(f"Error writing output: {e}"))
    return ERR_NONE


# Setting up the logger
main_logger = logging.getLogger("subseqfa")
console_handler = logging.StreamHandler()
console_format = logging.Formatter(
    "%(asctime)s| %(levelname)s | %(module)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
)
console_handler.setFormatter(console_format)
main_logger.addHandler(console_handler)
main_logger.propagate = False

if __name__ == "__main__":
    sys.exit(main())
