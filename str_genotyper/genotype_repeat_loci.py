#!/usr/bin/env python3

DESCRIPTION = """This script genotypes STR loci from reads that were already aligned to each locus' sequence graph.
It takes a variant catalog describing the loci and a json file of read pairs with their graph alignments, and outputs
a json file in the same format as ExpansionHunter, with counts of spanning, flanking and in-repeat reads and the
genotype of each locus.
"""

import argparse
import logging
import os
import re
import simplejson as json
from tqdm import tqdm

from str_genotyper.graph_alignment import decode_graph_alignment
from str_genotyper.locus_graph import make_str_graph, parse_locus_structure, REPEAT_NODE_ID
from str_genotyper.locus_stats import LocusStatsCalculator, determine_expected_allele_count_for_region, \
    normalize_sex, SEX_ALIASES
from str_genotyper.repeat_analyzer import GenotyperParams, Read, RepeatAnalyzer
from str_genotyper.repeat_findings_to_json import convert_repeat_findings_to_json_record, \
    convert_locus_results_to_json_record
from str_genotyper.utils.export_json import export_json
from str_genotyper.utils.misc_utils import get_json_iterator

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")
ALREADY_WARNED_ABOUT = set()  # used for logging


def parse_args(args_list=None):
    p = argparse.ArgumentParser(description=DESCRIPTION)
    p.add_argument("-c", "--variant-catalog", required=True, help="Path of json variant catalog. Each record must "
        "have LocusId, LocusStructure (eg. '(CAG)*'), ReferenceRegion, LeftFlank and RightFlank fields.")
    p.add_argument("--sex", choices=SEX_ALIASES.keys(), default="female", help="Sample sex. Used to determine the "
        "expected number of alleles at loci on chrX and chrY.")
    p.add_argument("-s", "--sample-id", help="The sample id to put in the output json file. If not specified, it "
        "will be based on the read pairs filename.")
    p.add_argument("--min-locus-coverage", type=float, default=10, help="Loci with lower read depth will not be "
        "genotyped and will be flagged as LowDepth.")
    p.add_argument("--min-breakpoint-spanning-reads", type=int, default=1, help="Genotypes will be flagged as "
        "LowDepth if fewer reads than this cross either breakpoint of the repeat. This is halved for haploid loci.")
    p.add_argument("-o", "--output-prefix", help="Output filename prefix")
    p.add_argument("--show-progress-bar", action="store_true", help="Show a progress bar while processing reads")
    p.add_argument("-v", "--verbose", action="store_true", help="Print detailed log messages")
    p.add_argument("read_pairs_json", help="Path of a json file (optionally gzipped) containing a list of read pair "
        "records. Each record must have a LocusId, and Read and Mate fields which contain ReadId, Sequence, "
        "AlignmentStart and GraphAlignment (eg. '0[10M]1[3M]2[12M]').")
    args = p.parse_args(args=args_list)

    for path in args.variant_catalog, args.read_pairs_json:
        if not os.path.isfile(path):
            p.error(f"{path} not found")

    if args.min_locus_coverage < 0:
        p.error(f"--min-locus-coverage must be non-negative: {args.min_locus_coverage}")

    if args.min_breakpoint_spanning_reads < 0:
        p.error(f"--min-breakpoint-spanning-reads must be non-negative: {args.min_breakpoint_spanning_reads}")

    args.sex = normalize_sex(args.sex)
    if not args.sample_id:
        args.sample_id = re.sub(r"(\.read_pairs)?\.json(\.gz)?$", "", os.path.basename(args.read_pairs_json))

    if not args.output_prefix:
        args.output_prefix = args.sample_id

    return args


def create_locus_analyzers(variant_catalog_records, genotyper_params):
    """Builds the locus graph and analyzers for each locus in the variant catalog.

    Return:
        dict: maps locus id to a dict with the catalog record, graph, RepeatAnalyzer and LocusStatsCalculator
    """
    loci = {}
    for record in variant_catalog_records:
        locus_id = record["LocusId"]
        if locus_id in loci:
            raise ValueError(f"Duplicate locus id in variant catalog: {locus_id}")

        repeat_unit = parse_locus_structure(record["LocusStructure"])
        graph = make_str_graph(record["LeftFlank"], repeat_unit, record["RightFlank"], graph_id=locus_id)
        loci[locus_id] = {
            "record": record,
            "graph": graph,
            "repeat_analyzer": RepeatAnalyzer(locus_id, graph, REPEAT_NODE_ID, genotyper_params),
            "locus_stats_calculator": LocusStatsCalculator(graph, REPEAT_NODE_ID),
        }

    return loci


def _parse_read(read_record, graph):
    read = Read(read_record["ReadId"], read_record.get("Sequence", ""))
    alignment = decode_graph_alignment(int(read_record["AlignmentStart"]), read_record["GraphAlignment"], graph)
    if read.sequence and len(read.sequence) != alignment.query_length:
        raise ValueError(f"{read.read_id} has length {len(read.sequence)} but its alignment {alignment} has query "
                         f"length {alignment.query_length}")

    return read, alignment


def process_read_pair_records(read_pair_records, loci):
    """Passes each read pair to the RepeatAnalyzer of its locus.

    Return:
        int: the number of read pairs that were processed
    """
    counter = 0
    for read_pair_record in read_pair_records:
        locus_id = read_pair_record["LocusId"]
        if locus_id not in loci:
            if locus_id not in ALREADY_WARNED_ABOUT:
                logging.warning(f"Locus {locus_id} not found in variant catalog. Skipping its reads...")
                ALREADY_WARNED_ABOUT.add(locus_id)
            continue

        locus = loci[locus_id]
        read, read_alignment = _parse_read(read_pair_record["Read"], locus["graph"])
        mate, mate_alignment = _parse_read(read_pair_record["Mate"], locus["graph"])

        locus["locus_stats_calculator"].inspect(read_alignment)
        locus["locus_stats_calculator"].inspect(mate_alignment)
        locus["repeat_analyzer"].process_mates(read, read_alignment, mate, mate_alignment)
        counter += 1

    return counter


def compute_locus_results(loci, sex):
    """Genotypes each locus and returns the "LocusResults" section of the output json"""

    locus_results = {}
    for locus_id, locus in loci.items():
        record = locus["record"]
        allele_count = determine_expected_allele_count_for_region(record["ReferenceRegion"], sex)
        locus_stats_calculator = locus["locus_stats_calculator"]
        repeat_analyzer = locus["repeat_analyzer"]
        if allele_count == 0:
            logging.info(f"{locus_id} is not expected in a {sex} sample. Reporting it without a genotype.")
            repeat_findings = repeat_analyzer.summarize_read_counts(allele_count)
        else:
            repeat_findings = repeat_analyzer.analyze(locus_stats_calculator.estimate(allele_count))

        variant_record = convert_repeat_findings_to_json_record(
            locus_id, record["ReferenceRegion"], repeat_analyzer.repeat_unit, repeat_findings)
        locus_results[locus_id] = convert_locus_results_to_json_record(
            locus_id, locus_stats_calculator.mean_read_length, locus_stats_calculator.depth, allele_count,
            {locus_id: variant_record})

    return locus_results


def main():
    args = parse_args()
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    with open(args.variant_catalog, "rt") as f:
        variant_catalog_records = json.load(f)

    logging.info(f"Parsed {len(variant_catalog_records):,d} loci from {args.variant_catalog}")

    genotyper_params = GenotyperParams(
        min_locus_coverage=args.min_locus_coverage,
        min_breakpoint_spanning_reads=args.min_breakpoint_spanning_reads)
    loci = create_locus_analyzers(variant_catalog_records, genotyper_params)

    read_pair_records = get_json_iterator(args.read_pairs_json, is_gzipped=args.read_pairs_json.endswith("gz"))
    if args.show_progress_bar:
        read_pair_records = tqdm(read_pair_records, unit=" read pairs", unit_scale=True)

    read_pair_counter = process_read_pair_records(read_pair_records, loci)
    logging.info(f"Processed {read_pair_counter:,d} read pairs from {args.read_pairs_json}")

    locus_results = compute_locus_results(loci, args.sex)
    export_json({
        "LocusResults": locus_results,
        "SampleParameters": {
            "SampleId": args.sample_id,
            "Sex": args.sex,
        },
    }, f"{args.output_prefix}.json")

    logging.info(f"Done genotyping {len(locus_results):,d} loci")


if __name__ == "__main__":
    main()
