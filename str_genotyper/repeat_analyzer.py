"""Collects read evidence at a repeat locus and turns it into a genotype.

A RepeatAnalyzer is created for each locus in each sample. process_mates(..) is called once for every read pair
that was aligned to the locus graph, and then analyze(..) is called once to get the RepeatFindings.
"""

import logging
import math

from str_genotyper.alignment_classifier import AlignmentClassifier, count_full_overlaps, \
    SPANS_REPEAT, FLANKS_REPEAT, INSIDE_REPEAT
from str_genotyper.alignment_filters import passes_alignment_filters, is_upstream_alignment_good, \
    is_downstream_alignment_good
from str_genotyper.graph_variant_alignment_stats import GraphVariantAlignmentStatsCalculator
from str_genotyper.locus_stats import DIPLOID
from str_genotyper.repeat_genotyper import RepeatGenotyper
from str_genotyper.utils.count_table import CountTable, collapse_top_elements

LOW_DEPTH_FILTER = "LowDepth"

PROP_CORRECT_MOLECULES = 0.97


class GenotyperParams:

    def __init__(self, min_locus_coverage=10, min_breakpoint_spanning_reads=1):
        """Constructor.

        Args:
            min_locus_coverage (float): loci with lower read depth are not genotyped.
            min_breakpoint_spanning_reads (int): genotypes are flagged with the LowDepth filter if fewer reads than
                this cross either breakpoint of the repeat. The threshold is halved for haploid loci.
        """
        if min_locus_coverage < 0 or min_breakpoint_spanning_reads < 0:
            raise ValueError(f"Genotyper parameters must be non-negative: min_locus_coverage={min_locus_coverage}, "
                             f"min_breakpoint_spanning_reads={min_breakpoint_spanning_reads}")

        self.min_locus_coverage = min_locus_coverage
        self.min_breakpoint_spanning_reads = min_breakpoint_spanning_reads


class Read:

    def __init__(self, read_id, sequence=""):
        self.read_id = read_id
        self.sequence = sequence

    def __repr__(self):
        return f"Read({self.read_id})"


class RepeatAlignmentStats:
    """Classification of a single read alignment relative to the repeat node"""

    def __init__(self, alignment, canonical_alignment_type, num_repeat_units_overlapped):
        self._alignment = alignment
        self._canonical_alignment_type = canonical_alignment_type
        self._num_repeat_units_overlapped = num_repeat_units_overlapped

    @property
    def alignment(self):
        return self._alignment

    @property
    def canonical_alignment_type(self):
        return self._canonical_alignment_type

    @property
    def num_repeat_units_overlapped(self):
        return self._num_repeat_units_overlapped

    @property
    def num_repeat_units_spanned(self):
        return self._num_repeat_units_overlapped

    def __repr__(self):
        return f"RepeatAlignmentStats({self._canonical_alignment_type}, {self._num_repeat_units_overlapped})"


class RepeatFindings:

    def __init__(self, spanning_table, flanking_table, inrepeat_table, allele_count, genotype, genotype_filters):
        self._spanning_table = spanning_table
        self._flanking_table = flanking_table
        self._inrepeat_table = inrepeat_table
        self._allele_count = allele_count
        self._genotype = genotype
        self._genotype_filters = frozenset(genotype_filters)

    @property
    def counts_of_spanning_reads(self):
        return self._spanning_table

    @property
    def counts_of_flanking_reads(self):
        return self._flanking_table

    @property
    def counts_of_inrepeat_reads(self):
        return self._inrepeat_table

    @property
    def allele_count(self):
        return self._allele_count

    @property
    def optional_genotype(self):
        """RepeatGenotype or None if the genotype couldn't be determined"""
        return self._genotype

    @property
    def genotype_filters(self):
        return self._genotype_filters

    def __repr__(self):
        return (f"RepeatFindings(spanning={self._spanning_table}, flanking={self._flanking_table}, "
                f"inrepeat={self._inrepeat_table}, allele_count={self._allele_count}, genotype={self._genotype}, "
                f"filters={sorted(self._genotype_filters)})")


def check_if_alignment_is_confident(repeat_node_id, alignment, alignment_stats):
    """Checks whether an alignment is good enough to be counted as evidence.

    Spanning reads must align well to both flanks and flanking reads must align well to at least one flank.
    """
    if not passes_alignment_filters(alignment):
        return False

    does_read_align_well_over_left_flank = is_upstream_alignment_good(repeat_node_id, alignment)
    does_read_align_well_over_right_flank = is_downstream_alignment_good(repeat_node_id, alignment)

    if alignment_stats.canonical_alignment_type == FLANKS_REPEAT:
        if not does_read_align_well_over_left_flank and not does_read_align_well_over_right_flank:
            return False

    if alignment_stats.canonical_alignment_type == SPANS_REPEAT:
        if not does_read_align_well_over_left_flank or not does_read_align_well_over_right_flank:
            return False

    return True


def generate_candidate_allele_sizes(spanning_table, flanking_table, inrepeat_table):
    """Returns the allele sizes supported by spanning reads, plus the longest size seen in flanking or in-repeat
    reads if it's longer than all spanning reads.
    """
    candidate_sizes = spanning_table.get_elements_with_nonzero_counts()
    longest_spanning = max(candidate_sizes, default=0)
    longest_flanking = max(flanking_table.get_elements_with_nonzero_counts(), default=0)
    longest_inrepeat = max(inrepeat_table.get_elements_with_nonzero_counts(), default=0)

    longest_non_spanning = max(longest_flanking, longest_inrepeat)
    if longest_spanning < longest_non_spanning:
        candidate_sizes.append(longest_non_spanning)

    return candidate_sizes


class RepeatAnalyzer:

    def __init__(self, variant_id, graph, repeat_node_id, genotyper_params=None, logger=None):
        """Constructor.

        Args:
            variant_id (str): variant id used in log messages.
            graph (LocusGraph): the locus graph that reads were aligned to.
            repeat_node_id (int): id of the repeat unit node in the graph.
            genotyper_params (GenotyperParams): genotyping thresholds. Defaults are used if not specified.
            logger (logging.Logger): where to send per-read diagnostic messages.
        """
        if not graph.has_node(repeat_node_id):
            raise ValueError(f"{variant_id}: repeat node {repeat_node_id} is not in the graph")

        self._variant_id = variant_id
        self._graph = graph
        self._repeat_node_id = repeat_node_id
        self._repeat_unit = graph.node_seq(repeat_node_id)
        self._genotyper_params = genotyper_params or GenotyperParams()
        self._logger = logger or logging.getLogger(__name__)

        self._alignment_classifier = AlignmentClassifier(repeat_node_id)
        self._alignment_stats_calculator = GraphVariantAlignmentStatsCalculator([repeat_node_id])

        self._counts_of_spanning_reads = CountTable()
        self._counts_of_flanking_reads = CountTable()
        self._counts_of_inrepeat_reads = CountTable()
        self._count_of_inrepeat_read_pairs = 0

    @property
    def variant_id(self):
        return self._variant_id

    @property
    def repeat_node_id(self):
        return self._repeat_node_id

    @property
    def repeat_unit(self):
        return self._repeat_unit

    @property
    def count_of_inrepeat_read_pairs(self):
        return self._count_of_inrepeat_read_pairs

    def process_mates(self, read, read_alignment, mate, mate_alignment):
        read_alignment_stats = self.classify_read_alignment(read_alignment)
        mate_alignment_stats = self.classify_read_alignment(mate_alignment)

        self._process_alignment(read, read_alignment, read_alignment_stats)
        self._process_alignment(mate, mate_alignment, mate_alignment_stats)

        # pairs are counted from the classifications alone, whether or not either mate is confident
        if (read_alignment_stats.canonical_alignment_type == INSIDE_REPEAT
                and mate_alignment_stats.canonical_alignment_type == INSIDE_REPEAT):
            self._count_of_inrepeat_read_pairs += 1

    def _process_alignment(self, read, alignment, alignment_stats):
        if not check_if_alignment_is_confident(self._repeat_node_id, alignment, alignment_stats):
            self._logger.debug(
                f"Could not confidently align {read.read_id} to repeat node {self._repeat_node_id} of "
                f"{self._variant_id}: {alignment} {read.sequence}")
            return

        self._logger.debug(
            f"{read.read_id} is {alignment_stats.canonical_alignment_type} for variant {self._variant_id}")
        self._alignment_stats_calculator.inspect(alignment)
        self._summarize_alignments_to_read_counts(alignment_stats)

    def classify_read_alignment(self, alignment):
        alignment_type = self._alignment_classifier.classify(alignment)
        num_repeat_units_overlapped = count_full_overlaps(self._repeat_node_id, alignment, self._graph)

        return RepeatAlignmentStats(alignment, alignment_type, num_repeat_units_overlapped)

    def _summarize_alignments_to_read_counts(self, alignment_stats):
        alignment_type = alignment_stats.canonical_alignment_type
        if alignment_type == SPANS_REPEAT:
            self._counts_of_spanning_reads.increment_count_of(alignment_stats.num_repeat_units_spanned)
        elif alignment_type == FLANKS_REPEAT:
            self._counts_of_flanking_reads.increment_count_of(alignment_stats.num_repeat_units_spanned)
        elif alignment_type == INSIDE_REPEAT:
            self._counts_of_inrepeat_reads.increment_count_of(alignment_stats.num_repeat_units_spanned)

    def summarize_read_counts(self, allele_count):
        """Returns the read count tables collected so far without genotyping the repeat. The findings always carry
        the LowDepth filter. Used for loci that aren't expected in the sample (eg. chrY in a female sample).
        """
        return RepeatFindings(
            self._counts_of_spanning_reads.copy(), self._counts_of_flanking_reads.copy(),
            self._counts_of_inrepeat_reads.copy(), allele_count, None, {LOW_DEPTH_FILTER})

    def analyze(self, locus_stats):
        """Genotypes the repeat using the evidence collected so far.

        Args:
            locus_stats (LocusStats): read length, depth and allele count at this locus.

        Return:
            RepeatFindings: read count tables, genotype (or None) and filters.
        """
        genotype = None
        genotype_filters = frozenset()
        spanning_table = self._counts_of_spanning_reads.copy()
        flanking_table = self._counts_of_flanking_reads.copy()
        inrepeat_table = self._counts_of_inrepeat_reads.copy()

        if locus_stats.mean_read_length == 0 or locus_stats.depth < self._genotyper_params.min_locus_coverage:
            genotype_filters = genotype_filters | {LOW_DEPTH_FILTER}
        else:
            repeat_unit_len = len(self._repeat_unit)
            max_num_units_in_read = int(math.ceil(locus_stats.mean_read_length / repeat_unit_len))
            spanning_table = collapse_top_elements(spanning_table, max_num_units_in_read)
            flanking_table = collapse_top_elements(flanking_table, max_num_units_in_read)
            inrepeat_table = collapse_top_elements(inrepeat_table, max_num_units_in_read)

            candidate_allele_sizes = generate_candidate_allele_sizes(spanning_table, flanking_table, inrepeat_table)

            if locus_stats.allele_count == DIPLOID:
                haplotype_depth = locus_stats.depth / 2
                min_breakpoint_spanning_reads = self._genotyper_params.min_breakpoint_spanning_reads
            else:
                haplotype_depth = locus_stats.depth
                min_breakpoint_spanning_reads = self._genotyper_params.min_breakpoint_spanning_reads // 2

            repeat_genotyper = RepeatGenotyper(
                haplotype_depth, locus_stats.allele_count, repeat_unit_len, max_num_units_in_read,
                PROP_CORRECT_MOLECULES, spanning_table, flanking_table, inrepeat_table,
                self._count_of_inrepeat_read_pairs)
            genotype = repeat_genotyper.genotype_repeat(candidate_allele_sizes)

            alignment_stats = self._alignment_stats_calculator.get_stats()
            if (alignment_stats.num_reads_spanning_right_breakpoint < min_breakpoint_spanning_reads
                    or alignment_stats.num_reads_spanning_left_breakpoint < min_breakpoint_spanning_reads):
                genotype_filters = genotype_filters | {LOW_DEPTH_FILTER}

        return RepeatFindings(
            spanning_table, flanking_table, inrepeat_table, locus_stats.allele_count, genotype, genotype_filters)
