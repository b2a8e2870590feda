"""Read length, depth and expected allele count for a locus"""

import re

from str_genotyper.utils.misc_utils import parse_interval

HAPLOID = 1
DIPLOID = 2

FEMALE = "Female"
MALE = "Male"

SEX_ALIASES = {
    "female": FEMALE, "f": FEMALE,
    "male": MALE, "m": MALE,
}

CHROM_X_REGEXP = re.compile("^(chr)?X$", re.IGNORECASE)
CHROM_Y_REGEXP = re.compile("^(chr)?Y$", re.IGNORECASE)
CHROM_M_REGEXP = re.compile("^(chr)?MT?$", re.IGNORECASE)


class LocusStats:

    def __init__(self, mean_read_length, depth, allele_count):
        if allele_count not in (HAPLOID, DIPLOID):
            raise ValueError(f"Unexpected allele count: {allele_count}")

        self._mean_read_length = mean_read_length
        self._depth = depth
        self._allele_count = allele_count

    @property
    def mean_read_length(self):
        return self._mean_read_length

    @property
    def depth(self):
        return self._depth

    @property
    def allele_count(self):
        return self._allele_count

    def __repr__(self):
        return (f"LocusStats(mean_read_length={self._mean_read_length}, depth={self._depth}, "
                f"allele_count={self._allele_count})")


def normalize_sex(sex):
    normalized_sex = SEX_ALIASES.get(str(sex).lower())
    if normalized_sex is None:
        raise ValueError(f"Unexpected sex: '{sex}'. It should be one of: {', '.join(SEX_ALIASES)}")
    return normalized_sex


def determine_expected_allele_count(chrom, sex):
    """Returns how many copies of a locus on the given chromosome are expected in a sample of the given sex.

    Args:
        chrom (str): chromosome name like "chr4", "4", "chrX".
        sex (str): "Female" or "Male" (case-insensitive; "f" and "m" are also accepted).

    Return:
        int: 0, 1 or 2
    """
    sex = normalize_sex(sex)
    if CHROM_X_REGEXP.match(chrom):
        return DIPLOID if sex == FEMALE else HAPLOID
    if CHROM_Y_REGEXP.match(chrom):
        return 0 if sex == FEMALE else HAPLOID
    if CHROM_M_REGEXP.match(chrom):
        return HAPLOID

    return DIPLOID


def determine_expected_allele_count_for_region(reference_region, sex):
    chrom, _, _ = parse_interval(reference_region)
    return determine_expected_allele_count(chrom, sex)


class LocusStatsCalculator:
    """Computes the mean read length and the read depth over the flanks from the alignments of reads at a locus"""

    def __init__(self, graph, repeat_node_id):
        self._flank_node_ids = [node_id for node_id in range(graph.num_nodes) if node_id != repeat_node_id]
        self._total_flank_length = sum(graph.node_length(node_id) for node_id in self._flank_node_ids)
        self._num_reads = 0
        self._total_read_length = 0
        self._num_bases_aligned_to_flanks = 0

    def inspect(self, alignment):
        self._num_reads += 1
        self._total_read_length += alignment.query_length
        for node_alignment in alignment.node_alignments:
            if node_alignment.node_id in self._flank_node_ids:
                self._num_bases_aligned_to_flanks += node_alignment.reference_length

    @property
    def mean_read_length(self):
        return self._total_read_length / self._num_reads if self._num_reads else 0

    @property
    def depth(self):
        return self._num_bases_aligned_to_flanks / self._total_flank_length if self._total_flank_length else 0

    def estimate(self, allele_count):
        return LocusStats(self.mean_read_length, self.depth, allele_count)
