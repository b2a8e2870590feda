"""Maximum-likelihood genotyping of a repeat from counts of spanning, flanking and in-repeat reads.

Each read is modeled as coming from one of the alleles with equal probability. For an allele of size `a` (in repeat
units), and reads that are at most `max_num_units_in_read` units long:

* a spanning read reports the allele size exactly with probability `prop_correct_molecules`, and otherwise reports
  a nearby size with geometrically decreasing probability (stutter / misalignment noise).
* a flanking or in-repeat read only shows that the allele is at least as long as the read's repeat portion, so its
  observed size is uniform between 0 and min(a, max_num_units_in_read), and otherwise noise.

Alleles longer than a read can't be measured by spanning reads, so their size is estimated from the number of in-repeat
reads relative to the haplotype depth, and the number of in-repeat reads is scored with a Poisson model.
"""

import itertools
import logging
import math

import numpy as np
from scipy.stats import geom, poisson

STUTTER_DECAY = 0.5
CONFIDENCE_LEVEL = 0.95
LOG_LIKELIHOOD_CI_DELTA = math.log(100)
MIN_EXPECTED_INREPEAT_READS = 0.1
MIN_PROBABILITY = 1e-300

logger = logging.getLogger(__name__)


class RepeatGenotype:

    def __init__(self, repeat_unit_len, allele_sizes, allele_size_cis):
        """Constructor.

        Args:
            repeat_unit_len (int): repeat unit length in base pairs.
            allele_sizes (list): allele sizes in repeat units. One entry for haploid loci, two for diploid loci.
            allele_size_cis (list): a (lower bound, upper bound) confidence interval for each allele.
        """
        if len(allele_sizes) not in (1, 2) or len(allele_sizes) != len(allele_size_cis):
            raise ValueError(f"Invalid genotype: {allele_sizes} with confidence intervals {allele_size_cis}")

        alleles = sorted(zip(allele_sizes, allele_size_cis))
        self._repeat_unit_len = repeat_unit_len
        self._allele_sizes = tuple(int(size) for size, _ in alleles)
        self._allele_size_cis = tuple((int(ci[0]), int(ci[1])) for _, ci in alleles)

    @property
    def repeat_unit_len(self):
        return self._repeat_unit_len

    @property
    def num_alleles(self):
        return len(self._allele_sizes)

    @property
    def allele_sizes(self):
        return self._allele_sizes

    @property
    def allele_size_cis(self):
        return self._allele_size_cis

    @property
    def short_allele_size_in_units(self):
        return self._allele_sizes[0]

    @property
    def long_allele_size_in_units(self):
        return self._allele_sizes[-1]

    def genotype_string(self):
        """Returns the genotype in ExpansionHunter format, for example "5/8" """
        return "/".join(str(size) for size in self._allele_sizes)

    def confidence_interval_string(self):
        """Returns the confidence intervals in ExpansionHunter format, for example "5-5/7-9" """
        return "/".join(f"{lower}-{upper}" for lower, upper in self._allele_size_cis)

    def __eq__(self, other):
        return (isinstance(other, RepeatGenotype)
                and self._repeat_unit_len == other._repeat_unit_len
                and self._allele_sizes == other._allele_sizes
                and self._allele_size_cis == other._allele_size_cis)

    def __repr__(self):
        return f"RepeatGenotype({self.genotype_string()}, ci={self.confidence_interval_string()})"


def _table_to_arrays(count_table):
    items = count_table.items()
    elements = np.array([element for element, _ in items], dtype=float)
    counts = np.array([count for _, count in items], dtype=float)
    return elements, counts


class RepeatGenotyper:

    def __init__(
        self,
        haplotype_depth,
        allele_count,
        repeat_unit_len,
        max_num_units_in_read,
        prop_correct_molecules,
        spanning_table,
        flanking_table,
        inrepeat_table,
        count_of_inrepeat_read_pairs,
    ):
        self._haplotype_depth = haplotype_depth
        self._allele_count = allele_count
        self._repeat_unit_len = repeat_unit_len
        self._max_num_units_in_read = max_num_units_in_read
        self._prop_correct_molecules = prop_correct_molecules
        self._spanning = _table_to_arrays(spanning_table)
        self._flanking = _table_to_arrays(flanking_table)
        self._inrepeat = _table_to_arrays(inrepeat_table)

        # each in-repeat read pair contributes 2 in-repeat reads
        self._num_inrepeat_reads = max(inrepeat_table.total_count(), 2 * count_of_inrepeat_read_pairs)

        self._has_observations = bool(spanning_table) or bool(flanking_table) or self._num_inrepeat_reads > 0

    def _noise_probabilities(self, distances):
        return (1 - self._prop_correct_molecules) * geom.pmf(distances, STUTTER_DECAY)

    def _spanning_read_probabilities(self, sizes, allele_size):
        distances = np.abs(sizes - allele_size)
        return np.where(
            distances == 0,
            self._prop_correct_molecules,
            self._noise_probabilities(distances) / 2)

    def _lower_bound_read_probabilities(self, sizes, allele_size):
        max_observable_size = min(allele_size, self._max_num_units_in_read)
        return np.where(
            sizes <= max_observable_size,
            self._prop_correct_molecules / (max_observable_size + 1),
            self._noise_probabilities(sizes - max_observable_size))

    def _log_likelihood_of_table(self, table_arrays, genotype, read_probabilities_func):
        sizes, counts = table_arrays
        if len(sizes) == 0:
            return 0.0

        probabilities = np.mean([read_probabilities_func(sizes, allele_size) for allele_size in genotype], axis=0)
        return float(np.dot(counts, np.log(np.maximum(probabilities, MIN_PROBABILITY))))

    def _log_likelihood_of_inrepeat_read_count(self, genotype):
        if self._haplotype_depth <= 0:
            return 0.0

        read_len = self._max_num_units_in_read
        expected_count = sum(
            self._haplotype_depth * max(0, allele_size - read_len) / read_len for allele_size in genotype)
        return float(poisson.logpmf(self._num_inrepeat_reads, max(expected_count, MIN_EXPECTED_INREPEAT_READS)))

    def compute_log_likelihood(self, genotype):
        """Returns the log likelihood of observing the read counts given a genotype (tuple of allele sizes)"""
        return (
            self._log_likelihood_of_table(self._spanning, genotype, self._spanning_read_probabilities)
            + self._log_likelihood_of_table(self._flanking, genotype, self._lower_bound_read_probabilities)
            + self._log_likelihood_of_table(self._inrepeat, genotype, self._lower_bound_read_probabilities)
            + self._log_likelihood_of_inrepeat_read_count(genotype)
        )

    def estimate_long_allele_size(self):
        """Estimates the size of an allele that's longer than the reads, based on the number of in-repeat reads.

        Return:
            2-tuple: (size estimate, (lower bound, upper bound)) or None if there are no in-repeat reads.
        """
        if self._num_inrepeat_reads == 0 or self._haplotype_depth <= 0:
            return None

        read_len = self._max_num_units_in_read
        units_per_read = read_len / self._haplotype_depth
        size = read_len + int(round(self._num_inrepeat_reads * units_per_read))
        lower_count, upper_count = poisson.interval(CONFIDENCE_LEVEL, self._num_inrepeat_reads)
        lower_bound = read_len + int(math.floor(lower_count * units_per_read))
        upper_bound = read_len + int(math.ceil(upper_count * units_per_read))

        return size, (min(lower_bound, size), max(upper_bound, size))

    def genotype_repeat(self, candidate_allele_sizes):
        """Finds the most likely genotype among the candidate allele sizes.

        Args:
            candidate_allele_sizes (list): allele sizes (in repeat units) to consider.

        Return:
            RepeatGenotype: the most likely genotype, or None if there are no candidates or no reads.
        """
        candidate_allele_sizes = sorted(set(candidate_allele_sizes))
        if not candidate_allele_sizes or not self._has_observations:
            return None

        long_allele = None
        if candidate_allele_sizes[-1] >= self._max_num_units_in_read:
            long_allele = self.estimate_long_allele_size()
            if long_allele is not None and long_allele[0] not in candidate_allele_sizes:
                candidate_allele_sizes.append(long_allele[0])

        best_genotype = None
        best_log_likelihood = None
        for genotype in itertools.combinations_with_replacement(candidate_allele_sizes, self._allele_count):
            log_likelihood = self.compute_log_likelihood(genotype)
            if best_log_likelihood is None or log_likelihood > best_log_likelihood:
                best_genotype = genotype
                best_log_likelihood = log_likelihood

        logger.debug(f"Best genotype {best_genotype} with log likelihood {best_log_likelihood:0.3f} out of "
                     f"candidate sizes {candidate_allele_sizes}")

        allele_size_cis = []
        for i, allele_size in enumerate(best_genotype):
            if long_allele is not None and allele_size == long_allele[0]:
                allele_size_cis.append(long_allele[1])
                continue

            supported_sizes = [allele_size]
            for other_size in candidate_allele_sizes:
                genotype = tuple(sorted(best_genotype[:i] + (other_size,) + best_genotype[i+1:]))
                if self.compute_log_likelihood(genotype) >= best_log_likelihood - LOG_LIKELIHOOD_CI_DELTA:
                    supported_sizes.append(other_size)
            allele_size_cis.append((min(supported_sizes), max(supported_sizes)))

        return RepeatGenotype(self._repeat_unit_len, list(best_genotype), allele_size_cis)
