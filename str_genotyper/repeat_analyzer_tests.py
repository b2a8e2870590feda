import re
import unittest
from unittest import mock

from str_genotyper.alignment_classifier import SPANS_REPEAT, FLANKS_REPEAT, INSIDE_REPEAT, OUTSIDE_REPEAT
from str_genotyper.graph_alignment import decode_graph_alignment
from str_genotyper.locus_graph import make_str_graph, REPEAT_NODE_ID
from str_genotyper.locus_stats import LocusStats, HAPLOID, DIPLOID
from str_genotyper.repeat_analyzer import RepeatAnalyzer, GenotyperParams, Read, check_if_alignment_is_confident, \
    generate_candidate_allele_sizes, LOW_DEPTH_FILTER
from str_genotyper.repeat_genotyper import RepeatGenotype
from str_genotyper.utils.count_table import CountTable

LEFT_FLANK = "ATTCGGTACCGATGACTTAG"
RIGHT_FLANK = "GGTCTTACAGTTCAGGACTA"


def spanning_encoding(num_units, left_matches=10, right_matches=10):
    return f"0[{left_matches}M]" + "1[3M]" * num_units + f"2[{right_matches}M]"


def left_flanking_encoding(num_units):
    return "0[10M]" + "1[3M]" * num_units


def right_flanking_encoding(num_units):
    return "1[3M]" * num_units + "2[10M]"


def inrepeat_encoding(num_units):
    return "1[3M]" * num_units


class RepeatAnalyzerTests(unittest.TestCase):

    def setUp(self):
        self.graph = make_str_graph(LEFT_FLANK, "CAG", RIGHT_FLANK, graph_id="TEST_LOCUS")
        self.logger = mock.Mock()
        self.analyzer = self._create_analyzer()
        self._read_counter = 0

    def _create_analyzer(self, genotyper_params=None):
        return RepeatAnalyzer("TEST_LOCUS", self.graph, REPEAT_NODE_ID, genotyper_params, logger=self.logger)

    def _alignment(self, encoding):
        # alignments that start in the left flank end at the left flank's last base
        first_node_start = 0
        left_flank_match = re.match(r"0\[(\d+)M\]", encoding)
        if left_flank_match:
            first_node_start = len(LEFT_FLANK) - int(left_flank_match.group(1))

        return decode_graph_alignment(first_node_start, encoding, self.graph)

    def _process_mates(self, read_encoding, mate_encoding, analyzer=None):
        self._read_counter += 1
        (analyzer or self.analyzer).process_mates(
            Read(f"read{self._read_counter}/1"), self._alignment(read_encoding),
            Read(f"read{self._read_counter}/2"), self._alignment(mate_encoding))

    def test_classify_read_alignment(self):
        for encoding, expected_type, expected_units in [
            (spanning_encoding(5), SPANS_REPEAT, 5),
            (spanning_encoding(0), SPANS_REPEAT, 0),
            (left_flanking_encoding(8), FLANKS_REPEAT, 8),
            (right_flanking_encoding(4), FLANKS_REPEAT, 4),
            (inrepeat_encoding(10), INSIDE_REPEAT, 10),
            ("0[10M]", OUTSIDE_REPEAT, 0),
        ]:
            alignment_stats = self.analyzer.classify_read_alignment(self._alignment(encoding))
            self.assertEqual(alignment_stats.canonical_alignment_type, expected_type, encoding)
            self.assertEqual(alignment_stats.num_repeat_units_overlapped, expected_units, encoding)
            self.assertEqual(alignment_stats.num_repeat_units_spanned, expected_units, encoding)

    def test_partial_repeat_units_are_not_counted(self):
        alignment = decode_graph_alignment(1, "1[2M]1[3M]1[3M]1[1M]", self.graph)
        alignment_stats = self.analyzer.classify_read_alignment(alignment)
        self.assertEqual(alignment_stats.canonical_alignment_type, INSIDE_REPEAT)
        self.assertEqual(alignment_stats.num_repeat_units_spanned, 2)

    def test_check_if_alignment_is_confident(self):
        def is_confident(encoding):
            alignment = self._alignment(encoding)
            return check_if_alignment_is_confident(
                REPEAT_NODE_ID, alignment, self.analyzer.classify_read_alignment(alignment))

        self.assertTrue(is_confident(spanning_encoding(5)))
        self.assertTrue(is_confident(left_flanking_encoding(8)))
        self.assertTrue(is_confident(right_flanking_encoding(8)))
        self.assertTrue(is_confident(inrepeat_encoding(10)))
        self.assertTrue(is_confident("0[10M]"))

        # spanning reads need good alignments over both flanks
        self.assertFalse(is_confident(spanning_encoding(10, right_matches=2)))
        self.assertFalse(is_confident(spanning_encoding(10, left_matches=3)))

        # flanking reads need a good alignment over one flank
        self.assertFalse(is_confident("0[4M]" + "1[3M]" * 8))

        # too many mismatches
        self.assertFalse(is_confident("0[10M]" + "1[3X]" * 5 + "2[10M]"))

    def test_spanning_read_increments_spanning_table(self):
        self._process_mates(spanning_encoding(5), spanning_encoding(5))
        self._process_mates(spanning_encoding(7), left_flanking_encoding(9))

        findings = self.analyzer.analyze(LocusStats(0, 0, DIPLOID))
        self.assertEqual(findings.counts_of_spanning_reads, CountTable({5: 2, 7: 1}))
        self.assertEqual(findings.counts_of_flanking_reads, CountTable({9: 1}))
        self.assertEqual(findings.counts_of_inrepeat_reads, CountTable())

    def test_reads_that_are_not_confident_are_ignored(self):
        self._process_mates(spanning_encoding(10, right_matches=2), "0[4M]" + "1[3M]" * 8)

        findings = self.analyzer.analyze(LocusStats(0, 0, DIPLOID))
        self.assertFalse(findings.counts_of_spanning_reads)
        self.assertFalse(findings.counts_of_flanking_reads)
        self.assertEqual(self.logger.debug.call_count, 2)
        self.assertIn("Could not confidently align read1/1", self.logger.debug.call_args_list[0][0][0])

    def test_debug_message_includes_read_sequence(self):
        sequence = "CAG" * 8
        self.analyzer.process_mates(
            Read("bad/1", sequence), self._alignment("0[4M]" + "1[3M]" * 8),
            Read("good/2", sequence), self._alignment(inrepeat_encoding(8)))

        message = self.logger.debug.call_args_list[0][0][0]
        self.assertIn("Could not confidently align bad/1", message)
        self.assertIn("0[4M]1[3M]", message)
        self.assertIn(sequence, message)

    def test_outside_repeat_reads_are_not_counted(self):
        self._process_mates("0[10M]", "0[10M]")
        findings = self.analyzer.analyze(LocusStats(0, 0, DIPLOID))
        self.assertFalse(findings.counts_of_spanning_reads)
        self.assertFalse(findings.counts_of_flanking_reads)
        self.assertFalse(findings.counts_of_inrepeat_reads)

    def test_count_of_inrepeat_read_pairs(self):
        self._process_mates(inrepeat_encoding(10), inrepeat_encoding(11))
        self.assertEqual(self.analyzer.count_of_inrepeat_read_pairs, 1)

        self._process_mates(inrepeat_encoding(10), left_flanking_encoding(9))
        self.assertEqual(self.analyzer.count_of_inrepeat_read_pairs, 1)

        self._process_mates(inrepeat_encoding(12), inrepeat_encoding(12))
        self.assertEqual(self.analyzer.count_of_inrepeat_read_pairs, 2)

        findings = self.analyzer.analyze(LocusStats(0, 0, DIPLOID))
        self.assertEqual(findings.counts_of_inrepeat_reads, CountTable({10: 2, 11: 1, 12: 2}))

    def test_inrepeat_read_pair_with_mate_that_is_not_confident(self):
        self._process_mates(inrepeat_encoding(10), "1[3X]" * 10)
        self.assertEqual(self.analyzer.count_of_inrepeat_read_pairs, 1)

        findings = self.analyzer.analyze(LocusStats(0, 0, DIPLOID))
        self.assertEqual(findings.counts_of_inrepeat_reads, CountTable({10: 1}))

        self._process_mates("1[3X]" * 10, "1[3X]" * 10)
        self.assertEqual(self.analyzer.count_of_inrepeat_read_pairs, 2)
        findings = self.analyzer.analyze(LocusStats(0, 0, DIPLOID))
        self.assertEqual(findings.counts_of_inrepeat_reads, CountTable({10: 1}))

    def test_read_pair_order_does_not_affect_tables(self):
        read_pairs = [
            (spanning_encoding(5), spanning_encoding(6)),
            (left_flanking_encoding(8), right_flanking_encoding(3)),
            (inrepeat_encoding(10), inrepeat_encoding(10)),
            (spanning_encoding(5), left_flanking_encoding(2)),
        ]

        analyzer1 = self._create_analyzer()
        analyzer2 = self._create_analyzer()
        for read_encoding, mate_encoding in read_pairs:
            self._process_mates(read_encoding, mate_encoding, analyzer=analyzer1)
        for read_encoding, mate_encoding in reversed(read_pairs):
            self._process_mates(mate_encoding, read_encoding, analyzer=analyzer2)

        locus_stats = LocusStats(35, 30, DIPLOID)
        findings1 = analyzer1.analyze(locus_stats)
        findings2 = analyzer2.analyze(locus_stats)
        self.assertEqual(findings1.counts_of_spanning_reads, findings2.counts_of_spanning_reads)
        self.assertEqual(findings1.counts_of_flanking_reads, findings2.counts_of_flanking_reads)
        self.assertEqual(findings1.counts_of_inrepeat_reads, findings2.counts_of_inrepeat_reads)
        self.assertEqual(findings1.optional_genotype, findings2.optional_genotype)
        self.assertEqual(findings1.genotype_filters, findings2.genotype_filters)

    def test_analyze_does_not_change_accumulated_counts(self):
        for _ in range(5):
            self._process_mates(spanning_encoding(5), left_flanking_encoding(20))

        locus_stats = LocusStats(36, 30, DIPLOID)
        findings1 = self.analyzer.analyze(locus_stats)
        findings2 = self.analyzer.analyze(locus_stats)

        self.assertEqual(findings1.counts_of_flanking_reads, CountTable({12: 5}))
        self.assertEqual(findings1.counts_of_flanking_reads, findings2.counts_of_flanking_reads)
        self.assertEqual(findings1.counts_of_spanning_reads, findings2.counts_of_spanning_reads)
        self.assertEqual(findings1.optional_genotype, findings2.optional_genotype)
        self.assertEqual(findings1.genotype_filters, findings2.genotype_filters)

        # the uncollapsed counts are still available
        findings3 = self.analyzer.analyze(LocusStats(0, 30, DIPLOID))
        self.assertEqual(findings3.counts_of_flanking_reads, CountTable({20: 5}))

    def test_summarize_read_counts(self):
        self._process_mates(spanning_encoding(5), left_flanking_encoding(20))

        findings = self.analyzer.summarize_read_counts(0)
        self.assertEqual(findings.allele_count, 0)
        self.assertIsNone(findings.optional_genotype)
        self.assertEqual(findings.genotype_filters, {LOW_DEPTH_FILTER})
        self.assertEqual(findings.counts_of_spanning_reads, CountTable({5: 1}))
        self.assertEqual(findings.counts_of_flanking_reads, CountTable({20: 1}))

        findings.counts_of_spanning_reads.increment_count_of(5)
        self.assertEqual(self.analyzer.summarize_read_counts(0).counts_of_spanning_reads, CountTable({5: 1}))

    def test_collapse_to_max_num_units_in_read(self):
        self._process_mates(left_flanking_encoding(15), spanning_encoding(4))

        findings = self.analyzer.analyze(LocusStats(36, 30, DIPLOID))
        self.assertEqual(findings.counts_of_flanking_reads, CountTable({12: 1}))
        self.assertEqual(findings.counts_of_spanning_reads, CountTable({4: 1}))

    def test_low_depth(self):
        for _ in range(10):
            self._process_mates(spanning_encoding(5), spanning_encoding(8))

        findings = self.analyzer.analyze(LocusStats(35, 9.5, DIPLOID))
        self.assertEqual(findings.genotype_filters, {LOW_DEPTH_FILTER})
        self.assertIsNone(findings.optional_genotype)
        self.assertEqual(findings.allele_count, DIPLOID)

        analyzer = self._create_analyzer(GenotyperParams(min_locus_coverage=20))
        findings = analyzer.analyze(LocusStats(35, 19, HAPLOID))
        self.assertEqual(findings.genotype_filters, {LOW_DEPTH_FILTER})
        self.assertIsNone(findings.optional_genotype)

    def test_zero_read_length(self):
        self._process_mates(spanning_encoding(5), left_flanking_encoding(20))
        self._process_mates(inrepeat_encoding(14), inrepeat_encoding(15))

        findings = self.analyzer.analyze(LocusStats(0, 100, DIPLOID))
        self.assertEqual(findings.genotype_filters, {LOW_DEPTH_FILTER})
        self.assertIsNone(findings.optional_genotype)
        self.assertEqual(findings.counts_of_spanning_reads, CountTable({5: 1}))
        self.assertEqual(findings.counts_of_flanking_reads, CountTable({20: 1}))
        self.assertEqual(findings.counts_of_inrepeat_reads, CountTable({14: 1, 15: 1}))

    def test_heterozygous_genotype(self):
        for _ in range(10):
            self._process_mates(spanning_encoding(5), spanning_encoding(8))

        findings = self.analyzer.analyze(LocusStats(35, 30, DIPLOID))
        self.assertEqual(findings.genotype_filters, set())
        self.assertEqual(findings.optional_genotype.genotype_string(), "5/8")
        self.assertEqual(findings.optional_genotype.confidence_interval_string(), "5-5/8-8")

    def test_only_flanking_reads(self):
        for _ in range(6):
            self._process_mates(left_flanking_encoding(8), left_flanking_encoding(6))

        findings = self.analyzer.analyze(LocusStats(38, 20, DIPLOID))
        candidate_allele_sizes = generate_candidate_allele_sizes(
            findings.counts_of_spanning_reads, findings.counts_of_flanking_reads, findings.counts_of_inrepeat_reads)
        self.assertEqual(candidate_allele_sizes, [8])
        self.assertEqual(findings.optional_genotype.genotype_string(), "8/8")

        # no reads cross the right breakpoint
        self.assertEqual(findings.genotype_filters, {LOW_DEPTH_FILTER})

    @mock.patch("str_genotyper.repeat_analyzer.RepeatGenotyper")
    def test_breakpoint_filter_is_applied_to_genotyped_loci(self, mock_repeat_genotyper):
        genotype = RepeatGenotype(3, [6, 6], [(6, 6), (6, 6)])
        mock_repeat_genotyper.return_value.genotype_repeat.return_value = genotype

        for _ in range(10):
            self._process_mates(left_flanking_encoding(6), inrepeat_encoding(6))

        findings = self.analyzer.analyze(LocusStats(35, 30, DIPLOID))
        self.assertEqual(findings.optional_genotype, genotype)
        self.assertEqual(findings.genotype_filters, {LOW_DEPTH_FILTER})

        args = mock_repeat_genotyper.call_args[0]
        self.assertEqual(args[0], 15)   # haplotype depth
        self.assertEqual(args[1], DIPLOID)
        self.assertEqual(args[2], 3)    # repeat unit length
        self.assertEqual(args[3], 12)   # max number of repeat units in a read
        self.assertEqual(args[4], 0.97)
        self.assertEqual(args[5], CountTable())
        self.assertEqual(args[6], CountTable({6: 10}))
        self.assertEqual(args[7], CountTable({6: 10}))
        self.assertEqual(args[8], 0)
        mock_repeat_genotyper.return_value.genotype_repeat.assert_called_once_with([6])

    @mock.patch("str_genotyper.repeat_analyzer.RepeatGenotyper")
    def test_haploid_locus_parameters(self, mock_repeat_genotyper):
        mock_repeat_genotyper.return_value.genotype_repeat.return_value = None

        analyzer = self._create_analyzer(GenotyperParams(min_breakpoint_spanning_reads=2))
        for _ in range(10):
            self._process_mates(left_flanking_encoding(6), inrepeat_encoding(6), analyzer=analyzer)

        # haploid loci need half as many reads crossing each breakpoint
        findings = analyzer.analyze(LocusStats(35, 30, HAPLOID))
        self.assertEqual(mock_repeat_genotyper.call_args[0][0], 30)
        self.assertEqual(findings.genotype_filters, {LOW_DEPTH_FILTER})
        self.assertIsNone(findings.optional_genotype)

        analyzer = self._create_analyzer(GenotyperParams(min_breakpoint_spanning_reads=1))
        self._process_mates(inrepeat_encoding(6), inrepeat_encoding(6), analyzer=analyzer)
        findings = analyzer.analyze(LocusStats(35, 30, HAPLOID))
        self.assertEqual(findings.genotype_filters, set())

    def test_invalid_repeat_node(self):
        self.assertRaises(ValueError, lambda: RepeatAnalyzer("TEST_LOCUS", self.graph, 5))


class CandidateAlleleSizesTests(unittest.TestCase):

    def test_longest_flanking_read_is_added(self):
        self.assertEqual(
            generate_candidate_allele_sizes(CountTable({5: 2}), CountTable({8: 1}), CountTable()),
            [5, 8])

    def test_shorter_flanking_reads_are_not_added(self):
        self.assertEqual(
            generate_candidate_allele_sizes(CountTable({10: 3}), CountTable({4: 1}), CountTable({6: 1})),
            [10])

    def test_longest_inrepeat_read_is_added(self):
        self.assertEqual(
            generate_candidate_allele_sizes(CountTable({3: 1, 4: 5}), CountTable({9: 1}), CountTable({12: 2})),
            [3, 4, 12])

    def test_empty_tables(self):
        self.assertEqual(generate_candidate_allele_sizes(CountTable(), CountTable(), CountTable()), [])
        self.assertEqual(generate_candidate_allele_sizes(CountTable(), CountTable({7: 2}), CountTable()), [7])
