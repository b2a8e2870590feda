"""Keeps track of how many reads cross each breakpoint of a variant (the junctions between the flanks and the
variant nodes)
"""


class GraphVariantAlignmentStats:

    def __init__(self, num_reads_spanning_left_breakpoint, num_reads_spanning_right_breakpoint):
        self._num_reads_spanning_left_breakpoint = num_reads_spanning_left_breakpoint
        self._num_reads_spanning_right_breakpoint = num_reads_spanning_right_breakpoint

    @property
    def num_reads_spanning_left_breakpoint(self):
        return self._num_reads_spanning_left_breakpoint

    @property
    def num_reads_spanning_right_breakpoint(self):
        return self._num_reads_spanning_right_breakpoint

    def __repr__(self):
        return (f"GraphVariantAlignmentStats(left={self._num_reads_spanning_left_breakpoint}, "
                f"right={self._num_reads_spanning_right_breakpoint})")


class GraphVariantAlignmentStatsCalculator:

    def __init__(self, variant_node_ids):
        """Constructor.

        Args:
            variant_node_ids (list): ids of the nodes that make up the variant. For a repeat, this is just the repeat
                node id.
        """
        if not variant_node_ids:
            raise ValueError("variant_node_ids must not be empty")

        self._first_variant_node_id = min(variant_node_ids)
        self._last_variant_node_id = max(variant_node_ids)
        self._num_reads_spanning_left_breakpoint = 0
        self._num_reads_spanning_right_breakpoint = 0

    def _spans_left_breakpoint(self, path):
        return any(
            source < self._first_variant_node_id <= sink for source, sink in zip(path, path[1:]))

    def _spans_right_breakpoint(self, path):
        return any(
            source <= self._last_variant_node_id < sink for source, sink in zip(path, path[1:]))

    def inspect(self, alignment):
        path = alignment.path
        if self._spans_left_breakpoint(path):
            self._num_reads_spanning_left_breakpoint += 1
        if self._spans_right_breakpoint(path):
            self._num_reads_spanning_right_breakpoint += 1

    def get_stats(self):
        return GraphVariantAlignmentStats(
            self._num_reads_spanning_left_breakpoint, self._num_reads_spanning_right_breakpoint)
