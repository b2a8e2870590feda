"""Alignments of reads to a LocusGraph. An alignment is a path through the graph together with the CIGAR-style
operations of the read on each node of the path. Alignments are exchanged using the ExpansionHunter encoding, where
each node on the path is written as "{node id}[{operations}]". For example, a read that starts 3bp into the left
flank, goes through 2 copies of the repeat unit, and ends 5bp into the right flank could be encoded as:

    0[7M]1[3M]1[3M]2[2M1X2M]   (with first_node_start = 3)

Operations: M = match, X = mismatch, I = insertion, D = deletion, S = soft clip.
"""

import re

NODE_ALIGNMENT_REGEXP = re.compile(r"(\d+)\[([0-9MXIDS]+)\]")
OPERATION_REGEXP = re.compile(r"(\d+)([MXIDS])")

QUERY_CONSUMING_OPERATIONS = {"M", "X", "I", "S"}
REFERENCE_CONSUMING_OPERATIONS = {"M", "X", "D"}


class NodeAlignment:
    """The part of a graph alignment that falls on a single node"""

    def __init__(self, node_id, reference_start, operations):
        self.node_id = node_id
        self.reference_start = reference_start
        self.operations = list(operations)

    def _sum_lengths(self, operation_types):
        return sum(length for length, op in self.operations if op in operation_types)

    @property
    def reference_length(self):
        return self._sum_lengths(REFERENCE_CONSUMING_OPERATIONS)

    @property
    def reference_end(self):
        return self.reference_start + self.reference_length

    @property
    def query_length(self):
        return self._sum_lengths(QUERY_CONSUMING_OPERATIONS)

    @property
    def num_matched(self):
        return self._sum_lengths({"M"})

    @property
    def num_softclipped(self):
        return self._sum_lengths({"S"})

    def __str__(self):
        return f"{self.node_id}[" + "".join(f"{length}{op}" for length, op in self.operations) + "]"


class GraphAlignment:

    def __init__(self, node_alignments):
        if not node_alignments:
            raise ValueError("A graph alignment must contain at least one node alignment")

        self._node_alignments = list(node_alignments)

    @property
    def node_alignments(self):
        return self._node_alignments

    @property
    def path(self):
        return [node_alignment.node_id for node_alignment in self._node_alignments]

    @property
    def first_node_start(self):
        return self._node_alignments[0].reference_start

    @property
    def query_length(self):
        return sum(node_alignment.query_length for node_alignment in self._node_alignments)

    @property
    def reference_length(self):
        return sum(node_alignment.reference_length for node_alignment in self._node_alignments)

    @property
    def num_matched(self):
        return sum(node_alignment.num_matched for node_alignment in self._node_alignments)

    @property
    def front_softclip_length(self):
        length, op = self._node_alignments[0].operations[0]
        return length if op == "S" else 0

    @property
    def back_softclip_length(self):
        length, op = self._node_alignments[-1].operations[-1]
        return length if op == "S" else 0

    def __str__(self):
        return "".join(str(node_alignment) for node_alignment in self._node_alignments)

    def __repr__(self):
        return f"GraphAlignment({self.first_node_start}, {self})"


def _parse_operations(operations_string):
    operations = []
    position = 0
    for match in OPERATION_REGEXP.finditer(operations_string):
        if match.start() != position:
            break
        operations.append((int(match.group(1)), match.group(2)))
        position = match.end()

    if position != len(operations_string) or not operations:
        raise ValueError(f"Unable to parse operations: '{operations_string}'")

    for length, op in operations:
        if length == 0:
            raise ValueError(f"Operation with length 0 in '{operations_string}'")

    return operations


def decode_graph_alignment(first_node_start, encoding, graph):
    """Parses a graph alignment encoding like "0[7M]1[3M]2[2M1X2M]" and checks that it is consistent with the graph.

    Args:
        first_node_start (int): 0-based position within the first node where the alignment starts.
        encoding (str): the alignment encoding.
        graph (LocusGraph): the graph that the read was aligned to.

    Return:
        GraphAlignment: the parsed alignment.
    """
    node_alignments = []
    position = 0
    for match in NODE_ALIGNMENT_REGEXP.finditer(encoding):
        if match.start() != position:
            break
        position = match.end()

        node_id = int(match.group(1))
        if not graph.has_node(node_id):
            raise ValueError(f"Alignment '{encoding}' refers to node {node_id} which is not in graph {graph.graph_id}")

        reference_start = first_node_start if not node_alignments else 0
        node_alignments.append(NodeAlignment(node_id, reference_start, _parse_operations(match.group(2))))

    if position != len(encoding) or not node_alignments:
        raise ValueError(f"Unable to parse graph alignment: '{encoding}'")

    if first_node_start < 0:
        raise ValueError(f"Alignment '{encoding}' has a negative start position: {first_node_start}")

    last_index = len(node_alignments) - 1
    for i, node_alignment in enumerate(node_alignments):
        node_length = graph.node_length(node_alignment.node_id)
        if node_alignment.reference_end > node_length:
            raise ValueError(f"Alignment '{encoding}' extends past the end of node {node_alignment.node_id}")

        if i < last_index:
            next_node_id = node_alignments[i + 1].node_id
            if node_alignment.reference_end != node_length:
                raise ValueError(f"Alignment '{encoding}' leaves node {node_alignment.node_id} before its end")
            if not graph.has_edge(node_alignment.node_id, next_node_id):
                raise ValueError(f"Alignment '{encoding}' uses edge ({node_alignment.node_id}, {next_node_id}) "
                                 f"which is not in graph {graph.graph_id}")

        for j, (_, op) in enumerate(node_alignment.operations):
            is_first_operation = i == 0 and j == 0
            is_last_operation = i == last_index and j == len(node_alignment.operations) - 1
            if op == "S" and not is_first_operation and not is_last_operation:
                raise ValueError(f"Alignment '{encoding}' has a soft clip in the middle of the read")

    return GraphAlignment(node_alignments)
