"""Sequence graph representation of a repeat locus. For a simple STR locus like "(CAG)*" the graph has 3 nodes:

    0: left flank  -->  1: repeat unit (with a self loop)  -->  2: right flank

plus an edge from the left flank directly to the right flank to represent alleles with 0 copies of the repeat unit.
Node ids are assigned in topological order, so nodes upstream of the repeat node have smaller ids.
"""

import re

LOCUS_STRUCTURE_REGEXP = re.compile(r"^[(]([ACGTN]+)[)][*+]$")

LEFT_FLANK_NODE_ID = 0
REPEAT_NODE_ID = 1
RIGHT_FLANK_NODE_ID = 2


class LocusGraph:

    def __init__(self, graph_id, node_sequences, edges):
        """Constructor.

        Args:
            graph_id (str): locus id or other label used in log messages.
            node_sequences (list): nucleotide sequence of each node. The index of a sequence in this list is its node id.
            edges (iterable): 2-tuples (source node id, sink node id)
        """
        if not node_sequences:
            raise ValueError(f"{graph_id}: graph must have at least one node")

        for node_id, node_sequence in enumerate(node_sequences):
            if not node_sequence:
                raise ValueError(f"{graph_id}: node {node_id} has an empty sequence")

        self.graph_id = graph_id
        self._node_sequences = [s.upper() for s in node_sequences]
        self._edges = set()
        for source_node_id, sink_node_id in edges:
            if not self.has_node(source_node_id) or not self.has_node(sink_node_id):
                raise ValueError(f"{graph_id}: edge ({source_node_id}, {sink_node_id}) refers to an unknown node")
            if sink_node_id < source_node_id:
                raise ValueError(f"{graph_id}: edge ({source_node_id}, {sink_node_id}) is not in topological order")
            self._edges.add((source_node_id, sink_node_id))

    @property
    def num_nodes(self):
        return len(self._node_sequences)

    def has_node(self, node_id):
        return 0 <= node_id < len(self._node_sequences)

    def node_seq(self, node_id):
        return self._node_sequences[node_id]

    def node_length(self, node_id):
        return len(self._node_sequences[node_id])

    def has_edge(self, source_node_id, sink_node_id):
        return (source_node_id, sink_node_id) in self._edges

    def __repr__(self):
        return f"LocusGraph({self.graph_id}: {self._node_sequences}, edges={sorted(self._edges)})"


def parse_locus_structure(locus_structure):
    """Takes an ExpansionHunter locus structure like "(CAG)*" and returns the repeat unit ("CAG").
    Only loci that consist of a single repeat are supported.
    """
    match = LOCUS_STRUCTURE_REGEXP.match(locus_structure.upper())
    if not match:
        raise ValueError(f"Unsupported locus structure: '{locus_structure}'. Expected a single repeat like '(CAG)*'")

    return match.group(1)


def make_str_graph(left_flank, repeat_unit, right_flank, graph_id=""):
    """Builds the 3-node graph for a single STR locus"""

    return LocusGraph(
        graph_id,
        [left_flank, repeat_unit, right_flank],
        [
            (LEFT_FLANK_NODE_ID, REPEAT_NODE_ID),
            (LEFT_FLANK_NODE_ID, RIGHT_FLANK_NODE_ID),
            (REPEAT_NODE_ID, REPEAT_NODE_ID),
            (REPEAT_NODE_ID, RIGHT_FLANK_NODE_ID),
        ],
    )
