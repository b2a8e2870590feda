"""Classifies graph alignments based on how they are positioned relative to the repeat node"""

SPANS_REPEAT = "SpansRepeat"
FLANKS_REPEAT = "FlanksRepeat"
INSIDE_REPEAT = "InsideRepeat"
OUTSIDE_REPEAT = "OutsideRepeat"


class AlignmentClassifier:

    def __init__(self, repeat_node_id):
        """Constructor.

        Args:
            repeat_node_id (int): id of the repeat node. Nodes with smaller ids make up the left flank and nodes with
                larger ids make up the right flank.
        """
        self.repeat_node_id = repeat_node_id

    def _node_category(self, node_id):
        if node_id < self.repeat_node_id:
            return "left"
        elif node_id > self.repeat_node_id:
            return "right"
        return "repeat"

    def classify(self, alignment):
        """Returns one of SPANS_REPEAT, FLANKS_REPEAT, INSIDE_REPEAT or OUTSIDE_REPEAT"""

        first_node = self._node_category(alignment.path[0])
        last_node = self._node_category(alignment.path[-1])

        if first_node == "left" and last_node == "right":
            return SPANS_REPEAT
        if (first_node, last_node) in (("left", "repeat"), ("repeat", "right")):
            return FLANKS_REPEAT
        if first_node == "repeat" and last_node == "repeat":
            return INSIDE_REPEAT

        return OUTSIDE_REPEAT


def count_full_overlaps(node_id, alignment, graph):
    """Returns the number of times the alignment passes through the entire sequence of the given node"""

    node_length = graph.node_length(node_id)
    count = 0
    for node_alignment in alignment.node_alignments:
        if node_alignment.node_id != node_id:
            continue
        if node_alignment.reference_start == 0 and node_alignment.reference_length == node_length:
            count += 1

    return count
