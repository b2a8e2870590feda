"""Quality checks applied to graph alignments before they are used as evidence"""

MIN_FRACTION_OF_QUERY_NOT_CLIPPED = 0.8
MIN_FRACTION_OF_MATCHES = 0.8

MIN_FLANK_MATCHES = 8
MIN_FLANK_IDENTITY = 0.8


def passes_alignment_filters(alignment):
    """Checks that most of the read is aligned (not soft-clipped) and that the aligned part is mostly matches"""

    query_length = alignment.query_length
    if query_length == 0:
        return False

    clipped_query_length = query_length - alignment.front_softclip_length - alignment.back_softclip_length
    if clipped_query_length < MIN_FRACTION_OF_QUERY_NOT_CLIPPED * query_length:
        return False

    return alignment.num_matched >= MIN_FRACTION_OF_MATCHES * clipped_query_length


def _is_flank_alignment_good(node_alignments):
    num_matched = sum(a.num_matched for a in node_alignments)
    num_aligned_query_bases = sum(a.query_length - a.num_softclipped for a in node_alignments)
    if num_matched < MIN_FLANK_MATCHES:
        return False

    return num_matched >= MIN_FLANK_IDENTITY * num_aligned_query_bases


def is_upstream_alignment_good(node_id, alignment):
    """Checks whether the read aligns well to the sequence upstream of the given node.

    Args:
        node_id (int): id of the repeat node.
        alignment (GraphAlignment): read alignment.

    Return:
        bool: False if the alignment doesn't include any sequence upstream of the node, or if that part of the
            alignment has too few matches.
    """
    upstream_node_alignments = [a for a in alignment.node_alignments if a.node_id < node_id]
    if not upstream_node_alignments:
        return False

    return _is_flank_alignment_good(upstream_node_alignments)


def is_downstream_alignment_good(node_id, alignment):
    """Same as is_upstream_alignment_good, but for the sequence downstream of the given node"""

    downstream_node_alignments = [a for a in alignment.node_alignments if a.node_id > node_id]
    if not downstream_node_alignments:
        return False

    return _is_flank_alignment_good(downstream_node_alignments)
