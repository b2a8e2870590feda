import gzip
import ijson


def parse_interval(interval_string):
    """Parses interval string like "chr1:12345-54321" and returns 3-tuple (chrom, start, end)"""

    try:
        tokens = interval_string.split(":")
        chrom = ":".join(tokens[:-1])  # some super-contig names have : in them
        start, end = map(int, tokens[-1].split("-"))
    except Exception as e:
        raise ValueError(f"Unable to parse interval: '{interval_string}': {e}")

    if not chrom:
        raise ValueError(f"Unable to parse interval: '{interval_string}': chromosome not specified")

    return chrom, start, end


def get_json_iterator(path_or_content, is_gzipped=False):
    """Returns an ijson iterator over the records of a json list, without loading the whole file into memory.

    Args:
        path_or_content (str or bytes): a file path or the json bytes.
        is_gzipped (bool): whether the content is gzipped.
    """

    if isinstance(path_or_content, bytes):
        if is_gzipped:
            path_or_content = gzip.decompress(path_or_content)
        return ijson.items(path_or_content, "item", use_float=True)

    if is_gzipped:
        f = gzip.open(path_or_content, "rb")
    else:
        f = open(path_or_content, "rb")

    return _iterate_and_close(f)


def _iterate_and_close(f):
    with f:
        yield from ijson.items(f, "item", use_float=True)
