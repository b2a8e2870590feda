"""Sparse table of counts keyed by the number of repeat units. Used to summarize how many reads of each type support a
given repeat size.
"""

import collections


class CountTable:
    """Maps non-negative integers (eg. repeat sizes in repeat units) to the number of times each was observed"""

    def __init__(self, counts=None):
        self._counts = collections.defaultdict(int)
        if counts:
            for element, count in dict(counts).items():
                self.set_count_of(element, count)

    def increment_count_of(self, element):
        if element < 0:
            raise ValueError(f"Count table elements must be non-negative: {element}")
        self._counts[element] += 1

    def set_count_of(self, element, count):
        if element < 0 or count < 0:
            raise ValueError(f"Invalid count table entry: ({element}, {count})")

        if count == 0:
            self._counts.pop(element, None)
        else:
            self._counts[element] = count

    def count_of(self, element):
        return self._counts.get(element, 0)

    def get_elements_with_nonzero_counts(self):
        """Returns a sorted list of elements that have a count > 0"""
        return sorted(element for element, count in self._counts.items() if count > 0)

    def total_count(self):
        return sum(self._counts.values())

    def items(self):
        return sorted(self._counts.items())

    def copy(self):
        return CountTable(self._counts)

    def __eq__(self, other):
        return isinstance(other, CountTable) and dict(self._counts) == dict(other._counts)

    def __bool__(self):
        return any(count > 0 for count in self._counts.values())

    def __str__(self):
        return encode_count_table(self)

    def __repr__(self):
        return f"CountTable({dict(self.items())})"


def collapse_top_elements(count_table, upper_bound):
    """Returns a copy of the given table where the counts of all elements above the upper bound are added to the
    count of the upper bound. The input table is not modified.

    Args:
        count_table (CountTable): the table to collapse.
        upper_bound (int): the largest element that may appear in the output table.

    Return:
        CountTable: the collapsed table.
    """
    collapsed_table = CountTable()
    for element, count in count_table.items():
        if element > upper_bound:
            element = upper_bound
        collapsed_table.set_count_of(element, collapsed_table.count_of(element) + count)

    return collapsed_table


def encode_count_table(count_table):
    """Returns the table in ExpansionHunter's json format. For example: "(2, 1), (3, 48), (6, 1)" or "()" """
    if not count_table:
        return "()"

    return ", ".join(f"({element}, {count})" for element, count in count_table.items())
