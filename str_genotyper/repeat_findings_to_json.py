"""Converts RepeatFindings to the json format that ExpansionHunter uses for its output:

  "LocusResults": {
        "chr12-57610122-57610131-GCA": {
          "AlleleCount": 2,
          "Coverage": 50.469442942130875,
          "LocusId": "chr12-57610122-57610131-GCA",
          "ReadLength": 151,
          "Variants": {
            "chr12-57610122-57610131-GCA": {
              "CountsOfFlankingReads": "(1, 1), (2, 4)",
              "CountsOfInrepeatReads": "()",
              "CountsOfSpanningReads": "(2, 1), (3, 48), (6, 1)",
              "Filter": "PASS",
              "Genotype": "3/3",
              "GenotypeConfidenceInterval": "3-3/3-3",
              "ReferenceRegion": "chr12:57610122-57610131",
              "RepeatUnit": "GCA",
              "VariantId": "chr12-57610122-57610131-GCA",
              "VariantType": "Repeat"
            }
          }
        },
"""

from str_genotyper.utils.count_table import encode_count_table

PASS_FILTER = "PASS"


def encode_genotype_filters(genotype_filters):
    if not genotype_filters:
        return PASS_FILTER

    return ";".join(sorted(genotype_filters))


def convert_repeat_findings_to_json_record(variant_id, reference_region, repeat_unit, repeat_findings):
    """Returns the "Variants" entry for a single repeat"""

    record = {
        "CountsOfFlankingReads": encode_count_table(repeat_findings.counts_of_flanking_reads),
        "CountsOfInrepeatReads": encode_count_table(repeat_findings.counts_of_inrepeat_reads),
        "CountsOfSpanningReads": encode_count_table(repeat_findings.counts_of_spanning_reads),
        "Filter": encode_genotype_filters(repeat_findings.genotype_filters),
        "ReferenceRegion": reference_region,
        "RepeatUnit": repeat_unit,
        "VariantId": variant_id,
        "VariantType": "Repeat",
    }

    genotype = repeat_findings.optional_genotype
    if genotype is not None:
        record["Genotype"] = genotype.genotype_string()
        record["GenotypeConfidenceInterval"] = genotype.confidence_interval_string()

    return record


def convert_locus_results_to_json_record(locus_id, mean_read_length, depth, allele_count, variant_records):
    """Returns the "LocusResults" entry for a locus.

    Args:
        locus_id (str): locus id
        mean_read_length (float): mean length of reads aligned to the locus
        depth (float): read depth over the flanks
        allele_count (int): number of alleles expected at the locus. 0 if the locus is absent from the sample (eg. chrY
            in a female sample).
        variant_records (dict): maps variant id to the record returned by convert_repeat_findings_to_json_record(..)
    """
    return {
        "AlleleCount": allele_count,
        "Coverage": depth,
        "LocusId": locus_id,
        "ReadLength": int(round(mean_read_length)),
        "Variants": variant_records,
    }
