import gzip
import logging
import simplejson as json


def export_json(json_data, local_output_path):
    """Utility function for writing a json data structure to a file.

    Args:
        json_data (dict or list): The .json structure to write out.
        local_output_path (str): Local output path (where to write the json data). If it ends in ".gz", the file
            will be gzipped.
    """

    logging.info(f"Writing {local_output_path}")
    open_file = gzip.open if local_output_path.endswith(".gz") else open
    with open_file(local_output_path, "wt") as f:
        json.dump(json_data, f, indent=4, ensure_ascii=True, allow_nan=False)
