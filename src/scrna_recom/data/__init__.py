"""Sample manifest loading."""

from scrna_recom.data.manifest import (
    ManifestEntry,
    load_sample,
    merge_file_data,
    read_manifest,
    read_sample_file,
)

__all__ = [
    "ManifestEntry",
    "load_sample",
    "merge_file_data",
    "read_manifest",
    "read_sample_file",
]
