"""Data loading package for the Cardiac Services Directory."""

from .ingestion import (
    DirectoryDataError,
    DirectoryDataLoader,
    load_directory_bytes,
    load_directory_data,
    refresh_data_cache,
)
from .io_utils import load_dataframe

__all__ = [
    "DirectoryDataError",
    "DirectoryDataLoader",
    "load_dataframe",
    "load_directory_bytes",
    "load_directory_data",
    "refresh_data_cache",
]
