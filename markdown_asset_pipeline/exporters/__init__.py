"""Export package: bundles documents and their images into a portable archive.

Package Structure:
- archive_builder: Builds the zip bundle (documents + shared images/ directory)
- front_matter: Descriptive YAML front matter prefixed to each document
- markdown_reader: Reads a directory of markdown files as Document snapshots
"""

from .archive_builder import ArchiveAssetSink, ArchiveBuilder, ArchiveFinalizeError, ArchiveWriteError
from .front_matter import escape_yaml_value, generate_front_matter
from .markdown_reader import FileDocumentStore

__all__ = [
    'ArchiveAssetSink',
    'ArchiveBuilder',
    'ArchiveFinalizeError',
    'ArchiveWriteError',
    'escape_yaml_value',
    'generate_front_matter',
    'FileDocumentStore'
]
