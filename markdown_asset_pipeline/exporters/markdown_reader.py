"""Markdown reader exposing a directory of .md files as a document store."""

import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import yaml

from ..models import Document

FRONT_MATTER_PATTERN = re.compile(r'^(---\s*\n(.*?)\n---\s*\n)(.*)$', re.DOTALL)


class FileDocumentStore:
    """
    Reads markdown files (with optional YAML front matter) as Document snapshots.

    Bodies written back through ``update_body`` keep the file's original
    front matter block untouched.
    """

    def __init__(self, root: Path, logger: Optional[logging.Logger] = None):
        """
        Initialize the store.

        Args:
            root: Directory scanned recursively for ``*.md`` files
            logger: Logger instance
        """
        self.root = Path(root)
        self.logger = logger or logging.getLogger('markdown_asset_pipeline.exporters.markdown_reader')

        # {document_id: (path, raw front matter block)}
        self._files: Dict[Any, Tuple[Path, str]] = {}

        self.stats = {
            'files_scanned': 0,
            'files_parsed': 0,
            'files_failed': 0,
            'files_updated': 0
        }

    def iter_documents(self) -> Iterator[Document]:
        """
        Yield one Document per markdown file, sorted by path.

        Raises:
            ValueError: If the root is not a directory
        """
        if not self.root.is_dir():
            raise ValueError(f"Document directory does not exist: {self.root}")

        md_files = self._scan_markdown_files()
        self._files = {}
        self.stats['files_scanned'] = len(md_files)

        for index, file_path in enumerate(md_files, start=1):
            try:
                content = file_path.read_text(encoding='utf-8')
            except (OSError, UnicodeDecodeError) as e:
                self.logger.error(f"Failed to read {file_path}: {e}")
                self.stats['files_failed'] += 1
                continue

            header, front_matter, body = self._extract_front_matter(content)
            document = self._build_document(index, file_path, front_matter, body)
            if document.id in self._files:
                original_id = document.id
                document.id = self._free_id(index, file_path)
                self.logger.warning(
                    f"Duplicate document id {original_id} in {file_path}, using {document.id!r}"
                )

            self._files[document.id] = (file_path, header)
            self.stats['files_parsed'] += 1
            yield document

    def list_documents(self) -> List[Document]:
        return list(self.iter_documents())

    def update_body(self, document_id: Any, body: str) -> None:
        """
        Persist a new body for a document read earlier.

        Raises:
            KeyError: If the document was not read from this store
            OSError: If the file cannot be written
        """
        file_path, header = self._files[document_id]
        file_path.write_text(header + body, encoding='utf-8')
        self.stats['files_updated'] += 1
        self.logger.debug(f"Updated {file_path}")

    def _free_id(self, index: int, file_path: Path) -> Any:
        """First of file index, relative path, suffixed relative path not yet taken."""
        if index not in self._files:
            return index
        candidate = file_path.relative_to(self.root).as_posix()
        counter = 2
        while candidate in self._files:
            candidate = f"{file_path.relative_to(self.root).as_posix()}#{counter}"
            counter += 1
        return candidate

    def _scan_markdown_files(self) -> List[Path]:
        return sorted(path for path in self.root.rglob('*.md') if path.is_file())

    def _extract_front_matter(self, content: str) -> Tuple[str, Dict[str, Any], str]:
        """
        Split a file into raw front matter block, parsed front matter and body.

        Returns:
            Tuple of (header, front matter dict, body); header is empty when absent
        """
        match = FRONT_MATTER_PATTERN.match(content)
        if not match:
            return '', {}, content

        try:
            front_matter = yaml.safe_load(match.group(2))
        except yaml.YAMLError as e:
            self.logger.warning(f"Failed to parse YAML front matter: {e}")
            return '', {}, content

        if not isinstance(front_matter, dict):
            return '', {}, content

        return match.group(1), front_matter, match.group(3)

    @staticmethod
    def _build_document(index: int, file_path: Path, front_matter: Dict[str, Any], body: str) -> Document:
        modified = datetime.fromtimestamp(file_path.stat().st_mtime)
        tags = front_matter.get('tags') or []
        if not isinstance(tags, list):
            tags = [tags]

        return Document(
            id=front_matter.get('id', index),
            title=str(front_matter.get('title') or file_path.stem),
            body=body,
            author=str(front_matter.get('author') or ''),
            category=str(front_matter.get('category') or ''),
            tags=[str(tag) for tag in tags],
            created_at=_as_datetime(front_matter.get('created_at')) or modified,
            updated_at=_as_datetime(front_matter.get('updated_at')) or modified,
            status=_as_int(front_matter.get('status'))
        )


def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


__all__ = ['FileDocumentStore']
