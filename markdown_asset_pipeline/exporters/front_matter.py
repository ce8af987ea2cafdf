"""Descriptive YAML front matter for exported documents."""

from datetime import datetime
from typing import Optional

from ..models import Document

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'

# Characters that force a value into double quotes
YAML_SPECIAL_CHARS = ':#"\''
YAML_FLOW_CHARS = ',[]{}'
YAML_LEADING_INDICATORS = '-?[]{},&*!|>%@`'


def escape_yaml_value(value: Optional[str], in_flow: bool = False) -> str:
    """
    Quote a scalar when it contains YAML-significant characters.

    Args:
        value: Raw value
        in_flow: Value sits inside a ``[...]`` flow sequence

    Returns:
        The value as-is, or wrapped in double quotes with ``\\`` and ``"`` escaped
    """
    value = '' if value is None else str(value)
    needs_quotes = (
        value == ''
        or any(ch in value for ch in YAML_SPECIAL_CHARS)
        or (in_flow and any(ch in value for ch in YAML_FLOW_CHARS))
        or value[0] in YAML_LEADING_INDICATORS
        or value != value.strip()
        or '\n' in value
    )
    if not needs_quotes:
        return value

    escaped = value.replace('\\', '\\\\').replace('"', '\\"').replace('\n', '\\n')
    return f'"{escaped}"'


def format_timestamp(value: Optional[datetime]) -> str:
    return value.strftime(TIMESTAMP_FORMAT) if value else ''


def generate_front_matter(document: Document) -> str:
    """
    Build the front matter block for a document.

    Args:
        document: Document snapshot

    Returns:
        Block delimited by ``---`` lines and followed by a blank line
    """
    lines = [
        '---',
        f"title: {escape_yaml_value(document.title)}",
        f"author: {escape_yaml_value(document.author)}",
        f"category: {escape_yaml_value(document.category)}",
        f"created_at: {format_timestamp(document.created_at)}",
        f"updated_at: {format_timestamp(document.updated_at)}",
        f"status: {document.status}",
    ]

    if document.tags:
        tags = ', '.join(escape_yaml_value(tag, in_flow=True) for tag in document.tags)
        lines.append(f"tags: [{tags}]")

    lines.append('---')
    return '\n'.join(lines) + '\n\n'


__all__ = ['TIMESTAMP_FORMAT', 'escape_yaml_value', 'format_timestamp', 'generate_front_matter']
