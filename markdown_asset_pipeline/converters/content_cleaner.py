"""Clean-up pass for markdown imported from rich-text editors."""

from typing import List, Tuple

# Inline-code backticks left around <font> fragments by editor exports
FONT_TAG_REPLACEMENTS: List[Tuple[str, str]] = [
    ("`**<font ", "**<font "),
    ("/font>**`", "/font>**"),
    ("`<font ", "<font "),
    ("/font>`", "/font>"),
]


def clean_markdown_content(content: str) -> str:
    """
    Remove stray backticks wrapped around ``<font>`` HTML fragments.

    Args:
        content: Markdown text

    Returns:
        Cleaned markdown text
    """
    if not content:
        return content

    for old, new in FONT_TAG_REPLACEMENTS:
        content = content.replace(old, new)

    return content


__all__ = ['clean_markdown_content']
