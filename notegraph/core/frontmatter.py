"""YAML frontmatter parsing for markdown notes."""

from typing import Any, Dict, Tuple

import yaml


def parse_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """Parse YAML frontmatter from markdown content.

    Frontmatter is enclosed between --- markers at the start of the file:
    ```
    ---
    title: Lease renewal
    date: 2024-01-15
    ---

    # Markdown content
    ```

    Args:
        content: Full markdown file content

    Returns:
        Tuple of (frontmatter_dict, body).
        If no frontmatter is found or it does not parse to a mapping,
        returns ({}, original_content).
    """
    content = content.replace("\r\n", "\n")
    if not content.startswith("---\n"):
        return {}, content

    end = content.find("\n---", 3)
    if end == -1:
        return {}, content

    yaml_content = content[4:end]
    body = content[end + 4 :].lstrip("\n")

    try:
        meta = yaml.safe_load(yaml_content)
    except yaml.YAMLError:
        return {}, content

    if meta is None:
        return {}, body
    if not isinstance(meta, dict):
        return {}, content
    return meta, body
