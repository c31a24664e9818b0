"""
Metadata extraction for documentation files.

Sources, in priority order:
- YAML front matter (``---`` delimited block at the top of the file)
- First Markdown ``# `` heading
- The file name
"""

import logging
import os
from typing import Any, Dict, Tuple

import yaml

logger = logging.getLogger(__name__)


def split_front_matter(content: str) -> Tuple[Dict[str, Any], str]:
    """
    Separate YAML front matter from the document body.

    Returns:
        (front matter mapping, body). The mapping is empty and the body is the
        whole content when there is no valid front matter.
    """
    if not content.startswith("---"):
        return {}, content

    end_marker = content.find("\n---", 3)
    if end_marker == -1:
        return {}, content

    try:
        data = yaml.safe_load(content[3:end_marker])
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse front matter: {e}")
        return {}, content

    if not isinstance(data, dict):
        return {}, content

    body = content[end_marker + len("\n---") :].lstrip("\n")
    return data, body


class MetadataExtractor:
    """Title and metadata for documentation files."""

    def __init__(self, doc_type: str = "documentation", category: str = "user-manual"):
        self.doc_type = doc_type
        self.category = category

    def extract_title(self, content: str, file_path: str) -> str:
        front_matter, body = split_front_matter(content)
        title = front_matter.get("title")
        if isinstance(title, str) and title.strip():
            return title.strip()

        for line in body.split("\n")[:10]:
            line = line.strip()
            if line.startswith("# "):
                return line[2:].strip()

        return os.path.splitext(os.path.basename(file_path))[0].replace("_", " ")

    def extract_metadata(self, content: str, file_path: str) -> Dict[str, Any]:
        """
        Build document metadata.

        Front matter fields are merged last, so they override the defaults
        (e.g. a file can declare its own ``category``).
        """
        front_matter, body = split_front_matter(content)
        metadata: Dict[str, Any] = {
            "type": self.doc_type,
            "category": self.category,
            "file_name": os.path.basename(file_path),
            "file_path": file_path,
            "line_count": len(body.split("\n")),
            "word_count": len(body.split()),
        }
        metadata.update(front_matter)
        return metadata
