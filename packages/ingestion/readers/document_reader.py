"""
Documentation file reader.

Reads the text formats the documentation ingestion script accepts
(Markdown and plain text).
"""

import logging
import os
from typing import List, Optional

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".md", ".markdown", ".txt")


class DocumentReader:
    """Reads Markdown and plain-text documentation files."""

    def __init__(self, extensions: tuple = SUPPORTED_EXTENSIONS):
        self.extensions = tuple(ext.lower() for ext in extensions)

    def supports(self, file_path: str) -> bool:
        return os.path.splitext(file_path)[1].lower() in self.extensions

    def read(self, file_path: str) -> Optional[str]:
        """
        Read a documentation file.

        Args:
            file_path: Path to the file

        Returns:
            File content, or None if the extension is not supported

        Raises:
            RuntimeError: If the file cannot be read
        """
        if not self.supports(file_path):
            logger.warning(f"Skipping unsupported file type: {os.path.basename(file_path)}")
            return None

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                return f.read()
        except UnicodeDecodeError:
            logger.debug(f"{file_path} is not UTF-8, retrying as latin-1")
            with open(file_path, "r", encoding="latin-1") as f:
                return f.read()
        except OSError as e:
            logger.error(f"Failed to read file {file_path}: {e}")
            raise RuntimeError(f"Could not read file {os.path.basename(file_path)}: {e}") from e

    def find_documents(self, folder: str) -> List[str]:
        """All supported files under a folder, sorted for stable batch order."""
        paths = []
        for root, _dirs, files in os.walk(folder):
            for name in files:
                path = os.path.join(root, name)
                if self.supports(path):
                    paths.append(path)
        return sorted(paths)
