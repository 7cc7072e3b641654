"""Supported-file filtering used before files are sent for analysis.

Maps filenames to a language tag from a fixed extension table and decides
which discovered files are eligible: leaf files with a known language and a
size strictly below the ceiling.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from app.agents.schemas import FileDescriptor, FileKind

MAX_FILE_SIZE = 1024 * 1024

SUPPORTED_LANGUAGES: Dict[str, List[str]] = {
    "python": [".py", ".pyw"],
    "javascript": [".js", ".jsx", ".mjs", ".cjs"],
    "typescript": [".ts", ".tsx"],
    "java": [".java"],
    "cpp": [".cpp", ".cxx", ".cc", ".c++", ".hpp", ".hxx", ".h++", ".c", ".h"],
}

_EXTENSION_TO_LANGUAGE: Dict[str, str] = {
    ext: lang for lang, extensions in SUPPORTED_LANGUAGES.items() for ext in extensions
}


def language_for(filename: str) -> Optional[str]:
    """Return the language tag for `filename`, or None if it is unsupported.

    Only the final extension counts, compared case-insensitively, so
    `bundle.min.JS` is javascript and `Makefile` is unsupported.
    """
    name = filename.rsplit("/", 1)[-1]
    if "." not in name:
        return None
    ext = "." + name.rsplit(".", 1)[-1].lower()
    return _EXTENSION_TO_LANGUAGE.get(ext)


def is_eligible(file: FileDescriptor, max_size: int = MAX_FILE_SIZE) -> bool:
    return (
        file.kind == FileKind.FILE
        and language_for(file.name) is not None
        and file.size < max_size
    )


def filter_supported(files: Iterable[FileDescriptor], max_size: int = MAX_FILE_SIZE) -> List[FileDescriptor]:
    """Keep the eligible files, in discovery order."""
    return [f for f in files if is_eligible(f, max_size)]
