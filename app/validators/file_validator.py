"""
app/validators/file_validator.py

File-level checks performed before any decoding or parsing.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
from typing import Any

ALLOWED_EXTENSIONS: tuple[str, ...] = (".csv", ".tsv", ".txt")

ISSUE_UNSUPPORTED_EXTENSION = "unsupported_extension"
ISSUE_EMPTY_FILE = "empty_file"
ISSUE_FILE_TOO_LARGE = "file_too_large"


@dataclass(frozen=True)
class FileCheckIssue:
    """
    Structured file-level rejection detail.
    """

    code: str
    message: str
    context: dict[str, Any] | None = None


def file_extension(filename: str | None) -> str:
    return PurePath((filename or "").strip()).suffix.lower()


def check_upload(
    *,
    filename: str | None,
    size: int,
    max_bytes: int,
) -> FileCheckIssue | None:
    """
    Return the first file-level issue, or None when the file may be parsed.

    Checks run in order: extension, emptiness, size.
    """

    extension = file_extension(filename)
    if extension not in ALLOWED_EXTENSIONS:
        return FileCheckIssue(
            code=ISSUE_UNSUPPORTED_EXTENSION,
            message=f"Unsupported file type '{extension or '(none)'}'.",
            context={
                "filename": filename,
                "extension": extension,
                "allowed_extensions": list(ALLOWED_EXTENSIONS),
            },
        )
    if size <= 0:
        return FileCheckIssue(
            code=ISSUE_EMPTY_FILE,
            message="The uploaded file is empty.",
            context={"filename": filename},
        )
    if size > max_bytes:
        return FileCheckIssue(
            code=ISSUE_FILE_TOO_LARGE,
            message=f"File size {size} bytes exceeds the {max_bytes} byte limit.",
            context={"filename": filename, "size": size, "max_bytes": max_bytes},
        )
    return None
