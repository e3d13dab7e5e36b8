"""File operation tools exposed to the model.

Every tool returns either a plain success payload or a ToolError; filesystem
failures never propagate out of these functions.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles
from pydantic import BaseModel, Field, model_validator

from ..config import DEFAULT_MAX_READ_BYTES
from ..logger import get_logger
from ..messages import ToolError

_log = get_logger("tools.files")

# Literal paths list_files refuses to enumerate.
DENYLISTED_PATHS = frozenset({".git", "node_modules"})

READ_FILE_DESCRIPTION = (
    "Read the contents of a given relative file path. Use this when you want to see "
    "what's inside a file. Do not use this with directory names."
)
LIST_FILES_DESCRIPTION = (
    "List files and directories at a given path. If no path is provided, lists files "
    "in the current directory."
)
EDIT_FILE_DESCRIPTION = (
    "Make edits to a text file. Replaces 'old_str' with 'new_str' in the given file. "
    "'old_str' and 'new_str' MUST be different from each other. If the file specified "
    "with path doesn't exist, it will be created."
)


class ReadFileArgs(BaseModel):
    path: str = Field(description="The relative path of a file in the working directory.")


class ListFilesArgs(BaseModel):
    path: Optional[str] = Field(
        default=None,
        description="Optional relative path to list files from. Defaults to current directory if not provided.",
    )


class EditFileArgs(BaseModel):
    path: str = Field(description="The path to the file")
    old_str: str = Field(
        description="Text to search for - must match exactly and must only have one match exactly"
    )
    new_str: str = Field(description="Text to replace old_str with")

    @model_validator(mode="after")
    def _strings_differ(self) -> "EditFileArgs":
        if self.old_str == self.new_str:
            raise ValueError("old_str and new_str must be different")
        return self


def _resolve(workspace: Optional[Path], path: str) -> Path:
    base = Path(workspace) if workspace is not None else Path.cwd()
    return base / path


def _describe(exc: BaseException) -> str:
    if isinstance(exc, OSError) and exc.strerror:
        return exc.strerror
    return str(exc)


async def read_file(
    path: str,
    workspace: Optional[Path] = None,
    max_bytes: int = DEFAULT_MAX_READ_BYTES,
) -> Union[Dict[str, Any], ToolError]:
    """Read a file as text.

    Args:
        path: Path relative to the workspace.
        workspace: Directory relative paths resolve against (cwd if None).
        max_bytes: Files larger than this are refused rather than truncated.

    Returns:
        ``{"path", "content"}`` or a ToolError carrying the path.
    """
    target = _resolve(workspace, path)
    try:
        async with aiofiles.open(target, "rb") as f:
            data = await f.read(max_bytes + 1)
    except OSError as e:
        _log.info("read_file %s failed: %s", path, e)
        return ToolError(error=_describe(e), details={"path": path})

    if len(data) > max_bytes:
        return ToolError(
            error=f"File is larger than the {max_bytes} byte read limit",
            details={"path": path},
        )
    return {"path": path, "content": data.decode("utf-8", errors="replace")}


async def list_files(
    path: Optional[str] = None,
    workspace: Optional[Path] = None,
) -> Union[Dict[str, Any], ToolError]:
    """List the entries of a directory (non-recursive).

    Returns:
        ``{"path", "entries": [{"name", "kind"}]}`` sorted by name, or a ToolError.
    """
    if path in DENYLISTED_PATHS:
        return ToolError(error="You cannot read the path", details={"path": path})

    listed = path if path else "."
    target = _resolve(workspace, listed)
    entries: List[Dict[str, str]] = []
    try:
        for item in sorted(target.iterdir(), key=lambda p: p.name):
            if item.is_dir():
                kind = "directory"
            elif item.is_file():
                kind = "file"
            else:
                kind = "other"
            entries.append({"name": item.name, "kind": kind})
    except OSError as e:
        _log.info("list_files %s failed: %s", listed, e)
        return ToolError(error=_describe(e))

    return {"path": listed, "entries": entries}


async def edit_file(
    path: str,
    old_str: str,
    new_str: str,
    workspace: Optional[Path] = None,
) -> Union[Dict[str, Any], ToolError]:
    """Replace the first occurrence of old_str with new_str.

    A missing file reads as empty text, so ``old_str=""`` creates the file
    with ``new_str`` as its content.
    """
    target = _resolve(workspace, path)
    try:
        async with aiofiles.open(target, "r", encoding="utf-8", newline="") as f:
            content = await f.read()
    except FileNotFoundError:
        content = ""
    except (OSError, UnicodeDecodeError) as e:
        _log.info("edit_file %s unreadable: %s", path, e)
        return ToolError(error=_describe(e), details={"path": path})

    updated = content.replace(old_str, new_str, 1)
    if updated == content and old_str != new_str:
        return ToolError(error=f'String "{old_str}" not found in file', details={"path": path})

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(target, "w", encoding="utf-8", newline="") as f:
            await f.write(updated)
    except OSError as e:
        _log.warning("edit_file %s write failed: %s", path, e)
        return ToolError(error=_describe(e), details={"path": path})

    _log.info("edit_file %s: wrote %d chars", path, len(updated))
    return {"success": True}
