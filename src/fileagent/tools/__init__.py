"""Tool definitions and registry for the agent."""

from pathlib import Path
from typing import Optional

from ..config import DEFAULT_MAX_READ_BYTES
from .registry import ArgumentValidationError, Tool, ToolRegistry, validate_arguments
from .file_tools import (
    DENYLISTED_PATHS,
    EDIT_FILE_DESCRIPTION,
    LIST_FILES_DESCRIPTION,
    READ_FILE_DESCRIPTION,
    EditFileArgs,
    ListFilesArgs,
    ReadFileArgs,
    edit_file,
    list_files,
    read_file,
)


def build_default_registry(
    workspace: Optional[Path] = None,
    max_read_bytes: int = DEFAULT_MAX_READ_BYTES,
) -> ToolRegistry:
    """Registry with read_file, list_files and edit_file bound to a workspace."""
    registry = ToolRegistry()

    @registry.tool("read_file", READ_FILE_DESCRIPTION, ReadFileArgs)
    async def _read(args: ReadFileArgs):
        return await read_file(args.path, workspace=workspace, max_bytes=max_read_bytes)

    @registry.tool("list_files", LIST_FILES_DESCRIPTION, ListFilesArgs)
    async def _list(args: ListFilesArgs):
        return await list_files(args.path, workspace=workspace)

    @registry.tool("edit_file", EDIT_FILE_DESCRIPTION, EditFileArgs)
    async def _edit(args: EditFileArgs):
        return await edit_file(args.path, args.old_str, args.new_str, workspace=workspace)

    return registry


__all__ = [
    "ArgumentValidationError",
    "Tool",
    "ToolRegistry",
    "validate_arguments",
    "build_default_registry",
    "DENYLISTED_PATHS",
    "ReadFileArgs",
    "ListFilesArgs",
    "EditFileArgs",
    "read_file",
    "list_files",
    "edit_file",
]
