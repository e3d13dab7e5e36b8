"""System prompt generator."""

import os
import platform
from pathlib import Path

from .logger import get_logger

_log = get_logger("prompts")


def load_agent_rules(workspace_path: str) -> str:
    """Load the agent.md file from the workspace root, if it exists.

    Returns the file content, or empty string if the file is missing/empty.
    """
    agent_md = Path(workspace_path) / "agent.md"
    if agent_md.exists():
        try:
            content = agent_md.read_text(encoding="utf-8").strip()
            if content:
                _log.debug("Loaded agent.md (%d chars) from %s", len(content), workspace_path)
                return content
        except OSError as e:
            _log.warning("Failed to read agent.md: %s", e)
    return ""


def get_system_prompt(workspace_path: str) -> str:
    """Generate the coding-agent system prompt for a workspace."""
    os_name = platform.system()
    os_version = platform.release()
    shell = "PowerShell" if os_name == "Windows" else os.path.basename(os.environ.get("SHELL", "bash"))

    prompt = f"""You are a coding agent working inside a local project directory. Your responses must be concise.

ENVIRONMENT:
  Platform: {os_name} {os_version}
  Shell: {shell}
  Working Directory: {workspace_path}

TOOLS:
- list_files: list the entries of a directory (relative path, defaults to the working directory)
- read_file: read a file's text content (relative path)
- edit_file: replace the first occurrence of old_str with new_str; creates the file when it does not exist and old_str is empty

If the task requires it, use tools consecutively. E.g. if the user asks for all the Python files in the project, first list_files, then read each file with read_file, then respond.
Paths are relative to the working directory. Tool failures come back as an "error" field; read it and adjust instead of repeating the same call."""

    rules = load_agent_rules(workspace_path)
    if rules:
        prompt += f"\n\nPROJECT RULES (agent.md):\n{rules}"
    return prompt
