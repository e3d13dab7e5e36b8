"""Configuration management for the agent."""

import os
import json
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
from dotenv import find_dotenv, load_dotenv

DEFAULT_API_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4.1-mini"
DEFAULT_MAX_STEPS = 5
DEFAULT_MAX_READ_BYTES = 256 * 1024


def get_global_config_path() -> Path:
    """Get path to global config: ~/.fileagent.json"""
    return Path.home() / ".fileagent.json"


def get_workspace_config_path(workspace: Optional[Path] = None) -> Path:
    """Get path to workspace config: workspace/.fileagent/config.json"""
    ws = workspace or Path.cwd()
    return ws / ".fileagent" / "config.json"


def load_json_config(path: Path) -> dict:
    """Load config from JSON file if it exists."""
    if path.exists():
        try:
            return json.loads(path.read_text())
        except (json.JSONDecodeError, IOError):
            pass
    return {}


@dataclass
class Config:
    """Configuration for the agent."""

    api_url: str = DEFAULT_API_URL
    api_key: str = ""
    model: str = DEFAULT_MODEL
    max_tokens: int = 4096
    temperature: float = 0.2
    max_steps: int = DEFAULT_MAX_STEPS
    max_read_bytes: int = DEFAULT_MAX_READ_BYTES
    workspace_path: Path = field(default_factory=lambda: Path.cwd())

    @classmethod
    def from_json(cls, workspace: Optional[Path] = None) -> "Config":
        """Load configuration from JSON files.

        Priority (later overrides earlier):
        1. ~/.fileagent.json (global)
        2. workspace/.fileagent/config.json (workspace-specific)
        """
        config_data = {}
        config_data.update(load_json_config(get_global_config_path()))
        config_data.update(load_json_config(get_workspace_config_path(workspace)))

        return cls(
            api_url=config_data.get("api_url", DEFAULT_API_URL),
            api_key=config_data.get("api_key", ""),
            model=config_data.get("model", DEFAULT_MODEL),
            max_tokens=int(config_data.get("max_tokens", 4096)),
            temperature=float(config_data.get("temperature", 0.2)),
            max_steps=int(config_data.get("max_steps", DEFAULT_MAX_STEPS)),
            max_read_bytes=int(config_data.get("max_read_bytes", DEFAULT_MAX_READ_BYTES)),
            workspace_path=workspace or Path.cwd(),
        )

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None, workspace: Optional[Path] = None) -> "Config":
        """Load configuration from environment variables, falling back to JSON files."""
        if env_path is not None:
            if env_path.exists():
                load_dotenv(env_path)
        elif workspace is not None and (Path(workspace) / ".env").is_file():
            load_dotenv(Path(workspace) / ".env")
        else:
            found = find_dotenv(usecwd=True)
            if found:
                load_dotenv(found)

        api_key = os.getenv("FILEAGENT_API_KEY") or os.getenv("OPENAI_API_KEY", "")
        if workspace is None and os.getenv("FILEAGENT_WORKSPACE"):
            workspace = Path(os.environ["FILEAGENT_WORKSPACE"])

        if not api_key:
            return cls.from_json(workspace)

        return cls(
            api_url=os.getenv("FILEAGENT_API_URL") or os.getenv("OPENAI_BASE_URL") or DEFAULT_API_URL,
            api_key=api_key,
            model=os.getenv("FILEAGENT_MODEL", DEFAULT_MODEL),
            max_tokens=int(os.getenv("FILEAGENT_MAX_TOKENS", "4096")),
            temperature=float(os.getenv("FILEAGENT_TEMPERATURE", "0.2")),
            max_steps=int(os.getenv("FILEAGENT_MAX_STEPS", str(DEFAULT_MAX_STEPS))),
            max_read_bytes=int(os.getenv("FILEAGENT_MAX_READ_BYTES", str(DEFAULT_MAX_READ_BYTES))),
            workspace_path=workspace or Path.cwd(),
        )

    def validate(self) -> bool:
        """Validate the configuration."""
        if not self.api_url:
            raise ValueError("API URL is required. Set FILEAGENT_API_URL or OPENAI_BASE_URL.")
        if not self.api_key:
            raise ValueError("API key is required. Set OPENAI_API_KEY or add api_key to ~/.fileagent.json.")
        if self.max_steps < 1:
            raise ValueError(f"max_steps must be at least 1, got {self.max_steps}")
        return True
