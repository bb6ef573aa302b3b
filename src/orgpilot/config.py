"""
Global Configuration and Platform Limits.

Centralizes the hard caps imposed by the platform, the layout presets used
by each graph surface, and the session settings loaded from
``.orgpilot/config.yaml`` and the environment.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel

from .core.types import LayoutDirection

logger = logging.getLogger(__name__)

# --- Platform Limits ---
# Related lists queried per record view
MAX_RELATED_LISTS = 10

# Child rows returned per related list
MAX_RELATED_ROWS = 5

# Outgoing reference edges drawn in a dependency graph
MAX_DEPENDENCY_EDGES = 15

# Columns used by every related-list sub-select
RELATED_LIST_COLUMNS = ("Id", "Name", "CreatedDate")

# --- Layouts ---
DEFAULT_LAYOUT_ID = "system-default"
DEFAULT_LAYOUT_NAME = "System Default Layout"

API_VERSION = "v60.0"

DEFAULT_CONFIG_PATH = Path(".orgpilot/config.yaml")
DEFAULT_SAVED_QUERIES_PATH = Path(".orgpilot/saved_queries.json")
DEFAULT_GEMINI_MODEL = "gemini-3-pro-preview"
DEFAULT_GEMINI_CHAT_MODEL = "gemini-3-flash-preview"
DEFAULT_CHAT_HISTORY_PATH = Path(".orgpilot/chat_history.json")

# Prior chat turns sent with each assistant message
CHAT_HISTORY_TURNS = 10


@dataclass(frozen=True)
class LayoutOptions:
    """
    Per-surface parameters for the layered layout.

    Attributes:
        node_width: Fixed bounding box width of every node.
        node_height: Fixed bounding box height of every node.
        direction: Rank direction.
        node_gap: Spacing between nodes in the same rank.
        rank_gap: Spacing between adjacent ranks.
    """
    node_width: float
    node_height: float
    direction: LayoutDirection = LayoutDirection.TOP_TO_BOTTOM
    node_gap: float = 50.0
    rank_gap: float = 50.0


DEPENDENCY_LAYOUT = LayoutOptions(220, 60, LayoutDirection.LEFT_TO_RIGHT)
PROCESS_LAYOUT = LayoutOptions(200, 100, LayoutDirection.TOP_TO_BOTTOM, node_gap=50, rank_gap=80)
AUTO_DIAGRAM_LAYOUT = LayoutOptions(180, 50, LayoutDirection.TOP_TO_BOTTOM)


class Settings(BaseModel):
    """Session settings for talking to an org."""
    instance_url: str = ""
    access_token: str = ""
    api_version: str = API_VERSION
    saved_queries_path: Path = DEFAULT_SAVED_QUERIES_PATH
    gemini_api_key: str = ""
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_chat_model: str = DEFAULT_GEMINI_CHAT_MODEL
    chat_history_path: Path = DEFAULT_CHAT_HISTORY_PATH
    timeout: float = 30.0

    @property
    def has_session(self) -> bool:
        return bool(self.instance_url and self.access_token)

    @property
    def org_name(self) -> str:
        """Host name of the org, used to introduce it to the assistant."""
        return urlparse(self.instance_url).hostname or "Salesforce Org"


_ENV_OVERRIDES = {
    "ORGPILOT_INSTANCE_URL": "instance_url",
    "ORGPILOT_ACCESS_TOKEN": "access_token",
    "ORGPILOT_API_VERSION": "api_version",
    "ORGPILOT_SAVED_QUERIES": "saved_queries_path",
    "ORGPILOT_GEMINI_MODEL": "gemini_model",
    "ORGPILOT_GEMINI_CHAT_MODEL": "gemini_chat_model",
    "ORGPILOT_CHAT_HISTORY": "chat_history_path",
}


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """
    Load settings from the YAML config file, then apply environment overrides.

    A missing or unreadable config file is not an error; the environment
    alone may carry the session.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    data = {}
    if path.exists():
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Ignoring unreadable config {path}: {e}")
            data = {}

    values = {k: v for k, v in (data.get("org") or {}).items() if v is not None}
    gemini = data.get("gemini") or {}
    if gemini.get("api_key"):
        values["gemini_api_key"] = gemini["api_key"]
    if gemini.get("model"):
        values["gemini_model"] = gemini["model"]
    if gemini.get("chat_model"):
        values["gemini_chat_model"] = gemini["chat_model"]

    for env_name, attr in _ENV_OVERRIDES.items():
        if os.getenv(env_name):
            values[attr] = os.environ[env_name]

    api_key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
    if api_key:
        values["gemini_api_key"] = api_key

    return Settings(**values)
