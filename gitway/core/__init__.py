"""Provide the gitway core configuration."""

import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

LOGLEVEL = os.environ.get("GITWAY_LOGLEVEL", "WARNING").upper()
logging.basicConfig(level=LOGLEVEL, stream=sys.stdout)
logger = logging.getLogger("core")
logger.setLevel(LOGLEVEL)

# Old option names, used only when the current name is not set
LEGACY_OPTION_NAMES = {
    "project_root": "root",
    "upload_pack": "allow_pull",
    "receive_pack": "allow_push",
}


class ServerConfig(BaseModel):
    """Represent the server configuration.

    The configuration is frozen: it is shared by every in-flight request.
    ``allow_pull`` and ``allow_push`` override the per-repository settings
    when they are not None.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    root: Path
    allow_pull: Optional[bool] = None
    allow_push: Optional[bool] = None
    git_path: str = "git"
    adapter_factory: Optional[Callable[[], Any]] = None
    legacy_adapter: Optional[Callable[[], Any]] = None
    enable_metrics: bool = False

    @model_validator(mode="before")
    @classmethod
    def resolve_legacy_options(cls, data: Any) -> Any:
        """Map old option names onto the current ones."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for legacy_name, name in LEGACY_OPTION_NAMES.items():
            value = data.pop(legacy_name, None)
            if data.get(name) is None and value is not None:
                data[name] = value
        return data

    @field_validator("root")
    @classmethod
    def resolve_root(cls, value: Path) -> Path:
        """Store the root as a real absolute path."""
        return Path(os.path.realpath(value))

    def create_adapter(self):
        """Create a fresh repository adapter for one request."""
        # pylint: disable=import-outside-toplevel
        if self.adapter_factory is not None:
            return self.adapter_factory()
        if self.legacy_adapter is not None:
            from gitway.git.compat import CompatibleGitAdapter

            return CompatibleGitAdapter(self.legacy_adapter())
        from gitway.git.adapter import GitAdapter

        return GitAdapter(git_path=self.git_path)


__all__ = ["ServerConfig"]
