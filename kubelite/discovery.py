"""Discovery of the server version and the API groups it serves."""

from __future__ import annotations

import posixpath
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .client import Client
from .resource import url_for_path

_VERSION_FIELDS = (
    ("major", "major"),
    ("minor", "minor"),
    ("git_version", "gitVersion"),
    ("git_commit", "gitCommit"),
    ("git_tree_state", "gitTreeState"),
    ("build_date", "buildDate"),
    ("go_version", "goVersion"),
    ("compiler", "compiler"),
    ("platform", "platform"),
)


@dataclass
class Version:
    """Build information reported by the API server."""

    major: str = ""
    minor: str = ""
    git_version: str = ""
    git_commit: str = ""
    git_tree_state: str = ""
    build_date: str = ""
    go_version: str = ""
    compiler: str = ""
    platform: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Version:
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ValueError(f"version: expected an object, got {type(data).__name__}")
        return cls(**{attr: data.get(key, "") for attr, key in _VERSION_FIELDS})


def _join(*parts: str) -> str:
    joined = "/".join(part for part in parts if part)
    return posixpath.normpath(joined) if joined else ""


class Discovery:
    """Determines the API version and the resources a server supports."""

    def __init__(self, client: Client) -> None:
        self.client = client

    def _get(self, path: str, cls: Any) -> Any:
        return self.client.do("GET", url_for_path(self.client.endpoint, path), None, cls)

    def version(self) -> Version:
        """Return the version of the API server."""
        return self._get("version", Version)

    def api_groups(self) -> dict[str, Any]:
        """Return the APIGroupList document of the server."""
        return self._get("apis", dict)

    def api_group(self, name: str) -> dict[str, Any]:
        """Return the APIGroup document of one group."""
        return self._get(_join("apis", name), dict)

    def api_resources(self, group_name: str, group_version: str) -> dict[str, Any]:
        """Return the APIResourceList document of one group version."""
        return self._get(_join("apis", group_name, group_version), dict)