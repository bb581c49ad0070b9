"""Client configuration in the kubeconfig format."""

from __future__ import annotations

import base64
import binascii
import json
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


class ConfigError(ValueError):
    """A kubeconfig could not be read or is malformed."""


def _section(data: Any, what: str) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"{what}: expected a mapping, got {type(data).__name__}")
    return data


def _str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigError(f"field {key!r}: expected a string, got {type(value).__name__}")
    return value


def _bool(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigError(f"field {key!r}: expected a boolean, got {type(value).__name__}")
    return value


def _bytes(data: Mapping[str, Any], key: str) -> bytes:
    value = data.get(key)
    if value is None:
        return b""
    if isinstance(value, bytes):
        return value
    if not isinstance(value, str):
        raise ConfigError(f"field {key!r}: expected base64 data, got {type(value).__name__}")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ConfigError(f"field {key!r}: {exc}") from exc


def _items(data: Mapping[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"field {key!r}: expected a list, got {type(value).__name__}")
    return value


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _put_optional(out: dict[str, Any], pairs: tuple[tuple[str, Any], ...]) -> None:
    for key, value in pairs:
        if value:
            out[key] = value


@dataclass
class NamedExtension:
    """An opaque extension kept so reads and writes do not lose it."""

    name: str = ""
    extension: Any = None

    @classmethod
    def _parse(cls, data: Any) -> NamedExtension:
        data = _section(data, "extension")
        return cls(name=_str(data, "name"), extension=data.get("extension"))

    def _dump(self) -> dict[str, Any]:
        return {"name": self.name, "extension": self.extension}


def _extensions(data: Mapping[str, Any]) -> list[NamedExtension]:
    return [NamedExtension._parse(item) for item in _items(data, "extensions")]


def _dump_extensions(extensions: list[NamedExtension]) -> list[dict[str, Any]]:
    return [extension._dump() for extension in extensions]


@dataclass
class Preferences:
    """General preferences for command-line interaction."""

    colors: bool = False
    extensions: list[NamedExtension] = field(default_factory=list)

    @classmethod
    def _parse(cls, data: Any) -> Preferences:
        data = _section(data, "preferences")
        return cls(colors=_bool(data, "colors"), extensions=_extensions(data))

    def _dump(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put_optional(
            out, (("colors", self.colors), ("extensions", _dump_extensions(self.extensions)))
        )
        return out


@dataclass
class Cluster:
    """How to reach an API server."""

    server: str = ""
    api_version: str = ""
    insecure_skip_tls_verify: bool = False
    certificate_authority: str = ""
    certificate_authority_data: bytes = b""
    extensions: list[NamedExtension] = field(default_factory=list)

    @classmethod
    def _parse(cls, data: Any) -> Cluster:
        data = _section(data, "cluster")
        return cls(
            server=_str(data, "server"),
            api_version=_str(data, "api-version"),
            insecure_skip_tls_verify=_bool(data, "insecure-skip-tls-verify"),
            certificate_authority=_str(data, "certificate-authority"),
            certificate_authority_data=_bytes(data, "certificate-authority-data"),
            extensions=_extensions(data),
        )

    def _dump(self) -> dict[str, Any]:
        out: dict[str, Any] = {"server": self.server}
        _put_optional(
            out,
            (
                ("api-version", self.api_version),
                ("insecure-skip-tls-verify", self.insecure_skip_tls_verify),
                ("certificate-authority", self.certificate_authority),
                ("certificate-authority-data", _b64(self.certificate_authority_data)),
                ("extensions", _dump_extensions(self.extensions)),
            ),
        )
        return out


@dataclass
class AuthProviderConfig:
    """Configuration for a named authentication provider."""

    name: str = ""
    config: dict[str, str] = field(default_factory=dict)

    @classmethod
    def _parse(cls, data: Any) -> AuthProviderConfig:
        data = _section(data, "auth-provider")
        return cls(
            name=_str(data, "name"),
            config=dict(_section(data.get("config"), "auth-provider config")),
        )

    def _dump(self) -> dict[str, Any]:
        return {"name": self.name, "config": dict(self.config)}


@dataclass
class AuthInfo:
    """Identity information presented to the API server."""

    client_certificate: str = ""
    client_certificate_data: bytes = b""
    client_key: str = ""
    client_key_data: bytes = b""
    token: str = ""
    token_file: str = ""
    impersonate: str = ""
    username: str = ""
    password: str = ""
    auth_provider: AuthProviderConfig | None = None
    extensions: list[NamedExtension] = field(default_factory=list)

    @classmethod
    def _parse(cls, data: Any) -> AuthInfo:
        data = _section(data, "user")
        provider = data.get("auth-provider")
        return cls(
            client_certificate=_str(data, "client-certificate"),
            client_certificate_data=_bytes(data, "client-certificate-data"),
            client_key=_str(data, "client-key"),
            client_key_data=_bytes(data, "client-key-data"),
            token=_str(data, "token"),
            token_file=_str(data, "tokenFile"),
            impersonate=_str(data, "as"),
            username=_str(data, "username"),
            password=_str(data, "password"),
            auth_provider=None if provider is None else AuthProviderConfig._parse(provider),
            extensions=_extensions(data),
        )

    def _dump(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put_optional(
            out,
            (
                ("client-certificate", self.client_certificate),
                ("client-certificate-data", _b64(self.client_certificate_data)),
                ("client-key", self.client_key),
                ("client-key-data", _b64(self.client_key_data)),
                ("token", self.token),
                ("tokenFile", self.token_file),
                ("as", self.impersonate),
                ("username", self.username),
                ("password", self.password),
            ),
        )
        if self.auth_provider is not None:
            out["auth-provider"] = self.auth_provider._dump()
        if self.extensions:
            out["extensions"] = _dump_extensions(self.extensions)
        return out


@dataclass
class Context:
    """A cluster, a user and a default namespace used together."""

    cluster: str = ""
    auth_info: str = ""
    namespace: str = ""
    extensions: list[NamedExtension] = field(default_factory=list)

    @classmethod
    def _parse(cls, data: Any) -> Context:
        data = _section(data, "context")
        return cls(
            cluster=_str(data, "cluster"),
            auth_info=_str(data, "user"),
            namespace=_str(data, "namespace"),
            extensions=_extensions(data),
        )

    def _dump(self) -> dict[str, Any]:
        out: dict[str, Any] = {"cluster": self.cluster, "user": self.auth_info}
        _put_optional(
            out,
            (("namespace", self.namespace), ("extensions", _dump_extensions(self.extensions))),
        )
        return out


@dataclass
class NamedCluster:
    """A cluster under a nickname."""

    name: str = ""
    cluster: Cluster = field(default_factory=Cluster)

    @classmethod
    def _parse(cls, data: Any) -> NamedCluster:
        data = _section(data, "named cluster")
        return cls(name=_str(data, "name"), cluster=Cluster._parse(data.get("cluster")))

    def _dump(self) -> dict[str, Any]:
        return {"name": self.name, "cluster": self.cluster._dump()}


@dataclass
class NamedContext:
    """A context under a nickname."""

    name: str = ""
    context: Context = field(default_factory=Context)

    @classmethod
    def _parse(cls, data: Any) -> NamedContext:
        data = _section(data, "named context")
        return cls(name=_str(data, "name"), context=Context._parse(data.get("context")))

    def _dump(self) -> dict[str, Any]:
        return {"name": self.name, "context": self.context._dump()}


@dataclass
class NamedAuthInfo:
    """User credentials under a nickname."""

    name: str = ""
    auth_info: AuthInfo = field(default_factory=AuthInfo)

    @classmethod
    def _parse(cls, data: Any) -> NamedAuthInfo:
        data = _section(data, "named user")
        return cls(name=_str(data, "name"), auth_info=AuthInfo._parse(data.get("user")))

    def _dump(self) -> dict[str, Any]:
        return {"name": self.name, "user": self.auth_info._dump()}


@dataclass
class Config:
    """Everything needed to connect to clusters as given users."""

    kind: str = ""
    api_version: str = ""
    preferences: Preferences = field(default_factory=Preferences)
    clusters: list[NamedCluster] = field(default_factory=list)
    auth_infos: list[NamedAuthInfo] = field(default_factory=list)
    contexts: list[NamedContext] = field(default_factory=list)
    current_context: str = ""
    extensions: list[NamedExtension] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Config:
        """Build a config from its JSON or YAML document form."""
        data = _section(data, "config")
        return cls(
            kind=_str(data, "kind"),
            api_version=_str(data, "apiVersion"),
            preferences=Preferences._parse(data.get("preferences")),
            clusters=[NamedCluster._parse(item) for item in _items(data, "clusters")],
            auth_infos=[NamedAuthInfo._parse(item) for item in _items(data, "users")],
            contexts=[NamedContext._parse(item) for item in _items(data, "contexts")],
            current_context=_str(data, "current-context"),
            extensions=_extensions(data),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the document form of the config."""
        out: dict[str, Any] = {}
        _put_optional(out, (("kind", self.kind), ("apiVersion", self.api_version)))
        out["preferences"] = self.preferences._dump()
        out["clusters"] = [item._dump() for item in self.clusters]
        out["users"] = [item._dump() for item in self.auth_infos]
        out["contexts"] = [item._dump() for item in self.contexts]
        out["current-context"] = self.current_context
        if self.extensions:
            out["extensions"] = _dump_extensions(self.extensions)
        return out


def load_config(path: str | Path) -> Config:
    """Read a kubeconfig file. Extensions are kept but not interpreted."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"read kubeconfig: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"unmarshal kubeconfig: {exc}") from exc
    try:
        return Config.from_dict(data)
    except ConfigError as exc:
        raise ConfigError(f"unmarshal kubeconfig: {exc}") from exc


_KUBECTL_VIEW = ["kubectl", "config", "view", "-o", "json"]


def load_kubectl_config() -> Config:
    """Load the configuration that kubectl currently uses."""
    command = " ".join(_KUBECTL_VIEW)
    try:
        proc = subprocess.run(_KUBECTL_VIEW, capture_output=True, check=False)
    except OSError as exc:
        raise ConfigError(f"'{command}': {exc}") from exc
    if proc.returncode != 0:
        output = (proc.stdout + proc.stderr).decode("utf-8", "replace")
        raise ConfigError(f"'{command}': exit status {proc.returncode} {output}")
    try:
        data = json.loads(proc.stdout)
        return Config.from_dict(data)
    except (ValueError, UnicodeDecodeError) as exc:
        raise ConfigError(f"parse kubeconfig: {exc}") from exc