"""Resource registration, request options and API URL construction."""

from __future__ import annotations

import posixpath
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, ClassVar
from urllib.parse import urlencode

from .meta import ListMeta, ObjectMeta


class ResourceError(ValueError):
    """A resource cannot be addressed as requested."""


@dataclass
class DeleteOptions:
    """The body sent with a delete request."""

    kind: str = "DeleteOptions"
    api_version: str = "v1"
    grace_period_seconds: int | None = None
    precondition_uid: str = ""
    propagation_policy: str = "Background"

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"kind": self.kind, "apiVersion": self.api_version}
        if self.grace_period_seconds is not None:
            out["gracePeriodSeconds"] = self.grace_period_seconds
        out["preconditions"] = {"uid": self.precondition_uid} if self.precondition_uid else {}
        out["propagationPolicy"] = self.propagation_policy
        return out


UrlUpdate = Callable[[str, dict[str, str]], str]
DeleteUpdate = Callable[[Any, DeleteOptions], None]


@dataclass(frozen=True)
class Option:
    """An optional call parameter such as a query parameter or delete policy."""

    url_update: UrlUpdate | None = None
    delete_update: DeleteUpdate | None = None

    def update_url(self, base: str, values: dict[str, str]) -> str:
        """Return the URL path, possibly extended, after adding query values."""
        if self.url_update is None:
            return base
        return self.url_update(base, values)

    def update_delete(self, resource: Any, options: DeleteOptions) -> None:
        """Adjust the body of a delete request."""
        if self.delete_update is not None:
            self.delete_update(resource, options)


def _seconds(duration: timedelta | float | int) -> int:
    if isinstance(duration, timedelta):
        return int(duration.total_seconds())
    return int(duration)


def query_param(name: str, value: str) -> Option:
    """Set a URL query parameter by name."""

    def update(base: str, values: dict[str, str]) -> str:
        values[name] = value
        return base

    return Option(url_update=update)


def delete_atomic() -> Option:
    """Only delete the resource if its UID still matches."""

    def update(resource: Any, options: DeleteOptions) -> None:
        meta = getattr(resource, "metadata", None)
        if meta is None or meta.uid is None:
            raise ResourceError("resource has no uid")
        options.precondition_uid = meta.uid

    return Option(delete_update=update)


def _propagation(policy: str) -> Option:
    def update(resource: Any, options: DeleteOptions) -> None:
        options.propagation_policy = policy

    return Option(delete_update=update)


def delete_propagation_orphan() -> Option:
    """Orphan the dependent resources during a delete."""
    return _propagation("Orphan")


def delete_propagation_background() -> Option:
    """Let the garbage collector delete dependents in the background."""
    return _propagation("Background")


def delete_propagation_foreground() -> Option:
    """Delete dependents in the foreground before the owner goes away."""
    return _propagation("Foreground")


def delete_grace_period(duration: timedelta | float | int) -> Option:
    """Set the grace period of a delete, truncated to whole seconds."""
    seconds = _seconds(duration)

    def update(resource: Any, options: DeleteOptions) -> None:
        options.grace_period_seconds = seconds

    return Option(delete_update=update)


def resource_version(version: str) -> Option:
    """Only show changes since a particular resource version."""
    return query_param("resourceVersion", version)


def timeout(duration: timedelta | float | int) -> Option:
    """Set the timeout of list and watch operations, in whole seconds."""
    return query_param("timeoutSeconds", str(_seconds(duration)))


def subresource(name: str) -> Option:
    """Address a subresource such as "status" or "scale"."""

    def update(base: str, values: dict[str, str]) -> str:
        return f"{base}/{name}"

    return Option(url_update=update)


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"{what}: expected an object, got {type(data).__name__}")
    return data


def _strip_type_fields(data: dict[str, Any], api_version: str, kind: str) -> None:
    for key, expected in (("apiVersion", api_version), ("kind", kind)):
        if expected and data.get(key) == expected:
            del data[key]


@dataclass
class Resource:
    """A Kubernetes object: its metadata and the rest of its document."""

    api_version: ClassVar[str] = ""
    kind: ClassVar[str] = ""

    metadata: ObjectMeta | None = None
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.api_version:
            out["apiVersion"] = self.api_version
        if self.kind:
            out["kind"] = self.kind
        out.update(self.fields)
        if self.metadata is not None:
            out["metadata"] = self.metadata.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Resource:
        values = dict(_mapping(data, "resource"))
        meta = values.pop("metadata", None)
        _strip_type_fields(values, cls.api_version, cls.kind)
        return cls(
            metadata=None if meta is None else ObjectMeta.from_dict(meta),
            fields=values,
        )


@dataclass
class ResourceList:
    """A list of Kubernetes objects of one type."""

    api_version: ClassVar[str] = ""
    kind: ClassVar[str] = ""
    item_type: ClassVar[type[Resource]] = Resource

    metadata: ListMeta | None = None
    items: list[Resource] = field(default_factory=list)
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.api_version:
            out["apiVersion"] = self.api_version
        if self.kind:
            out["kind"] = self.kind
        out.update(self.fields)
        if self.metadata is not None:
            out["metadata"] = self.metadata.to_dict()
        out["items"] = [item.to_dict() for item in self.items]
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ResourceList:
        values = dict(_mapping(data, "resource list"))
        meta = values.pop("metadata", None)
        items = values.pop("items", None) or []
        if not isinstance(items, list):
            raise ValueError(f"items: expected a list, got {type(items).__name__}")
        _strip_type_fields(values, cls.api_version, cls.kind)
        return cls(
            metadata=None if meta is None else ListMeta.from_dict(meta),
            items=[cls.item_type.from_dict(item) for item in items],
            fields=values,
        )


@dataclass(frozen=True)
class _ResourceType:
    api_group: str
    api_version: str
    name: str
    namespaced: bool


_resources: dict[type, _ResourceType] = {}
_resource_lists: dict[type, _ResourceType] = {}


def register(api_group: str, api_version: str, name: str, namespaced: bool, cls: type) -> None:
    """Make a resource class addressable by the client."""
    if cls in _resources:
        raise ValueError(f"resource registered twice {cls.__qualname__}")
    _resources[cls] = _ResourceType(api_group, api_version, name, namespaced)


def register_list(
    api_group: str, api_version: str, name: str, namespaced: bool, cls: type
) -> None:
    """Make a resource list class addressable by the client."""
    if cls in _resource_lists:
        raise ValueError(f"resource registered twice {cls.__qualname__}")
    _resource_lists[cls] = _ResourceType(api_group, api_version, name, namespaced)


def _lookup(table: dict[type, _ResourceType], obj: Any) -> _ResourceType:
    key = obj if isinstance(obj, type) else type(obj)
    try:
        return table[key]
    except KeyError:
        raise ResourceError(f"unregistered type {key.__qualname__}") from None


def _join(*parts: str) -> str:
    joined = "/".join(part for part in parts if part)
    return posixpath.normpath(joined) if joined else ""


def url_for(
    endpoint: str,
    api_group: str,
    api_version: str,
    namespace: str,
    resource: str,
    name: str,
    *args: Option,
) -> str:
    """Build the URL of a resource collection or object."""
    base = "apis/" if api_group else "api/"
    if namespace:
        path = _join(base, api_group, api_version, "namespaces", namespace, resource, name)
    else:
        path = _join(base, api_group, api_version, resource, name)
    url = endpoint + path if endpoint.endswith("/") else f"{endpoint}/{path}"
    if not args:
        return url
    values: dict[str, str] = {}
    for option in args:
        url = option.update_url(url, values)
    if not values:
        return url
    return f"{url}?{urlencode(sorted(values.items()))}"


def url_for_path(endpoint: str, path: str) -> str:
    """Join an endpoint and a server path."""
    if path.startswith("/"):
        path = path[1:]
    if endpoint.endswith("/"):
        return endpoint + path
    return f"{endpoint}/{path}"


def resource_url(endpoint: str, resource: Resource, with_name: bool, *args: Option) -> str:
    """Build the URL for creating, updating or deleting a resource."""
    kind = _lookup(_resources, resource)
    meta = getattr(resource, "metadata", None)
    if meta is None:
        raise ResourceError("resource has no object meta")
    if kind.namespaced and not meta.namespace:
        raise ResourceError("no resource namespace provided")
    if not kind.namespaced and meta.namespace:
        raise ResourceError("resource not namespaced")
    if with_name and not meta.name:
        raise ResourceError("no resource name provided")
    name = meta.name if with_name else ""
    namespace = meta.namespace if kind.namespaced else ""
    return url_for(
        endpoint, kind.api_group, kind.api_version, namespace, kind.name, name, *args
    )


def resource_get_url(endpoint: str, namespace: str, name: str, cls: Any, *args: Option) -> str:
    """Build the URL for fetching one resource by name."""
    kind = _lookup(_resources, cls)
    if not kind.namespaced and namespace:
        raise ResourceError("type not namespaced")
    if kind.namespaced and not namespace:
        raise ResourceError("no namespace provided")
    return url_for(
        endpoint, kind.api_group, kind.api_version, namespace, kind.name, name, *args
    )


def resource_list_url(endpoint: str, namespace: str, cls: Any, *args: Option) -> str:
    """Build the URL for listing resources; an empty namespace means all."""
    kind = _lookup(_resource_lists, cls)
    if not kind.namespaced and namespace:
        raise ResourceError("type not namespaced")
    return url_for(
        endpoint, kind.api_group, kind.api_version, namespace, kind.name, "", *args
    )


def resource_watch_url(endpoint: str, namespace: str, cls: Any, *args: Option) -> str:
    """Build the URL for watching resources; an empty namespace means all."""
    kind = _lookup(_resources, cls)
    if not kind.namespaced and namespace:
        raise ResourceError("type not namespaced")
    url = url_for(endpoint, kind.api_group, kind.api_version, namespace, kind.name, "", *args)
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}watch=true"