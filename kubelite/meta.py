"""Object metadata types shared by every API resource."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NANOS_PER_SECOND = 1_000_000_000

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d{1,9}))?"
    r"([Zz]|[+-]\d{2}:\d{2})"
)


@dataclass
class Time:
    """A point in time stored as seconds and nanoseconds since the Unix epoch."""

    seconds: int | None = None
    nanos: int | None = None

    def to_json(self) -> str:
        """Render the time as an RFC 3339 string in UTC."""
        seconds = self.seconds or 0
        nanos = self.nanos or 0
        seconds += nanos // _NANOS_PER_SECOND
        nanos %= _NANOS_PER_SECOND
        try:
            moment = _EPOCH + timedelta(seconds=seconds)
        except OverflowError as exc:
            raise ValueError(f"time out of range: {seconds}s") from exc
        text = moment.strftime("%Y-%m-%dT%H:%M:%S")
        if nanos:
            text += "." + f"{nanos:09d}".rstrip("0")
        return text + "Z"

    @classmethod
    def from_json(cls, value: str) -> Time:
        """Parse an RFC 3339 timestamp."""
        if not isinstance(value, str):
            raise ValueError(f"invalid timestamp {value!r}")
        match = _RFC3339.fullmatch(value)
        if match is None:
            raise ValueError(f"invalid timestamp {value!r}")
        year, month, day, hour, minute, second = (int(g) for g in match.groups()[:6])
        fraction, zone = match.group(7), match.group(8)
        if zone in ("Z", "z"):
            tz = timezone.utc
        else:
            sign = -1 if zone[0] == "-" else 1
            hours, minutes = int(zone[1:3]), int(zone[4:6])
            if hours > 23 or minutes > 59:
                raise ValueError(f"invalid timestamp {value!r}")
            tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
        try:
            moment = datetime(year, month, day, hour, minute, second, tzinfo=tz)
        except ValueError as exc:
            raise ValueError(f"invalid timestamp {value!r}: {exc}") from exc
        delta = moment - _EPOCH
        seconds = delta.days * 86400 + delta.seconds
        nanos = int(fraction.ljust(9, "0")) if fraction else 0
        return cls(seconds=seconds, nanos=nanos)


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"{what}: expected an object, got {type(data).__name__}")
    return data


def _time(data: Mapping[str, Any], key: str) -> Time | None:
    value = data.get(key)
    return None if value is None else Time.from_json(value)


_OBJECT_META_FIELDS = (
    ("name", "name"),
    ("generate_name", "generateName"),
    ("namespace", "namespace"),
    ("self_link", "selfLink"),
    ("uid", "uid"),
    ("resource_version", "resourceVersion"),
    ("generation", "generation"),
    ("deletion_grace_period_seconds", "deletionGracePeriodSeconds"),
    ("labels", "labels"),
    ("annotations", "annotations"),
    ("owner_references", "ownerReferences"),
    ("finalizers", "finalizers"),
    ("cluster_name", "clusterName"),
)

_OBJECT_META_TIMES = (
    ("creation_timestamp", "creationTimestamp"),
    ("deletion_timestamp", "deletionTimestamp"),
)


def _copy(value: Any) -> Any:
    if isinstance(value, dict):
        return dict(value)
    if isinstance(value, list):
        return list(value)
    return value


@dataclass
class ObjectMeta:
    """Metadata every persisted resource carries."""

    name: str | None = None
    generate_name: str | None = None
    namespace: str | None = None
    self_link: str | None = None
    uid: str | None = None
    resource_version: str | None = None
    generation: int | None = None
    creation_timestamp: Time | None = None
    deletion_timestamp: Time | None = None
    deletion_grace_period_seconds: int | None = None
    labels: dict[str, str] | None = None
    annotations: dict[str, str] | None = None
    owner_references: list[dict[str, Any]] | None = None
    finalizers: list[str] | None = None
    cluster_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for attr, key in _OBJECT_META_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                out[key] = _copy(value)
        for attr, key in _OBJECT_META_TIMES:
            value = getattr(self, attr)
            if value is not None:
                out[key] = value.to_json()
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ObjectMeta:
        data = _mapping(data, "object meta")
        values: dict[str, Any] = {
            attr: _copy(data[key])
            for attr, key in _OBJECT_META_FIELDS
            if data.get(key) is not None
        }
        for attr, key in _OBJECT_META_TIMES:
            values[attr] = _time(data, key)
        return cls(**values)


@dataclass
class ListMeta:
    """Metadata carried by list responses."""

    self_link: str | None = None
    resource_version: str | None = None
    continue_: str | None = None

    def to_dict(self) -> dict[str, Any]:
        pairs = (
            ("selfLink", self.self_link),
            ("resourceVersion", self.resource_version),
            ("continue", self.continue_),
        )
        return {key: value for key, value in pairs if value is not None}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ListMeta:
        data = _mapping(data, "list meta")
        return cls(
            self_link=data.get("selfLink"),
            resource_version=data.get("resourceVersion"),
            continue_=data.get("continue"),
        )


@dataclass
class Status:
    """The result of an API call that does not return an object."""

    metadata: ListMeta | None = None
    status: str | None = None
    message: str | None = None
    reason: str | None = None
    details: dict[str, Any] | None = None
    code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.metadata is not None:
            out["metadata"] = self.metadata.to_dict()
        for key in ("status", "message", "reason", "details", "code"):
            value = getattr(self, key)
            if value is not None:
                out[key] = _copy(value)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Status:
        data = _mapping(data, "status")
        metadata = data.get("metadata")
        return cls(
            metadata=None if metadata is None else ListMeta.from_dict(metadata),
            status=data.get("status"),
            message=data.get("message"),
            reason=data.get("reason"),
            details=_copy(data.get("details")),
            code=data.get("code"),
        )