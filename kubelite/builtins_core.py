"""Built-in workload, core, networking, policy, scheduling, settings and
storage resource types."""

from __future__ import annotations

import functools
from dataclasses import dataclass

from .builtins_auth import register_auth
from .resource import Resource, ResourceList, register, register_list

_APPS_ALL = (
    ("ControllerRevision", None, True),
    ("DaemonSet", None, True),
    ("Deployment", None, True),
    ("ReplicaSet", None, True),
    ("StatefulSet", None, True),
)
_APPS_V1BETA1 = (
    ("ControllerRevision", None, True),
    ("Deployment", None, True),
    ("StatefulSet", None, True),
)
_CORE_V1 = (
    ("ComponentStatus", "componentstatuses", False),
    ("ConfigMap", None, True),
    ("Endpoints", "endpoints", True),
    ("LimitRange", None, True),
    ("Namespace", None, False),
    ("Node", None, False),
    ("PersistentVolumeClaim", None, True),
    ("PersistentVolume", None, False),
    ("Pod", None, True),
    ("ReplicationController", None, True),
    ("ResourceQuota", None, True),
    ("Secret", None, True),
    ("Service", None, True),
    ("ServiceAccount", None, True),
)
_EXTENSIONS_V1BETA1 = (
    ("DaemonSet", None, True),
    ("Deployment", None, True),
    ("Ingress", "ingresses", True),
    ("NetworkPolicy", "networkpolicies", True),
    ("PodSecurityPolicy", "podsecuritypolicies", False),
    ("ReplicaSet", None, True),
)
_STORAGE_CLASS = (("StorageClass", "storageclasses", False),)

# (group, version, ((kind, plural or None, namespaced), ...)); every kind is listable.
_GROUPS = (
    ("apps", "v1", _APPS_ALL),
    ("apps", "v1beta1", _APPS_V1BETA1),
    ("apps", "v1beta2", _APPS_ALL),
    ("autoscaling", "v1", (("HorizontalPodAutoscaler", None, True),)),
    ("autoscaling", "v2beta1", (("HorizontalPodAutoscaler", None, True),)),
    ("batch", "v1", (("Job", None, True),)),
    ("batch", "v1beta1", (("CronJob", None, True),)),
    ("batch", "v2alpha1", (("CronJob", None, True),)),
    ("", "v1", _CORE_V1),
    ("events.k8s.io", "v1beta1", (("Event", None, True),)),
    ("extensions", "v1beta1", _EXTENSIONS_V1BETA1),
    ("networking.k8s.io", "v1", (("NetworkPolicy", "networkpolicies", True),)),
    (
        "policy",
        "v1beta1",
        (
            ("PodDisruptionBudget", None, True),
            ("PodSecurityPolicy", "podsecuritypolicies", False),
        ),
    ),
    ("scheduling.k8s.io", "v1alpha1", (("PriorityClass", "priorityclasses", False),)),
    ("settings.k8s.io", "v1alpha1", (("PodPreset", None, True),)),
    ("storage.k8s.io", "v1", _STORAGE_CLASS),
    ("storage.k8s.io", "v1alpha1", (("VolumeAttachment", None, False),)),
    ("storage.k8s.io", "v1beta1", _STORAGE_CLASS),
)


@dataclass(frozen=True)
class _Entry:
    api_group: str
    api_version: str
    plural: str
    namespaced: bool
    resource: type[Resource]
    listing: type[ResourceList]


def _group_version(group: str, version: str) -> str:
    return f"{group}/{version}" if group else version


def _build() -> list[_Entry]:
    entries = []
    for group, version, kinds in _GROUPS:
        group_version = _group_version(group, version)
        for kind, plural, namespaced in kinds:
            resource = type(
                kind,
                (Resource,),
                {
                    "api_version": group_version,
                    "kind": kind,
                    "__module__": __name__,
                    "__doc__": f"The {kind} resource of {group_version}.",
                },
            )
            listing = type(
                f"{kind}List",
                (ResourceList,),
                {
                    "api_version": group_version,
                    "kind": f"{kind}List",
                    "item_type": resource,
                    "__module__": __name__,
                    "__doc__": f"A list of {kind} resources of {group_version}.",
                },
            )
            entries.append(
                _Entry(
                    group,
                    version,
                    plural or kind.lower() + "s",
                    namespaced,
                    resource,
                    listing,
                )
            )
    return entries


_ENTRIES = _build()
_BY_KEY = {
    (entry.api_group, entry.api_version, entry.resource.kind): entry for entry in _ENTRIES
}


def _entry(api_group: str, api_version: str, kind: str) -> _Entry:
    try:
        return _BY_KEY[(api_group, api_version, kind)]
    except KeyError:
        where = _group_version(api_group, api_version)
        raise KeyError(f"no built-in resource {kind} in {where}") from None


def _resource_class(api_group: str, api_version: str, kind: str) -> type[Resource]:
    return _entry(api_group, api_version, kind).resource


def _list_class(api_group: str, api_version: str, kind: str) -> type[ResourceList]:
    return _entry(api_group, api_version, kind).listing


@functools.cache
def register_core() -> None:
    """Register the resource types of this module; later calls do nothing."""
    for entry in _ENTRIES:
        register(entry.api_group, entry.api_version, entry.plural, entry.namespaced, entry.resource)
    for entry in _ENTRIES:
        register_list(
            entry.api_group, entry.api_version, entry.plural, entry.namespaced, entry.listing
        )


def register_builtin() -> None:
    """Register every built-in resource type."""
    register_auth()
    register_core()