"""Built-in admission, extension, registration, authentication,
authorization, certificate and RBAC resource types."""

from __future__ import annotations

import functools
from dataclasses import dataclass

from .resource import Resource, ResourceList, register, register_list

_ADMISSION = (
    ("MutatingWebhookConfiguration", False, True),
    ("ValidatingWebhookConfiguration", False, True),
)
_RBAC = (
    ("ClusterRole", False, True),
    ("ClusterRoleBinding", False, True),
    ("Role", True, True),
    ("RoleBinding", True, True),
)
_AUTHORIZATION = (
    ("LocalSubjectAccessReview", True, False),
    ("SelfSubjectAccessReview", False, False),
    ("SelfSubjectRulesReview", False, False),
    ("SubjectAccessReview", False, False),
)

# (group, version, ((kind, namespaced, listable), ...))
_GROUPS = (
    ("admissionregistration.k8s.io", "v1", _ADMISSION),
    ("admissionregistration.k8s.io", "v1alpha1", (("InitializerConfiguration", False, True),)),
    ("admissionregistration.k8s.io", "v1beta1", _ADMISSION),
    ("apiextensions.k8s.io", "v1", (("CustomResourceDefinition", False, True),)),
    ("apiextensions.k8s.io", "v1beta1", (("CustomResourceDefinition", False, True),)),
    ("apiregistration.k8s.io", "v1", (("APIService", False, True),)),
    ("apiregistration.k8s.io", "v1beta1", (("APIService", False, True),)),
    (
        "authentication.k8s.io",
        "v1",
        (("TokenReview", False, False), ("TokenRequest", False, False)),
    ),
    ("authentication.k8s.io", "v1beta1", (("TokenReview", False, False),)),
    ("authorization.k8s.io", "v1", _AUTHORIZATION),
    ("authorization.k8s.io", "v1beta1", _AUTHORIZATION),
    ("certificates.k8s.io", "v1beta1", (("CertificateSigningRequest", False, True),)),
    ("rbac.authorization.k8s.io", "v1", _RBAC),
    ("rbac.authorization.k8s.io", "v1alpha1", _RBAC),
    ("rbac.authorization.k8s.io", "v1beta1", _RBAC),
)


@dataclass(frozen=True)
class _Entry:
    api_group: str
    api_version: str
    plural: str
    namespaced: bool
    resource: type[Resource]
    listing: type[ResourceList] | None


def _group_version(group: str, version: str) -> str:
    return f"{group}/{version}" if group else version


def _build() -> list[_Entry]:
    entries = []
    for group, version, kinds in _GROUPS:
        group_version = _group_version(group, version)
        for kind, namespaced, listable in kinds:
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
            listing = None
            if listable:
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
                _Entry(group, version, kind.lower() + "s", namespaced, resource, listing)
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


def resource_class(api_group: str, api_version: str, kind: str) -> type[Resource]:
    """Return the class of a built-in resource kind."""
    return _entry(api_group, api_version, kind).resource


def list_class(api_group: str, api_version: str, kind: str) -> type[ResourceList]:
    """Return the list class of a built-in resource kind."""
    listing = _entry(api_group, api_version, kind).listing
    if listing is None:
        where = _group_version(api_group, api_version)
        raise KeyError(f"built-in resource {kind} in {where} cannot be listed")
    return listing


@functools.cache
def register_auth() -> None:
    """Register the resource types of this module; later calls do nothing."""
    for entry in _ENTRIES:
        register(entry.api_group, entry.api_version, entry.plural, entry.namespaced, entry.resource)
    for entry in _ENTRIES:
        if entry.listing is not None:
            register_list(
                entry.api_group, entry.api_version, entry.plural, entry.namespaced, entry.listing
            )