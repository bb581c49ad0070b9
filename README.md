# kubelite

A small client for the Kubernetes API server. It reads kubeconfig files,
builds request URLs from registered resource types, sends and receives
objects as JSON (or, for classes that behave like protobuf messages, in the
Kubernetes protobuf envelope), and follows watch streams.

It depends on `httpx` and `pyyaml`.

## Connecting

From a kubeconfig file:

```python
from kubelite.config import load_config
from kubelite.client import new_client

config = load_config("/home/me/.kube/config")
client = new_client(config)
print(client.namespace)  # the context's namespace, or "default"
```

`load_config` parses the file as YAML; `Config.from_dict` builds a config
from an already parsed document and `Config.to_dict` gives it back.
`load_kubectl_config()` runs `kubectl config view -o json` and parses what it
prints, so `kubectl` must be on the `PATH` for it.

Inside a pod, `new_in_cluster_client()` reads `KUBERNETES_SERVICE_HOST` and
`KUBERNETES_SERVICE_PORT` and uses the token, CA bundle and namespace mounted
under `/var/run/secrets/kubernetes.io/serviceaccount`.

`new_client` uses the current context, or the only context when there is
exactly one and none is named. A config without contexts must hold exactly
one cluster and one user. Missing or ambiguous contexts, clusters and users
raise `kubelite.config.ConfigError`. Bearer tokens, token files, basic
authentication, a CA bundle (file or inline data), client certificates and
`insecure-skip-tls-verify` are honoured; TLS 1.2 is the minimum. When both a
token and a username with password are present, basic authentication wins.

A `Client` can also be built directly, and is a context manager that closes
its HTTP connections:

```python
import httpx
from kubelite.client import Client

def add_auth(headers: httpx.Headers) -> None:
    headers["Authorization"] = "Bearer token"

with Client("https://localhost:6443", namespace="default", set_headers=add_auth) as client:
    ...
```

## Resources

A resource is a `kubelite.resource.Resource`: an `ObjectMeta` in `metadata`
and the rest of the document in the `fields` dict. Lists are
`ResourceList`s with `metadata` (a `ListMeta`), `items` and `fields`.
Subclasses set `api_version`, `kind` and, for lists, `item_type`.

A type must be registered with its API group, version, plural name and
whether it is namespaced before the client can address it:

```python
from kubelite.meta import ObjectMeta
from kubelite.resource import Resource, ResourceList, register, register_list

class ConfigMap(Resource):
    api_version = "v1"
    kind = "ConfigMap"

class ConfigMapList(ResourceList):
    api_version = "v1"
    kind = "ConfigMapList"
    item_type = ConfigMap

register("", "v1", "configmaps", True, ConfigMap)
register_list("", "v1", "configmaps", True, ConfigMapList)

cm = ConfigMap(
    metadata=ObjectMeta(name="my-configmap", namespace="my-namespace"),
    fields={"data": {"my-key": "my-val"}},
)
```

Registering the same class twice raises `ValueError`.

`kubelite.builtins_core.register_builtin()` registers classes for the
built-in kinds of the core, apps, autoscaling, batch, events, extensions,
networking, policy, scheduling, settings and storage groups, and (through
`kubelite.builtins_auth.register_auth()`) of the admission registration, API
extensions, API registration, authentication, authorization, certificates
and RBAC groups. Later calls do nothing. The classes of the second set can
be looked up:

```python
from kubelite.builtins_auth import list_class, register_auth, resource_class

register_auth()
Role = resource_class("rbac.authorization.k8s.io", "v1", "Role")
RoleList = list_class("rbac.authorization.k8s.io", "v1", "Role")
```

The review and token kinds of the authentication and authorization groups
have no list class, and `list_class` raises `KeyError` for them.

## Reading and writing

```python
obj = client.get("my-namespace", "my-configmap", ConfigMap)
listing = client.list("my-namespace", ConfigMapList)   # "" lists all namespaces

created = client.create(cm)   # returns the server's copy
updated = client.update(created)
client.delete(updated)
```

`create` and `update` return a new object decoded from the reply; the object
passed in is not changed. `Client.do(verb, url, req, resp_cls)` sends any
request and decodes the reply into `resp_cls` when one is given.

Addressing mistakes — an unregistered class, a missing namespace or name, or
a namespace given for a cluster-scoped type — raise
`kubelite.resource.ResourceError`. Encoding, transport and decoding failures
raise `kubelite.client.ClientError`.

Options follow the required arguments:

```python
from datetime import timedelta
from kubelite.resource import (
    delete_atomic, delete_grace_period, delete_propagation_foreground,
    delete_propagation_orphan, query_param, resource_version, subresource, timeout,
)

client.update(obj, subresource("status"))
client.list("my-namespace", ConfigMapList, timeout(timedelta(minutes=1)))
client.delete(obj, delete_propagation_orphan(), delete_grace_period(30))
```

Durations are a `timedelta` or a number of seconds, truncated to whole
seconds. Deletes default to background propagation; `delete_atomic()` adds
the object's UID as a precondition. The URL helpers (`url_for`,
`url_for_path`, `resource_url`, `resource_get_url`, `resource_list_url`,
`resource_watch_url`) are public too.

## Label selectors

```python
from kubelite.labels import LabelSelector

sel = LabelSelector()
sel.eq("component", "frontend")
sel.in_("type", "prod", "staging")
str(sel)  # "component=frontend,type in (prod, staging)"

client.list("my-namespace", ConfigMapList, sel.selector())
```

`not_eq` and `not_in` produce `!=` and `notin` statements. A statement whose
key or values are not valid label values (1 to 63 characters, alphanumeric
at both ends, `-_./` inside) is dropped silently; `valid_label_value` does
the check.

## Errors from the server

A reply outside the 2xx range raises `kubelite.errors.APIError`. Its `code`
is the HTTP status code and its `status` the `kubelite.meta.Status` the
server sent, read from JSON or protobuf:

```python
from kubelite.errors import APIError

try:
    client.get("my-namespace", "i-dont-exist", ConfigMap)
except APIError as err:
    if err.code == 404:
        ...
```

An error body that cannot be decoded raises `kubelite.codec.CodecError`.

## Discovery

```python
from kubelite.discovery import Discovery

d = Discovery(client)
d.version()                      # a Version dataclass
d.api_groups()                   # the APIGroupList document, as a dict
d.api_group("apps")              # the APIGroup document
d.api_resources("apps", "v1")    # the APIResourceList document
```

## Watching

```python
from kubelite.watch import EventType, watch

with watch(client, "kube-system", ConfigMap) as watcher:
    while True:
        event_type, cm = watcher.next(ConfigMap)
        if event_type is EventType.DELETED:
            ...
```

`next` returns the event type (an `EventType`, or the raw string for types
it does not know) and the decoded object. An `ERROR` event is raised as
`APIError`; a broken or malformed stream raises
`kubelite.watch.WatchError`. A watch does not reconnect; after any error,
start a new one. Options such as `resource_version(...)` and `timeout(...)`
can be passed after the class.

## Codec

`kubelite.codec` holds the encoding used on the wire: `marshal`,
`unmarshal`, `content_type_for`, and the protobuf envelope helpers
`marshal_pb`, `unmarshal_pb`, `encode_unknown` and `decode_unknown`.
`kubelite.meta` holds `Time` (RFC 3339 in JSON), `ObjectMeta`, `ListMeta`
and `Status`.

## What it does not do

- The built-in kinds carry only their metadata as typed fields; specs,
  statuses and data stay plain dicts in `fields`.
- No protobuf message classes ship with the package. Objects go over the
  wire as JSON unless you pass classes with `SerializeToString` and
  `ParseFromString`.
- Auth-provider plugins, impersonation (`as`) and kubeconfig extensions are
  read and kept in the config but not acted on.
- Watches do not reconnect, and there is no command-line tool.