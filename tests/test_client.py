import base64
import json
from datetime import timedelta

import httpx
import pytest
import respx

from kubelite.client import Client, ClientError, new_client, new_in_cluster_client
from kubelite.codec import CodecError
from kubelite.config import (
    AuthInfo,
    Cluster,
    Config,
    ConfigError,
    Context,
    NamedAuthInfo,
    NamedCluster,
    NamedContext,
)
from kubelite.errors import APIError
from kubelite.meta import ObjectMeta
from kubelite.resource import (
    Resource,
    ResourceError,
    ResourceList,
    delete_atomic,
    delete_grace_period,
    delete_propagation_orphan,
    register,
    register_list,
    subresource,
)
from kubelite.labels import LabelSelector

ENDPOINT = "https://k8s.example.com"
WIDGETS = f"{ENDPOINT}/apis/example.com/v1/namespaces/ns/widgets"


class Widget(Resource):
    api_version = "example.com/v1"
    kind = "Widget"


class WidgetList(ResourceList):
    api_version = "example.com/v1"
    kind = "WidgetList"
    item_type = Widget


class Gadget(Resource):
    api_version = "v1"
    kind = "Gadget"


class Unregistered(Resource):
    kind = "Unregistered"


register("example.com", "v1", "widgets", True, Widget)
register_list("example.com", "v1", "widgets", True, WidgetList)
register("", "v1", "gadgets", False, Gadget)


def _widget(**fields):
    return Widget(metadata=ObjectMeta(name="w1", namespace="ns"), fields=fields)


def _config(clusters=None, users=None, contexts=None, current=""):
    return Config(
        clusters=clusters if clusters is not None else [],
        auth_infos=users if users is not None else [],
        contexts=contexts if contexts is not None else [],
        current_context=current,
    )


def _local_cluster(name="local", server="http://localhost:8080"):
    return NamedCluster(name=name, cluster=Cluster(server=server))


def test_default_namespace():
    config = _config(
        clusters=[_local_cluster()],
        users=[NamedAuthInfo(name="local")],
    )
    with new_client(config) as client:
        assert client.namespace == "default"
        assert client.endpoint == "http://localhost:8080"


def test_context_namespace_and_cluster_selected():
    config = _config(
        clusters=[_local_cluster("a", "http://a.example.com"), _local_cluster("b", "http://b.example.com")],
        users=[NamedAuthInfo(name="u")],
        contexts=[
            NamedContext(name="ctx-a", context=Context(cluster="a", auth_info="u")),
            NamedContext(name="ctx-b", context=Context(cluster="b", auth_info="u", namespace="team")),
        ],
        current="ctx-b",
    )
    with new_client(config) as client:
        assert client.endpoint == "http://b.example.com"
        assert client.namespace == "team"


def test_single_context_without_current_uses_default_namespace():
    config = _config(
        clusters=[_local_cluster("a")],
        users=[NamedAuthInfo(name="u")],
        contexts=[NamedContext(name="only", context=Context(cluster="a", auth_info="u"))],
    )
    with new_client(config) as client:
        assert client.namespace == "default"


@pytest.mark.parametrize(
    "config, message",
    [
        (_config(current="missing"), "no contexts with name"),
        (_config(users=[NamedAuthInfo(name="u")]), "no clusters provided"),
        (
            _config(clusters=[_local_cluster("a"), _local_cluster("b")]),
            "multiple clusters but no current context",
        ),
        (_config(clusters=[_local_cluster()]), "no users provided"),
        (
            _config(
                clusters=[_local_cluster()],
                users=[NamedAuthInfo(name="a"), NamedAuthInfo(name="b")],
            ),
            "multiple users but no current context",
        ),
        (
            _config(
                contexts=[
                    NamedContext(name="x", context=Context(cluster="c", auth_info="u")),
                    NamedContext(name="y", context=Context(cluster="c", auth_info="u")),
                ]
            ),
            "multiple contexts but no current context",
        ),
        (
            _config(
                contexts=[NamedContext(name="x", context=Context(cluster="c", auth_info="u"))],
                current="other",
            ),
            "no config named",
        ),
        (
            _config(contexts=[NamedContext(name="x", context=Context(auth_info="u"))]),
            "context doesn't have a cluster",
        ),
        (
            _config(contexts=[NamedContext(name="x", context=Context(cluster="c"))]),
            "context doesn't have a user",
        ),
        (
            _config(
                clusters=[_local_cluster("c")],
                contexts=[NamedContext(name="x", context=Context(cluster="c", auth_info="u"))],
            ),
            "no user named",
        ),
        (
            _config(
                users=[NamedAuthInfo(name="u")],
                contexts=[NamedContext(name="x", context=Context(cluster="c", auth_info="u"))],
            ),
            "no cluster named",
        ),
    ],
)
def test_new_client_config_errors(config, message):
    with pytest.raises(ConfigError, match=message):
        new_client(config)


def test_missing_server():
    config = _config(
        clusters=[NamedCluster(name="c", cluster=Cluster())],
        users=[NamedAuthInfo(name="u")],
    )
    with pytest.raises(ConfigError, match="no cluster endpoint provided"):
        new_client(config)


def test_missing_certificate_authority_file(tmp_path):
    cluster = Cluster(server=ENDPOINT, certificate_authority=str(tmp_path / "absent.crt"))
    config = _config(clusters=[NamedCluster(name="c", cluster=cluster)], users=[NamedAuthInfo(name="u")])
    with pytest.raises(ConfigError, match="loading certificate authority"):
        new_client(config)


def test_invalid_certificate_authority_data():
    cluster = Cluster(server=ENDPOINT, certificate_authority_data=b"not a certificate")
    config = _config(clusters=[NamedCluster(name="c", cluster=cluster)], users=[NamedAuthInfo(name="u")])
    with pytest.raises(ConfigError, match="doesn't contain any certificates"):
        new_client(config)


def test_invalid_client_key_pair():
    user = AuthInfo(client_certificate_data=b"junk", client_key_data=b"junk")
    config = _config(clusters=[_local_cluster()], users=[NamedAuthInfo(name="u", auth_info=user)])
    with pytest.raises(ConfigError, match="invalid client cert and key pair"):
        new_client(config)


def test_missing_token_file(tmp_path):
    user = AuthInfo(token_file=str(tmp_path / "absent"))
    config = _config(clusters=[_local_cluster()], users=[NamedAuthInfo(name="u", auth_info=user)])
    with pytest.raises(ConfigError, match="load token file"):
        new_client(config)


def test_in_cluster_requires_environment(monkeypatch):
    monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
    monkeypatch.setenv("KUBERNETES_SERVICE_PORT", "443")
    with pytest.raises(ConfigError, match="KUBERNETES_SERVICE_HOST"):
        new_in_cluster_client()


def _client_for(user):
    config = _config(
        clusters=[NamedCluster(name="c", cluster=Cluster(server=ENDPOINT))],
        users=[NamedAuthInfo(name="u", auth_info=user)],
    )
    return new_client(config)


def test_bearer_token_header():
    with respx.mock() as mock, _client_for(AuthInfo(token="token")) as client:
        route = mock.get(f"{WIDGETS}/w1").mock(
            return_value=httpx.Response(200, json={"metadata": {"name": "w1"}})
        )
        got = client.get("ns", "w1", Widget)
        assert got.metadata.name == "w1"
        assert route.calls.last.request.headers["Authorization"] == "Bearer token"


def test_token_file_header(tmp_path):
    token_path = tmp_path / "token"
    token_path.write_text("token")
    with respx.mock() as mock, _client_for(AuthInfo(token_file=str(token_path))) as client:
        route = mock.get(f"{WIDGETS}/w1").mock(
            return_value=httpx.Response(200, json={"metadata": {"name": "w1"}})
        )
        got = client.get("ns", "w1", Widget)
        assert got.metadata.name == "w1"
        assert route.calls.last.request.headers["Authorization"] == "Bearer token"


def test_basic_auth_overrides_token():
    password = "password"
    user = AuthInfo(token="token", username="user", password=password)
    with respx.mock() as mock, _client_for(user) as client:
        route = mock.get(f"{WIDGETS}/w1").mock(
            return_value=httpx.Response(200, json={"metadata": {"name": "w1"}})
        )
        got = client.get("ns", "w1", Widget)
        assert got.metadata.name == "w1"
        scheme, value = route.calls.last.request.headers["Authorization"].split(" ", 1)
        assert scheme == "Basic"
        assert base64.b64decode(value) == b"user:password"


def test_get_decodes_resource():
    body = {
        "apiVersion": "example.com/v1",
        "kind": "Widget",
        "metadata": {"name": "w1", "namespace": "ns", "uid": "abc"},
        "spec": {"size": 3},
    }
    with respx.mock() as mock, Client(ENDPOINT) as client:
        route = mock.get(f"{WIDGETS}/w1").mock(return_value=httpx.Response(200, json=body))
        got = client.get("ns", "w1", Widget)
        assert isinstance(got, Widget)
        assert got.metadata.name == "w1"
        assert got.metadata.uid == "abc"
        assert got.fields == {"spec": {"size": 3}}
        assert route.calls.last.request.headers["Accept"] == "application/json"


def test_get_cluster_scoped_resource():
    with respx.mock() as mock, Client(ENDPOINT) as client:
        route = mock.get(f"{ENDPOINT}/api/v1/gadgets/g1").mock(
            return_value=httpx.Response(200, json={"metadata": {"name": "g1"}})
        )
        got = client.get("", "g1", Gadget)
        assert got.metadata.name == "g1"
        assert route.call_count == 1


def test_create_sends_body_and_returns_result():
    reply = {"metadata": {"name": "w1", "namespace": "ns", "resourceVersion": "7"}, "spec": {"size": 3}}
    with respx.mock() as mock, Client(ENDPOINT) as client:
        route = mock.post(WIDGETS).mock(return_value=httpx.Response(201, json=reply))
        created = client.create(_widget(spec={"size": 3}))
        request = route.calls.last.request
        assert json.loads(request.content) == {
            "apiVersion": "example.com/v1",
            "kind": "Widget",
            "spec": {"size": 3},
            "metadata": {"name": "w1", "namespace": "ns"},
        }
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Accept"] == "application/json"
        assert created.metadata.resource_version == "7"


def test_update_subresource_url():
    with respx.mock() as mock, Client(ENDPOINT) as client:
        route = mock.put(f"{WIDGETS}/w1/status").mock(
            return_value=httpx.Response(200, json={"metadata": {"name": "w1", "namespace": "ns"}})
        )
        updated = client.update(_widget(), subresource("status"))
        assert updated.metadata.name == "w1"
        assert route.call_count == 1


def test_delete_orphan_body():
    with respx.mock() as mock, Client(ENDPOINT) as client:
        route = mock.delete(f"{WIDGETS}/w1").mock(return_value=httpx.Response(200, json={}))
        assert client.delete(_widget(), delete_propagation_orphan()) is None
        assert json.loads(route.calls.last.request.content) == {
            "kind": "DeleteOptions",
            "apiVersion": "v1",
            "preconditions": {},
            "propagationPolicy": "Orphan",
        }


def test_delete_atomic_with_grace_period():
    widget = Widget(metadata=ObjectMeta(name="w1", namespace="ns", uid="abc"))
    with respx.mock() as mock, Client(ENDPOINT) as client:
        route = mock.delete(f"{WIDGETS}/w1").mock(return_value=httpx.Response(200, json={}))
        result = client.delete(widget, delete_atomic(), delete_grace_period(timedelta(seconds=30)))
        assert result is None
        assert route.call_count == 1
        assert json.loads(route.calls.last.request.content) == {
            "kind": "DeleteOptions",
            "apiVersion": "v1",
            "gracePeriodSeconds": 30,
            "preconditions": {"uid": "abc"},
            "propagationPolicy": "Background",
        }


def test_list_with_label_selector():
    selector = LabelSelector()
    selector.eq("configmap", "true")
    reply = {
        "metadata": {"resourceVersion": "10"},
        "items": [{"metadata": {"name": f"w{i}", "namespace": "ns"}} for i in range(5)],
    }
    with respx.mock() as mock, Client(ENDPOINT) as client:
        route = mock.get(
            host="k8s.example.com", path="/apis/example.com/v1/namespaces/ns/widgets"
        ).mock(return_value=httpx.Response(200, json=reply))
        listing = client.list("ns", WidgetList, selector.selector())
        assert len(listing.items) == 5
        assert [item.metadata.name for item in listing.items] == ["w0", "w1", "w2", "w3", "w4"]
        assert listing.metadata.resource_version == "10"
        assert route.calls.last.request.url.params["labelSelector"] == "configmap=true"


def test_not_found_raises_api_error():
    status = {"kind": "Status", "status": "Failure", "message": "not found", "code": 404}
    with respx.mock() as mock, Client(ENDPOINT) as client:
        mock.get(f"{WIDGETS}/i-dont-exist").mock(return_value=httpx.Response(404, json=status))
        with pytest.raises(APIError) as info:
            client.get("ns", "i-dont-exist", Widget)
        assert info.value.code == 404
        assert str(info.value) == "kubernetes api: Failure 404 not found"


def test_unreadable_error_body():
    with respx.mock() as mock, Client(ENDPOINT) as client:
        mock.get(f"{WIDGETS}/w1").mock(
            return_value=httpx.Response(500, content=b"oops", headers={"Content-Type": "text/plain"})
        )
        with pytest.raises(CodecError, match="decode error status 500"):
            client.get("ns", "w1", Widget)


def test_unreadable_success_body():
    with respx.mock() as mock, Client(ENDPOINT) as client:
        mock.get(f"{WIDGETS}/w1").mock(
            return_value=httpx.Response(200, content=b"{", headers={"Content-Type": "application/json"})
        )
        with pytest.raises(ClientError, match="decode response"):
            client.get("ns", "w1", Widget)


def test_transport_failure():
    with respx.mock() as mock, Client(ENDPOINT) as client:
        mock.get(f"{WIDGETS}/w1").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(ClientError, match="performing request"):
            client.get("ns", "w1", Widget)


def test_encoding_failure():
    with Client(ENDPOINT) as client:
        with pytest.raises(ClientError, match="encoding object"):
            client.create(_widget(spec=object()))


def test_custom_header_hook():
    def hook(headers):
        headers["X-Trace"] = "abc"

    with respx.mock() as mock, Client(ENDPOINT, set_headers=hook) as client:
        route = mock.get(f"{WIDGETS}/w1").mock(
            return_value=httpx.Response(200, json={"metadata": {"name": "w1"}})
        )
        got = client.get("ns", "w1", Widget)
        assert got.metadata.name == "w1"
        assert route.calls.last.request.headers["X-Trace"] == "abc"


def test_get_requires_namespace_for_namespaced_type():
    with Client(ENDPOINT) as client:
        with pytest.raises(ResourceError, match="no namespace provided"):
            client.get("", "w1", Widget)


def test_unregistered_type():
    with Client(ENDPOINT) as client:
        with pytest.raises(ResourceError, match="unregistered type"):
            client.get("ns", "x", Unregistered)


def test_list_rejects_namespace_for_cluster_scoped_type():
    with Client(ENDPOINT) as client:
        with pytest.raises(ResourceError, match="unregistered type"):
            client.list("ns", Gadget)