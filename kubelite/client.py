"""A client for the Kubernetes API server."""

from __future__ import annotations

import base64
import os
import ssl
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx

from .codec import CodecError, content_type_for, marshal, unmarshal
from .config import AuthInfo, Cluster, Config, ConfigError, Context
from .errors import check_status_code
from .resource import (
    DeleteOptions,
    Option,
    Resource,
    resource_get_url,
    resource_list_url,
    resource_url,
)

ALL_NAMESPACES = ""
DEFAULT_NAMESPACE = "default"

_SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")

HeaderHook = Callable[[httpx.Headers], None]


class ClientError(Exception):
    """A request could not be encoded, sent or decoded."""


class Client:
    """A Kubernetes API client.

    ``set_headers`` is called with the headers of every request and may
    change them, for example to add credentials.
    """

    def __init__(
        self,
        endpoint: str,
        namespace: str = DEFAULT_NAMESPACE,
        set_headers: HeaderHook | None = None,
        http: httpx.Client | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.namespace = namespace
        self.set_headers = set_headers
        self.http = http if http is not None else httpx.Client()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the connections held by the underlying HTTP client."""
        self.http.close()

    def _new_request(
        self,
        verb: str,
        url: str,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Request:
        request = self.http.build_request(verb, url, content=content, headers=headers)
        if self.set_headers is not None:
            self.set_headers(request.headers)
        return request

    def do(self, verb: str, url: str, req: Any = None, resp_cls: Any = None) -> Any:
        """Send a request and decode the response into resp_cls, if given."""
        headers: dict[str, str] = {}
        content = None
        if req is not None:
            try:
                content_type, content = marshal(req)
            except CodecError as exc:
                raise ClientError(f"encoding object: {exc}") from exc
            headers["Content-Type"] = content_type
            headers["Accept"] = content_type
        elif resp_cls is not None:
            headers["Accept"] = content_type_for(resp_cls)

        request = self._new_request(verb, url, content=content, headers=headers)
        try:
            response = self.http.send(request)
        except httpx.HTTPError as exc:
            raise ClientError(f"performing request: {exc}") from exc
        try:
            body = response.content
        finally:
            response.close()

        response_type = response.headers.get("Content-Type", "")
        check_status_code(response_type, response.status_code, body)
        if resp_cls is None:
            return None
        try:
            return unmarshal(body, response_type, resp_cls)
        except CodecError as exc:
            raise ClientError(f"decode response: {exc}") from exc

    def create(self, req: Resource, *args: Option) -> Any:
        """Create a resource and return the server's copy of it."""
        url = resource_url(self.endpoint, req, False, *args)
        return self.do("POST", url, req, type(req))

    def delete(self, req: Resource, *args: Option) -> None:
        """Delete a resource."""
        url = resource_url(self.endpoint, req, True, *args)
        options = DeleteOptions()
        for option in args:
            option.update_delete(req, options)
        self.do("DELETE", url, options, None)

    def update(self, req: Resource, *args: Option) -> Any:
        """Replace a resource and return the server's copy of it."""
        url = resource_url(self.endpoint, req, True, *args)
        return self.do("PUT", url, req, type(req))

    def get(self, namespace: str, name: str, cls: Any, *args: Option) -> Any:
        """Fetch one resource of the given class by name."""
        url = resource_get_url(self.endpoint, namespace, name, cls, *args)
        return self.do("GET", url, None, cls)

    def list(self, namespace: str, cls: Any, *args: Option) -> Any:
        """List resources; an empty namespace lists across all namespaces."""
        url = resource_list_url(self.endpoint, namespace, cls, *args)
        return self.do("GET", url, None, cls)


def _only(items: list[Any], plural: str, singular: str) -> Any:
    if not items:
        raise ConfigError(f"no {plural} provided")
    if len(items) > 1:
        raise ConfigError(f"multiple {plural} but no current context")
    return items[0]


def new_client(config: Config) -> Client:
    """Build a client from a kubeconfig."""
    if not config.contexts:
        if config.current_context:
            raise ConfigError(f'no contexts with name "{config.current_context}"')
        if not config.clusters:
            raise ConfigError("no clusters provided")
        if len(config.clusters) > 1:
            raise ConfigError("multiple clusters but no current context")
        if not config.auth_infos:
            raise ConfigError("no users provided")
        if len(config.auth_infos) > 1:
            raise ConfigError("multiple users but no current context")
        return _new_client(
            config.clusters[0].cluster, config.auth_infos[0].auth_info, DEFAULT_NAMESPACE
        )

    context: Context
    if not config.current_context:
        if len(config.contexts) > 1:
            raise ConfigError("multiple contexts but no current context")
        context = config.contexts[0].context
    else:
        found = next(
            (named.context for named in config.contexts if named.name == config.current_context),
            None,
        )
        if found is None:
            raise ConfigError(f'no config named "{config.current_context}"')
        context = found

    if not context.cluster:
        raise ConfigError("context doesn't have a cluster")
    if not context.auth_info:
        raise ConfigError("context doesn't have a user")

    user = next(
        (named.auth_info for named in config.auth_infos if named.name == context.auth_info),
        None,
    )
    if user is None:
        raise ConfigError(f'no user named "{context.auth_info}"')
    cluster = next(
        (named.cluster for named in config.clusters if named.name == context.cluster),
        None,
    )
    if cluster is None:
        raise ConfigError(f'no cluster named "{context.cluster}"')

    return _new_client(cluster, user, context.namespace or DEFAULT_NAMESPACE)


def new_in_cluster_client() -> Client:
    """Build a client from the service account mounted into a pod."""
    host = os.environ.get("KUBERNETES_SERVICE_HOST", "")
    port = os.environ.get("KUBERNETES_SERVICE_PORT", "")
    if not host or not port:
        raise ConfigError(
            "unable to load in-cluster configuration, KUBERNETES_SERVICE_HOST "
            "and KUBERNETES_SERVICE_PORT must be defined"
        )
    try:
        namespace = (_SERVICE_ACCOUNT_DIR / "namespace").read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"read namespace: {exc}") from exc

    hostport = f"[{host}]:{port}" if ":" in host else f"{host}:{port}"
    cluster = Cluster(
        server=f"https://{hostport}",
        certificate_authority=str(_SERVICE_ACCOUNT_DIR / "ca.crt"),
    )
    user = AuthInfo(token_file=str(_SERVICE_ACCOUNT_DIR / "token"))
    return _new_client(cluster, user, namespace)


def _load(path: str, data: bytes) -> bytes:
    if path:
        return Path(path).read_bytes()
    return data


def _load_key_pair(context: ssl.SSLContext, cert: bytes, key: bytes) -> None:
    with tempfile.TemporaryDirectory() as directory:
        cert_path = Path(directory, "client.crt")
        key_path = Path(directory, "client.key")
        cert_path.write_bytes(cert)
        key_path.write_bytes(key)
        try:
            context.load_cert_chain(str(cert_path), str(key_path))
        except (ssl.SSLError, OSError, ValueError) as exc:
            raise ConfigError(f"invalid client cert and key pair: {exc}") from exc


def _tls_context(
    cluster: Cluster, ca: bytes, client_cert: bytes, client_key: bytes
) -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    if ca:
        try:
            context.load_verify_locations(cadata=ca.decode("ascii"))
        except (ssl.SSLError, ValueError, UnicodeDecodeError) as exc:
            raise ConfigError("certificate authority doesn't contain any certificates") from exc
    else:
        context.load_default_certs()
    if cluster.insecure_skip_tls_verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    if client_cert:
        _load_key_pair(context, client_cert, client_key)
    return context


def _header_setter(value: str) -> HeaderHook:
    def set_headers(headers: httpx.Headers) -> None:
        headers["Authorization"] = value

    return set_headers


def _new_client(cluster: Cluster, user: AuthInfo, namespace: str) -> Client:
    if not cluster.server:
        raise ConfigError("no cluster endpoint provided")
    try:
        ca = _load(cluster.certificate_authority, cluster.certificate_authority_data)
    except OSError as exc:
        raise ConfigError(f"loading certificate authority: {exc}") from exc
    try:
        client_cert = _load(user.client_certificate, user.client_certificate_data)
        client_key = _load(user.client_key, user.client_key_data)
    except OSError as exc:
        raise ConfigError(f"load client cert: {exc}") from exc

    context = _tls_context(cluster, ca, client_cert, client_key)

    token = user.token
    if user.token_file:
        try:
            token = Path(user.token_file).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"load token file: {exc}") from exc

    set_headers = None
    if token:
        set_headers = _header_setter(f"Bearer {token}")
    if user.username and user.password:
        credentials = f"{user.username}:{user.password}".encode("utf-8")
        set_headers = _header_setter("Basic " + base64.b64encode(credentials).decode("ascii"))

    http = httpx.Client(
        verify=context,
        timeout=httpx.Timeout(None, connect=30.0),
        limits=httpx.Limits(max_keepalive_connections=100, keepalive_expiry=90.0),
        trust_env=True,
    )
    return Client(cluster.server, namespace=namespace, set_headers=set_headers, http=http)