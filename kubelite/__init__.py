"""A small Kubernetes API client: kubeconfig loading, resource registration,
label selectors, discovery and watches."""

__version__ = "0.1.0"