"""
Desired-state mutators for the children of a MyApp.

Each mutator takes the parsed MyApp and the current child (or an empty
baseline) and returns a new object. Only the fields this operator owns are
written, so server defaults and fields set by other controllers survive.
"""
import copy
from typing import Any, Dict, List, Optional

from kubernetes.utils import parse_quantity

from kube_types import MyApp

PORT_NAME = "http"
PORTS_WITH_NODE_PORT = ("NodePort", "LoadBalancer")


def _merge_labels(current: Optional[Dict[str, str]], labels: Dict[str, str]) -> Dict[str, str]:
    merged = dict(current or {})
    merged.update(labels)
    return merged


def _same_quantities(current: Any, desired: Dict[str, Dict[str, str]]) -> bool:
    """True if ``current`` resources hold the same amounts as ``desired``, in any notation."""
    if not isinstance(current, dict) or set(current) != set(desired):
        return False
    for section, amounts in desired.items():
        existing = current.get(section)
        if not isinstance(existing, dict) or set(existing) != set(amounts):
            return False
        try:
            if any(parse_quantity(existing[name]) != parse_quantity(value) for name, value in amounts.items()):
                return False
        except ValueError:
            return False
    return True


def _resources(app: MyApp, current: Any) -> Dict[str, Any]:
    # the API server rewrites quantities canonically ("1000m" -> "1"); keep its form when equal
    if _same_quantities(current, app.spec.resources):
        return copy.deepcopy(current)
    return copy.deepcopy(app.spec.resources)


def _env(app: MyApp) -> List[Dict[str, str]]:
    # empty values are omitted by the API server
    return [{"name": e.name, "value": e.value} if e.value else {"name": e.name} for e in app.spec.env]


def _container_ports(app: MyApp) -> List[Dict[str, Any]]:
    return [{"name": PORT_NAME, "containerPort": app.spec.container_port, "protocol": "TCP"}]


def mutate_deployment(app: MyApp, current: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the desired Deployment for a MyApp.

    Args:
        app: Parsed MyApp
        current: Existing Deployment, or an empty baseline

    Returns:
        New Deployment dict
    """
    deploy = copy.deepcopy(current)

    metadata = deploy.setdefault("metadata", {})
    metadata["labels"] = _merge_labels(metadata.get("labels"), app.labels)

    spec = deploy.setdefault("spec", {})
    spec["replicas"] = app.spec.replicas
    selector = spec.get("selector") or {}
    selector["matchLabels"] = dict(app.labels)
    spec["selector"] = selector

    template = spec.setdefault("template", {})
    template_metadata = template.setdefault("metadata", {})
    template_metadata["labels"] = _merge_labels(template_metadata.get("labels"), app.labels)

    pod_spec = template.setdefault("spec", {})
    containers = pod_spec.get("containers") or []
    container = next((c for c in containers if c.get("name") == app.name), None)
    if container is None:
        container = {"name": app.name}
        containers.append(container)

    container["image"] = app.spec.image
    container["ports"] = _container_ports(app)
    container["resources"] = _resources(app, container.get("resources"))
    if app.spec.env:
        container["env"] = _env(app)
    else:
        container.pop("env", None)
    pod_spec["containers"] = containers

    return deploy


def mutate_service(app: MyApp, current: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the desired Service for a MyApp.

    The ``http`` port is rewritten; an allocated nodePort on it is kept
    for NodePort and LoadBalancer services. Cluster IPs are never touched.
    """
    svc = copy.deepcopy(current)

    metadata = svc.setdefault("metadata", {})
    metadata["labels"] = _merge_labels(metadata.get("labels"), app.labels)

    spec = svc.setdefault("spec", {})
    spec["type"] = app.spec.serviceType
    spec["selector"] = dict(app.labels)

    port = {
        "name": PORT_NAME,
        "port": app.spec.port,
        "targetPort": app.spec.container_port,
        "protocol": "TCP",
    }
    ports = spec.get("ports") or []
    for i, existing in enumerate(ports):
        # a lone unnamed port is ours too
        if existing.get("name") == PORT_NAME or (len(ports) == 1 and not existing.get("name")):
            if existing.get("nodePort") and app.spec.serviceType in PORTS_WITH_NODE_PORT:
                port["nodePort"] = existing["nodePort"]
            ports[i] = port
            break
    else:
        ports.append(port)
    spec["ports"] = ports

    return svc
