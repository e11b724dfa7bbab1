"""
Shared fixtures: an in-memory resource store that behaves like the API
server for the fields the reconciler cares about.
"""
import copy

import pytest
from kubernetes.utils import parse_quantity

from errors import ConflictError, TransientStoreError
from kube_types import Absent, Found, ResourceKind, object_key


def _canonical_quantity(amount):
    """Rough stand-in for the API server's quantity canonicalization ("1000m" -> "1", "0.5" -> "500m")."""
    value = parse_quantity(amount)
    if value == value.to_integral_value():
        return str(int(value))
    millis = value * 1000
    if millis == millis.to_integral_value():
        return f"{int(millis)}m"
    return str(amount)


def _as_served(obj):
    """Apply the omitempty and quantity rewriting the API server does on write."""
    containers = obj.get("spec", {}).get("template", {}).get("spec", {}).get("containers") or []
    for container in containers:
        for env in container.get("env") or []:
            if env.get("value") == "":
                del env["value"]
        for amounts in (container.get("resources") or {}).values():
            for name, amount in amounts.items():
                amounts[name] = _canonical_quantity(amount)
    return obj


class FakeStore:
    """In-memory stand-in for KubeClient."""

    def __init__(self):
        self.parents = {}
        self.objects = {}
        self.calls = []
        self.create_conflicts = 0
        self.update_conflicts = 0
        self._version = 100

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def add_parent(self, obj):
        self.parents[object_key(obj)] = copy.deepcopy(obj)

    def put(self, kind, obj):
        """Store an object directly, as another actor would."""
        stored = _as_served(copy.deepcopy(obj))
        stored["metadata"]["resourceVersion"] = self._next_version()
        stored["metadata"].setdefault("uid", f"uid-{kind.value.lower()}-{self._version}")
        if kind is ResourceKind.SERVICE:
            stored.setdefault("spec", {}).setdefault("clusterIP", "10.96.0.10")
        self.objects[(kind, object_key(stored))] = stored
        return copy.deepcopy(stored)

    def get_parent(self, key):
        self.calls.append(("get", "MyApp", key))
        obj = self.parents.get(key)
        return copy.deepcopy(obj) if obj is not None else None

    def get_child(self, kind, key):
        self.calls.append(("get", kind, key))
        obj = self.objects.get((kind, key))
        if obj is None:
            return Absent()
        return Found(copy.deepcopy(obj), obj["metadata"]["resourceVersion"])

    def create_child(self, kind, obj):
        key = object_key(obj)
        self.calls.append(("create", kind, key))
        if self.create_conflicts:
            self.create_conflicts -= 1
            self.put(kind, obj)
            raise ConflictError(f"{kind.value} {key} already exists")
        if (kind, key) in self.objects:
            raise ConflictError(f"{kind.value} {key} already exists")
        return self.put(kind, obj)

    def update_child(self, kind, obj, expected_version):
        key = object_key(obj)
        self.calls.append(("update", kind, key))
        current = self.objects.get((kind, key))
        if current is None:
            raise TransientStoreError(f"{kind.value} {key} not found", status=404)
        if self.update_conflicts:
            self.update_conflicts -= 1
            current["metadata"]["resourceVersion"] = self._next_version()
            raise ConflictError(f"{kind.value} {key} was modified")
        if current["metadata"]["resourceVersion"] != expected_version:
            raise ConflictError(f"{kind.value} {key} was modified")
        stored = _as_served(copy.deepcopy(obj))
        stored["metadata"]["resourceVersion"] = self._next_version()
        self.objects[(kind, key)] = stored
        return copy.deepcopy(stored)

    def writes(self, kind=None):
        return [c for c in self.calls if c[0] in ("create", "update") and (kind is None or c[1] is kind)]

    def get(self, kind, key):
        return self.objects[(kind, key)]


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def make_myapp():
    def _make(name="demo", namespace="default", uid="uid-demo", **spec):
        body = {"replicas": 2, "image": "nginx:1.0", "port": 80}
        body.update(spec)
        return {
            "apiVersion": "app.shimo.im/v1beta1",
            "kind": "MyApp",
            "metadata": {"name": name, "namespace": namespace, "uid": uid, "resourceVersion": "1"},
            "spec": body,
        }
    return _make
