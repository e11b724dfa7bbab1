"""
Kubernetes client acting as the resource store for the MyApp operator.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from errors import ConflictError, TransientStoreError
from kube_types import Absent, FetchResult, Found, ObjectKey, ResourceKind, object_key

logger = logging.getLogger(__name__)


def _store_error(action: str, e: ApiException) -> Exception:
    if e.status == 409:
        return ConflictError(f"{action}: {e.reason}")
    return TransientStoreError(f"{action}: {e.status} {e.reason}", status=e.status)


class KubeClient:
    """Kubernetes client for the MyApp operator."""

    def __init__(
        self,
        namespace: str = "",
        in_cluster: bool = True,
        context: str | None = None,
        group: str = "app.shimo.im",
        version: str = "v1beta1",
        plural: str = "myapps",
        kind: str = "MyApp",
    ):
        """
        Initialize Kubernetes client.

        Args:
            namespace: Namespace to watch, empty string for all namespaces
            in_cluster: Whether running inside cluster (default: True)
            context: Kubernetes context name (optional)
            group: MyApp API group
            version: MyApp API version
            plural: MyApp plural resource name
            kind: MyApp kind
        """
        self.namespace = namespace
        self.in_cluster = in_cluster
        self.group = group
        self.version = version
        self.plural = plural
        self.kind = kind

        try:
            if in_cluster:
                config.load_incluster_config()
            else:
                if context:
                    config.load_kube_config(context=context)
                else:
                    config.load_kube_config()

            self.api_client = client.ApiClient()
            self.v1 = client.CoreV1Api(self.api_client)
            self.apps_v1 = client.AppsV1Api(self.api_client)
            self.custom = client.CustomObjectsApi(self.api_client)
            logger.info(f"✅ Kubernetes client initialized for namespace: {namespace or '<all>'}")

        except Exception as e:
            logger.error(f"❌ Failed to initialize Kubernetes client: {e}")
            raise

    def to_dict(self, obj: Any) -> Dict[str, Any]:
        """Convert a typed client model into its JSON (camelCase) form."""
        if isinstance(obj, dict):
            return obj
        return self.api_client.sanitize_for_serialization(obj)

    # ------------------------------------------------------------------
    # Parent
    # ------------------------------------------------------------------
    def get_parent(self, key: ObjectKey) -> Optional[Dict[str, Any]]:
        """
        Get a MyApp.

        Returns:
            The MyApp object, or None if it does not exist
        """
        try:
            return self.custom.get_namespaced_custom_object(
                group=self.group,
                version=self.version,
                namespace=key.namespace,
                plural=self.plural,
                name=key.name,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            logger.error(f"Failed to get {self.kind} {key}: {e.status} {e.reason}")
            raise _store_error(f"get {self.kind} {key}", e) from e

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------
    def get_child(self, kind: ResourceKind, key: ObjectKey) -> FetchResult:
        """
        Get a child object.

        Returns:
            Found with the object and its resourceVersion, or Absent
        """
        read = (
            self.apps_v1.read_namespaced_deployment
            if kind is ResourceKind.DEPLOYMENT
            else self.v1.read_namespaced_service
        )
        try:
            obj = self.to_dict(read(name=key.name, namespace=key.namespace))
        except ApiException as e:
            if e.status == 404:
                return Absent()
            logger.error(f"Failed to get {kind.value} {key}: {e.status} {e.reason}")
            raise _store_error(f"get {kind.value} {key}", e) from e
        obj.setdefault("apiVersion", kind.api_version)
        obj.setdefault("kind", kind.value)
        return Found(obj, obj["metadata"].get("resourceVersion", ""))

    def create_child(self, kind: ResourceKind, obj: Dict[str, Any]) -> Dict[str, Any]:
        """Create a child object."""
        key = object_key(obj)
        create = (
            self.apps_v1.create_namespaced_deployment
            if kind is ResourceKind.DEPLOYMENT
            else self.v1.create_namespaced_service
        )
        try:
            return self.to_dict(create(namespace=key.namespace, body=obj))
        except ApiException as e:
            logger.error(f"Failed to create {kind.value} {key}: {e.status} {e.reason}")
            raise _store_error(f"create {kind.value} {key}", e) from e

    def update_child(self, kind: ResourceKind, obj: Dict[str, Any], expected_version: str) -> Dict[str, Any]:
        """
        Replace a child object.

        The API server rejects the write with 409 if the object changed
        since ``expected_version``.
        """
        key = object_key(obj)
        body = dict(obj)
        body["metadata"] = dict(obj.get("metadata") or {}, resourceVersion=expected_version)
        replace = (
            self.apps_v1.replace_namespaced_deployment
            if kind is ResourceKind.DEPLOYMENT
            else self.v1.replace_namespaced_service
        )
        try:
            return self.to_dict(replace(name=key.name, namespace=key.namespace, body=body))
        except ApiException as e:
            logger.error(f"Failed to update {kind.value} {key}: {e.status} {e.reason}")
            raise _store_error(f"update {kind.value} {key}", e) from e

    # ------------------------------------------------------------------
    # Watches
    # ------------------------------------------------------------------
    def list_call(self, kind: str) -> Tuple[Callable[..., Any], Dict[str, Any]]:
        """
        List function and kwargs for ``kind``, usable with ``watch.Watch().stream``.

        Args:
            kind: The MyApp kind, "Deployment" or "Service"
        """
        if kind == self.kind:
            kwargs = {"group": self.group, "version": self.version, "plural": self.plural}
            if self.namespace:
                return self.custom.list_namespaced_custom_object, dict(kwargs, namespace=self.namespace)
            return self.custom.list_cluster_custom_object, kwargs

        child = ResourceKind(kind)
        if self.namespace:
            func = (
                self.apps_v1.list_namespaced_deployment
                if child is ResourceKind.DEPLOYMENT
                else self.v1.list_namespaced_service
            )
            return func, {"namespace": self.namespace}
        func = (
            self.apps_v1.list_deployment_for_all_namespaces
            if child is ResourceKind.DEPLOYMENT
            else self.v1.list_service_for_all_namespaces
        )
        return func, {}

    def list_objects(self, kind: str) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """
        List all objects of ``kind``.

        Args:
            kind: The MyApp kind, "Deployment" or "Service"

        Returns:
            Objects as dicts and the list resourceVersion to watch from
        """
        func, kwargs = self.list_call(kind)
        try:
            result = self.to_dict(func(**kwargs))
        except ApiException as e:
            logger.error(f"Failed to list {kind}: {e.status} {e.reason}")
            raise
        items = result.get("items") or []
        return items, (result.get("metadata") or {}).get("resourceVersion")
