"""
Reconcile loop for MyApp resources.

One call handles one MyApp key: read the parent, then create or update its
Deployment and Service so they match the spec. Deletion is left to the
garbage collector through the owner references written here.
"""
import logging
from typing import Any, Callable, Dict, Protocol, Tuple

from errors import ConflictError, IdentityMutatedError, TransientStoreError
from kube_types import (
    Absent,
    FetchResult,
    Found,
    MyApp,
    ObjectKey,
    OperationResult,
    ResourceKind,
    new_object,
    object_key,
)
from mutators import mutate_deployment, mutate_service
from ownership import set_controller_reference

logger = logging.getLogger(__name__)

Mutator = Callable[[MyApp, Dict[str, Any]], Dict[str, Any]]

CHILDREN: Tuple[Tuple[ResourceKind, Mutator], ...] = (
    (ResourceKind.DEPLOYMENT, mutate_deployment),
    (ResourceKind.SERVICE, mutate_service),
)


class ResourceStore(Protocol):
    def get_parent(self, key: ObjectKey) -> Dict[str, Any] | None: ...

    def get_child(self, kind: ResourceKind, key: ObjectKey) -> FetchResult: ...

    def create_child(self, kind: ResourceKind, obj: Dict[str, Any]) -> Dict[str, Any]: ...

    def update_child(self, kind: ResourceKind, obj: Dict[str, Any], expected_version: str) -> Dict[str, Any]: ...


class Reconciler:
    """Drives the children of a MyApp toward its spec."""

    def __init__(self, store: ResourceStore):
        self.store = store

    def reconcile(self, key: ObjectKey) -> Dict[ResourceKind, OperationResult]:
        """
        Reconcile one MyApp.

        Args:
            key: MyApp namespace/name

        Returns:
            Outcome per child kind; empty if the MyApp no longer exists

        Raises:
            ReconcileError: on any unrecovered failure
        """
        parent = self.store.get_parent(key)
        if parent is None:
            logger.info(f"MyApp {key} not found, ignoring since object must be deleted")
            return {}

        app = MyApp.from_object(parent)
        results: Dict[ResourceKind, OperationResult] = {}
        for kind, mutate in CHILDREN:
            results[kind] = self.create_or_update(kind, parent, app, mutate)
            logger.info(f"CreateOrUpdate {kind.value} {key}: {results[kind].value}")
        return results

    def create_or_update(
        self, kind: ResourceKind, parent: Dict[str, Any], app: MyApp, mutate: Mutator
    ) -> OperationResult:
        """
        Create or update one child, retrying once on a write conflict.
        """
        try:
            return self._create_or_update(kind, parent, app, mutate)
        except ConflictError as e:
            logger.warning(f"⚠️ Conflict writing {kind.value} {app.key}, retrying: {e}")

        try:
            return self._create_or_update(kind, parent, app, mutate)
        except ConflictError as e:
            raise TransientStoreError(f"{kind.value} {app.key} still conflicting after retry: {e}", status=409) from e

    def _create_or_update(
        self, kind: ResourceKind, parent: Dict[str, Any], app: MyApp, mutate: Mutator
    ) -> OperationResult:
        fetched = self.store.get_child(kind, app.key)
        baseline = fetched.obj if isinstance(fetched, Found) else new_object(kind, app.key)
        desired = self.desired_state(kind, parent, app, baseline, mutate)

        if isinstance(fetched, Absent):
            self.store.create_child(kind, desired)
            return OperationResult.CREATED
        if desired == baseline:
            return OperationResult.UNCHANGED
        self.store.update_child(kind, desired, fetched.version)
        return OperationResult.UPDATED

    @staticmethod
    def desired_state(
        kind: ResourceKind, parent: Dict[str, Any], app: MyApp, baseline: Dict[str, Any], mutate: Mutator
    ) -> Dict[str, Any]:
        """Mutated and owner-bound copy of ``baseline``."""
        desired = set_controller_reference(parent, mutate(app, baseline))
        if object_key(desired) != app.key:
            raise IdentityMutatedError(
                f"{kind.value} mutator changed object key from {app.key} to {object_key(desired)}"
            )
        return desired
