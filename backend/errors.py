"""
Errors raised while reconciling a MyApp.

Every error carries a ``retryable`` flag. Workers requeue retryable errors
with backoff and drop the rest until the next watch event for the key.
"""


class ReconcileError(Exception):
    """Base class for reconcile failures."""

    retryable = True


class TransientStoreError(ReconcileError):
    """The resource store failed with something other than NotFound/Conflict."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ConflictError(ReconcileError):
    """Optimistic-concurrency violation (HTTP 409)."""


class OwnerNotPersistedError(ReconcileError):
    """The owner has no uid yet, so no reference can point at it."""


class NonRetryableError(ReconcileError):
    """Retrying will not help without an external change."""

    retryable = False


class InvalidSpecError(NonRetryableError):
    """The MyApp spec cannot be turned into child resources."""


class IdentityMutatedError(NonRetryableError):
    """A mutator changed the name or namespace of the object it was given."""


class OwnershipError(NonRetryableError):
    """The child cannot be bound to the owner."""


class AlreadyOwnedError(OwnershipError):
    """The child is already controlled by a different owner."""

    def __init__(self, child: str, owner: dict):
        super().__init__(
            f"{child} is already owned by {owner.get('kind')}/{owner.get('name')} (uid={owner.get('uid')})"
        )
        self.owner = owner


class CrossNamespaceOwnerError(OwnershipError):
    """Namespaced owners can only own objects in their own namespace."""
