"""
Owner references between a MyApp and its children.
"""
import copy
from typing import Any, Dict, Optional

from errors import AlreadyOwnedError, CrossNamespaceOwnerError, OwnerNotPersistedError
from kube_types import ObjectKey


def _group(api_version: str) -> str:
    return api_version.split("/", 1)[0] if "/" in api_version else ""


def _same_owner(ref: Dict[str, Any], owner_ref: Dict[str, Any]) -> bool:
    return (
        _group(ref.get("apiVersion", "")) == _group(owner_ref["apiVersion"])
        and ref.get("kind") == owner_ref["kind"]
        and ref.get("name") == owner_ref["name"]
        and ref.get("uid") == owner_ref["uid"]
    )


def controller_reference(owner: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build a controller owner reference pointing at ``owner``.

    Raises:
        OwnerNotPersistedError: if the owner has no uid
    """
    metadata = owner.get("metadata") or {}
    if not metadata.get("uid"):
        raise OwnerNotPersistedError(
            f"{owner.get('kind')} {metadata.get('namespace')}/{metadata.get('name')} has no uid"
        )
    return {
        "apiVersion": owner["apiVersion"],
        "kind": owner["kind"],
        "name": metadata["name"],
        "uid": metadata["uid"],
        "controller": True,
        "blockOwnerDeletion": True,
    }


def set_controller_reference(owner: Dict[str, Any], child: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of ``child`` controlled by ``owner``.

    Other owner references are kept; a reference to the same owner is
    replaced in place.

    Args:
        owner: The MyApp object as read from the API
        child: Child object to bind

    Returns:
        New child dict

    Raises:
        OwnerNotPersistedError: the owner has no uid
        CrossNamespaceOwnerError: owner and child live in different namespaces
        AlreadyOwnedError: another owner already controls the child
    """
    owner_ref = controller_reference(owner)
    owner_ns = (owner.get("metadata") or {}).get("namespace")
    bound = copy.deepcopy(child)
    metadata = bound.setdefault("metadata", {})
    child_name = f"{bound.get('kind')} {metadata.get('namespace')}/{metadata.get('name')}"

    if owner_ns and owner_ns != metadata.get("namespace"):
        raise CrossNamespaceOwnerError(
            f"cross-namespace owner references are disallowed: {child_name} cannot be owned from {owner_ns}"
        )

    refs = list(metadata.get("ownerReferences") or [])
    for ref in refs:
        if ref.get("controller") and not _same_owner(ref, owner_ref):
            raise AlreadyOwnedError(child_name, ref)

    for i, ref in enumerate(refs):
        if _same_owner(ref, owner_ref):
            refs[i] = owner_ref
            break
    else:
        refs.append(owner_ref)
    metadata["ownerReferences"] = refs
    return bound


def owner_key(obj: Dict[str, Any], group: str, kind: str) -> Optional[ObjectKey]:
    """
    Key of the controlling owner of ``obj`` if it is a ``group``/``kind``.
    """
    metadata = obj.get("metadata") or {}
    for ref in metadata.get("ownerReferences") or []:
        if not ref.get("controller") or not ref.get("name"):
            continue
        if ref.get("kind") == kind and _group(ref.get("apiVersion", "")) == group:
            return ObjectKey(metadata.get("namespace", ""), ref["name"])
    return None
