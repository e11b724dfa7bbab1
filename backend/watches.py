"""
Watch sources that trigger MyApp reconciles.

Changes to a MyApp map to its own key. Changes to a Deployment or Service
map to the MyApp that controls it, so drift on a child is corrected too.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from kube_client import KubeClient
from kube_types import ObjectKey, ResourceKind, object_key
from ownership import owner_key

KeyMapper = Callable[[Dict[str, Any]], Optional[ObjectKey]]


@dataclass
class WatchSource:
    """A listed and watched kind plus its mapping to reconcile keys."""
    kind: str
    list_func: Callable[..., Any]
    map_to_key: KeyMapper
    list_kwargs: Dict[str, Any] = field(default_factory=dict)


def key_for_object(obj: Dict[str, Any]) -> Optional[ObjectKey]:
    key = object_key(obj)
    return key if key.name else None


def key_for_owner(group: str, kind: str) -> KeyMapper:
    def mapper(obj: Dict[str, Any]) -> Optional[ObjectKey]:
        return owner_key(obj, group, kind)
    return mapper


def build_watch_sources(kube: KubeClient) -> List[WatchSource]:
    """
    Register the MyApp watch and the owned Deployment/Service watches.
    """
    sources = []
    parent_func, parent_kwargs = kube.list_call(kube.kind)
    sources.append(WatchSource(kube.kind, parent_func, key_for_object, parent_kwargs))
    for child in ResourceKind:
        func, kwargs = kube.list_call(child.value)
        sources.append(WatchSource(child.value, func, key_for_owner(kube.group, kube.kind), kwargs))
    return sources
