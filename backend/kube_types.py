"""
Type definitions for the MyApp operator.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, List, Literal, Optional, Union

from kubernetes.utils import parse_quantity
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from errors import InvalidSpecError


@dataclass(frozen=True)
class ObjectKey:
    """Namespace/name identity shared by a MyApp and its children."""
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class ResourceKind(str, Enum):
    """Child kinds owned by a MyApp, in reconcile order."""
    DEPLOYMENT = "Deployment"
    SERVICE = "Service"

    @property
    def api_version(self) -> str:
        return "apps/v1" if self is ResourceKind.DEPLOYMENT else "v1"


class OperationResult(str, Enum):
    """Outcome of a create-or-update."""
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class Found:
    """A fetched object and the resourceVersion it was read at."""
    obj: Dict[str, Any]
    version: str


@dataclass(frozen=True)
class Absent:
    """Nothing stored under the requested key."""


FetchResult = Union[Found, Absent]


class EnvVar(BaseModel):
    name: str = Field(..., min_length=1)
    value: str = Field(default="")


class MyAppSpec(BaseModel):
    """Desired state declared by a MyApp."""
    model_config = ConfigDict(extra="ignore")

    replicas: int = Field(default=1, ge=0)
    image: str = Field(..., min_length=1)
    port: int = Field(default=80, ge=1, le=65535, description="Service port")
    targetPort: Optional[int] = Field(default=None, ge=1, le=65535, description="Container port, defaults to port")
    serviceType: Literal["ClusterIP", "NodePort", "LoadBalancer"] = Field(default="ClusterIP")
    env: List[EnvVar] = Field(default_factory=list)
    resources: Dict[str, Dict[str, Union[str, int, float]]] = Field(default_factory=dict)

    @field_validator("resources")
    @classmethod
    def quantities_as_strings(cls, v: Dict[str, Dict[str, Union[str, int, float]]]) -> Dict[str, Dict[str, str]]:
        """Accept ``cpu: 1`` as well as ``cpu: "1"``; reject amounts that are not quantities."""
        resources = {}
        for section, amounts in v.items():
            resources[section] = {}
            for name, amount in amounts.items():
                try:
                    parse_quantity(amount)
                except ValueError as e:
                    raise ValueError(f"{section}.{name}: {e}") from e
                resources[section][name] = str(amount)
        return resources

    @property
    def container_port(self) -> int:
        return self.targetPort or self.port


@dataclass(frozen=True)
class MyApp:
    """Parsed MyApp resource."""
    namespace: str
    name: str
    uid: Optional[str]
    spec: MyAppSpec

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace, self.name)

    @property
    def labels(self) -> Dict[str, str]:
        return {"app": self.name}

    @classmethod
    def from_object(cls, obj: Dict[str, Any]) -> "MyApp":
        """
        Parse a MyApp as returned by the custom objects API.

        Raises:
            InvalidSpecError: if the spec does not validate
        """
        metadata = obj.get("metadata") or {}
        try:
            spec = MyAppSpec.model_validate(obj.get("spec") or {})
        except ValidationError as e:
            raise InvalidSpecError(
                f"Invalid spec for MyApp {metadata.get('namespace')}/{metadata.get('name')}: {e}"
            ) from e
        return cls(
            namespace=metadata.get("namespace", ""),
            name=metadata.get("name", ""),
            uid=metadata.get("uid"),
            spec=spec,
        )


def new_object(kind: ResourceKind, key: ObjectKey) -> Dict[str, Any]:
    """Empty child stamped with its identity."""
    return {
        "apiVersion": kind.api_version,
        "kind": kind.value,
        "metadata": {"name": key.name, "namespace": key.namespace},
    }


def object_key(obj: Dict[str, Any]) -> ObjectKey:
    metadata = obj.get("metadata") or {}
    return ObjectKey(metadata.get("namespace", ""), metadata.get("name", ""))
