from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EnvVar(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(..., description="Environment variable name")
    value: Optional[str] = Field(None, description="Literal value")
    value_from: Optional[Dict[str, Any]] = Field(None, alias="valueFrom")


class Container(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field("", description="Container name")
    env: Optional[List[EnvVar]] = Field(None, description="Environment variables")


class PodSpec(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    containers: Optional[List[Container]] = Field(None, description="Application containers")
    init_containers: Optional[List[Container]] = Field(None, alias="initContainers")


class ObjectMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field("", description="Object name")
    namespace: str = Field("", description="Object namespace")
    annotations: Optional[Dict[str, str]] = Field(None, description="Object annotations")
    labels: Optional[Dict[str, str]] = Field(None, description="Object labels")


class Pod(BaseModel):
    """Subset of the core/v1 Pod schema the webhook reads; other fields pass through."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: Optional[str] = Field(None, alias="apiVersion")
    kind: Optional[str] = Field(None, description="Object kind, 'Pod' when set")
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: Optional[PodSpec] = Field(None, description="Pod specification")

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def annotations(self) -> Dict[str, str]:
        return self.metadata.annotations or {}
