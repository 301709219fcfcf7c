from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class EndpointEntry(BaseModel):
    type: Literal["Route", "Ingress"]
    url: str


class Properties(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    install_namespace: str = Field(default="", alias="InstallNamespace")


class ForwardedResponse(BaseModel):
    status: int = 200
    body: bytes = b""
    content_type: str


class VersionQuery(BaseModel):
    """Where and how to look for a component's version."""

    namespace: str
    label_selector: str
    label_key: str | None = None
    annotation_key: str | None = None
    image_marker: str | None = None
