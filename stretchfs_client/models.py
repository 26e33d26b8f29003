"""Pydantic models for StretchFS requests and session responses."""

from typing import List, Dict, Optional, Any
from pydantic import BaseModel, ConfigDict, Field


class Session(BaseModel):
    """Session object returned by user/login and user/logout."""
    model_config = ConfigDict(extra="allow")

    token: Optional[str] = None


class RequestSpec(BaseModel):
    """HTTP request the server should issue on the job's behalf."""
    model_config = ConfigDict(extra="allow")

    method: str = "GET"
    url: str
    headers: Optional[Dict[str, str]] = None


class JobCallback(BaseModel):
    """Callback fired by the server when the job finishes."""
    model_config = ConfigDict(extra="allow")

    request: RequestSpec


class JobResource(BaseModel):
    """Remote resource the job fetches before running."""
    model_config = ConfigDict(extra="allow")

    name: str
    request: RequestSpec


class JobDescription(BaseModel):
    """
    Job description sent to job/create.

    Plain dicts are accepted too; this model only helps build the common
    callback + resource list shape.
    """
    model_config = ConfigDict(extra="allow")

    callback: Optional[JobCallback] = None
    resource: List[JobResource] = Field(default_factory=list)


def dump_description(description: Any) -> Any:
    """Return a JSON-ready form of a job description."""
    if isinstance(description, BaseModel):
        return description.model_dump(exclude_none=True)
    return description
