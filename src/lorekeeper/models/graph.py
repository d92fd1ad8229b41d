"""Graph and thread records exchanged with the hosted graph service."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

RoleType = Literal["user", "assistant", "system", "function", "tool", "norole"]


class GraphScope(BaseModel):
    """Write/read target: a standalone graph or a user's graph.

    When both are given the graph id wins.
    """

    user_id: str | None = None
    graph_id: str | None = None

    @model_validator(mode="after")
    def _require_target(self) -> GraphScope:
        if not self.user_id and not self.graph_id:
            raise ValueError("Missing user_id or graph_id for graph scope")
        return self

    @property
    def cache_key(self) -> str:
        if self.graph_id:
            return f"graph:{self.graph_id}"
        return f"user:{self.user_id}"

    def target(self) -> dict[str, str]:
        """Request fields identifying this scope."""
        if self.graph_id:
            return {"graph_id": self.graph_id}
        return {"user_id": self.user_id or ""}


class GraphNode(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uuid: str
    name: str = ""
    summary: str | None = None
    labels: list[str] | None = None
    attributes: dict[str, Any] | None = None
    created_at: str = ""
    updated_at: str = ""


class GraphEdge(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uuid: str
    source_node_uuid: str = ""
    target_node_uuid: str = ""
    type: str = ""
    name: str = ""
    fact: str = ""
    episodes: list[str] | None = None
    attributes: dict[str, Any] | None = None
    created_at: str = ""
    updated_at: str = ""
    valid_at: str | None = None
    expired_at: str | None = None
    invalid_at: str | None = None


class Triplet(BaseModel):
    source_node: GraphNode
    edge: GraphEdge
    target_node: GraphNode


class GraphSearchResults(BaseModel):
    model_config = ConfigDict(extra="ignore")

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)

    @field_validator("nodes", "edges", mode="before")
    @classmethod
    def _null_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges


class ThreadInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    thread_id: str = ""
    user_id: str = ""
    created_at: str = ""


class ThreadMessage(BaseModel):
    role: RoleType
    content: str
    name: str | None = None
    metadata: dict[str, Any] | None = None


class Episode(BaseModel):
    """One unit of raw content submitted to the graph for extraction."""

    data: str
    type: Literal["text", "json", "message"] = "text"
    source_description: str | None = None
    created_at: str | None = None
