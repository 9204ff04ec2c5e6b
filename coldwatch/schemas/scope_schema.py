# coldwatch/schemas/scope_schema.py

from enum import Enum
from pydantic import BaseModel, ConfigDict


class ScopeKind(str, Enum):
    BRANCH = "branch"
    BRANCHES = "branches"   # región ya resuelta a sus sucursales
    REGION = "region"
    ALL = "all"


class Scope(BaseModel):
    """Conjunto de dispositivos que puede observar una vista del dashboard."""
    model_config = ConfigDict(frozen=True)

    kind: ScopeKind
    branch_id: str | None = None
    region_id: str | None = None
    branch_ids: tuple[str, ...] = ()

    @classmethod
    def branch(cls, branch_id: str) -> "Scope":
        return cls(kind=ScopeKind.BRANCH, branch_id=branch_id)

    @classmethod
    def region(cls, region_id: str) -> "Scope":
        return cls(kind=ScopeKind.REGION, region_id=region_id)

    @classmethod
    def branches(cls, branch_ids, region_id: str | None = None) -> "Scope":
        return cls(kind=ScopeKind.BRANCHES, branch_ids=tuple(branch_ids), region_id=region_id)

    @classmethod
    def all(cls) -> "Scope":
        return cls(kind=ScopeKind.ALL)

    def describe(self) -> str:
        if self.kind == ScopeKind.BRANCH:
            return f"branch:{self.branch_id}"
        if self.kind in (ScopeKind.REGION, ScopeKind.BRANCHES) and self.region_id:
            return f"region:{self.region_id}"
        if self.kind == ScopeKind.BRANCHES:
            return f"branches:{','.join(self.branch_ids)}"
        return "all"
