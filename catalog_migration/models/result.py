"""Result records for migrations, target instances, display scopes and entities."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .target import WriteScope


class InstanceMode(str, Enum):
    """Action chosen for a target instance after the existence check."""
    FULL_CREATION = "full-creation"
    VARIANT_SYNC = "variant-sync"
    NO_ACTION = "no-action"
    PRICE_SYNC = "price-sync"


class InstanceState(str, Enum):
    """Lifecycle of one target instance within a migration."""
    UNRESOLVED = "unresolved"
    EXISTENCE_CHECKED = "existence_checked"
    FULL_CREATION = "full_creation"
    VARIANT_SYNC = "variant_sync"
    NO_ACTION = "no_action"
    PRICE_SYNC = "price_sync"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class EntityOutcome:
    """Outcome of one write against a single product."""
    code: str
    success: bool
    reason: Optional[str] = None
    target_id: Optional[str] = None
    action: str = "create"

    def to_dict(self) -> Dict[str, Any]:
        data = {"code": self.code, "success": self.success, "action": self.action}
        if self.target_id:
            data["target_id"] = self.target_id
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass
class CreationResult:
    """Outcome of a full creation or variant sync on one target instance."""
    mode: InstanceMode
    parent_target_id: Optional[str] = None
    variant_outcomes: List[EntityOutcome] = field(default_factory=list)
    link_outcomes: List[EntityOutcome] = field(default_factory=list)
    skipped_children: List[Dict[str, str]] = field(default_factory=list)
    images_uploaded: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def created_children(self) -> List[str]:
        return [outcome.code for outcome in self.variant_outcomes if outcome.success]

    @property
    def linked_children(self) -> List[str]:
        return [outcome.code for outcome in self.link_outcomes if outcome.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "parent_target_id": self.parent_target_id,
            "children_created": len(self.created_children),
            "created_children": self.created_children,
            "children_skipped": len(self.skipped_children),
            "skipped_children": self.skipped_children,
            "variants": [outcome.to_dict() for outcome in self.variant_outcomes],
            "links": [outcome.to_dict() for outcome in self.link_outcomes],
            "images_uploaded": self.images_uploaded,
            "errors": self.errors,
            "warnings": self.warnings,
        }


@dataclass
class ScopeResult:
    """Result of the writes issued for one display scope."""
    scope: str
    write_scope: WriteScope
    success: bool = False
    outcomes: List[EntityOutcome] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": self.scope,
            "write_scope": self.write_scope.value,
            "success": self.success,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
            "errors": self.errors,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class InstanceResult:
    """Result of migrating one product to one target instance."""
    instance: str
    platform: str = ""
    mode: Optional[InstanceMode] = None
    state: InstanceState = InstanceState.UNRESOLVED
    scope_results: List[ScopeResult] = field(default_factory=list)
    created_children: List[str] = field(default_factory=list)
    skipped_children: List[Dict[str, str]] = field(default_factory=list)
    parent_target_id: Optional[str] = None
    website_ids: List[int] = field(default_factory=list)
    images_uploaded: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        """An instance succeeds when at least one of its scopes succeeded, or nothing had to be written."""
        if self.state == InstanceState.FAILED:
            return False
        if self.mode == InstanceMode.NO_ACTION:
            return True
        return any(scope.success for scope in self.scope_results)

    @property
    def children_created(self) -> int:
        return len(self.created_children)

    @property
    def all_errors(self) -> List[Dict[str, Any]]:
        """Instance-level errors followed by every scope's errors."""
        errors = list(self.errors)
        for scope in self.scope_results:
            errors.extend(scope.errors)
        return errors

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def add_error(self, error: Dict[str, Any]) -> None:
        error.setdefault("instance", self.instance)
        self.errors.append(error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instance": self.instance,
            "platform": self.platform,
            "success": self.success,
            "mode": self.mode.value if self.mode else None,
            "state": self.state.value,
            "parent_target_id": self.parent_target_id,
            "website_ids": self.website_ids,
            "children_created": self.children_created,
            "created_children": self.created_children,
            "children_skipped": len(self.skipped_children),
            "skipped_children": self.skipped_children,
            "images_uploaded": self.images_uploaded,
            "scopes": [scope.to_dict() for scope in self.scope_results],
            "errors": self.errors,
            "warnings": self.warnings,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class MigrationResult:
    """Aggregate result of migrating one composite product to every requested instance."""
    source_code: str
    instance_results: Dict[str, InstanceResult] = field(default_factory=dict)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    phase_durations: Dict[str, float] = field(default_factory=dict)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        """True only if extraction worked and every requested instance succeeded."""
        if self.errors or not self.instance_results:
            return False
        return all(result.success for result in self.instance_results.values())

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    @property
    def summary(self) -> Dict[str, Any]:
        results = list(self.instance_results.values())
        return {
            "instances_requested": len(results),
            "instances_succeeded": sum(1 for r in results if r.success),
            "instances_failed": sum(1 for r in results if not r.success),
            "children_created": sum(r.children_created for r in results),
            "errors_count": len(self.errors) + sum(len(r.all_errors) for r in results),
            "warnings_count": len(self.warnings) + sum(len(r.warnings) for r in results),
            "total_duration_seconds": self.duration_seconds,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_code": self.source_code,
            "success": self.success,
            "instances": {name: result.to_dict() for name, result in self.instance_results.items()},
            "summary": self.summary,
            "phase_durations": self.phase_durations,
            "errors": self.errors,
            "warnings": self.warnings,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
