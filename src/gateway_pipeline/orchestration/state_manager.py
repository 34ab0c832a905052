"""
gateway_pipeline.orchestration.state_manager - State Persistence
==================================================================

Persistent storage for execution snapshots and approval requests.

    ┌──────────────┐   save/get     ┌───────────────────┐
    │  Pipeline     │ ────────────→ │                   │
    │  Orchestrator │ ←──────────── │  State Manager    │
    └──────────────┘  Execution     │                   │
    ┌──────────────┐   save/get     │  Stores:          │
    │  Approval     │ ────────────→ │  - Execution      │
    │  Manager      │ ←──────────── │  - ApprovalRequest│
    └──────────────┘  Approval      └───────────────────┘

Key Schema:
    - execution:{execution_id}  → PipelineExecution
    - approval:{request_id}     → ApprovalRequest

Implementations:
    - StateManager (ABC):        Abstract interface
    - InMemoryStateManager:      Dict-based for dev/testing
    - JsonFileStateManager:      One JSON document per record, for an
                                 on-disk audit trail of every execution
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, TypeVar

from pydantic import BaseModel, ValidationError

from gateway_pipeline.core.enums import ApprovalState
from gateway_pipeline.core.exceptions import StateError
from gateway_pipeline.core.state import ApprovalRequest, PipelineExecution


logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


# =============================================================================
# Abstract Base Class: StateManager
# =============================================================================
class StateManager(ABC):
    """Abstract base class for state persistence implementations.

    Implementations store copies: mutating a returned snapshot never changes
    what is stored.
    """

    # -------------------------------------------------------------------------
    # Connection Lifecycle
    # -------------------------------------------------------------------------
    @abstractmethod
    async def connect(self) -> None:
        """Open the backing store."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the backing store."""
        ...

    # -------------------------------------------------------------------------
    # Executions
    # -------------------------------------------------------------------------
    @abstractmethod
    async def save_execution(self, execution: PipelineExecution) -> None:
        """Persist (insert or overwrite) an execution snapshot."""
        ...

    @abstractmethod
    async def get_execution(self, execution_id: str) -> Optional[PipelineExecution]:
        """Retrieve an execution snapshot, or None if unknown."""
        ...

    @abstractmethod
    async def list_executions(
        self, commit_id: Optional[str] = None
    ) -> list[PipelineExecution]:
        """List executions ordered by creation time, optionally for one commit."""
        ...

    # -------------------------------------------------------------------------
    # Approvals
    # -------------------------------------------------------------------------
    @abstractmethod
    async def save_approval(self, request: ApprovalRequest) -> None:
        ...

    @abstractmethod
    async def get_approval(self, request_id: str) -> Optional[ApprovalRequest]:
        ...

    @abstractmethod
    async def list_approvals(
        self, state: Optional[ApprovalState] = None
    ) -> list[ApprovalRequest]:
        """List approval requests, optionally filtered by state."""
        ...

    async def get_approval_for_execution(
        self, execution_id: str
    ) -> Optional[ApprovalRequest]:
        """Latest approval request that gates the given execution."""
        matches = [
            r for r in await self.list_approvals() if r.execution_id == execution_id
        ]
        if not matches:
            return None
        return max(matches, key=lambda r: r.created_at)


# =============================================================================
# In-Memory Implementation
# =============================================================================
class InMemoryStateManager(StateManager):
    """Dict-based state manager for development and testing."""

    def __init__(self) -> None:
        self._executions: dict[str, PipelineExecution] = {}
        self._approvals: dict[str, ApprovalRequest] = {}
        self._connected = False

    async def connect(self) -> None:
        self._connected = True
        logger.info("InMemoryStateManager connected")

    async def disconnect(self) -> None:
        self._connected = False
        logger.info("InMemoryStateManager disconnected")

    async def save_execution(self, execution: PipelineExecution) -> None:
        self._executions[execution.execution_id] = execution.model_copy(deep=True)
        logger.debug(
            "Saved execution %s (status=%s, promotion=%s)",
            execution.execution_id,
            execution.status.value,
            execution.promotion_state.value,
        )

    async def get_execution(self, execution_id: str) -> Optional[PipelineExecution]:
        execution = self._executions.get(execution_id)
        return execution.model_copy(deep=True) if execution else None

    async def list_executions(
        self, commit_id: Optional[str] = None
    ) -> list[PipelineExecution]:
        executions = [
            e.model_copy(deep=True)
            for e in self._executions.values()
            if commit_id is None or e.commit_id == commit_id
        ]
        return sorted(executions, key=lambda e: e.created_at)

    async def save_approval(self, request: ApprovalRequest) -> None:
        self._approvals[request.request_id] = request.model_copy(deep=True)
        logger.debug(
            "Saved approval %s (execution=%s, state=%s)",
            request.request_id,
            request.execution_id,
            request.state.value,
        )

    async def get_approval(self, request_id: str) -> Optional[ApprovalRequest]:
        request = self._approvals.get(request_id)
        return request.model_copy(deep=True) if request else None

    async def list_approvals(
        self, state: Optional[ApprovalState] = None
    ) -> list[ApprovalRequest]:
        requests = [
            r.model_copy(deep=True)
            for r in self._approvals.values()
            if state is None or r.state == state
        ]
        return sorted(requests, key=lambda r: r.created_at)


# =============================================================================
# JSON File Implementation
# =============================================================================
# Layout under the state directory:
#   executions/{execution_id}.json
#   approvals/{request_id}.json
# Files are rewritten in place on every save; the directory is the audit
# trail of every execution the pipeline has run.
# =============================================================================
class JsonFileStateManager(StateManager):
    """State manager writing one JSON document per record.

    Args:
        state_dir: Directory to store documents under. Created on connect.

    Example:
        >>> sm = JsonFileStateManager("/var/lib/gateway-pipeline")
        >>> await sm.connect()
        >>> await sm.save_execution(execution)
    """

    def __init__(self, state_dir: str | Path) -> None:
        self._root = Path(state_dir)
        self._executions_dir = self._root / "executions"
        self._approvals_dir = self._root / "approvals"

    @property
    def root(self) -> Path:
        return self._root

    async def connect(self) -> None:
        try:
            self._executions_dir.mkdir(parents=True, exist_ok=True)
            self._approvals_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StateError(
                message=f"Cannot create state directory {self._root}",
                error_code="STATE_DIR_UNAVAILABLE",
                details={"path": str(self._root), "error": str(e)},
            ) from e
        logger.info("JsonFileStateManager connected at %s", self._root)

    async def disconnect(self) -> None:
        logger.info("JsonFileStateManager disconnected")

    async def save_execution(self, execution: PipelineExecution) -> None:
        self._write(
            self._executions_dir / f"{execution.execution_id}.json",
            execution.model_dump_json(indent=2),
        )

    async def get_execution(self, execution_id: str) -> Optional[PipelineExecution]:
        path = self._executions_dir / f"{execution_id}.json"
        return self._read(path, PipelineExecution)

    async def list_executions(
        self, commit_id: Optional[str] = None
    ) -> list[PipelineExecution]:
        executions = [
            e
            for e in (
                self._read(p, PipelineExecution)
                for p in sorted(self._executions_dir.glob("*.json"))
            )
            if e is not None and (commit_id is None or e.commit_id == commit_id)
        ]
        return sorted(executions, key=lambda e: e.created_at)

    async def save_approval(self, request: ApprovalRequest) -> None:
        self._write(
            self._approvals_dir / f"{request.request_id}.json",
            request.model_dump_json(indent=2),
        )

    async def get_approval(self, request_id: str) -> Optional[ApprovalRequest]:
        return self._read(self._approvals_dir / f"{request_id}.json", ApprovalRequest)

    async def list_approvals(
        self, state: Optional[ApprovalState] = None
    ) -> list[ApprovalRequest]:
        requests = [
            r
            for r in (
                self._read(p, ApprovalRequest)
                for p in sorted(self._approvals_dir.glob("*.json"))
            )
            if r is not None and (state is None or r.state == state)
        ]
        return sorted(requests, key=lambda r: r.created_at)

    # -------------------------------------------------------------------------
    # File helpers
    # -------------------------------------------------------------------------
    @staticmethod
    def _write(path: Path, document: str) -> None:
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(document, encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise StateError(
                message=f"Failed to write {path.name}",
                error_code="STATE_WRITE_FAILED",
                details={"path": str(path), "error": str(e)},
            ) from e
        logger.debug("Wrote %s", path)

    @staticmethod
    def _read(path: Path, model: type[T]) -> Optional[T]:
        if not path.exists():
            return None
        try:
            return model.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            raise StateError(
                message=f"Failed to read {path.name}",
                error_code="STATE_READ_FAILED",
                details={"path": str(path), "error": str(e)},
            ) from e
