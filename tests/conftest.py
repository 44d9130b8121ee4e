from io import StringIO
from pathlib import Path
from typing import List, Optional

import pytest

from clouddev.utils.backend import FileStateBackend, StackReference, UpdateOperation
from clouddev.utils.config import WorkspaceContext
from clouddev.utils.diag import Diag
from clouddev.utils.results import UpdateResult


class FakeBackend(FileStateBackend):
    """File state backend whose stacks live in memory."""

    def __init__(self, context: WorkspaceContext, stacks: Optional[List[str]] = None,
                 result: Optional[UpdateResult] = None):
        super().__init__("file://~", context)
        self.stacks = list(stacks or [])
        self.created: List[str] = []
        self.current: Optional[str] = None
        self.result = result or UpdateResult.succeeded({"ip": "203.0.113.10"})
        self.operations: List[UpdateOperation] = []

    def list_stacks(self) -> List[str]:
        return list(self.stacks)

    def create_stack(self, ref: StackReference) -> StackReference:
        self.stacks.append(ref.name)
        self.created.append(ref.name)
        return ref

    def set_current_stack(self, ref: StackReference) -> None:
        self.current = ref.name

    def update(self, ref: StackReference, op: UpdateOperation) -> UpdateResult:
        self.operations.append(op)
        return self.result


@pytest.fixture
def diag() -> Diag:
    return Diag(verbosity=0, stdout=StringIO(), stderr=StringIO(), color=False)


@pytest.fixture
def context(tmp_path: Path, diag: Diag) -> WorkspaceContext:
    return WorkspaceContext(tmp_path, diag, environ={}, pulumi_home=tmp_path / ".pulumi")


@pytest.fixture
def backend(context: WorkspaceContext) -> FakeBackend:
    return FakeBackend(context)
