"""Base classes for tools and the error taxonomy shared by the engine."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import cached_property
from typing import Any

ParamSchemaValue = str | list[str] | bool | dict[str, object]
ToolCallArguments = dict[str, Any]


class ToolError(Exception):
    """Base class for every error reported back to the orchestrator.

    The ``kind`` tag is stable and machine-readable; the message is for humans.
    """

    kind: str = "ToolError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class InvalidArguments(ToolError):
    kind = "InvalidArguments"


class PolicyDenied(ToolError):
    """Path outside root, disallowed glob or command, or a dangerous command."""

    kind = "PolicyDenied"

    def __init__(self, message: str, reason: str | None = None):
        super().__init__(message)
        self.reason = reason or message

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "reason": self.reason}


class CommandDenied(PolicyDenied):
    pass


class DangerousCommand(PolicyDenied):
    pass


class StaleOrUnread(ToolError):
    """A write was attempted before the file was read, or after it changed."""

    kind = "StaleOrUnread"

    def __init__(self, message: str, unread_ranges: list[tuple[int, int]]):
        super().__init__(message)
        self.unread_ranges = unread_ranges

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "unread_ranges": [list(r) for r in self.unread_ranges]}


class NotFound(ToolError):
    kind = "NotFound"


class SessionBusy(ToolError):
    kind = "SessionBusy"


class NoActiveProcess(SessionBusy):
    pass


class Unsupported(ToolError):
    kind = "Unsupported"


class UnsupportedLargeFile(Unsupported):
    pass


class IoError(ToolError):
    kind = "IoError"


class LockTimeout(ToolError):
    kind = "LockTimeout"


class MatchFailure(ToolError):
    kind = "MatchFailure"

    def __init__(self, message: str, best_score: float = 0.0):
        super().__init__(message)
        self.best_score = best_score

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "best_score": round(self.best_score, 1)}


class PartialRestore(ToolError):
    kind = "PartialRestore"

    def __init__(self, message: str, restored: list[str], failed: list[tuple[str, str]]):
        super().__init__(message)
        self.restored = restored
        self.failed = failed

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "restored": self.restored,
            "failed": [{"path": p, "error": e} for p, e in self.failed],
        }


@dataclass
class ToolExecResult:
    """Intermediate result of a tool execution."""

    output: str | None = None
    error: str | None = None
    error_code: int = 0
    error_kind: str | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def from_error(cls, error: ToolError) -> "ToolExecResult":
        return cls(
            error=error.message, error_code=-1, error_kind=error.kind, details=error.to_dict()
        )


@dataclass
class ToolParameter:
    """Tool parameter definition."""

    name: str
    type: str | list[str]
    description: str
    enum: list[str] | None = None
    items: dict[str, object] | None = None
    required: bool = True


class Tool(ABC):
    """Base class for all tools."""

    def __init__(self, model_provider: str | None = None):
        self._model_provider = model_provider

    @cached_property
    def model_provider(self) -> str | None:
        return self.get_model_provider()

    @cached_property
    def name(self) -> str:
        return self.get_name()

    @cached_property
    def description(self) -> str:
        return self.get_description()

    @cached_property
    def parameters(self) -> list[ToolParameter]:
        return self.get_parameters()

    def get_model_provider(self) -> str | None:
        return self._model_provider

    @abstractmethod
    def get_name(self) -> str:
        pass

    @abstractmethod
    def get_description(self) -> str:
        pass

    @abstractmethod
    def get_parameters(self) -> list[ToolParameter]:
        pass

    @abstractmethod
    async def execute(self, arguments: ToolCallArguments) -> ToolExecResult:
        pass

    def json_definition(self) -> dict[str, object]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.get_input_schema(),
        }

    def get_input_schema(self) -> dict[str, object]:
        schema: dict[str, object] = {"type": "object"}
        properties: dict[str, dict[str, ParamSchemaValue]] = {}
        required: list[str] = []

        for param in self.parameters:
            param_schema: dict[str, ParamSchemaValue] = {
                "type": param.type,
                "description": param.description,
            }
            if param.enum:
                param_schema["enum"] = param.enum
            if param.items:
                param_schema["items"] = param.items
            properties[param.name] = param_schema
            if param.required:
                required.append(param.name)

        schema["properties"] = properties
        if required:
            schema["required"] = required
        return schema
