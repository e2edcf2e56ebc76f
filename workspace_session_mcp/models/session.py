from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class ModeName(str, Enum):
    UNRESTRICTED = "unrestricted"
    READ_ONLY = "read_only"
    RESTRICTED = "restricted"


AllowedItems = Literal["all"] | list[str]


class Mode(BaseModel):
    """Admission policy bundle: which commands and paths are writable."""

    name: ModeName = ModeName.UNRESTRICTED
    allowed_globs: AllowedItems = "all"
    allowed_commands: AllowedItems = "all"

    @classmethod
    def unrestricted(cls) -> "Mode":
        return cls(name=ModeName.UNRESTRICTED)

    @classmethod
    def read_only(cls) -> "Mode":
        return cls(name=ModeName.READ_ONLY)

    @classmethod
    def restricted(
        cls, allowed_globs: AllowedItems = "all", allowed_commands: AllowedItems = "all"
    ) -> "Mode":
        return cls(
            name=ModeName.RESTRICTED,
            allowed_globs=allowed_globs,
            allowed_commands=allowed_commands,
        )

    @classmethod
    def from_name(
        cls,
        name: str,
        allowed_globs: AllowedItems | None = None,
        allowed_commands: AllowedItems | None = None,
    ) -> "Mode":
        """Build a mode from its wire name; restrictions only apply to ``restricted``."""
        mode_name = ModeName(name.strip().lower().replace("-", "_"))
        if mode_name == ModeName.RESTRICTED:
            return cls.restricted(
                "all" if allowed_globs is None else allowed_globs,
                "all" if allowed_commands is None else allowed_commands,
            )
        return cls(name=mode_name)

    def describe(self) -> str:
        if self.name != ModeName.RESTRICTED:
            return self.name.value

        def _fmt(items: AllowedItems) -> str:
            return items if items == "all" else ", ".join(items) or "none"

        return (
            f"restricted (globs: {_fmt(self.allowed_globs)}; "
            f"commands: {_fmt(self.allowed_commands)})"
        )


InitType = Literal[
    "first_call",
    "user_asked_mode_change",
    "reset_shell",
    "user_asked_change_workspace",
]


class WorkspaceState(BaseModel):
    """Stores the state of one workspace session."""

    root: Path
    mode: Mode = Field(default_factory=Mode.unrestricted)
    task_id: str | None = None
    last_exit_code: int | None = None
    background_jobs: list[str] = Field(default_factory=list)
    terminal_session_id: str | None = None

    def model_post_init(self, __context) -> None:
        self.root = self.root.expanduser().resolve()
