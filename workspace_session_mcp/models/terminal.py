from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class TerminalState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXITED = "exited"
    DEAD = "dead"


class SpecialKey(str, Enum):
    ENTER = "Enter"
    KEY_UP = "KeyUp"
    KEY_DOWN = "KeyDown"
    KEY_LEFT = "KeyLeft"
    KEY_RIGHT = "KeyRight"
    CTRL_C = "CtrlC"
    CTRL_D = "CtrlD"

    @classmethod
    def _missing_(cls, value: object) -> "SpecialKey | None":
        # Accept "ctrl-c", "ctrl_c", "ENTER" and similar spellings.
        if isinstance(value, str):
            wanted = value.replace("-", "").replace("_", "").lower()
            for key in cls:
                if key.value.lower() == wanted:
                    return key
        return None


class TerminalStatus(BaseModel):
    session_id: str
    state: TerminalState
    cwd: str
    output_tail: str = ""
    last_exit_code: int | None = None
    running: bool = False
    background_jobs: list[str] = Field(default_factory=list)

    def render(self) -> str:
        if self.state == TerminalState.RUNNING:
            status = "status = still running"
        elif self.state == TerminalState.DEAD:
            status = "status = shell is dead"
        elif self.last_exit_code is None:
            status = "status = idle"
        else:
            status = f"status = process exited with code {self.last_exit_code}"
        text = f"{status}\ncwd = {self.cwd}"
        if self.background_jobs:
            text += f"\nbackground jobs = {', '.join(self.background_jobs)}"
        return text


class _Action(BaseModel):
    model_config = ConfigDict(extra="forbid")


class Command(_Action):
    command: str


class StatusCheck(_Action):
    status_check: Literal[True] = True


class SendText(_Action):
    send_text: str


class SendSpecials(_Action):
    send_specials: list[SpecialKey]


class SendAscii(_Action):
    send_ascii: list[Annotated[int, Field(ge=0, le=127)]] = Field(min_length=1)


class StartBackground(_Action):
    start_background: str


class ListBackground(_Action):
    list_background: Literal[True]


BashAction = (
    Command | StatusCheck | SendText | SendSpecials | SendAscii | StartBackground | ListBackground
)

bash_action_adapter: TypeAdapter[BashAction] = TypeAdapter(BashAction)
