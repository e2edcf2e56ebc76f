from typing import Annotated, Literal

from pydantic import BaseModel, Field


class FullReplace(BaseModel):
    kind: Literal["full_replace"] = "full_replace"
    content: str


class SearchReplaceBlocks(BaseModel):
    kind: Literal["search_replace_blocks"] = "search_replace_blocks"
    text: str
    fuzzy_threshold: float | None = None


class InsertAtLine(BaseModel):
    """Insert content AFTER ``line`` (0 inserts at the top of the file)."""

    kind: Literal["insert_at_line"] = "insert_at_line"
    line: int
    content: str


class DeleteLines(BaseModel):
    kind: Literal["delete_lines"] = "delete_lines"
    start: int
    end: int


class SymbolicEdit(BaseModel):
    kind: Literal["symbolic"] = "symbolic"
    location: str
    edit_kind: Literal["replace_body", "insert_before", "insert_after"]
    content: str


EditOperation = Annotated[
    FullReplace | SearchReplaceBlocks | InsertAtLine | DeleteLines | SymbolicEdit,
    Field(discriminator="kind"),
]


class EditRequest(BaseModel):
    path: str
    operation: EditOperation
    description: str | None = None


class EditReport(BaseModel):
    path: str
    written_bytes: int
    warnings: list[str] = Field(default_factory=list)
    checkpoint_id: str | None = None
    unchanged: bool = False
