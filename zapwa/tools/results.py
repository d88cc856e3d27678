"""
Tagged tool results.

Tools never raise past their boundary. They return ToolResult.ok(...) or
ToolResult.error(kind, detail); the text only becomes a plain string when it
is handed to the model as a tool message.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ToolErrorKind(str, Enum):
    INVALID_ARGUMENTS = "invalid_arguments"        # malformed model arguments
    UNKNOWN_PRODUCT = "unknown_product"            # cart id not in the catalog snapshot
    MISSING_PARAMETERS = "missing_parameters"      # customer must supply more details
    NOT_FOUND = "not_found"                        # lookup matched nothing
    COLLABORATOR_FAILURE = "collaborator_failure"  # order service raised
    UNKNOWN_TOOL = "unknown_tool"


@dataclass(frozen=True)
class ToolResult:
    text: str
    kind: Optional[ToolErrorKind] = None
    data: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, text: str, **data) -> "ToolResult":
        return cls(text=text, data=data)

    @classmethod
    def error(cls, kind: ToolErrorKind, detail: str, **data) -> "ToolResult":
        return cls(text=detail, kind=kind, data=data)

    @property
    def is_ok(self) -> bool:
        return self.kind is None

    def to_text(self) -> str:
        """Model-facing form."""
        return self.text
