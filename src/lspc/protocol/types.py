"""LSP structures exchanged with language servers.

Only the subset of the protocol the client consumes is modeled. Models
accept camelCase wire names and keep unknown fields, so a round trip
through model_dump(by_alias=True) preserves what the server sent.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LspModel(BaseModel):
    """Base model for LSP types with populate_by_name enabled."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_wire(self) -> dict[str, Any]:
        """Dump with protocol field names, omitting unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Position(LspModel):
    """0-based line and character position."""

    line: int
    character: int

    def key(self) -> tuple[int, int]:
        return (self.line, self.character)

    def before(self, other: Position) -> bool:
        """True if this position lies strictly before other."""
        return self.key() < other.key()


class Range(LspModel):
    """Range with start and (exclusive) end positions."""

    start: Position
    end: Position

    def is_empty(self) -> bool:
        return self.start.key() == self.end.key()


class Location(LspModel):
    """A range inside a resource."""

    uri: str
    range: Range


class LocationLink(LspModel):
    """A link between a source and a target location."""

    target_uri: str = Field(alias="targetUri")
    target_range: Range = Field(alias="targetRange")
    target_selection_range: Range = Field(alias="targetSelectionRange")
    origin_selection_range: Range | None = Field(default=None, alias="originSelectionRange")


class TextEdit(LspModel):
    """Replace the text of a range with new text."""

    range: Range
    new_text: str = Field(alias="newText")


class VersionedTextDocumentIdentifier(LspModel):
    uri: str
    version: int | None = None


class TextDocumentEdit(LspModel):
    """Edits for one document inside WorkspaceEdit.documentChanges."""

    text_document: VersionedTextDocumentIdentifier = Field(alias="textDocument")
    edits: list[TextEdit]


class WorkspaceEdit(LspModel):
    """Changes to many documents.

    documentChanges may also carry create/rename/delete resource operations,
    which are kept as plain dicts.
    """

    changes: dict[str, list[TextEdit]] | None = None
    document_changes: list[TextDocumentEdit | dict[str, Any]] | None = Field(
        default=None, alias="documentChanges"
    )


class DiagnosticSeverity(IntEnum):
    """LSP diagnostic severity levels."""

    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4


class Diagnostic(LspModel):
    """A diagnostic as published by a server."""

    range: Range
    message: str
    severity: int | None = None
    code: int | str | None = None
    source: str | None = None


class PublishDiagnosticsParams(LspModel):
    uri: str
    diagnostics: list[Diagnostic]
    version: int | None = None


class MessageType(IntEnum):
    """window/showMessage and window/logMessage types."""

    ERROR = 1
    WARNING = 2
    INFO = 3
    LOG = 4


class ShowMessageParams(LspModel):
    type: int
    message: str

    @property
    def level_name(self) -> str:
        try:
            return MessageType(self.type).name.capitalize()
        except ValueError:
            return "Unknown"


class LogMessageParams(ShowMessageParams):
    pass


class ConfigurationItem(LspModel):
    scope_uri: str | None = Field(default=None, alias="scopeUri")
    section: str | None = None


class ConfigurationParams(LspModel):
    items: list[ConfigurationItem]


class ServerInfo(LspModel):
    name: str
    version: str | None = None


class InitializeResult(LspModel):
    capabilities: dict[str, Any] = Field(default_factory=dict)
    server_info: ServerInfo | None = Field(default=None, alias="serverInfo")


class MarkupContent(LspModel):
    kind: str
    value: str


class CompletionItem(LspModel):
    label: str
    kind: int | None = None
    detail: str | None = None
    insert_text: str | None = Field(default=None, alias="insertText")
    text_edit: TextEdit | None = Field(default=None, alias="textEdit")


class CompletionList(LspModel):
    is_incomplete: bool = Field(default=False, alias="isIncomplete")
    items: list[CompletionItem]


class Hover(LspModel):
    # MarkedString | MarkedString[] | MarkupContent
    contents: Any
    range: Range | None = None


class SignatureInformation(LspModel):
    label: str
    documentation: str | MarkupContent | None = None


class SignatureHelp(LspModel):
    signatures: list[SignatureInformation] = Field(default_factory=list)
    active_signature: int | None = Field(default=None, alias="activeSignature")
    active_parameter: int | None = Field(default=None, alias="activeParameter")
