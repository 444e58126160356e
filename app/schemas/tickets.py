"""Pydantic schemas for tracker tickets and the reconciliation actions applied to them."""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.findings import Finding


class ExistingTicket(BaseModel):
    """Ticket as returned by a tracker search; the summary is the identity key."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1, description="Tracker issue key (e.g. SEC-123).")
    summary: str = Field(..., description="Ticket summary; equals the finding identity key.")
    status: str = Field(default="", description="Current workflow status name.")
    labels: list[str] = Field(default_factory=list, description="Ticket labels.")
    description: str = Field(default="", description="Description as plain text.")
    project_key: str | None = Field(default=None, description="Project the ticket belongs to.")


class TicketSearchPage(BaseModel):
    """One page of a tracker search. Pages are chained by an opaque token, not by offset."""

    tickets: list[ExistingTicket] = Field(default_factory=list)
    next_page_token: str | None = Field(default=None, description="Token for the next page; None on the last page.")
    is_last: bool = Field(default=True, description="Tracker reported no further pages.")


class TrackerStatus(BaseModel):
    """Workflow status and the category it belongs to (used for status discovery)."""

    name: str
    category: str = ""


class CreateTicket(BaseModel):
    kind: Literal["create"] = "create"
    key: str = Field(..., description="Identity key; becomes the ticket summary.")
    finding: Finding


class UpdateTicket(BaseModel):
    kind: Literal["update"] = "update"
    ticket: ExistingTicket
    finding: Finding
    reopen: bool = Field(default=False, description="Ticket is in a closed status and is transitioned back open first.")


class CloseTicket(BaseModel):
    kind: Literal["close"] = "close"
    ticket: ExistingTicket
    false_positive: bool = Field(default=False, description="Closed because every line is a false positive.")


class CommentTicket(BaseModel):
    kind: Literal["comment"] = "comment"
    ticket: ExistingTicket
    text: str = Field(..., min_length=1)


TrackerAction = Annotated[
    Union[CreateTicket, UpdateTicket, CloseTicket, CommentTicket],
    Field(discriminator="kind"),
]
