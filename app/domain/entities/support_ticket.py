"""Summary of a support ticket as seen by the notification core."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SupportTicket:
    ticket_number: str
    name: str
    email: str
    subject: str
    priority: str
    category: str | None = None
