"""Service layer: scoring core and attachment storage."""

from .scoring import SubmissionVerdict, submit_flag, team_solves
from .storage import AttachmentStorage, get_attachment_storage

__all__ = [
    "AttachmentStorage",
    "SubmissionVerdict",
    "get_attachment_storage",
    "submit_flag",
    "team_solves",
]
