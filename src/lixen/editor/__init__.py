"""Batch tag editing over a set of files."""

from lixen.editor.commit import CommitResult, commit_edit_session, plan_changes
from lixen.editor.session import Coverage, EditSession, TagDeletion, open_edit_session

__all__ = [
    "CommitResult",
    "Coverage",
    "EditSession",
    "TagDeletion",
    "commit_edit_session",
    "open_edit_session",
    "plan_changes",
]
