"""Customer service helpers."""

from .customer_type import customer_type_from_history
from .notes import add_note, delete_note, edit_note

__all__ = [
    "customer_type_from_history",
    "add_note",
    "edit_note",
    "delete_note",
]
