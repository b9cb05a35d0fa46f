"""Edit-session engine.

    from objedit.editing import Editor, OntoCard, NewColumnRightOf
"""

from objedit.editing.editor import Editor, OperationResult
from objedit.editing.ids import NEW_OBJECT_ID
from objedit.editing.layout import MoveTarget, NewColumnLeftOf, NewColumnRightOf, OntoCard, OntoColumnEnd

__all__ = [
    "Editor",
    "OperationResult",
    "NEW_OBJECT_ID",
    "MoveTarget",
    "NewColumnLeftOf",
    "NewColumnRightOf",
    "OntoCard",
    "OntoColumnEnd",
]
