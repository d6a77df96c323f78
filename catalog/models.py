"""
catalog/models.py -- Domain dataclasses for the task catalog and solution queue.

These are pure data containers with zero logic. All persistence lives in
catalog/store.py.
"""

from dataclasses import dataclass


@dataclass
class Task:
    """A programming problem users can submit solutions for.

    id is None before the record is written to the database.
    """

    name: str
    description: str = ""
    id: int | None = None


@dataclass
class Solution:
    """A submitted solution waiting for (or after) grading.

    status starts as "new"; the external grading worker owns every later
    transition. created_at is set by the store on insert.
    """

    task_id: int
    user_id: int
    solution: bytes
    status: str = "new"
    id: int | None = None
    created_at: str = ""  # ISO 8601
