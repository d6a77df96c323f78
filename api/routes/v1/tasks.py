"""
api/routes/v1/tasks.py -- Task catalog and solution submission endpoints.

Routes:
  GET  /api/v1/tasks                      -- list tasks (public)
  GET  /api/v1/tasks/{task_id}            -- task detail (public)
  POST /api/v1/tasks                      -- create task (admin only)
  POST /api/v1/tasks/{task_id}/solutions  -- queue a solution (requires auth)

Solutions are only queued here; grading is done by an external worker.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import SolutionAccepted, SolutionSubmit, TaskCreate, TaskDetail, TaskSummary
from auth.dependencies import get_current_user, require_admin
from auth.models import User
from catalog.models import Solution, Task
from catalog.store import TaskStore

# Auth policy:
# - GET  /api/v1/tasks:                     public -- the catalog is browsable without an account
# - GET  /api/v1/tasks/{id}:                public
# - POST /api/v1/tasks:                     requires admin (require_admin)
# - POST /api/v1/tasks/{id}/solutions:      requires auth (get_current_user)
router = APIRouter()


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "not_found", "message": "Task not found."},
    )


@router.get("/tasks", response_model=list[TaskSummary])
def list_tasks(request: Request) -> list[TaskSummary]:
    """Return every task (id and name only)."""
    store: TaskStore = request.app.state.tasks
    return [TaskSummary(id=t.id, name=t.name) for t in store.list_tasks()]


@router.get("/tasks/{task_id}", response_model=TaskDetail)
def get_task(request: Request, task_id: int) -> TaskDetail:
    store: TaskStore = request.app.state.tasks
    task = store.get_task(task_id)
    if task is None:
        raise _not_found()
    return TaskDetail.from_task(task)


@router.post("/tasks", response_model=TaskDetail, status_code=201)
def create_task(
    request: Request,
    body: TaskCreate,
    current_user: User = Depends(require_admin),
) -> TaskDetail:
    """Add a task to the catalog. Admin only."""
    store: TaskStore = request.app.state.tasks
    task = Task(name=body.name, description=body.description)
    task.id = store.create_task(task)
    return TaskDetail.from_task(task)


@router.post("/tasks/{task_id}/solutions", response_model=SolutionAccepted, status_code=202)
def submit_solution(
    request: Request,
    task_id: int,
    body: SolutionSubmit,
    current_user: User = Depends(get_current_user),
) -> SolutionAccepted:
    """Queue a solution for grading on behalf of the authenticated user.

    202 because the grade is produced later by the worker, not in this request.
    """
    store: TaskStore = request.app.state.tasks
    if store.get_task(task_id) is None:
        raise _not_found()
    solution = Solution(task_id=task_id, user_id=current_user.id, solution=body.source.encode("utf-8"))
    solution_id = store.enqueue_solution(solution)
    return SolutionAccepted(id=solution_id, task_id=task_id, status=solution.status)
