"""
Task Scheduler

Maintains the single active TaskPlan of a session: a set of TodoItems with
dependency edges, statuses and priorities. Answers "what is the next
executable todo?" using a scheduling score that rewards todos which unblock
other pending work.

One scheduler instance per session; there is no module-level state.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import structlog

from taskloop.core.domain.errors import NotFoundError, ValidationError


class TodoStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    SKIPPED = "skipped"


class TodoPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_BASE_SCORE = {
    TodoPriority.HIGH: 10,
    TodoPriority.MEDIUM: 5,
    TodoPriority.LOW: 0,
}
UNBLOCK_BONUS = 2

STATUS_ORDER = {
    TodoStatus.IN_PROGRESS: 0,
    TodoStatus.PENDING: 1,
    TodoStatus.BLOCKED: 2,
    TodoStatus.COMPLETED: 3,
    TodoStatus.SKIPPED: 4,
}

_STATUS_ALIASES = {
    "OPEN": "PENDING",
    "TODO": "PENDING",
    "INPROGRESS": "IN_PROGRESS",
    "STARTED": "IN_PROGRESS",
    "DONE": "COMPLETED",
    "COMPLETE": "COMPLETED",
    "SKIP": "SKIPPED",
}


def parse_todo_status(value: Any) -> TodoStatus:
    """Parse a status string to TodoStatus.

    Accepts common aliases like "done" -> COMPLETED, "inprogress" -> IN_PROGRESS.

    Raises:
        ValidationError: If the value names no known status.
    """
    if isinstance(value, TodoStatus):
        return value
    text = str(value or "").strip().replace("-", "_").replace(" ", "_").upper()
    normalized = _STATUS_ALIASES.get(text, text)
    try:
        return TodoStatus[normalized]
    except KeyError:
        raise ValidationError(f"Unknown todo status: {value!r}") from None


def parse_todo_priority(value: Any) -> TodoPriority:
    if isinstance(value, TodoPriority):
        return value
    try:
        return TodoPriority(str(value or "").strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown todo priority: {value!r}") from None


@dataclass
class TodoItem:
    id: str
    title: str
    description: str
    priority: TodoPriority = TodoPriority.MEDIUM
    estimated_effort: int = 3
    dependencies: set[str] = field(default_factory=set)
    status: TodoStatus = TodoStatus.PENDING
    context: Any = None
    created_at: datetime = field(default_factory=datetime.now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    sequence: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert the TodoItem to a serializable dict."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "estimated_effort": self.estimated_effort,
            "dependencies": sorted(self.dependencies),
            "context": self.context,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class TaskPlan:
    id: str
    summary: str
    todos: list[TodoItem] = field(default_factory=list)
    total_estimated_time: int = 0
    created_at: datetime = field(default_factory=datetime.now)


class NextTodoState(str, Enum):
    READY = "ready"
    IN_PROGRESS = "in_progress"
    ALL_COMPLETED = "all_completed"
    NO_ACTIONABLE = "no_actionable"


@dataclass
class NextTodo:
    """
    Answer to "what should be worked on next?".

    Attributes:
        state: READY when ``todo`` is set; IN_PROGRESS when nothing new is
            executable but work continues; ALL_COMPLETED when the plan is
            done; NO_ACTIONABLE when remaining work is blocked
        todo: The selected todo (READY only)
        in_progress: Todos currently in progress (IN_PROGRESS only)
        message: Human-readable explanation
    """

    state: NextTodoState
    message: str
    todo: TodoItem | None = None
    in_progress: list[TodoItem] = field(default_factory=list)


@dataclass
class Progress:
    total: int
    pending: int
    in_progress: int
    completed: int
    blocked: int
    skipped: int
    completion_percentage: int

    @property
    def summary(self) -> str:
        return f"{self.completed}/{self.total} todos completed ({self.completion_percentage}%)"

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "pending": self.pending,
            "in_progress": self.in_progress,
            "completed": self.completed,
            "blocked": self.blocked,
            "skipped": self.skipped,
            "completion_percentage": self.completion_percentage,
        }


class TaskScheduler:
    """
    Dependency-aware todo scheduler owning the session's task plan.

    A todo is executable iff it is pending and every dependency is completed.
    Among executable todos the one with the highest scheduling score wins:
    ``base(priority) + 2 * (pending todos depending on it)``, ties broken by
    creation order.
    """

    def __init__(self):
        self.plan: TaskPlan | None = None
        self._todos: dict[str, TodoItem] = {}
        self._next_id = 1
        self.logger = structlog.get_logger().bind(component="task_scheduler")

    @property
    def todos(self) -> list[TodoItem]:
        """All todos of the active plan in insertion order."""
        return list(self._todos.values())

    def create_plan(self, summary: str) -> TaskPlan:
        """Create a new plan, replacing the current plan and its todos."""
        summary = (summary or "").strip() or "Untitled Plan"
        if self.plan is not None:
            self.logger.info("plan_replaced", old_plan_id=self.plan.id, todos=len(self._todos))
        self.plan = TaskPlan(id=f"plan-{uuid.uuid4().hex[:8]}", summary=summary)
        self._todos = {}
        self.logger.info("plan_created", plan_id=self.plan.id, summary=summary[:100])
        return self.plan

    def add_todo(
        self,
        title: str,
        description: str = "",
        priority: TodoPriority | str = TodoPriority.MEDIUM,
        estimated_effort: int = 3,
        dependencies: list[str] | set[str] | None = None,
        context: Any = None,
    ) -> str:
        """
        Add a todo to the active plan and return its id.

        A plan titled "Untitled Plan" is created if none exists.

        Raises:
            ValidationError: Empty title, unknown priority, effort outside
                1..10 or a dependency on an unknown todo id.
        """
        if not title or not str(title).strip():
            raise ValidationError("Title is required for add_todo")
        parsed_priority = parse_todo_priority(priority)
        if (
            isinstance(estimated_effort, bool)
            or not isinstance(estimated_effort, int)
            or not 1 <= estimated_effort <= 10
        ):
            raise ValidationError("estimated_effort must be an integer between 1 and 10")

        deps = set(dependencies or ())
        unknown = sorted(d for d in deps if d not in self._todos)
        if unknown:
            raise ValidationError(f"Unknown dependency ids: {', '.join(unknown)}")

        if self.plan is None:
            self.create_plan("Untitled Plan")

        sequence = self._next_id
        self._next_id += 1
        todo = TodoItem(
            id=f"todo-{sequence}",
            title=str(title).strip(),
            description=description or "",
            priority=parsed_priority,
            estimated_effort=estimated_effort,
            dependencies=deps,
            context=context,
            sequence=sequence,
        )
        self._todos[todo.id] = todo
        self.plan.todos.append(todo)
        self.plan.total_estimated_time = sum(t.estimated_effort for t in self.plan.todos)

        self.logger.info(
            "todo_added",
            todo_id=todo.id,
            title=todo.title[:80],
            priority=todo.priority.value,
            dependencies=sorted(deps),
        )
        return todo.id

    def get(self, todo_id: str) -> TodoItem:
        todo = self._todos.get(todo_id)
        if todo is None:
            raise NotFoundError(todo_id)
        return todo

    def update_status(self, todo_id: str, new_status: TodoStatus | str) -> TodoItem:
        """
        Change a todo's status.

        ``started_at`` is set on the first transition into in_progress and
        ``completed_at`` on the first transition into completed; neither is
        ever overwritten.

        Raises:
            NotFoundError: Unknown todo id.
            ValidationError: Unknown status.
        """
        todo = self.get(todo_id)
        status = parse_todo_status(new_status)
        old_status = todo.status
        todo.status = status

        if status == TodoStatus.IN_PROGRESS and todo.started_at is None:
            todo.started_at = datetime.now()
        elif status == TodoStatus.COMPLETED and todo.completed_at is None:
            todo.completed_at = datetime.now()

        self.logger.info(
            "todo_status_updated",
            todo_id=todo_id,
            old_status=old_status.value,
            new_status=status.value,
        )
        return todo

    def add_dependency(self, todo_id: str, depends_on: str) -> TodoItem:
        """
        Make ``todo_id`` depend on ``depends_on``.

        Raises:
            NotFoundError: Either id is unknown.
            ValidationError: The edge would create a dependency cycle.
        """
        todo = self.get(todo_id)
        self.get(depends_on)
        if self._reaches(depends_on, todo_id):
            raise ValidationError(
                f"Dependency {todo_id} -> {depends_on} would create a cycle"
            )
        todo.dependencies.add(depends_on)
        self.logger.info("dependency_added", todo_id=todo_id, depends_on=depends_on)
        return todo

    def _reaches(self, start: str, target: str) -> bool:
        """Whether ``target`` is reachable from ``start`` along dependency edges."""
        stack = [start]
        seen: set[str] = set()
        while stack:
            current = stack.pop()
            if current == target:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._todos[current].dependencies)
        return False

    def is_executable(self, todo: TodoItem) -> bool:
        if todo.status != TodoStatus.PENDING:
            return False
        return all(
            dep in self._todos and self._todos[dep].status == TodoStatus.COMPLETED
            for dep in todo.dependencies
        )

    def scheduling_score(self, todo: TodoItem) -> int:
        blocked_count = sum(
            1
            for other in self._todos.values()
            if other.status == TodoStatus.PENDING and todo.id in other.dependencies
        )
        return PRIORITY_BASE_SCORE[todo.priority] + UNBLOCK_BONUS * blocked_count

    def get_next(self) -> NextTodo:
        """Select the next executable todo, or explain why there is none."""
        executable = [t for t in self._todos.values() if self.is_executable(t)]
        if executable:
            todo = min(executable, key=lambda t: (-self.scheduling_score(t), t.sequence))
            return NextTodo(
                state=NextTodoState.READY,
                todo=todo,
                message=f'Next todo to execute: "{todo.title}"',
            )

        in_progress = [t for t in self._todos.values() if t.status == TodoStatus.IN_PROGRESS]
        if in_progress:
            return NextTodo(
                state=NextTodoState.IN_PROGRESS,
                in_progress=in_progress,
                message="No new actionable todos. Continue with items already in progress.",
            )

        if self.is_plan_complete():
            return NextTodo(
                state=NextTodoState.ALL_COMPLETED,
                message="All todos completed. The task is likely finished.",
            )

        return NextTodo(
            state=NextTodoState.NO_ACTIONABLE,
            message="No executable todos available. Check for blocked tasks or add new todos.",
        )

    def is_plan_complete(self) -> bool:
        """Check if the plan has todos and all of them are completed."""
        todos = self._todos.values()
        return bool(todos) and all(t.status == TodoStatus.COMPLETED for t in todos)

    def get_progress(self) -> Progress:
        counts = {status: 0 for status in TodoStatus}
        for todo in self._todos.values():
            counts[todo.status] += 1
        total = len(self._todos)
        percentage = int(counts[TodoStatus.COMPLETED] * 100 / total + 0.5) if total else 0
        return Progress(
            total=total,
            pending=counts[TodoStatus.PENDING],
            in_progress=counts[TodoStatus.IN_PROGRESS],
            completed=counts[TodoStatus.COMPLETED],
            blocked=counts[TodoStatus.BLOCKED],
            skipped=counts[TodoStatus.SKIPPED],
            completion_percentage=percentage,
        )

    def list_all(self) -> list[TodoItem]:
        """Todos ordered in_progress, pending, blocked, completed, skipped, then by creation."""
        return sorted(
            self._todos.values(), key=lambda t: (STATUS_ORDER[t.status], t.sequence)
        )

    def to_markdown(self) -> str:
        """
        Render the plan as markdown for prompt injection.
        """
        if self.plan is None:
            return "No active plan."

        lines: list[str] = [f"# Plan: {self.plan.summary}", ""]
        if not self._todos:
            lines.append("_No todos yet._")
            return "\n".join(lines)

        for todo in self.list_all():
            checked = "x" if todo.status == TodoStatus.COMPLETED else " "
            lines.append(f"- [{checked}] **{todo.title}** (`{todo.id}`)")
            lines.append(
                f"  - Status: `{todo.status.value}`, priority: {todo.priority.value}, "
                f"effort: {todo.estimated_effort}"
            )
            if todo.dependencies:
                lines.append(f"  - Depends on: {', '.join(sorted(todo.dependencies))}")

        lines.append("")
        lines.append(f"Progress: {self.get_progress().summary}")
        return "\n".join(lines)
