# ============================================
# TODO MANAGER TOOL - Reasoner-facing plan management
# ============================================
"""
TodoManagerTool exposes the session's TaskScheduler to the reasoner as an
ordinary tool, so the agent can plan, pick the next todo and record progress.
Scheduler errors are returned as ``{"success": False, "error": ...}``.
"""
from typing import Any

from taskloop.core.domain.errors import NotFoundError, ValidationError
from taskloop.core.domain.scheduler import NextTodoState, TaskScheduler, TodoItem


class TodoManagerTool:
    """
    Tool for reasoner-controlled task planning and tracking.
    """

    def __init__(self, scheduler: TaskScheduler):
        self.scheduler = scheduler

    @property
    def name(self) -> str:
        return "todo_manager"

    @property
    def description(self) -> str:
        return (
            "Manage a structured task list for the current objective. Actions: "
            "'create_plan' (summary), "
            "'add_todo' (title, description, priority, estimated_effort, dependencies), "
            "'update_status' (todo_id, status), "
            "'get_next' (no args), 'get_progress' (no args), 'list_all' (no args), "
            "'add_dependency' (todo_id, depends_on). "
            "Mark a todo in_progress before working on it and completed right after."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "action": {
                    "type": "string",
                    "enum": [
                        "create_plan",
                        "add_todo",
                        "update_status",
                        "get_next",
                        "get_progress",
                        "list_all",
                        "add_dependency",
                    ],
                },
                "summary": {"type": "string", "description": "Plan summary (create_plan)"},
                "title": {"type": "string", "description": "Short actionable title (add_todo)"},
                "description": {"type": "string"},
                "priority": {"type": "string", "enum": ["high", "medium", "low"]},
                "estimated_effort": {"type": "integer", "minimum": 1, "maximum": 10},
                "dependencies": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Todo IDs this todo depends on (add_todo)",
                },
                "todo_id": {"type": "string"},
                "status": {
                    "type": "string",
                    "enum": ["pending", "in_progress", "completed", "blocked", "skipped"],
                },
                "depends_on": {"type": "string", "description": "Todo ID (add_dependency)"},
                "context": {"description": "Any additional JSON-serializable context"},
            },
            "required": ["action"],
        }

    async def execute(self, action: str, **kwargs: Any) -> dict[str, Any]:
        action_map = {
            "create_plan": self._create_plan,
            "add_todo": self._add_todo,
            "update_status": self._update_status,
            "get_next": self._get_next,
            "get_progress": self._get_progress,
            "list_all": self._list_all,
            "add_dependency": self._add_dependency,
        }

        handler = action_map.get(action)
        if not handler:
            return {
                "success": False,
                "error": f"Unknown action: {action}. Valid: {list(action_map.keys())}",
            }

        try:
            return handler(**kwargs)
        except (ValidationError, NotFoundError) as e:
            return {"success": False, "error": str(e)}

    def _create_plan(self, summary: str | None = None, **kwargs: Any) -> dict[str, Any]:
        plan = self.scheduler.create_plan(summary or "Untitled Plan")
        return {
            "success": True,
            "plan_id": plan.id,
            "summary": plan.summary,
            "message": "Task plan created successfully. You should now add todos to this plan.",
        }

    def _add_todo(
        self,
        title: str | None = None,
        description: str = "",
        priority: str = "medium",
        estimated_effort: int = 3,
        dependencies: list[str] | None = None,
        context: Any = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        todo_id = self.scheduler.add_todo(
            title=title or "",
            description=description,
            priority=priority,
            estimated_effort=estimated_effort,
            dependencies=dependencies,
            context=context,
        )
        todo = self.scheduler.get(todo_id)
        return {
            "success": True,
            "todo_id": todo_id,
            "title": todo.title,
            "message": f'Todo "{todo.title}" added successfully',
        }

    def _update_status(
        self, todo_id: str | None = None, status: str | None = None, **kwargs: Any
    ) -> dict[str, Any]:
        if not todo_id or not status:
            return {"success": False, "error": "todo_id and status are required for update_status"}
        old_status = self.scheduler.get(todo_id).status
        todo = self.scheduler.update_status(todo_id, status)
        return {
            "success": True,
            "todo_id": todo.id,
            "title": todo.title,
            "old_status": old_status.value,
            "new_status": todo.status.value,
            "message": f'Todo "{todo.title}" status updated to {todo.status.value}',
        }

    def _get_next(self, **kwargs: Any) -> dict[str, Any]:
        next_todo = self.scheduler.get_next()
        result: dict[str, Any] = {
            "success": True,
            "next_todo": _brief(next_todo.todo) if next_todo.todo else None,
            "message": next_todo.message,
        }
        if next_todo.state == NextTodoState.IN_PROGRESS:
            result["in_progress"] = [{"id": t.id, "title": t.title} for t in next_todo.in_progress]
        elif next_todo.state == NextTodoState.ALL_COMPLETED:
            result["all_completed"] = True
        return result

    def _get_progress(self, **kwargs: Any) -> dict[str, Any]:
        progress = self.scheduler.get_progress()
        plan = self.scheduler.plan
        return {
            "success": True,
            "progress": progress.to_dict(),
            "summary": progress.summary,
            "plan": {"id": plan.id, "summary": plan.summary} if plan else None,
        }

    def _list_all(self, **kwargs: Any) -> dict[str, Any]:
        todos = self.scheduler.list_all()
        return {
            "success": True,
            "todos": [
                {
                    "id": t.id,
                    "title": t.title,
                    "status": t.status.value,
                    "priority": t.priority.value,
                    "dependencies": sorted(t.dependencies),
                }
                for t in todos
            ],
            "count": len(todos),
        }

    def _add_dependency(
        self, todo_id: str | None = None, depends_on: str | None = None, **kwargs: Any
    ) -> dict[str, Any]:
        if not todo_id or not depends_on:
            return {"success": False, "error": "todo_id and depends_on are required for add_dependency"}
        todo = self.scheduler.add_dependency(todo_id, depends_on)
        return {
            "success": True,
            "todo_id": todo.id,
            "dependencies": sorted(todo.dependencies),
        }


def _brief(todo: TodoItem) -> dict[str, Any]:
    return {
        "id": todo.id,
        "title": todo.title,
        "description": todo.description,
        "priority": todo.priority.value,
        "estimated_effort": todo.estimated_effort,
        "context": todo.context,
    }
