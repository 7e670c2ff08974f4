"""Unit tests for TodoManagerTool - reasoner-facing plan management."""

import pytest

from taskloop.core.domain.scheduler import TaskScheduler, TodoStatus
from taskloop.core.tools.todo_tool import TodoManagerTool


@pytest.fixture
def scheduler():
    return TaskScheduler()


@pytest.fixture
def tool(scheduler):
    return TodoManagerTool(scheduler)


class TestTodoManagerToolMetadata:
    def test_name_and_schema(self, tool):
        assert tool.name == "todo_manager"
        assert "create_plan" in tool.description
        schema = tool.parameters_schema
        assert schema["required"] == ["action"]
        assert "add_dependency" in schema["properties"]["action"]["enum"]

    @pytest.mark.asyncio
    async def test_unknown_action(self, tool):
        result = await tool.execute(action="delete_everything")

        assert result["success"] is False
        assert "Unknown action" in result["error"]


class TestTodoManagerToolPlanning:
    @pytest.mark.asyncio
    async def test_create_plan_and_add_todos(self, tool, scheduler):
        created = await tool.execute(action="create_plan", summary="Add caching")
        assert created["success"] is True
        assert created["plan_id"] == scheduler.plan.id

        first = await tool.execute(action="add_todo", title="Measure baseline", priority="high")
        second = await tool.execute(
            action="add_todo",
            title="Add cache layer",
            estimated_effort=5,
            dependencies=[first["todo_id"]],
        )

        assert first["success"] is True
        assert second["todo_id"] == "todo-2"
        assert scheduler.get("todo-2").dependencies == {"todo-1"}

    @pytest.mark.asyncio
    async def test_add_todo_validation_error_is_returned(self, tool):
        result = await tool.execute(action="add_todo", title="")

        assert result["success"] is False
        assert "Title is required" in result["error"]

    @pytest.mark.asyncio
    async def test_add_dependency_cycle_is_returned(self, tool, scheduler):
        a = scheduler.add_todo("A")
        b = scheduler.add_todo("B", dependencies=[a])

        result = await tool.execute(action="add_dependency", todo_id=a, depends_on=b)

        assert result["success"] is False
        assert "cycle" in result["error"]

    @pytest.mark.asyncio
    async def test_add_dependency(self, tool, scheduler):
        a = scheduler.add_todo("A")
        b = scheduler.add_todo("B")

        result = await tool.execute(action="add_dependency", todo_id=b, depends_on=a)

        assert result == {"success": True, "todo_id": b, "dependencies": [a]}


class TestTodoManagerToolStatus:
    @pytest.mark.asyncio
    async def test_update_status_reports_transition(self, tool, scheduler):
        todo_id = scheduler.add_todo("Run tests")

        result = await tool.execute(action="update_status", todo_id=todo_id, status="done")

        assert result["success"] is True
        assert result["old_status"] == "pending"
        assert result["new_status"] == "completed"
        assert scheduler.get(todo_id).status == TodoStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_update_status_unknown_id(self, tool):
        result = await tool.execute(action="update_status", todo_id="todo-9", status="completed")

        assert result["success"] is False
        assert result["error"] == "Todo with ID todo-9 not found"

    @pytest.mark.asyncio
    async def test_update_status_requires_arguments(self, tool):
        result = await tool.execute(action="update_status", todo_id="todo-1")
        assert result["success"] is False


class TestTodoManagerToolQueries:
    @pytest.mark.asyncio
    async def test_get_next(self, tool, scheduler):
        a = scheduler.add_todo("A", priority="low")
        b = scheduler.add_todo("B", priority="high")

        result = await tool.execute(action="get_next")
        assert result["next_todo"]["id"] == b

        scheduler.update_status(b, "completed")
        scheduler.update_status(a, "in_progress")
        result = await tool.execute(action="get_next")
        assert result["next_todo"] is None
        assert result["in_progress"] == [{"id": a, "title": "A"}]

        scheduler.update_status(a, "completed")
        result = await tool.execute(action="get_next")
        assert result["all_completed"] is True

    @pytest.mark.asyncio
    async def test_get_progress(self, tool, scheduler):
        scheduler.create_plan("Plan")
        todo_id = scheduler.add_todo("A")
        scheduler.add_todo("B")
        scheduler.update_status(todo_id, "completed")

        result = await tool.execute(action="get_progress")

        assert result["progress"]["completion_percentage"] == 50
        assert result["summary"] == "1/2 todos completed (50%)"
        assert result["plan"]["summary"] == "Plan"

    @pytest.mark.asyncio
    async def test_list_all(self, tool, scheduler):
        a = scheduler.add_todo("A")
        b = scheduler.add_todo("B", dependencies=[a])
        scheduler.update_status(b, "blocked")

        result = await tool.execute(action="list_all")

        assert result["count"] == 2
        assert [t["id"] for t in result["todos"]] == [a, b]
        assert result["todos"][1]["dependencies"] == [a]
