"""Todo API exposed over MCP.

Run with either of:

    uvicorn examples.todo_app:app --port 8000
    routemcp serve examples.todo_app:app --port 8000

then point an MCP client at http://127.0.0.1:8000/mcp/sse.
"""

from __future__ import annotations

import itertools

from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from routemcp import McpConfig, McpPlugin

app = FastAPI(title="Todo API", version="1.0.0")


class TodoCreate(BaseModel):
    title: str = Field(description="What needs doing")
    done: bool = False


class Todo(TodoCreate):
    id: int


_ids = itertools.count(1)
_todos: dict[int, Todo] = {}


@app.get("/hello", response_class=PlainTextResponse, openapi_extra={"x-mcp": {"name": "say_hello", "description": "Says hello"}})
async def hello() -> str:
    return "Hello World"


@app.get("/todos", operation_id="list_todos", summary="List todos", tags=["todos"])
async def list_todos(done: bool | None = None) -> list[Todo]:
    """Return every todo, optionally only the finished or unfinished ones."""
    return [todo for todo in _todos.values() if done is None or todo.done == done]


@app.get("/todos/{todo_id}", operation_id="get_todo", summary="Get a todo", tags=["todos"])
async def get_todo(todo_id: int) -> Todo:
    todo = _todos.get(todo_id)
    if todo is None:
        raise HTTPException(status_code=404, detail=f"Todo {todo_id} not found")
    return todo


@app.post("/todos", operation_id="create_todo", summary="Create a todo", tags=["todos"])
async def create_todo(todo: TodoCreate) -> Todo:
    created = Todo(id=next(_ids), **todo.model_dump())
    _todos[created.id] = created
    return created


@app.put("/todos/{todo_id}", operation_id="update_todo", summary="Update a todo", tags=["todos"])
async def update_todo(todo_id: int, todo: TodoCreate) -> Todo:
    if todo_id not in _todos:
        raise HTTPException(status_code=404, detail=f"Todo {todo_id} not found")
    _todos[todo_id] = Todo(id=todo_id, **todo.model_dump())
    return _todos[todo_id]


@app.delete("/todos/{todo_id}", operation_id="delete_todo", summary="Delete a todo", tags=["todos"])
async def delete_todo(todo_id: int, authorization: str = Header(description="Bearer token")) -> dict[str, bool]:
    if _todos.pop(todo_id, None) is None:
        raise HTTPException(status_code=404, detail=f"Todo {todo_id} not found")
    return {"deleted": True}


@app.post("/admin/reset", openapi_extra={"x-mcp": {"hidden": True}})
async def reset() -> dict[str, int]:
    count = len(_todos)
    _todos.clear()
    return {"removed": count}


mcp = McpPlugin(
    app,
    McpConfig(
        name="Todo API",
        description="Manage a todo list",
        describe_full_schema=True,
        add_debug_endpoint=True,
    ),
)
