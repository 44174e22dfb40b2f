"""Regression tests for application route registration."""
from fastapi.routing import APIRoute

from habitual.main import app


def test_engine_routes_registered_once() -> None:
    registered = [
        (path, method)
        for route in app.routes
        if isinstance(route, APIRoute)
        for path, method in ((route.path, method) for method in route.methods)
    ]
    expected = {
        ("/tasks/populate", "POST"),
        ("/tasks", "GET"),
        ("/tasks", "POST"),
        ("/tasks/{task_id}/complete", "PATCH"),
        ("/tasks/{task_id}", "PATCH"),
        ("/tasks/{task_id}", "DELETE"),
        ("/programs", "POST"),
        ("/programs/personal", "GET"),
        ("/programs/{program_id}/subscribe", "POST"),
        ("/programs/{program_id}/subscribe", "DELETE"),
        ("/programs/{program_id}", "DELETE"),
        ("/programs/{program_id}/activities", "POST"),
        ("/activities/{activity_id}", "PATCH"),
        ("/activities/{activity_id}", "DELETE"),
    }

    for entry in expected:
        assert registered.count(entry) == 1, entry
