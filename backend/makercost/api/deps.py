from fastapi import Request

from makercost.core.workspace import Workspace


def get_workspace(request: Request) -> Workspace:
    """The workspace created at startup"""
    return request.app.state.workspace
