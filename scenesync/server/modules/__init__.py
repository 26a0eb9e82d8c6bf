"""FastAPI routers for the SceneSync server.

``projects_api`` carries the REST surface and ``collab_api`` the realtime
websocket; both read their collaborators from ``app.state``.
"""

__all__ = []
