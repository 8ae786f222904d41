"""
Hierarchical access control.

Resolves a user's effective role across Workspace -> Space -> Board -> Task,
checks it against the path-based role matrix, and exposes the result as
FastAPI dependencies.
"""
