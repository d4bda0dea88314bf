"""Remote Data Collaborator implementations for workspace persistence."""

from finboard.runtime.remote.base import RemoteError, WorkspaceRemote
from finboard.runtime.remote.memory import InMemoryWorkspaceRemote
from finboard.runtime.remote.sql import SqlWorkspaceRemote

__all__ = ["InMemoryWorkspaceRemote", "RemoteError", "SqlWorkspaceRemote", "WorkspaceRemote"]
