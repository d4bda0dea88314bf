"""Stateful managers for the workspace runtime.

Managers raise domain exceptions (``LookupError``, ``ValueError``,
``PermissionError`` subclasses), never HTTP exceptions -- that translation
is the router's responsibility.
"""
