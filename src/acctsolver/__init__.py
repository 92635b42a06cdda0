"""Top-level package for the AcctSolver homework assistant."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .backend import InferenceBackend, OllamaBackend
    from .chat import HomeworkChat
    from .config import ensure_config_dir, load_config
    from .exceptions import AcctSolverError, BackendError, PersistenceError
    from .models import Attachment, Message, Role, Session
    from .session_store import SessionStore

__all__ = [
    "AcctSolverError",
    "Attachment",
    "BackendError",
    "HomeworkChat",
    "InferenceBackend",
    "Message",
    "OllamaBackend",
    "PersistenceError",
    "Role",
    "Session",
    "SessionStore",
    "ensure_config_dir",
    "load_config",
]

_LAZY_EXPORTS: dict[str, str] = {
    "AcctSolverError": ".exceptions",
    "BackendError": ".exceptions",
    "PersistenceError": ".exceptions",
    "Attachment": ".models",
    "Message": ".models",
    "Role": ".models",
    "Session": ".models",
    "HomeworkChat": ".chat",
    "InferenceBackend": ".backend",
    "OllamaBackend": ".backend",
    "SessionStore": ".session_store",
    "ensure_config_dir": ".config",
    "load_config": ".config",
}


def __getattr__(name: str) -> Any:
    """Lazily import symbols so importing the package stays cheap."""
    module_name = _LAZY_EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    from importlib import import_module

    return getattr(import_module(module_name, __name__), name)
