"""CoSave web application package with optional dependencies."""
from __future__ import annotations

from typing import Any, List, Optional

_OPTIONAL_MODULES = {"fastapi", "starlette", "sqlmodel", "sqlalchemy", "dotenv", "pydantic"}

try:
    from .application import create_app, default_service
    from .persistence import SqlRecordStore, build_engine, create_db_and_tables
except ModuleNotFoundError as exc:  # pragma: no cover - depends on installed extras
    if exc.name in _OPTIONAL_MODULES:
        raise RuntimeError(
            "cosave.webapp requires the optional FastAPI/SQLModel dependencies. "
            "Install them with `pip install cosave[web]`."
        ) from exc
    raise

_APP: Optional[Any] = None

__all__: List[str] = [
    "SqlRecordStore",
    "app",
    "build_engine",
    "create_app",
    "create_db_and_tables",
    "default_service",
]


def __getattr__(name: str) -> Any:
    # ``uvicorn cosave.webapp:app`` builds the configured application on first access.
    global _APP
    if name == "app":
        if _APP is None:
            _APP = create_app()
        return _APP
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
