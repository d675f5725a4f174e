"""
Editor configuration, read from the environment.

A ``.env`` file at the project root is loaded first so local overrides do not
need a manual ``export``.

    NODEFLOW_CIRCULAR_BEHAVIOR   forbid | warn | allow        (default forbid)
    NODEFLOW_INITIAL_SCALE       stage zoom, clamped 0.1..7    (default 1)
    NODEFLOW_HYDRATE_DEFAULTS    seed demo nodes on empty graph (default true)
    NODEFLOW_HOST / NODEFLOW_PORT                              (0.0.0.0:3001)
    NODEFLOW_LOG_LEVEL                                         (INFO)
    NODEFLOW_CORS_ORIGINS        comma separated               (*)
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from nodeflow.core.Types import CircularBehavior

_ENV_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "../..", ".env"))

_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    circular_behavior: CircularBehavior = CircularBehavior.FORBID
    initial_scale: float = 1.0
    hydrate_defaults: bool = True
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        if environ is None:
            load_dotenv(_ENV_PATH)
            environ = os.environ
        try:
            return cls(
                circular_behavior=CircularBehavior.parse(environ.get("NODEFLOW_CIRCULAR_BEHAVIOR", "forbid")),
                initial_scale=float(environ.get("NODEFLOW_INITIAL_SCALE", "1")),
                hydrate_defaults=environ.get("NODEFLOW_HYDRATE_DEFAULTS", "true").strip().lower() in _TRUE,
                host=environ.get("NODEFLOW_HOST", "0.0.0.0"),
                port=int(environ.get("NODEFLOW_PORT", "3001")),
                log_level=environ.get("NODEFLOW_LOG_LEVEL", "INFO").upper(),
                cors_origins=[o.strip() for o in environ.get("NODEFLOW_CORS_ORIGINS", "*").split(",") if o.strip()],
            )
        except ValueError as exc:
            raise ValueError(f"Invalid nodeflow configuration: {exc}") from exc
