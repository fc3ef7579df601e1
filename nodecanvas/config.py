"""
Environment-driven settings.

A ``.env`` file at the working directory (or its parents) is loaded first, so
GEMINI_API_KEY and friends do not need a manual ``export``.
"""
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from .core.Executor import EXECUTION_ORDERS
from .generation.provider import DEFAULT_GEMINI_MODEL
from .generation.service import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    generation_timeout: float = DEFAULT_TIMEOUT
    execution_order: str = "insertion"
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        if environ is None:
            load_dotenv()
            environ = os.environ

        order = environ.get("NODECANVAS_EXECUTION_ORDER", "insertion").strip().lower()
        if order not in EXECUTION_ORDERS:
            logger.warning("Ignoring NODECANVAS_EXECUTION_ORDER=%r, using 'insertion'", order)
            order = "insertion"

        return cls(
            gemini_api_key=environ.get("GEMINI_API_KEY") or None,
            gemini_model=environ.get("NODECANVAS_GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
            generation_timeout=_float(environ, "NODECANVAS_GENERATION_TIMEOUT", DEFAULT_TIMEOUT),
            execution_order=order,
            host=environ.get("NODECANVAS_HOST") or "0.0.0.0",
            port=int(_float(environ, "NODECANVAS_PORT", 3001)),
            log_level=(environ.get("NODECANVAS_LOG_LEVEL") or "INFO").upper(),
        )


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r, not a number", name, raw)
        return default
    return value if value > 0 else default


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
