"""Run secondary effects after the primary write has been committed."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from flask import Flask, current_app

logger = logging.getLogger("planner.dispatch")


class SideEffectQueue:
    """Best-effort task runner.

    Each task runs inside a fresh application context, so it gets its own
    database session. The session is committed when the task returns and
    rolled back when it raises; failures are logged and never re-raised.
    Tasks should receive ids rather than ORM instances.
    """

    def __init__(self, app: Flask | None = None) -> None:
        self._executors: dict[int, ThreadPoolExecutor] = {}
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        workers = int(app.config.get("SIDE_EFFECT_WORKERS", 0) or 0)
        if workers > 0:
            self._executors[id(app)] = ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="side-effect"
            )
        app.extensions["side_effects"] = self

    def submit(
        self, label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any
    ) -> Future | None:
        app = current_app._get_current_object()
        executor = self._executors.get(id(app))
        if executor is None:
            _run(app, label, fn, args, kwargs)
            return None
        return executor.submit(_run, app, label, fn, args, kwargs)

    def shutdown(self, app: Flask, wait: bool = True) -> None:
        executor = self._executors.pop(id(app), None)
        if executor is not None:
            executor.shutdown(wait=wait)


def _run(app: Flask, label: str, fn: Callable[..., Any], args, kwargs) -> None:
    from ..app import db

    with app.app_context():
        try:
            fn(*args, **kwargs)
            db.session.commit()
            logger.debug("[SIDE-EFFECT] task=%s done", label)
        except Exception:
            db.session.rollback()
            logger.exception("[SIDE-EFFECT-FAIL] task=%s", label)
        finally:
            db.session.remove()


side_effects = SideEffectQueue()
