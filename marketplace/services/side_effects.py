from flask import current_app
from marketplace.extensions import db
import threading
import logging

logger = logging.getLogger(__name__)


def dispatch(func, *args, **kwargs):
    """Run a post-commit side effect without blocking the response.

    The callable gets a fresh app context on a daemon thread. With
    SIDE_EFFECTS_INLINE set it runs in the caller's context instead.
    Exceptions never propagate to the caller.
    """
    app = current_app._get_current_object()

    if app.config.get('SIDE_EFFECTS_INLINE'):
        _run(func, args, kwargs)
        return None

    def _target():
        with app.app_context():
            try:
                _run(func, args, kwargs)
            finally:
                db.session.remove()

    thread = threading.Thread(
        target=_target,
        name=f"side-effect-{func.__name__}",
        daemon=True,
    )
    thread.start()
    return thread


def _run(func, args, kwargs):
    try:
        func(*args, **kwargs)
    except Exception:
        db.session.rollback()
        logger.exception("Side effect %s failed", func.__name__)
