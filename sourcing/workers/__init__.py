from flask import current_app, has_app_context

_worker_app = None


def get_worker_app():
    """Return an app instance for worker execution.

    Reuse the current app when already inside an app context (tests/CLI),
    otherwise lazily create the worker app once.
    """
    global _worker_app
    if has_app_context():
        return current_app._get_current_object()
    if _worker_app is None:
        from sourcing import create_app

        _worker_app = create_app()
    return _worker_app
