"""Provides an app factory for the authentication service."""

from typing import Any, Optional
import logging

from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException

from . import context, routes, tokens
from .app_logging import setup_logger
from .exceptions import AuthError, RateLimited, ValidationError
from .services import cache, datastore
from .tasks import celery_app

logger = logging.getLogger(__name__)


def jsonify_exception(error: HTTPException) -> Response:
    """Render a routing or protocol error as JSON."""
    exc_resp = error.get_response()
    response: Response = jsonify(reason=error.description)
    response.status_code = exc_resp.status_code
    return response


def jsonify_auth_error(error: AuthError) -> Response:
    """Render a core error as JSON with its status code."""
    body: dict = {'reason': error.message or type(error).__name__}
    if isinstance(error, ValidationError):
        body['errors'] = error.errors
    if isinstance(error, RateLimited):
        body['retry_after'] = error.retry_after
    if error.status_code >= 500:
        logger.error('%s: %s', type(error).__name__, error.message)
    response: Response = jsonify(body)
    response.status_code = error.status_code
    if isinstance(error, RateLimited):
        response.headers['Retry-After'] = str(error.retry_after)
    return response


def create_app(config: Optional[dict] = None,
               services: Optional[context.Services] = None) -> Flask:
    """
    Initialize an instance of the authentication service.

    Parameters
    ----------
    config : dict
        Overrides for values in :mod:`markmorph_auth.config`.
    services : :class:`.context.Services`
        Prebuilt core components; built from configuration if not given.

    """
    app = Flask('markmorph_auth')
    app.config.from_pyfile('config.py')
    if config:
        app.config.update(config)
    setup_logger(app.config['LOG_LEVEL'],
                 json=str(app.config['LOG_JSON']) == '1')

    cache.init_app(app)
    datastore.init_app(app)
    tokens.init_app(app)
    context.init_app(app, services)

    app.register_blueprint(routes.blueprint)
    app.errorhandler(AuthError)(jsonify_auth_error)
    app.errorhandler(HTTPException)(jsonify_exception)
    return app


def create_worker_app() -> Flask:
    """Initialize an application instance for the Celery worker."""
    app = create_app()
    app.extensions['celery'] = celery_app
    return app
