import logging
import json
import uuid
from flask import request, has_request_context, g
import sys

from utils.timestamps import utc_now

# Attributes every LogRecord has; anything else came in through `extra=`
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """
    Formatter to output logs in JSON format.
    Includes request_id if available in Flask context.
    """
    def format(self, record):
        log_record = {
            "timestamp": utc_now().isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "lineno": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED and key not in log_record:
                log_record[key] = value

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        # Add Request ID if in request context
        if has_request_context():
            log_record["method"] = request.method
            log_record["path"] = request.path
            log_record["remote_ip"] = request.remote_addr
            if hasattr(g, "request_id"):
                log_record["request_id"] = g.request_id

        return json.dumps(log_record, default=str)


def setup_logger(app):
    """
    Configures the application logger to use JSON formatting
    and output to stdout (for container logging).

    Engine modules log through logging.getLogger(__name__); the "services"
    and "utils" loggers share the app handler so their lines come out in the
    same format.
    """
    app.logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    app.logger.addHandler(handler)
    app.logger.setLevel(logging.INFO)

    # Also attach to werkzeug logger to capture request logs
    logging.getLogger('werkzeug').handlers = [handler]

    # Setup Gunicorn logger binding if running under Gunicorn
    gunicorn_logger = logging.getLogger('gunicorn.error')
    if gunicorn_logger.handlers:
        app.logger.handlers = gunicorn_logger.handlers
        app.logger.setLevel(gunicorn_logger.level)

    for name in ("services", "utils"):
        engine_logger = logging.getLogger(name)
        engine_logger.handlers = list(app.logger.handlers)
        engine_logger.setLevel(app.logger.level)
        engine_logger.propagate = False

    @app.before_request
    def add_request_id():
        g.request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))

    @app.after_request
    def echo_request_id(response):
        if hasattr(g, "request_id"):
            response.headers.setdefault("X-Request-Id", g.request_id)
        return response

    app.logger.info("Logger setup complete. JSON formatted logs enabled.")
