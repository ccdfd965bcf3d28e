from __future__ import annotations

import logging

from redirector.infra.tenant import get_actor, get_tenant

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [tenant=%(tenant)s actor=%(actor)s] %(message)s"


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.tenant = get_tenant() or "-"
        record.actor = get_actor() or "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if any(isinstance(item, RequestContextFilter) for handler in root.handlers for item in handler.filters):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestContextFilter())
    root.addHandler(handler)
    root.setLevel(level.upper())
