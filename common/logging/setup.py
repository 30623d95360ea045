# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import logging
import sys

from asgi_correlation_id import CorrelationIdFilter, correlation_id

from common.config import Config
from common.logging import splunk

_correlation_id_length = 16

_noisy_loggers = ["httpx", "httpcore"]
"""Libraries logging every outgoing request on INFO"""


def get_log_id() -> str:
    """Correlation id of the current request, `-` outside of a request."""
    current = correlation_id.get()
    if not current:
        return "-"
    return current[:_correlation_id_length]


def configure_logging(config: Config) -> None:
    console_handler = logging.StreamHandler(stream=sys.stdout)

    _cid_filter = CorrelationIdFilter(uuid_length=_correlation_id_length)
    # Add correlation id to handlers
    console_handler.addFilter(_cid_filter)

    if config.enable_splunk_log:
        _formatter = splunk.SplunkFormatter(defaults={"app_name": config.app_name})
        console_handler.setFormatter(_formatter)
    else:
        console_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"))

    logging.basicConfig(handlers=[console_handler], level=config.log_level)

    for name in _noisy_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Configure all loggers to use the console logger
    for logger in logging.root.manager.loggerDict.values():
        if isinstance(logger, logging.Logger):
            if console_handler not in logger.handlers:
                logger.handlers = [console_handler]
                logger.propagate = False
