"""This module contains class KeyValContextLogger - a custom adapter derived from logging.LoggerAdapter"""

import logging
import sys
from typing import Any, Dict, Optional, Tuple


class KeyValContextLogger(logging.LoggerAdapter):
    """
    Custom LoggerAdapter to inject bound context (e.g. secid) and to render each log as series of key-value pairs.
    A child created by `bind` reads its parent's context at log time, so context replaced on the parent later
    (e.g. a per-command correlation id) shows up in the child's messages too.
    """

    RESERVED_KEYS = ("exc_info", "extra", "stack_info", "stacklevel")

    def __init__(self, logger, parent: Optional["KeyValContextLogger"] = None, **context):
        super(KeyValContextLogger, self).__init__(logger, extra=context)
        self.parent = parent

    def bind(self, **context) -> "KeyValContextLogger":
        """
        Create a child adapter on the same logger carrying this adapter's live context followed by given context

        :param context: key-value pairs appended to every message of the child
        :returns: new KeyValContextLogger

        """
        return KeyValContextLogger(self.logger, parent=self, **context)

    def context(self) -> Dict[str, Any]:
        """Current context: the parent chain's context, then this adapter's own"""
        merged = self.parent.context() if self.parent is not None else {}
        merged.update(self.extra or {})
        return merged

    def process(self, message, kwargs) -> Tuple[str, dict[str, Any]]:
        """
        Override logging.LoggerAdapter.process to format the log message as key-values pairs.
        Double quotes inside values are escaped so that every pair stays parseable.

        :param message: logging message
        :param kwargs: keyword arguments
        :returns: tuple of key-value formatted message and dict of reserved kwargs
        """
        reserved_kwargs = {k: kwargs.pop(k) for k in self.RESERVED_KEYS if k in kwargs}
        log_params = dict(event=message)
        log_params.update(kwargs)
        log_params.update(self.context())
        kv_msg = " ".join(f'{k}="{self._quote(v)}"' for (k, v) in log_params.items())
        return kv_msg, reserved_kwargs

    @staticmethod
    def _quote(value: Any) -> str:
        return str(value).replace('"', '\\"')

    def error(self, msg, *args, **kwargs) -> None:
        """
        Handle error and exception calls by examining sys.exc_info

        :param msg: error log message
        :param args: additional positional arguments to be delegated to super
        :param kwargs: keyword arguments to be delegated to super

        """
        _type, _value, _traceback = sys.exc_info()
        if _type is not None:
            kwargs["error_type"] = _type.__name__
            kwargs["error_message"] = _value
            super(KeyValContextLogger, self).exception(msg, *args, **kwargs)
        else:
            super(KeyValContextLogger, self).error(msg, *args, **kwargs)

    def exception(self, msg, *args, exc_info=False, **kwargs):
        """
        Delegates to method error of self

        :param msg: log message
        :param args: additional positional arguments to be delegated
        :param exc_info:  (Default value = False) Ignored
        :param kwargs: keyword arguments to be delegated

        """
        self.error(msg, *args, **kwargs)
