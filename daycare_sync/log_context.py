"""Context-carrying logger passed explicitly through the ingestion pipeline."""

import logging


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that tags every record with its bound context.

    The context (message_id, sender, user_id, strategy, ...) is prefixed to
    the message text and also attached to the record as attributes, so log
    lines for one email can be correlated without a global logger.
    """

    def process(self, msg, kwargs):
        if self.extra:
            prefix = " ".join(f"{key}={value}" for key, value in self.extra.items())
            msg = f"[{prefix}] {msg}"
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **context) -> "ContextLogger":
        """Return a new logger with additional context fields."""
        return ContextLogger(self.logger, {**self.extra, **context})


def get_logger(name: str, **context) -> ContextLogger:
    """Get a ContextLogger for a module, optionally with initial context."""
    return ContextLogger(logging.getLogger(name), context)
