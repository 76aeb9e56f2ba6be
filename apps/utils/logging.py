import logging
import json
import datetime


class JSONFormatter(logging.Formatter):
    """
    Production-safe JSON Formatter.
    Recursively scrubs sensitive keys from logs.
    """

    # Lowercase set of keys to redact
    SENSITIVE_KEYS = {
        'password', 'password_confirmation', 'token', 'access', 'refresh',
        'secret', 'authorization', 'key', 'signature'
    }

    # Extras lifted to top-level fields when a caller passes them
    CONTEXT_FIELDS = ('work_order_id', 'work_order_number', 'user_id', 'request_id')

    def _scrub(self, data):
        """
        Recursively redact sensitive data from dicts and lists.
        """
        if isinstance(data, dict):
            return {
                k: self._scrub(v) if k.lower() not in self.SENSITIVE_KEYS else '***REDACTED***'
                for k, v in data.items()
            }
        if isinstance(data, list):
            return [self._scrub(i) for i in data]
        return data

    def format(self, record):
        # [SECURITY] Scrub the primary message if it's a dictionary (structured log)
        if isinstance(record.msg, dict):
            record.msg = self._scrub(record.msg)

        # [SECURITY] Scrub arguments if they are a dictionary
        if hasattr(record, 'args') and isinstance(record.args, dict):
            record.args = self._scrub(record.args)

        # Build Standard Log Record
        log_record = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "lvl": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
            "path": record.pathname,
            "line": record.lineno,
        }

        # Add Contextual Traceability
        for field in self.CONTEXT_FIELDS:
            if hasattr(record, field):
                log_record[field] = str(getattr(record, field))

        # Exception Info
        if record.exc_info:
            log_record['exc'] = self.formatException(record.exc_info)

        return json.dumps(log_record)
