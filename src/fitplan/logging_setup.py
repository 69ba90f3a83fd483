import asyncio
import logging
import re
import traceback

import httpx

from .config import SETTINGS

_tasks: list[asyncio.Task[None]] = []

_REDACTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"Bearer\s+[A-Za-z0-9._\-]+"), "Bearer <REDACTED>"),
    (re.compile(r"\bsk-[A-Za-z0-9_\-]{8,}"), "<REDACTED>"),
    (re.compile(r"([?&]key=)[^&\s]+"), r"\1<REDACTED>"),
]


def redact(text: str) -> str:
    for pattern, repl in _REDACTIONS:
        text = pattern.sub(repl, text)
    return text


class SensitiveDataFilter(logging.Filter):
    """
    Redact API keys from log records.

    Gemini keys travel in the ``key`` query parameter and OpenAI keys in the
    Authorization header, so both end up in httpx error messages.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        # Render once so secrets inside formatted args (exceptions, URLs) are caught too
        record.msg = redact(record.getMessage())
        record.args = ()
        return True


class AlertWebhookHandler(logging.Handler):
    """
    Logging handler that posts error logs to an alert webhook.
    """

    def emit(self, record: logging.LogRecord) -> None:
        if not SETTINGS.FF_ADMIN_ALERTS:
            return
        url = SETTINGS.ALERT_WEBHOOK_URL
        if not url:
            return
        try:
            msg = self.format(record)
            # Compact stack if exists
            if record.exc_info:
                exc_text = "".join(traceback.format_exception(*record.exc_info))
                if len(exc_text) > 3500:
                    exc_text = exc_text[-3500:]
                    exc_text = "[truncated]\n" + exc_text
                msg = f"{msg}\n\n{exc_text}"
            data = {"text": redact(msg)[:3900]}

            async def _post() -> None:
                try:
                    async with httpx.AsyncClient(timeout=5.0) as client:
                        await client.post(url, json=data)
                except Exception as e:  # pragma: no cover - network
                    logging.getLogger(__name__).warning("Failed to send alert: %s", e)

            try:
                task = asyncio.get_running_loop().create_task(_post())
                _tasks.append(task)
                task.add_done_callback(_tasks.remove)
            except RuntimeError:
                # No running loop; fall back to blocking call
                try:
                    httpx.post(url, json=data, timeout=5.0)
                except Exception as e:  # pragma: no cover - network
                    logging.getLogger(__name__).warning("Failed to send alert: %s", e)
        except Exception as e:
            logging.getLogger(__name__).warning("Failed to send alert: %s", e)


def setup_logging(level: int | str | None = None) -> None:
    """
    Set up root logger with stream and alert handlers.
    """
    root = logging.getLogger()
    if root.handlers:
        return  # already configured
    root.setLevel(level or SETTINGS.LOG_LEVEL)
    fmt = logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    redactor = SensitiveDataFilter()
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    ch.addFilter(redactor)
    root.addHandler(ch)
    alerts = AlertWebhookHandler()
    alerts.setLevel(logging.ERROR)
    alerts.setFormatter(fmt)
    alerts.addFilter(redactor)
    root.addHandler(alerts)
