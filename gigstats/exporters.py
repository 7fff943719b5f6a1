"""
Exporters — pluggable sinks for anomalies and reports.

The engine never does I/O itself; callers that want results shipped
somewhere hand them to an exporter. Implement `export_anomaly(anomaly)`
and optionally `export_report(report)`.

Built-in exporters:
  - JsonlExporter    — append to a local JSONL file
  - WebhookExporter  — POST JSON batches to any HTTP endpoint
  - ConsoleExporter  — one line per anomaly on stdout
  - MultiExporter    — fan-out to multiple exporters

Roll your own:
  class MyExporter(BaseExporter):
      def export_anomaly(self, anomaly): ...
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from . import Report
    from .types import Anomaly

logger = logging.getLogger("gigstats.exporters")


class BaseExporter:
    """
    Abstract base for all exporters.
    Subclass and implement `export_anomaly` at minimum.
    """

    def export_anomaly(self, anomaly: "Anomaly") -> None:
        raise NotImplementedError

    def export_report(self, report: "Report") -> None:
        """Default: export each anomaly in the report."""
        for anomaly in report.anomalies:
            self.export_anomaly(anomaly)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass


class JsonlExporter(BaseExporter):
    """
    Append anomalies as JSON lines to a local file. A report appends its
    anomalies there too, and the full report to a sibling
    `<name>.reports.jsonl`.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def reports_path(self) -> Path:
        return self._path.with_suffix(".reports.jsonl")

    def _append(self, path: Path, payload: dict) -> None:
        with self._lock:
            try:
                with open(path, "a") as f:
                    f.write(json.dumps(payload) + "\n")
            except OSError as e:
                logger.warning(f"JsonlExporter write to {path} failed: {e}")

    def export_anomaly(self, anomaly: "Anomaly") -> None:
        self._append(self._path, anomaly.to_dict())

    def export_report(self, report: "Report") -> None:
        for anomaly in report.anomalies:
            self.export_anomaly(anomaly)
        self._append(self.reports_path, report.to_dict())


class WebhookExporter(BaseExporter):
    """
    POST anomalies to an HTTP endpoint as JSON, in batches.
    Requires `httpx` (pip install gigstats[webhook]).

    Usage::

        exporter = WebhookExporter(
            url="https://example.com/api/v1/anomalies",
            headers={"Authorization": "Bearer xxx"},
        )
    """

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        batch_size: int = 10,
        timeout: float = 10.0,
        client=None,
    ):
        self._url = url
        self._headers = headers or {}
        self._batch_size = batch_size
        self._timeout = timeout
        self._buffer: list[dict] = []
        self._reports: list[dict] = []
        self._lock = threading.Lock()
        self._client = client

    def _get_client(self):
        if self._client is None:
            try:
                import httpx
            except ImportError:
                raise ImportError(
                    "WebhookExporter requires httpx. "
                    "Install with: pip install gigstats[webhook]"
                )
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    @property
    def pending(self) -> int:
        """Anomalies and reports waiting to be (re)sent."""
        return len(self._buffer) + len(self._reports)

    def export_anomaly(self, anomaly: "Anomaly") -> None:
        with self._lock:
            self._buffer.append(anomaly.to_dict())
            if len(self._buffer) >= self._batch_size:
                self._send_batch()

    def export_report(self, report: "Report") -> None:
        with self._lock:
            payload = {"report": report.to_dict()}
            if not self._post(payload):
                self._reports.append(payload)

    def flush(self) -> None:
        with self._lock:
            self._send_batch()
            self._send_reports()

    def close(self) -> None:
        self.flush()
        if self._client is not None:
            self._client.close()

    def _post(self, payload: dict) -> bool:
        """Send one payload. Must be called with lock held."""
        try:
            client = self._get_client()
            resp = client.post(self._url, json=payload, headers=self._headers)
        except ImportError:
            raise
        except Exception as e:
            logger.warning(f"Webhook POST error: {e}")
            return False
        if resp.status_code >= 400:
            logger.warning(f"Webhook POST failed: {resp.status_code} {resp.text[:200]}")
            return False
        return True

    def _send_batch(self) -> None:
        """Send buffered anomalies. Must be called with lock held."""
        if not self._buffer:
            return
        batch = self._buffer[:]
        self._buffer.clear()
        if not self._post({"anomalies": batch}):
            # Re-queue ahead of anything added since
            self._buffer = batch + self._buffer

    def _send_reports(self) -> None:
        """Retry reports whose POST failed. Must be called with lock held."""
        queued, self._reports = self._reports, []
        for i, payload in enumerate(queued):
            if not self._post(payload):
                self._reports = queued[i:] + self._reports
                return


class ConsoleExporter(BaseExporter):
    """
    Print anomalies to stdout, coloured by severity on a terminal.
    """

    _COLORS = {
        "critical": "\033[31m",
        "warning": "\033[33m",
        "info": "\033[36m",
    }

    def __init__(self, color: bool = True, stream=None):
        self._stream = stream if stream is not None else sys.stdout
        self._color = color and hasattr(self._stream, "isatty") and self._stream.isatty()

    def _write(self, line: str) -> None:
        print(line, file=self._stream)

    def export_anomaly(self, anomaly: "Anomaly") -> None:
        sev = anomaly.severity.value
        if self._color:
            color, reset = self._COLORS.get(sev, ""), "\033[0m"
        else:
            color = reset = ""
        self._write(
            f"[gigstats] {color}{sev.upper():8s}{reset} "
            f"{anomaly.detected_at.isoformat()} "
            f"| {anomaly.metric} "
            f"| z={anomaly.z_score:+.2f} "
            f"| {anomaly.description}"
        )

    def export_report(self, report: "Report") -> None:
        for anomaly in report.anomalies:
            self.export_anomaly(anomaly)
        fc = report.earnings_forecast
        if fc is not None:
            self._write(
                f"[gigstats] FORECAST: week=${fc.predicted_next_week:.2f} "
                f"month=${fc.predicted_next_month:.2f} "
                f"trend={fc.trend.value} confidence={fc.confidence:.2f}"
            )
        exp = report.expense_forecast
        if exp is not None:
            runway = (
                f"{exp.days_until_budget_exhausted:.1f}d"
                if exp.days_until_budget_exhausted is not None else "n/a"
            )
            self._write(
                f"[gigstats] EXPENSES: month=${exp.predicted_monthly_expenses:.2f} "
                f"burn=${exp.burn_rate_per_day:.2f}/day budget_runway={runway}"
            )


class MultiExporter(BaseExporter):
    """
    Fan-out to multiple exporters. Errors in one don't block others.

    Usage::

        multi = MultiExporter([
            JsonlExporter("data/anomalies.jsonl"),
            ConsoleExporter(),
        ])
    """

    def __init__(self, exporters: list[BaseExporter]):
        self._exporters = exporters

    def add(self, exporter: BaseExporter):
        self._exporters.append(exporter)

    def _each(self, method: str, *args) -> None:
        for exp in self._exporters:
            try:
                getattr(exp, method)(*args)
            except Exception as e:
                logger.warning(f"{exp.__class__.__name__}.{method} error: {e}")

    def export_anomaly(self, anomaly: "Anomaly") -> None:
        self._each("export_anomaly", anomaly)

    def export_report(self, report: "Report") -> None:
        self._each("export_report", report)

    def flush(self) -> None:
        self._each("flush")

    def close(self) -> None:
        self._each("close")
