"""
middleware/logging_middleware.py — Request lifecycle log entries.

Emits `request_received` before each request and `request_completed`
(status, duration) after it, at the `structural` level. Unhandled errors are
logged by the global error handler, not here.
"""

from __future__ import annotations

import time

from flask import Flask, g, request

from backend.app.services.log_service import log_structured


def register_request_logging(app: Flask) -> None:

    @app.before_request
    def log_request_received():
        g.request_started = time.perf_counter()
        log_structured(
            "request_received",
            method=request.method,
            path=request.path,
            ray=request.headers.get("CF-Ray"),
        )

    @app.after_request
    def log_request_completed(response):
        started = g.get("request_started")
        duration_ms = (
            round((time.perf_counter() - started) * 1000, 2)
            if started is not None
            else None
        )
        log_structured(
            "request_completed",
            method=request.method,
            path=request.path,
            status=response.status_code,
            duration_ms=duration_ms,
        )
        return response
