"""Reporting for locally recovered extraction conditions.

ExtractionAmbiguity and MissingFootnote never abort a run. They are logged at
WARNING on the reporting module's logger and, when the caller passes a list,
collected there for inspection.
"""
from __future__ import annotations

import logging

from lawtext.law_types import Diagnostic, DiagnosticKind

type DiagnosticSink = list[Diagnostic] | None


def report(
    sink: DiagnosticSink,
    kind: DiagnosticKind,
    location: str,
    detail: str,
    *,
    logger: logging.Logger,
) -> Diagnostic:
    diagnostic = Diagnostic(kind=kind, location=location, detail=detail)
    logger.warning("%s at %s: %s", kind.value, location, detail)
    if sink is not None:
        sink.append(diagnostic)
    return diagnostic
