"""Batch inserts staged through object storage."""

from sqlstage.batch._literals import format_literal
from sqlstage.batch._template import BatchInsertTemplate
from sqlstage.batch.accumulator import BatchAccumulator
from sqlstage.batch.orchestrator import BatchInsertOrchestrator
from sqlstage.batch.statement import PreparedBatchStatement

__all__ = (
    "BatchAccumulator",
    "BatchInsertOrchestrator",
    "BatchInsertTemplate",
    "PreparedBatchStatement",
    "format_literal",
)
