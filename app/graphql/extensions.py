# app/graphql/extensions.py

import time
from typing import Iterator

from graphql import GraphQLError
from strawberry.extensions import SchemaExtension

from app.core.logging import get_logger

logger = get_logger("app.graphql")


def _error_code(error: GraphQLError) -> str:
    return (error.extensions or {}).get("code") or "INTERNAL_SERVER_ERROR"


class OperationLogger(SchemaExtension):
    """One log line per GraphQL operation, with the error codes it produced."""

    def on_operation(self) -> Iterator[None]:
        started = time.perf_counter()
        yield
        ctx = self.execution_context
        result = ctx.result
        errors = list(result.errors or []) if result is not None else []
        fields = {
            "operation": ctx.operation_name or "anonymous",
            "duration": round(time.perf_counter() - started, 3),
        }

        if not errors:
            logger.info("graphql_operation", **fields)
            return

        codes = sorted({_error_code(e) for e in errors})
        if "INTERNAL_SERVER_ERROR" in codes or "UPSTREAM_FAILURE" in codes:
            logger.error("graphql_operation_failed", error_codes=codes, error=errors[0].message, **fields)
        else:
            logger.info("graphql_operation_rejected", error_codes=codes, **fields)
