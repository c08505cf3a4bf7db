"""Azure Functions entry point — NDVI Oracle.

This module registers the HTTP trigger using the Python v2 programming
model.

All business logic lives in the ndvi_oracle package. This file is purely
the wiring layer between Azure Functions bindings and application code.
"""

from __future__ import annotations

import json
import logging

import azure.functions as func

from ndvi_oracle.core.config import PipelineConfig
from ndvi_oracle.core.exceptions import PipelineError
from ndvi_oracle.core.trigger import failure_response
from ndvi_oracle.orchestrators.oracle_pipeline import process_trigger

app = func.FunctionApp()

logger = logging.getLogger("ndvi_oracle.function_app")

_JSON = "application/json"


# ---------------------------------------------------------------------------
# Trigger: HTTP POST → Oracle Run
# ---------------------------------------------------------------------------


@app.function_name("oracle_run")
@app.route(route="oracle/run", methods=["POST"], auth_level=func.AuthLevel.FUNCTION)
async def oracle_run(req: func.HttpRequest) -> func.HttpResponse:
    """Run the oracle for one trigger envelope.

    The request body is the trigger envelope (``trigger_id``,
    ``destination``, ``data``).  The response body is the chain-wrapped
    or raw ``OracleResult`` bytes.

    Status codes:
        200: Pipeline completed.
        400: Envelope, query, or feature failed validation.
        500: Unexpected failure outside the error taxonomy.
        502: Upstream service, configuration, or encoding failure.
    """
    return await handle_oracle_request(req.get_body())


async def handle_oracle_request(body: bytes) -> func.HttpResponse:
    """Run one envelope and map the outcome to an HTTP response."""
    logger.info("HTTP trigger fired | body=%d bytes", len(body))

    try:
        config = PipelineConfig.from_env()
        output = await process_trigger(body, config)
    except PipelineError as exc:
        status, error_body = failure_response(exc)
        logger.exception(
            "Oracle run failed | status=%d | stage=%s | code=%s | correlation_id=%s",
            status,
            exc.stage,
            exc.code,
            exc.correlation_id,
        )
        return func.HttpResponse(error_body, status_code=status, mimetype=_JSON)
    except Exception as exc:
        logger.exception("Oracle run failed with unexpected error | type=%s", type(exc).__name__)
        error_body = json.dumps(
            {
                "category": "internal",
                "code": "UNEXPECTED_ERROR",
                "stage": "",
                "message": str(exc),
                "retryable": False,
                "correlation_id": "",
            }
        ).encode("utf-8")
        return func.HttpResponse(error_body, status_code=500, mimetype=_JSON)

    logger.info("Oracle run completed | output=%d bytes", len(output))
    return func.HttpResponse(output, status_code=200, mimetype=_JSON)
