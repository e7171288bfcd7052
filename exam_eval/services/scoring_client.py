"""HTTP client for the external scoring service.

Sends one reconciled evaluation request to ``{base_url}/evaluate`` and returns
the decoded JSON response. Every failure surfaces as ``OracleError``; a failed
call is never turned into a zero score. Retries are left to the caller;
``OracleResponseError`` marks a reply that retrying cannot fix.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from exam_eval.config import get_settings
from exam_eval.models.evaluation import ReconciledEvaluationRequest

logger = logging.getLogger(__name__)

EVALUATE_PATH = "/evaluate"


class OracleError(Exception):
    """The scoring service failed or returned something unusable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class OracleResponseError(OracleError):
    """The scoring service answered, but the body is not JSON. Retrying will not help."""


async def score_submission(
    request: ReconciledEvaluationRequest,
    *,
    base_url: Optional[str] = None,
    timeout_seconds: Optional[float] = None,
    api_key: Optional[str] = None,
) -> Dict[str, Any]:
    """Send a reconciled request to the scoring service.

    Args:
        request: Output of the request builder
        base_url: Service root; defaults to SCORING_ORACLE_URL
        timeout_seconds: Request timeout; defaults to ORACLE_TIMEOUT_SECONDS
        api_key: Bearer token; defaults to SCORING_ORACLE_API_KEY

    Returns:
        Decoded JSON response

    Raises:
        OracleError: On missing URL, timeout, transport failure, non-2xx
            status or a body that is not JSON
    """
    settings = get_settings()
    base_url = (base_url or settings.scoring_oracle_url or "").rstrip("/")
    if not base_url:
        raise OracleError("Scoring service URL is not configured (set SCORING_ORACLE_URL)")
    if timeout_seconds is None:
        timeout_seconds = settings.oracle_timeout_seconds
    if api_key is None:
        api_key = settings.scoring_oracle_api_key

    url = f"{base_url}{EVALUATE_PATH}"
    headers = {
        "Content-Type": "application/json",
        "User-Agent": "exam-eval/1.0",
    }
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    payload = request.to_payload()
    logger.info(
        f"Sending evaluation request to {url}: "
        f"{len(payload['studentSubmission']['mcqs'])} MCQs, "
        f"{len(payload['studentSubmission']['shortQuestions'])} short answers"
    )

    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            response = await client.post(url, json=payload, headers=headers)
    except httpx.TimeoutException as e:
        logger.warning(f"Scoring service timeout after {timeout_seconds}s: {str(e)}")
        raise OracleError(f"Scoring service timed out after {timeout_seconds}s") from e
    except httpx.HTTPError as e:
        logger.warning(f"Scoring service transport error: {str(e)}")
        raise OracleError(f"Scoring service request failed: {str(e)}") from e

    logger.info(f"Scoring service response: status={response.status_code}")

    if not 200 <= response.status_code < 300:
        raise OracleError(
            f"Scoring service returned HTTP {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )

    try:
        return response.json()
    except (json.JSONDecodeError, ValueError) as e:
        raise OracleResponseError(
            f"Scoring service returned a non-JSON body: {response.text[:200]}",
            status_code=response.status_code,
        ) from e
