"""HTTP client for the remote ingest endpoint."""

import time
from urllib.parse import urlsplit

import httpx
from pydantic import ValidationError
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from docgate.config import get_settings
from docgate.errors import (
    IngestAuthError,
    IngestError,
    IngestValidationError,
    TransientIngestError,
)
from docgate.models.document import DocumentChunk
from docgate.models.upload import BatchItemResult, IngestRequest, IngestResult, ItemError
from docgate.observability.metrics import INGEST_LATENCY, INGEST_REQUESTS

logger = structlog.get_logger()

TITLE_MAX_LENGTH = 500


def generate_title(url: str) -> str:
    """Last path segment of the URL, else its hostname, capped at 500 chars."""
    parts = urlsplit(url)
    segments = [p for p in parts.path.split("/") if p]
    if segments:
        return segments[-1][:TITLE_MAX_LENGTH]
    return (parts.hostname or url)[:TITLE_MAX_LENGTH]


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return default
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return default


def _log_retry(retry_state: RetryCallState) -> None:
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "ingest_retry",
        attempt=retry_state.attempt_number,
        wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
        error=str(exception) if exception else None,
    )


class IngestClient:
    """
    Client for the remote ingest API.

    Transport errors and 429/5xx responses are retried with exponential
    backoff. 400 and 401 raise immediately; 409 becomes a per-document
    DUPLICATE_DOCUMENT failure rather than an exception.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        retry_attempts: int | None = None,
        retry_base_delay: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.ingest_api_url).rstrip("/")
        self.token = token if token is not None else settings.ingest_api_token
        self.retry_attempts = retry_attempts or settings.retry_attempts
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else settings.retry_base_delay_seconds
        )
        self._client = httpx.AsyncClient(
            timeout=timeout or settings.ingest_timeout_seconds,
            transport=transport,
        )

        if not self.token:
            logger.warning("ingest_token_not_set")

    async def __aenter__(self) -> "IngestClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.token}",
        }

    def _serialize_doc(self, doc: DocumentChunk, version: str) -> dict:
        return {
            "title": generate_title(doc.parent_url),
            "content": doc.content,
            "url": doc.parent_url,
            "lang": doc.lang,
            "version": version,
            "meta": {
                "sourceId": doc.source_id,
                "contentHash": doc.content_hash,
                "chunkIndex": doc.chunk_index,
                "totalChunks": doc.total_chunks,
            },
        }

    def _build_payload(self, request: IngestRequest) -> dict:
        meta = request.batch_metadata
        return {
            "docs": [self._serialize_doc(doc, request.version) for doc in request.docs],
            "sourceId": request.source_id,
            "batchMetadata": {
                "totalDocs": meta.total_docs,
                "crawledAt": meta.crawled_at.isoformat(),
                "crawlerVersion": meta.crawler_version,
            },
        }

    def _check_status(self, response: httpx.Response) -> None:
        """Raise for every non-2xx status except 409."""
        status = response.status_code
        if response.is_success or status == 409:
            return
        if status == 400:
            raise IngestValidationError(
                f"validation failed: {_error_message(response, 'bad request')}", status_code=400
            )
        if status == 401:
            raise IngestAuthError("authentication failed: token invalid or missing", status_code=401)
        if status == 429 or status >= 500:
            raise TransientIngestError(f"ingest endpoint returned {status}", status_code=status)
        raise IngestError(
            f"ingest endpoint returned {status}: {_error_message(response, response.reason_phrase)}",
            status_code=status,
        )

    async def _post(self, url: str, payload: dict) -> httpx.Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_base_delay),
            retry=retry_if_exception_type((httpx.TransportError, TransientIngestError)),
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self._client.post(url, json=payload, headers=self._headers())
                self._check_status(response)
        return response

    async def upload_batch(self, request: IngestRequest) -> IngestResult:
        """
        Send one batch to `{base_url}/docs/batch`.

        Args:
            request: Chunks plus source, version and batch metadata

        Returns:
            IngestResult with batch-local result indices

        Raises:
            IngestAuthError: on 401
            IngestValidationError: on 400
            IngestError: on other failures once retries are exhausted
        """
        url = f"{self.base_url}/docs/batch"
        logger.info(
            "ingest_batch_sending",
            url=url,
            docs=len(request.docs),
            source_id=request.source_id,
            version=request.version,
        )

        start = time.perf_counter()
        try:
            response = await self._post(url, self._build_payload(request))
        except httpx.TransportError as e:
            INGEST_REQUESTS.labels(status="error").inc()
            raise IngestError(f"transport error: {e}") from e
        except IngestError as e:
            INGEST_REQUESTS.labels(status=str(e.status_code or "error")).inc()
            logger.error("ingest_batch_failed", url=url, status=e.status_code, error=e.message)
            raise
        finally:
            INGEST_LATENCY.observe(time.perf_counter() - start)

        INGEST_REQUESTS.labels(status=str(response.status_code)).inc()

        if response.status_code == 409:
            message = _error_message(response, "document already exists")
            logger.warning("ingest_batch_duplicate", source_id=request.source_id, docs=len(request.docs))
            return IngestResult(
                success=False,
                processed=0,
                failed=len(request.docs),
                results=[
                    BatchItemResult(
                        index=i,
                        status="failed",
                        error=ItemError(code="DUPLICATE_DOCUMENT", message=message),
                    )
                    for i in range(len(request.docs))
                ],
            )

        body = response.json()
        data = body.get("data", body) if isinstance(body, dict) else {}
        result = IngestResult(
            success=not data.get("failed"),
            processed=data.get("processed") or 0,
            failed=data.get("failed") or 0,
            operation_id=data.get("operationId") or "",
            results=self._parse_results(data.get("results") or [], request.source_id),
        )
        logger.info(
            "ingest_batch_complete",
            operation_id=result.operation_id,
            processed=result.processed,
            failed=result.failed,
        )
        return result

    def _parse_results(self, entries: list, source_id: str) -> list[BatchItemResult]:
        """Validate per-item results, dropping entries the endpoint got wrong."""
        results = []
        for entry in entries:
            try:
                results.append(BatchItemResult.model_validate(entry))
            except ValidationError as e:
                logger.warning(
                    "ingest_result_invalid",
                    source_id=source_id,
                    entry=entry,
                    errors=e.error_count(),
                )
        return results

    async def health_check(self) -> bool:
        """True when `{base_url}/health` answers 200."""
        try:
            response = await self._client.get(f"{self.base_url}/health", timeout=5.0)
        except httpx.HTTPError as e:
            logger.error("ingest_health_check_failed", error=str(e))
            return False
        return response.status_code == 200
