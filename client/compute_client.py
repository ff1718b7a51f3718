"""Compute Service HTTP Client.

Async client for callers that offload hashing, validation, sorting and
uploads to a remote compute service. Hashing, validation and sorting fall
back to local computation when the service is unreachable or errors;
uploads never fall back.
"""

import asyncio
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import aiohttp

from compute.drift import validate
from compute.fingerprint import batch_fingerprint
from compute.sorting import SortDirection, sort
from core.config import Settings
from core.models.sync import FileToUpload, TranslationToValidate, ValidationResult
from core.observability.logging import get_logger


logger = get_logger(__name__)


class ComputeWorkerError(Exception):
    """Remote compute service returned an error response."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


_FALLBACK_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ComputeWorkerError, KeyError, ValueError)


class ComputeWorkerClient:
    """HTTP client for the compute service.

    Usage:
        client = ComputeWorkerClient("http://localhost:8787")
        hashes = await client.batch_hash(["Hello", "World"])
        results = await client.batch_validate(translations, source_hashes)
    """

    def __init__(self, base_url: str, fallback_enabled: bool = True, timeout_seconds: float = 30.0):
        """Initialize client.

        Args:
            base_url: Service root, e.g. "http://localhost:8787"
            fallback_enabled: Compute locally when the service call fails
            timeout_seconds: Total timeout per request
        """
        self.base_url = base_url.rstrip("/")
        self.fallback_enabled = fallback_enabled
        self.timeout_seconds = timeout_seconds

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        """Send one JSON request and return the decoded JSON body.

        Raises:
            ComputeWorkerError: On a 4xx/5xx response
            aiohttp.ClientError: On connection problems
            asyncio.TimeoutError: When the request exceeds the timeout
        """
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(method, f"{self.base_url}{path}", json=payload) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise ComputeWorkerError(
                        f"Compute worker returned {response.status}",
                        status_code=response.status,
                        response_body=body,
                    )
                return await response.json()

    def _should_fall_back(self, operation: str, error: Exception) -> bool:
        if not self.fallback_enabled:
            return False
        logger.warning(f"Compute worker {operation} failed, falling back to local computation: {error}")
        return True

    async def batch_hash(self, values: Sequence[str]) -> List[str]:
        """Fingerprint values remotely, or locally on failure."""
        try:
            data = await self._request("POST", "/hash", {"values": list(values)})
            return list(data["hashes"])
        except _FALLBACK_ERRORS as e:
            if not self._should_fall_back("hash", e):
                raise
            return batch_fingerprint(values)

    async def batch_validate(
        self,
        translations: Iterable[Union[TranslationToValidate, Mapping[str, Any]]],
        source_hashes: Mapping[str, str],
    ) -> List[ValidationResult]:
        """Validate translations remotely, or locally on failure."""
        items = [TranslationToValidate.model_validate(t) for t in translations]
        try:
            data = await self._request("POST", "/validate", {
                "translations": [t.model_dump() for t in items],
                "source_hashes": dict(source_hashes),
            })
            return [ValidationResult.model_validate(r) for r in data["results"]]
        except _FALLBACK_ERRORS as e:
            if not self._should_fall_back("validate", e):
                raise
            return validate(items, source_hashes)

    async def sort(
        self,
        items: Sequence[Dict[str, Any]],
        sort_by: str,
        order: Union[SortDirection, str] = SortDirection.ASC,
    ) -> List[Dict[str, Any]]:
        """Sort records remotely, or locally on failure."""
        direction = SortDirection(order)
        try:
            data = await self._request("POST", "/sort", {
                "items": list(items),
                "sort_by": sort_by,
                "order": direction.value,
            })
            return list(data["sorted"])
        except _FALLBACK_ERRORS as e:
            if not self._should_fall_back("sort", e):
                raise
            return sort(items, sort_by, direction)

    async def upload(
        self,
        project_id: str,
        branch: str,
        commit_sha: str,
        files: Sequence[Union[FileToUpload, Mapping[str, Any]]],
    ) -> Dict[str, Any]:
        """Upload files. Errors always propagate."""
        payload = {
            "project_id": project_id,
            "branch": branch,
            "commit_sha": commit_sha,
            "files": [FileToUpload.model_validate(f).model_dump() for f in files],
        }
        try:
            return await self._request("POST", "/upload", payload)
        except ComputeWorkerError as e:
            logger.error(f"Upload to compute worker failed {e.status_code}: {e.response_body}")
            raise

    async def health_check(self) -> bool:
        """True when the service answers /health successfully."""
        try:
            await self._request("GET", "/health")
            return True
        except _FALLBACK_ERRORS:
            return False


def create_compute_client(settings: Settings) -> Optional[ComputeWorkerClient]:
    """Create a client from settings, or None when no service URL is configured."""
    if not settings.compute_worker_url:
        logger.warning("COMPUTE_WORKER_URL not configured, compute worker will not be used")
        return None
    return ComputeWorkerClient(settings.compute_worker_url)
