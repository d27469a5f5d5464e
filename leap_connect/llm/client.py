"""
HTTP client for the OpenAI-compatible inference API.

Every operation is a single request/response round trip except
chat_completion_stream, which hands the open response body to the
chunk decoder.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from ..config import ClientConfig, Configuration
from ..logging_utils import ContextualLogger, log_api_operation
from .exceptions import (
    APIConnectionError,
    APIStatusError,
    RateLimitError,
    ResponseParseError,
)
from .models import APIResponse, BinaryResponse, to_payload
from .streaming.decoder import ChunkDecoder, decode

HTTP_TOO_MANY_REQUESTS = 429
BETA_PATH_PREFIXES = ("/assistants", "/threads")
ORGANIZATION_HEADER = "tupleleapai-organization"
BETA_HEADER = "tupleleapai-Beta"
EVENT_STREAM = "text/event-stream"


def is_beta(path: str) -> bool:
    """Assistants and threads endpoints require the beta header."""
    return path.startswith(BETA_PATH_PREFIXES)


def build_query_params(
    limit: int | None = None,
    order: str | None = None,
    after: str | None = None,
    before: str | None = None,
) -> dict[str, str]:
    """Build pagination query parameters from the values provided."""
    params: dict[str, str] = {}
    if limit is not None:
        params["limit"] = str(limit)
    if order is not None:
        params["order"] = order
    if after is not None:
        params["after"] = after
    if before is not None:
        params["before"] = before
    return params


def convert_to_map(headers: httpx.Headers) -> dict[str, str]:
    """Flatten response headers into a plain dict."""
    return dict(headers.items())


def _error_message(response: httpx.Response, body: Any) -> str:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if body.get("message"):
            return str(body["message"])
    text = response.text.strip()
    return text or f"HTTP {response.status_code} {response.reason_phrase}"


class APIClient:
    """Async client for the inference API."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.logger = ContextualLogger(api_endpoint=config.api_endpoint)

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.api_key}",
        }
        if config.organization:
            headers[ORGANIZATION_HEADER] = config.organization

        client_kwargs: dict[str, Any] = {
            "base_url": config.api_endpoint,
            "headers": headers,
            "timeout": httpx.Timeout(
                connect=config.connect_timeout,
                read=config.read_timeout,
                write=config.write_timeout,
                pool=config.pool_timeout,
            ),
            "limits": httpx.Limits(
                max_connections=config.max_connections,
                max_keepalive_connections=config.max_keepalive,
            ),
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        elif config.proxy:
            client_kwargs["proxy"] = config.proxy

        self.client: httpx.AsyncClient = httpx.AsyncClient(**client_kwargs)

    @classmethod
    def from_configuration(
        cls,
        configuration: Configuration | None = None,
        api_key: str | None = None,
    ) -> APIClient:
        """Create a client from YAML and environment configuration."""
        configuration = configuration or Configuration()
        return cls(configuration.get_client_config(api_key))

    @property
    def api_endpoint(self) -> str:
        return self.config.api_endpoint

    def _request_headers(self, path: str, stream: bool) -> dict[str, str]:
        headers: dict[str, str] = {}
        if is_beta(path):
            headers[BETA_HEADER] = self.config.beta_header
        if stream:
            headers["Accept"] = EVENT_STREAM
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        params: dict[str, str] | None = None,
        stream: bool = False,
    ) -> httpx.Response:
        """Send one request and fail on transport errors or non-2xx status."""
        request_logger = self.logger.bind(method=method, path=path, stream=stream)
        request_logger.debug("Sending request")
        request = self.client.build_request(
            method,
            path,
            json=body,
            params=params or None,
            headers=self._request_headers(path, stream),
        )
        try:
            response = await self.client.send(request, stream=stream)
        except httpx.TimeoutException as e:
            raise APIConnectionError(f"Request to {path} timed out: {e}") from e
        except httpx.TransportError as e:
            raise APIConnectionError(f"Request to {path} failed: {e}") from e

        if not response.is_success:
            request_logger.warning(
                "Request rejected", status_code=response.status_code
            )
            await self._raise_for_status(response)
        return response

    async def _raise_for_status(self, response: httpx.Response) -> None:
        try:
            await response.aread()
        finally:
            await response.aclose()

        try:
            body = response.json()
        except ValueError:
            body = None

        message = _error_message(response, body)
        response_data = body if isinstance(body, dict) else {}

        if response.status_code == HTTP_TOO_MANY_REQUESTS:
            retry_after = response.headers.get("retry-after")
            try:
                retry_seconds = float(retry_after) if retry_after else None
            except ValueError:
                retry_seconds = None
            raise RateLimitError(
                message,
                retry_after=retry_seconds,
                status_code=response.status_code,
                response_data=response_data,
            )

        raise APIStatusError(
            message,
            status_code=response.status_code,
            response_data=response_data,
        )

    @staticmethod
    def _parse(response: httpx.Response) -> APIResponse:
        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ResponseParseError(
                f"Response body is not valid JSON: {e}",
                status_code=response.status_code,
            ) from e
        return APIResponse(data=data, headers=convert_to_map(response.headers))

    async def _post(self, path: str, request: Any = None) -> APIResponse:
        response = await self._send("POST", path, body=to_payload(request))
        return self._parse(response)

    async def _get(self, path: str, params: dict[str, str] | None = None) -> APIResponse:
        response = await self._send("GET", path, params=params)
        return self._parse(response)

    async def _delete(self, path: str) -> APIResponse:
        response = await self._send("DELETE", path)
        return self._parse(response)

    # Completions

    @log_api_operation("completion")
    async def completion(self, request: Any) -> APIResponse:
        return await self._post("/completions", request)

    @log_api_operation("edit")
    async def edit(self, request: Any) -> APIResponse:
        return await self._post("/edits", request)

    @log_api_operation("chat_completion")
    async def chat_completion(self, request: Any) -> APIResponse:
        return await self._post("/chat/completions", request)

    @log_api_operation("chat_completion_stream")
    async def chat_completion_stream(self, request: Any) -> ChunkDecoder:
        """
        Start a streaming chat completion.

        The request is always sent with stream set to true. Transport and
        status failures raise here, before any decoder exists. The returned
        decoder owns the open response and closes it when iteration ends or
        when it is closed explicitly.
        """
        body = to_payload(request)
        body["stream"] = True

        response = await self._send("POST", "/chat/completions", body=body, stream=True)

        content_type = response.headers.get("content-type", "")
        if EVENT_STREAM not in content_type:
            self.logger.warning(
                "Streaming response has unexpected content type",
                path="/chat/completions",
                content_type=content_type,
            )

        return decode(response.aiter_bytes(), on_close=response.aclose)

    # Embeddings, images, moderation

    @log_api_operation("embedding")
    async def embedding(self, request: Any) -> APIResponse:
        return await self._post("/embeddings", request)

    @log_api_operation("image_generation")
    async def image_generation(self, request: Any) -> APIResponse:
        return await self._post("/images/generations", request)

    @log_api_operation("image_edit")
    async def image_edit(self, request: Any) -> APIResponse:
        return await self._post("/images/edits", request)

    @log_api_operation("image_variation")
    async def image_variation(self, request: Any) -> APIResponse:
        return await self._post("/images/variations", request)

    @log_api_operation("create_moderation")
    async def create_moderation(self, request: Any) -> APIResponse:
        return await self._post("/moderations", request)

    # Files

    @log_api_operation("file_list")
    async def file_list(self) -> APIResponse:
        return await self._get("/files")

    @log_api_operation("file_upload")
    async def file_upload(self, request: Any) -> APIResponse:
        return await self._post("/files", request)

    @log_api_operation("file_delete")
    async def file_delete(self, file_id: str) -> APIResponse:
        return await self._delete(f"/files/{file_id}")

    @log_api_operation("file_retrieve")
    async def file_retrieve(self, file_id: str) -> APIResponse:
        return await self._get(f"/files/{file_id}")

    @log_api_operation("file_retrieve_content")
    async def file_retrieve_content(self, file_id: str) -> APIResponse:
        return await self._get(f"/files/{file_id}/content")

    # Audio

    @log_api_operation("audio_transcription")
    async def audio_transcription(self, request: Any) -> APIResponse:
        return await self._post("/audio/transcriptions", request)

    @log_api_operation("audio_translation")
    async def audio_translation(self, request: Any) -> APIResponse:
        return await self._post("/audio/translations", request)

    @log_api_operation("audio_speech")
    async def audio_speech(self, request: Any) -> BinaryResponse:
        """Synthesize speech and return the raw audio bytes."""
        response = await self._send("POST", "/audio/speech", body=to_payload(request))
        return BinaryResponse(
            content=response.content,
            headers=convert_to_map(response.headers),
        )

    # Fine-tuning

    @log_api_operation("create_fine_tuning_job")
    async def create_fine_tuning_job(self, request: Any) -> APIResponse:
        return await self._post("/fine_tuning/jobs", request)

    @log_api_operation("list_fine_tuning_jobs")
    async def list_fine_tuning_jobs(self) -> APIResponse:
        return await self._get("/fine_tuning/jobs")

    @log_api_operation("list_fine_tuning_job_events")
    async def list_fine_tuning_job_events(self, fine_tuning_job_id: str) -> APIResponse:
        return await self._get(f"/fine_tuning/jobs/{fine_tuning_job_id}/events")

    @log_api_operation("retrieve_fine_tuning_job")
    async def retrieve_fine_tuning_job(self, fine_tuning_job_id: str) -> APIResponse:
        return await self._get(f"/fine_tuning/jobs/{fine_tuning_job_id}")

    @log_api_operation("cancel_fine_tuning_job")
    async def cancel_fine_tuning_job(self, fine_tuning_job_id: str) -> APIResponse:
        return await self._post(
            f"/fine_tuning/jobs/{fine_tuning_job_id}/cancel",
            {"fine_tuning_job_id": fine_tuning_job_id},
        )

    # Assistants

    @log_api_operation("create_assistant")
    async def create_assistant(self, request: Any) -> APIResponse:
        return await self._post("/assistants", request)

    @log_api_operation("retrieve_assistant")
    async def retrieve_assistant(self, assistant_id: str) -> APIResponse:
        return await self._get(f"/assistants/{assistant_id}")

    @log_api_operation("modify_assistant")
    async def modify_assistant(self, assistant_id: str, request: Any) -> APIResponse:
        return await self._post(f"/assistants/{assistant_id}", request)

    @log_api_operation("delete_assistant")
    async def delete_assistant(self, assistant_id: str) -> APIResponse:
        return await self._delete(f"/assistants/{assistant_id}")

    @log_api_operation("list_assistant")
    async def list_assistant(
        self,
        limit: int | None = None,
        order: str | None = None,
        after: str | None = None,
        before: str | None = None,
    ) -> APIResponse:
        return await self._get(
            "/assistants", build_query_params(limit, order, after, before)
        )

    @log_api_operation("create_assistant_file")
    async def create_assistant_file(self, assistant_id: str, request: Any) -> APIResponse:
        return await self._post(f"/assistants/{assistant_id}/files", request)

    @log_api_operation("retrieve_assistant_file")
    async def retrieve_assistant_file(self, assistant_id: str, file_id: str) -> APIResponse:
        return await self._get(f"/assistants/{assistant_id}/files/{file_id}")

    @log_api_operation("delete_assistant_file")
    async def delete_assistant_file(self, assistant_id: str, file_id: str) -> APIResponse:
        return await self._delete(f"/assistants/{assistant_id}/files/{file_id}")

    @log_api_operation("list_assistant_file")
    async def list_assistant_file(
        self,
        assistant_id: str,
        limit: int | None = None,
        order: str | None = None,
        after: str | None = None,
        before: str | None = None,
    ) -> APIResponse:
        return await self._get(
            f"/assistants/{assistant_id}/files",
            build_query_params(limit, order, after, before),
        )

    # Threads and messages

    @log_api_operation("create_thread")
    async def create_thread(self, request: Any = None) -> APIResponse:
        return await self._post("/threads", request)

    @log_api_operation("retrieve_thread")
    async def retrieve_thread(self, thread_id: str) -> APIResponse:
        return await self._get(f"/threads/{thread_id}")

    @log_api_operation("modify_thread")
    async def modify_thread(self, thread_id: str, request: Any) -> APIResponse:
        return await self._post(f"/threads/{thread_id}", request)

    @log_api_operation("delete_thread")
    async def delete_thread(self, thread_id: str) -> APIResponse:
        return await self._delete(f"/threads/{thread_id}")

    @log_api_operation("create_message")
    async def create_message(self, thread_id: str, request: Any) -> APIResponse:
        return await self._post(f"/threads/{thread_id}/messages", request)

    @log_api_operation("retrieve_message")
    async def retrieve_message(self, thread_id: str, message_id: str) -> APIResponse:
        return await self._get(f"/threads/{thread_id}/messages/{message_id}")

    @log_api_operation("modify_message")
    async def modify_message(
        self, thread_id: str, message_id: str, request: Any
    ) -> APIResponse:
        return await self._post(f"/threads/{thread_id}/messages/{message_id}", request)

    @log_api_operation("list_messages")
    async def list_messages(self, thread_id: str) -> APIResponse:
        return await self._get(f"/threads/{thread_id}/messages")

    @log_api_operation("retrieve_message_file")
    async def retrieve_message_file(
        self, thread_id: str, message_id: str, file_id: str
    ) -> APIResponse:
        return await self._get(
            f"/threads/{thread_id}/messages/{message_id}/files/{file_id}"
        )

    @log_api_operation("list_message_file")
    async def list_message_file(
        self,
        thread_id: str,
        message_id: str,
        limit: int | None = None,
        order: str | None = None,
        after: str | None = None,
        before: str | None = None,
    ) -> APIResponse:
        return await self._get(
            f"/threads/{thread_id}/messages/{message_id}/files",
            build_query_params(limit, order, after, before),
        )

    # Runs

    @log_api_operation("create_run")
    async def create_run(self, thread_id: str, request: Any) -> APIResponse:
        return await self._post(f"/threads/{thread_id}/runs", request)

    @log_api_operation("retrieve_run")
    async def retrieve_run(self, thread_id: str, run_id: str) -> APIResponse:
        return await self._get(f"/threads/{thread_id}/runs/{run_id}")

    @log_api_operation("modify_run")
    async def modify_run(self, thread_id: str, run_id: str, request: Any) -> APIResponse:
        return await self._post(f"/threads/{thread_id}/runs/{run_id}", request)

    @log_api_operation("list_run")
    async def list_run(
        self,
        thread_id: str,
        limit: int | None = None,
        order: str | None = None,
        after: str | None = None,
        before: str | None = None,
    ) -> APIResponse:
        return await self._get(
            f"/threads/{thread_id}/runs",
            build_query_params(limit, order, after, before),
        )

    @log_api_operation("cancel_run")
    async def cancel_run(self, thread_id: str, run_id: str) -> APIResponse:
        return await self._post(f"/threads/{thread_id}/runs/{run_id}/cancel", {})

    @log_api_operation("create_thread_and_run")
    async def create_thread_and_run(self, request: Any) -> APIResponse:
        return await self._post("/threads/runs", request)

    @log_api_operation("retrieve_run_step")
    async def retrieve_run_step(
        self, thread_id: str, run_id: str, step_id: str
    ) -> APIResponse:
        return await self._get(f"/threads/{thread_id}/runs/{run_id}/steps/{step_id}")

    @log_api_operation("list_run_step")
    async def list_run_step(
        self,
        thread_id: str,
        run_id: str,
        limit: int | None = None,
        order: str | None = None,
        after: str | None = None,
        before: str | None = None,
    ) -> APIResponse:
        return await self._get(
            f"/threads/{thread_id}/runs/{run_id}/steps",
            build_query_params(limit, order, after, before),
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> APIClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
