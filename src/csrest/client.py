"""Team server REST API client with fixed-delay retries and task polling."""

import asyncio
import functools
import logging
import re
from http import HTTPStatus
from pathlib import Path
from typing import Any
from urllib.parse import quote

import aiohttp
from pydantic import BaseModel, TypeAdapter, ValidationError

from config.config import ClientConfig
from core.errors.exceptions import (
    ApiError,
    RequestCancelledError,
    classify_http_status,
    is_retryable_status,
)
from core.logging.context import get_log_context
from core.resilience.retry import RetryConfig, execute_with_retry, run_cancellable
from core.security.ssl_utils import build_ssl_context
from core.types import ErrorCategory
from core.utils.json_serializers import encode_json_body
from csrest.files import read_and_encode_file
from csrest.poller import DEFAULT_POLL_INTERVAL, wait_for_task_completion
from csrest.schemas import (
    AsyncCommandResponse,
    AuthDto,
    BeaconDto,
    EmptyDto,
    InlineExecutePackDto,
    InlineExecutePackedDto,
    InlineExecuteStringDto,
    LoginRequest,
    PowerShellDto,
    TaskDetailDto,
    TaskSummaryDto,
    UploadDto,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 50443
DEFAULT_TASK_TIMEOUT = 300.0

# Control characters and spaces cannot appear in a request target
_INVALID_PATH_CHARS = re.compile(r"[\x00-\x20\x7f]")


def classify_api_error(status: int, body_text: str) -> ApiError:
    """
    Classify a non-2xx response.

    Retryable iff the server failed (5xx) or rate limited (429). The message is
    the response body, or ``HTTP {code}: {reason}`` when the body is empty.
    """
    message = body_text
    if not message.strip():
        try:
            reason = HTTPStatus(status).phrase
        except ValueError:
            reason = ""
        message = f"HTTP {status}: {reason}"

    return ApiError(
        message,
        status_code=status,
        category=classify_http_status(status),
        is_retryable=is_retryable_status(status),
    )


@functools.lru_cache(maxsize=None)
def _adapter(result_type: Any) -> TypeAdapter:
    return TypeAdapter(result_type)


def _segment(value: str) -> str:
    """Quote one path segment (beacon or task id)."""
    return quote(str(value), safe="")


def _build_body(model: type[BaseModel], **fields: Any) -> BaseModel:
    """Build a request model; invalid input fails like an unencodable body."""
    try:
        return model(**fields)
    except ValidationError as e:
        raise ApiError(
            f"failed to marshal request: {e}",
            category=ErrorCategory.PERMANENT,
            is_retryable=False,
        ) from e


class CSRestClient:
    """
    Async client for the team server REST API.

    One instance is one session: base address, bearer credential and retry
    policy. The credential is written by ``login`` and read by every
    authenticated call. Concurrent calls on one event loop are safe; racing
    logins are the caller's responsibility, and an instance must not be
    shared between event loops.

    Usage:
        async with CSRestClient("teamserver", 50443, verify_ssl=False) as client:
            await client.login("operator", "secret")
            resp = await client.execute_shell(bid, "whoami")
            task = await client.wait_for_task_completion(resp.task_id, timeout=60)

    Cancellation: every call accepts an optional ``cancel_event``. Setting it
    unblocks network I/O, retry delays and poll ticks and raises
    RequestCancelledError. Plain asyncio task cancellation (including
    ``asyncio.timeout``) works as usual and is never retried.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        *,
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        verify_ssl: bool = True,
        ca_bundle: str | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        task_timeout: float = DEFAULT_TASK_TIMEOUT,
    ):
        if not host:
            raise ValueError(
                "CSRestClient requires 'host'. "
                "Set CSREST_HOST environment variable or configure csrest.host in config."
            )

        self.base_url = f"https://{host}:{int(port)}"
        self.timeout_seconds = timeout_seconds
        self.verify_ssl = verify_ssl
        self.ca_bundle = ca_bundle
        self.poll_interval = poll_interval
        self.task_timeout = task_timeout
        self.retry_config = RetryConfig(max_retries=max_retries, retry_delay=retry_delay)

        self._token: str | None = None
        self._session: aiohttp.ClientSession | None = None
        self._owns_session = True
        self._closed = False

        logger.info(
            "CSRestClient initialized",
            extra={
                "base_url": self.base_url,
                "timeout_seconds": self.timeout_seconds,
                "max_retries": self.retry_config.max_retries,
                "retry_delay_seconds": self.retry_config.retry_delay,
                "verify_ssl": self.verify_ssl,
            },
        )

    @classmethod
    def from_config(cls, config: ClientConfig) -> "CSRestClient":
        return cls(
            config.host,
            config.port,
            timeout_seconds=config.timeout_seconds,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay_seconds,
            verify_ssl=config.verify_ssl,
            ca_bundle=config.ca_bundle,
            poll_interval=config.poll_interval_seconds,
            task_timeout=config.task_timeout_seconds,
        )

    async def __aenter__(self) -> "CSRestClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def set_retry_policy(self, max_retries: int, retry_delay: float) -> None:
        """Replace the retry policy. Calls already in flight keep their old policy."""
        self.retry_config = RetryConfig(max_retries=max_retries, retry_delay=retry_delay)

    def set_http_session(self, session: aiohttp.ClientSession) -> None:
        """
        Use a caller-owned session (custom connector, TLS or proxy settings).

        The client never closes a session it did not create.
        """
        self._session = session
        self._owns_session = False

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._closed:
            raise RuntimeError("CSRestClient is closed, cannot create new session")
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                ssl=build_ssl_context(self.verify_ssl, self.ca_bundle),
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        self._closed = True
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
            await asyncio.sleep(0)
        self._session = None

    @staticmethod
    def _get_context_ids() -> dict[str, str]:
        """Non-empty log context values (beacon_id, task_id, trace_id)."""
        return {k: v for k, v in get_log_context().items() if v}

    def _build_url(self, path: str) -> str:
        if not path.startswith("/"):
            raise ValueError(f"path must start with '/': {path!r}")
        if _INVALID_PATH_CHARS.search(path):
            raise ValueError(f"path contains invalid characters: {path!r}")
        return self.base_url + path

    async def _exchange(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        data: bytes | None,
        headers: dict[str, str],
    ) -> tuple[int, bytes]:
        """Send one request and read the whole body."""
        async with session.request(
            method,
            url,
            data=data,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
        ) as response:
            status = response.status
            try:
                body = await response.read()
            except (TimeoutError, aiohttp.ClientError) as e:
                raise ApiError(
                    f"failed to read response: {e}",
                    status_code=status,
                    category=ErrorCategory.TRANSIENT,
                    is_retryable=True,
                ) from e
            return status, body

    async def _request_once(
        self,
        method: str,
        path: str,
        body: Any = None,
        result_type: Any = None,
        require_auth: bool = True,
        cancel_event: asyncio.Event | None = None,
    ) -> Any:
        """
        Perform exactly one HTTP attempt.

        Returns the body decoded into ``result_type``, or None when no result
        is expected or the body is empty.

        Raises:
            ApiError: classified failure, see ``is_retryable`` for the verdict
            RequestCancelledError: the cancel event fired during or right
                after the request
        """
        ctx = self._get_context_ids()

        data: bytes | None = None
        if body is not None:
            try:
                data = encode_json_body(body)
            except (TypeError, ValueError) as e:
                raise ApiError(
                    f"failed to marshal request: {e}",
                    category=ErrorCategory.PERMANENT,
                    is_retryable=False,
                ) from e

        try:
            url = self._build_url(path)
        except ValueError as e:
            raise ApiError(
                f"failed to create request: {e}",
                category=ErrorCategory.PERMANENT,
                is_retryable=False,
            ) from e

        headers = {"Accept": "application/json"}
        if data is not None:
            headers["Content-Type"] = "application/json"
        token = self._token
        if require_auth and token:
            headers["Authorization"] = f"Bearer {token}"

        logger.debug(
            "API request starting",
            extra={
                **ctx,
                "api_endpoint": path,
                "api_method": method,
                "api_url": url,
                "has_body": data is not None,
            },
        )

        session = await self._ensure_session()
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        try:
            status, raw = await run_cancellable(
                self._exchange(session, method, url, data, headers),
                cancel_event,
            )
        except aiohttp.InvalidURL as e:
            raise ApiError(
                f"failed to create request: {e}",
                category=ErrorCategory.PERMANENT,
                is_retryable=False,
            ) from e
        except (TimeoutError, aiohttp.ClientError) as e:
            duration = loop.time() - start_time
            logger.warning(
                "API request failed before a response",
                extra={
                    **ctx,
                    "api_endpoint": path,
                    "api_method": method,
                    "api_url": url,
                    "duration_seconds": round(duration, 3),
                    "error_category": ErrorCategory.TRANSIENT.value,
                    "is_retryable": True,
                    "error_type": type(e).__name__,
                },
            )
            reason = str(e) or f"timeout after {self.timeout_seconds}s"
            raise ApiError(
                f"request failed: {reason}",
                category=ErrorCategory.TRANSIENT,
                is_retryable=True,
            ) from e

        duration = loop.time() - start_time

        if cancel_event is not None and cancel_event.is_set():
            raise RequestCancelledError("cancelled after request returned")

        if not 200 <= status < 300:
            body_text = raw.decode("utf-8", errors="replace")
            error = classify_api_error(status, body_text)
            logger.warning(
                "API request failed",
                extra={
                    **ctx,
                    "api_endpoint": path,
                    "api_method": method,
                    "api_url": url,
                    "http_status": status,
                    "error_category": error.category.value,
                    "is_retryable": error.is_retryable,
                    "response_body": body_text[:500],
                    "duration_seconds": round(duration, 3),
                },
            )
            raise error

        log_level = logging.INFO if duration > 2.0 else logging.DEBUG
        log_msg = "Slow API request" if duration > 2.0 else "API request succeeded"
        logger.log(
            log_level,
            log_msg,
            extra={
                **ctx,
                "api_endpoint": path,
                "api_method": method,
                "http_status": status,
                "duration_seconds": round(duration, 3),
            },
        )

        if result_type is None or not raw.strip():
            return None

        try:
            return _adapter(result_type).validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "API response could not be decoded",
                extra={
                    **ctx,
                    "api_endpoint": path,
                    "api_method": method,
                    "http_status": status,
                    "error_category": ErrorCategory.PERMANENT.value,
                    "is_retryable": False,
                },
            )
            raise ApiError(
                f"failed to unmarshal response: {e}",
                status_code=status,
                category=ErrorCategory.PERMANENT,
                is_retryable=False,
            ) from e

    async def _request(
        self,
        method: str,
        path: str,
        body: Any = None,
        result_type: Any = None,
        *,
        require_auth: bool = True,
        cancel_event: asyncio.Event | None = None,
    ) -> Any:
        """Run ``_request_once`` under the session's retry policy."""
        config = self.retry_config
        return await execute_with_retry(
            lambda: self._request_once(
                method, path, body, result_type, require_auth, cancel_event
            ),
            config=config,
            cancel_event=cancel_event,
            operation=f"{method} {path}",
        )

    # =========================================================================
    # Auth
    # =========================================================================

    async def login(
        self,
        username: str,
        password: str,
        duration_ms: int | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AuthDto | None:
        """Authenticate and store the bearer credential for later calls."""
        request = _build_body(
            LoginRequest, username=username, password=password, duration_ms=duration_ms
        )
        auth = await self._request(
            "POST",
            "/api/auth/login",
            request,
            AuthDto,
            require_auth=False,
            cancel_event=cancel_event,
        )
        if auth is not None:
            self._token = auth.access_token
            logger.info(
                "Authenticated with team server",
                extra={"base_url": self.base_url, "expires_in": auth.expires_in},
            )
        return auth

    # =========================================================================
    # Beacons
    # =========================================================================

    async def list_beacons(
        self, *, cancel_event: asyncio.Event | None = None
    ) -> list[BeaconDto]:
        result = await self._request(
            "GET", "/api/v1/beacons", None, list[BeaconDto], cancel_event=cancel_event
        )
        return result or []

    async def get_beacon(
        self, bid: str, *, cancel_event: asyncio.Event | None = None
    ) -> BeaconDto | None:
        return await self._request(
            "GET",
            f"/api/v1/beacons/{_segment(bid)}",
            None,
            BeaconDto,
            cancel_event=cancel_event,
        )

    # =========================================================================
    # Tasks
    # =========================================================================

    async def get_task(
        self, task_id: str, *, cancel_event: asyncio.Event | None = None
    ) -> TaskDetailDto | None:
        return await self._request(
            "GET",
            f"/api/v1/tasks/{_segment(task_id)}",
            None,
            TaskDetailDto,
            cancel_event=cancel_event,
        )

    async def list_tasks(
        self, *, cancel_event: asyncio.Event | None = None
    ) -> list[TaskSummaryDto]:
        result = await self._request(
            "GET", "/api/v1/tasks", None, list[TaskSummaryDto], cancel_event=cancel_event
        )
        return result or []

    async def get_beacon_tasks_summary(
        self, bid: str, *, cancel_event: asyncio.Event | None = None
    ) -> list[TaskSummaryDto]:
        result = await self._request(
            "GET",
            f"/api/v1/beacons/{_segment(bid)}/tasks/summary",
            None,
            list[TaskSummaryDto],
            cancel_event=cancel_event,
        )
        return result or []

    async def get_beacon_tasks_detail(
        self, bid: str, *, cancel_event: asyncio.Event | None = None
    ) -> list[TaskDetailDto]:
        result = await self._request(
            "GET",
            f"/api/v1/beacons/{_segment(bid)}/tasks/detail",
            None,
            list[TaskDetailDto],
            cancel_event=cancel_event,
        )
        return result or []

    async def wait_for_task_completion(
        self,
        task_id: str,
        timeout: float | None = None,
        *,
        poll_interval: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> TaskDetailDto:
        """
        Poll ``get_task`` until the task is terminal.

        Defaults come from the client (``task_timeout``, ``poll_interval``).
        See csrest.poller.wait_for_task_completion for timing semantics.
        """

        async def fetch(tid: str) -> TaskDetailDto | None:
            return await self.get_task(tid, cancel_event=cancel_event)

        return await wait_for_task_completion(
            fetch,
            task_id,
            timeout=self.task_timeout if timeout is None else timeout,
            poll_interval=self.poll_interval if poll_interval is None else poll_interval,
            cancel_event=cancel_event,
        )

    # =========================================================================
    # Commands
    # =========================================================================

    async def _command(
        self,
        bid: str,
        action: str,
        body: Any,
        cancel_event: asyncio.Event | None,
    ) -> AsyncCommandResponse | None:
        return await self._request(
            "POST",
            f"/api/v1/beacons/{_segment(bid)}/{action}",
            body,
            AsyncCommandResponse,
            cancel_event=cancel_event,
        )

    async def execute_shell(
        self, bid: str, command: str, *, cancel_event: asyncio.Event | None = None
    ) -> AsyncCommandResponse | None:
        """Run a command through the beacon's shell (``cmd.exe /c``)."""
        return await self._command(
            bid, "spawn/command/shell", {"command": command}, cancel_event
        )

    async def execute_powershell(
        self,
        bid: str,
        command: str,
        arguments: str | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncCommandResponse | None:
        """Run a PowerShell commandlet or script in a spawned process."""
        body = _build_body(PowerShellDto, commandlet=command, arguments=arguments)
        return await self._command(bid, "spawn/powershell", body, cancel_event)

    async def upload(
        self,
        bid: str,
        local_path: str | Path,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncCommandResponse | None:
        """
        Upload a local file to the beacon's working directory.

        Raises:
            OSError: the local file cannot be read
        """
        filename = Path(local_path).name
        content = read_and_encode_file(local_path)
        body = _build_body(UploadDto, file=f"@files/{filename}", files={filename: content})
        return await self._command(bid, "execute/upload", body, cancel_event)

    async def download(
        self, bid: str, remote_path: str, *, cancel_event: asyncio.Event | None = None
    ) -> AsyncCommandResponse | None:
        return await self._command(
            bid, "execute/download", {"path": remote_path}, cancel_event
        )

    async def screenshot(
        self,
        bid: str,
        pid: int = 0,
        arch: str = "x64",
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncCommandResponse | None:
        """Screenshot by injecting into ``pid`` (0 lets the beacon choose)."""
        return await self._command(
            bid, "inject/screenshot", {"pid": pid, "arch": arch}, cancel_event
        )

    async def screenshot_spawn(
        self, bid: str, *, cancel_event: asyncio.Event | None = None
    ) -> AsyncCommandResponse | None:
        return await self._command(bid, "spawn/screenshot", EmptyDto(), cancel_event)

    async def execute_bof_string(
        self,
        bid: str,
        request: InlineExecuteStringDto,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncCommandResponse | None:
        return await self._command(bid, "execute/bof/string", request, cancel_event)

    async def execute_bof_packed(
        self,
        bid: str,
        request: InlineExecutePackedDto,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncCommandResponse | None:
        return await self._command(bid, "execute/bof/packed", request, cancel_event)

    async def execute_bof_pack(
        self,
        bid: str,
        request: InlineExecutePackDto,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncCommandResponse | None:
        return await self._command(bid, "execute/bof/pack", request, cancel_event)

    async def get_uid(
        self, bid: str, *, cancel_event: asyncio.Event | None = None
    ) -> AsyncCommandResponse | None:
        return await self._command(bid, "execute/getUid", EmptyDto(), cancel_event)

    async def get_system(
        self, bid: str, *, cancel_event: asyncio.Event | None = None
    ) -> AsyncCommandResponse | None:
        return await self._command(bid, "execute/getSystem", EmptyDto(), cancel_event)


__all__ = ["CSRestClient", "classify_api_error"]
