# account_core_api/accountlibs/__init__.py

from __future__ import annotations

import json
import logging
import subprocess
from http import HTTPStatus
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from django.conf import settings
from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter
from rest_framework.request import Request
from rest_framework.response import Response

logger = logging.getLogger(__name__)

QuerySaveToDB = [OpenApiParameter(name="save_to_db", type=bool, required=False, enum=["true", "false"], default="false", location="query", description="If true, the response envelope is also stored in the database")]


class CLICommandError(Exception):
    """Raised when an external command fails. Keeps everything useful about the failure."""

    def __init__(self, command: List[str], returncode: int, stderr: str, stdout: str = "", timeout: bool = False, original_exception: Optional[Exception] = None):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        self.timeout = timeout
        self.original_exception = original_exception

        cmd_str = _short_command(command)
        if timeout:
            message = f"command timed out: {cmd_str}"
        elif returncode != 0:
            message = f"command failed with exit code {returncode}: {stderr.strip() or stdout.strip() or 'unknown error'}"
        else:
            message = f"unexpected error running command: {str(original_exception)}"

        super().__init__(message)

    @property
    def output(self) -> str:
        """Everything the command printed (stdout and stderr)."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class StandardResponse(Response):
    """Standard success response with consistent envelope structure."""

    def __init__(self, data: Any = None, message: str = "", details: Optional[Dict[str, Any]] = None, status: int = 200, request_data: Optional[Dict[str, Any]] = None, save_to_db: bool = False, **kwargs: Any, ) -> None:
        meta: Dict[str, Union[str, int]] = {
            "timestamp": timezone.now().isoformat().replace("+00:00", "Z"),
            "response_status_code": status,
            "response_status_text": _get_status_text(status),
        }

        sanitized_request_data = request_data or {} if settings.DEBUG or request_data is not None else {}

        response_data: Dict[str, Any] = {
            "ok": True,
            "error": None,
            "message": message,
            "data": data,
            "details": details or {},
            "meta": meta,
            "request_data": sanitized_request_data,
        }

        super().__init__(response_data, status=status, **kwargs)

        if save_to_db:
            from account_core_api.models import StandardResponseModel

            StandardResponseModel.objects.create(
                message=message,
                data=data if data is not None else {},
                details=details or {},
                meta=meta,
                request_data=sanitized_request_data,
            )


class StandardErrorResponse(Response):

    def __init__(self, error_code: str, error_message: str, exception: Optional[Exception] = None, exception_details: Optional[Any] = None, status: int = 500, request_data: Optional[Dict[str, Any]] = None, save_to_db: bool = False, **kwargs: Any, ) -> None:
        meta = {
            "timestamp": timezone.now().isoformat().replace("+00:00", "Z"),
            "response_status_code": status,
            "response_status_text": _get_status_text(status),
        }

        error_obj = {
            "code": error_code,
            "message": error_message,
            "extra": {},
        }

        if exception is not None:
            error_obj["extra"]["exception_class"] = exception.__class__.__name__

            if isinstance(exception, CLICommandError):
                final_details = {
                    "command": _mask_command(exception.command),
                    "returncode": exception.returncode,
                    "stderr": exception.stderr,
                    "stdout": exception.stdout,
                    "timeout": exception.timeout,
                }
            else:
                final_details = {
                    "message": str(exception),
                }
        else:
            final_details = exception_details if exception_details is not None else {}

        # details are only shown in debug mode, otherwise they go to the log
        if settings.DEBUG:
            error_obj["extra"]["exception_details"] = final_details
        else:
            try:
                log_str = json.dumps(final_details, ensure_ascii=False, default=str)
            except (TypeError, ValueError):
                log_str = str(final_details)

            logger.error(
                "StandardErrorResponse: [%s] %s | Exception: %s | Details: %s",
                error_code,
                error_message,
                exception.__class__.__name__ if exception else "None",
                log_str,
            )
            error_obj["extra"]["exception_details"] = "Internal error details hidden."

        sanitized_request_data = request_data or {} if settings.DEBUG or request_data is not None else {}

        response_data = {
            "ok": False,
            "error": error_obj,
            "data": None,
            "details": {},
            "meta": meta,
            "request_data": sanitized_request_data,
        }

        super().__init__(response_data, status=status, **kwargs)

        if save_to_db:
            from account_core_api.models import StandardErrorResponseModel

            StandardErrorResponseModel.objects.create(
                error_code=error_code,
                error_message=error_message,
                error_extra=error_obj["extra"],
                meta=meta,
                request_data=sanitized_request_data,
            )


def _get_status_text(status_code: int) -> str:
    """
    Return the standard HTTP status text for a given status code.

    If the code is not standard, returns 'Unknown'.
    """
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Unknown"


def _short_command(command: List[str]) -> str:
    return " ".join(_mask_command(command)[:4]) + (" ..." if len(command) > 4 else "")


def _mask_command(command: List[str]) -> List[str]:
    """Hide the value that follows a --password flag."""
    masked = list(command)
    for i, arg in enumerate(masked[:-1]):
        if arg in ("--password", "-p"):
            masked[i + 1] = "***"
    return masked


def get_request_param(request: Union[Request, dict], param_name: str, return_type: Type = str, default: Any = None) -> Any:
    """
    Read one parameter from a request (any HTTP method) and convert it to the given type.

    - GET requests: only query_params are read
    - other methods: request.data first, then query_params

    Supported return types:
    - `str`: stripped string
    - `bool`: True only when the value is 'true' (case insensitive)
    - `list`: a list as-is, or a comma separated string split into items

    If the parameter is missing or cannot be converted, `default` is returned.

    Examples:
        # GET /api/os/users/?include_system=true
        include_system = get_request_param(request, "include_system", bool, False)  # → True

        # PUT {"groups": "wheel,docker"}
        groups = get_request_param(request, "groups", list, None)  # → ["wheel", "docker"]
    """
    raw_value = None
    try:
        if hasattr(request, "method"):
            method = request.method.upper()
            if method == "GET":
                raw_value = request.query_params.get(param_name, None)
            else:
                raw_value = request.data.get(param_name, None)
                if raw_value is None:
                    raw_value = request.query_params.get(param_name, None)
        elif isinstance(request, dict):
            raw_value = request.get(param_name, None)
        else:
            raw_value = None
    except (AttributeError, TypeError) as e:
        logger.warning(f"Error accessing param '{param_name}' from request: {e}")
        return default

    if raw_value is None or raw_value == "":
        return default

    try:
        if return_type == bool:
            if isinstance(raw_value, bool): return raw_value
            if isinstance(raw_value, str): return raw_value.strip().lower() == "true"
            return bool(raw_value)

        elif return_type == list:
            if isinstance(raw_value, (list, tuple)): return [str(v).strip() for v in raw_value]
            if isinstance(raw_value, str): return [v.strip() for v in raw_value.split(",") if v.strip()]
            raise ValueError("Cannot convert to list")

        elif return_type == str:
            if isinstance(raw_value, str): return raw_value.strip()
            return str(raw_value)

        else:
            return raw_value

    except (ValueError, TypeError) as e:
        logger.warning(f"Type conversion failed for param '{param_name}' ({raw_value}) to {return_type}: {e}")
        return default


def run_cli_command(command: List[str], *, timeout: Optional[int] = None, merge_stderr: bool = False, log_on_error: bool = True) -> Tuple[str, str]:
    """Run an external command with full error handling.

    The command never shares the caller's stdin: it reads from /dev/null, so a utility
    that prompts gets EOF instead of waiting on the terminal.

    Args:
        command (List[str]): command and arguments (e.g. ["usermod", "--shell", "/bin/sh", "alice"])
        timeout (Optional[int]): seconds before the command is killed; None waits until it exits (default: None)
        merge_stderr (bool): interleave stderr into stdout, the way a terminal shows it, and return
            that output exactly as printed (default: False)
        log_on_error (bool): log failures (default: True)

    Returns:
        Tuple[str, str]: (stdout, stderr). With merge_stderr, stderr is always "".

    Raises:
        CLICommandError: on any failure to run the command
    """
    cmd_str = _short_command(command)
    try:
        if merge_stderr:
            result = subprocess.run(command, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, timeout=timeout, check=True, )
            return result.stdout or "", ""

        result = subprocess.run(command, stdin=subprocess.DEVNULL, capture_output=True, text=True, timeout=timeout, check=True, )
        stdout = result.stdout.strip() if result.stdout else ""
        stderr = result.stderr.strip() if result.stderr else ""
        return stdout, stderr

    except subprocess.TimeoutExpired as e:
        stderr = _decode(e.stderr)
        stdout = _decode(e.stdout)
        error = CLICommandError(command=command, returncode=-1, stderr=stderr, stdout=stdout, timeout=True, original_exception=e)
        if log_on_error:
            logger.error(f"command timed out: {cmd_str} | stderr: {stderr}")
        raise error

    except subprocess.CalledProcessError as e:
        if merge_stderr:
            stdout = e.stdout or ""
        else:
            stdout = e.stdout.strip() if e.stdout else ""
        stderr = e.stderr.strip() if e.stderr else ("" if merge_stderr else str(e))
        error = CLICommandError(command=command, returncode=e.returncode, stderr=stderr, stdout=stdout, timeout=False, original_exception=e)
        if log_on_error:
            logger.error(f"command failed (exit {e.returncode}): {cmd_str} | output: {stderr or stdout}")
        raise error

    except (OSError, ValueError) as e:
        error = CLICommandError(command=command, returncode=-1, stderr=str(e), stdout="", timeout=False, original_exception=e)
        if log_on_error:
            logger.error(f"system error running command: {cmd_str} | error: {e}")
        raise error


def _decode(value: Union[bytes, str, None]) -> str:
    if not value:
        return ""
    if isinstance(value, bytes):
        value = value.decode(errors="replace")
    return value.strip()


def build_standard_error_response(exc: Exception, error_code: str, error_message: str, request_data: Dict[str, Any], save_to_db: bool = False, default_status: int = 500) -> Response:
    """Build a StandardErrorResponse whose status and details depend on the exception type."""
    from accountlibs.distro import UnsupportedDistroError
    from accountlibs.hook import HookCommandNotFoundError

    status = default_status
    exception_details = {}

    # --- 1. CLICommandError (external account utilities) ---
    if isinstance(exc, CLICommandError):
        status = 400 if exc.returncode == 1 else 500
        exception_details = {
            "command": _mask_command(exc.command),
            "returncode": exc.returncode,
            "stderr": exc.stderr,
            "stdout": exc.stdout,
            "timeout": exc.timeout,
        }

    # --- 2. configuration errors: unknown distro, missing hook command ---
    elif isinstance(exc, (UnsupportedDistroError, HookCommandNotFoundError)):
        status = 500
        exception_details = {"message": str(exc), "class": exc.__class__.__name__}

    # --- 3. ValueError, TypeError (validation) ---
    elif isinstance(exc, (ValueError, TypeError)):
        status = 400
        exception_details = {"message": str(exc), }

    # --- 4. FileNotFoundError, OSError ---
    elif isinstance(exc, OSError):
        status = 400 if isinstance(exc, FileNotFoundError) else 500
        details = {"message": str(exc)}
        if getattr(exc, "filename", None):
            details["filename"] = exc.filename
        if getattr(exc, "errno", None):
            details["errno"] = exc.errno
        exception_details = details

    # --- 5. anything else ---
    else:
        status = 500
        exception_details = {
            "message": str(exc),
            "class": exc.__class__.__name__,
        }

    return StandardErrorResponse(
        error_code=error_code,
        error_message=error_message,
        exception=exc,
        exception_details=exception_details,
        status=status,
        request_data=request_data,
        save_to_db=save_to_db
    )
