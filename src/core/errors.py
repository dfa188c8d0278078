# src/core/errors.py — v1
"""Exception hierarchy shared by every layer of the client.

All errors raised on purpose derive from MarathonCloudError so the CLI can
render them (with their cause chain) and map them to exit code 1.
"""

from __future__ import annotations

from pathlib import Path


class MarathonCloudError(Exception):
    """Base class for all client errors."""


# === API ===


class ApiError(MarathonCloudError):
    """The remote service rejected a request or could not be reached."""


class InvalidAuthenticationToken(ApiError):
    """HTTP 401/403 from the service."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(
            f"Unauthorized client (HTTP {status_code}). Double check you've supplied "
            "the correct API key and that it has the appropriate permissions"
        )


class RequestFailedWithCode(ApiError):
    """Non-2xx response other than an auth failure."""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"API request failed with HTTP {status_code}: {body}")


class RequestFailed(ApiError):
    """Transport level failure: connection, timeout, protocol."""


class DeserializationFailure(ApiError):
    """Response body does not match the expected schema."""

    def __init__(self, expected: str, detail: str = "") -> None:
        self.expected = expected
        message = f"Failed to parse API response as {expected}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


# === ARTIFACTS ===


class ArtifactError(MarathonCloudError):
    """Artifact enumeration or retrieval failed."""


class ArtifactListError(ArtifactError):
    """One listing call of a crawl failed; the whole crawl is discarded."""

    def __init__(self, path_id: str) -> None:
        self.path_id = path_id
        super().__init__(f"Failed to enumerate artifacts (listing {path_id!r} failed)")


class ArtifactPathEscape(ArtifactError):
    """An artifact id resolves outside of the output directory."""

    def __init__(self, artifact_id: str, output_dir: Path) -> None:
        self.artifact_id = artifact_id
        self.output_dir = output_dir
        super().__init__(
            f"Artifact {artifact_id!r} resolves outside of output directory {output_dir}"
        )


# === LOCAL INPUT ===


class InputError(MarathonCloudError):
    """Invalid local input: files, arguments, configuration files."""


class OpenFileFailure(InputError):
    """A local file could not be opened."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(
            f"Can't open file. Double check you've supplied the correct path\npath = {path}"
        )


class InvalidFileName(InputError):
    """A local path has no usable file name."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Invalid input file. Double check you've supplied the correct path\npath = {path}")


class InvalidApplicationBundle(InputError):
    """An --application-bundle value is not '<app>,<test_app>'."""

    def __init__(self, bundle: str) -> None:
        self.bundle = bundle
        super().__init__(
            f"Invalid application bundle {bundle!r}. Expected '<app_path>,<test_app_path>'"
        )


class EnvArgError(InputError):
    """A KEY=VALUE argument is malformed."""

    def __init__(self, env_arg: str, reason: str) -> None:
        self.env_arg = env_arg
        self.reason = reason
        super().__init__(f"Invalid environment argument {env_arg!r}: {reason}")


class PullArgError(InputError):
    """A ROOT:PATH pull-file argument is malformed."""


class InvalidGlobPattern(InputError):
    """A --glob value cannot be compiled."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid glob {pattern!r}: {reason}")


class UnsupportedResultFormat(InputError):
    """Result file extension is neither json nor yaml."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(
            f"Unsupported result file format for {path}. Use a .json, .yaml or .yml extension"
        )


# === RUN LIFECYCLE ===


class PollTimeout(MarathonCloudError):
    """The run did not reach a terminal state within the configured maximum wait."""

    def __init__(self, run_id: str, waited_s: float) -> None:
        self.run_id = run_id
        self.waited_s = waited_s
        super().__init__(f"Test run {run_id} did not finish within {waited_s:.0f}s")


class RunCancelled(MarathonCloudError):
    """The caller cancelled the operation (signal or explicit cancel)."""


def format_error_chain(error: BaseException) -> str:
    """Render an error followed by each of its causes, one per line."""
    lines = [f"error: {error}"]
    seen: set[int] = {id(error)}
    cause = error.__cause__ or error.__context__
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        lines.append(f"caused by: {type(cause).__name__}: {cause}")
        cause = cause.__cause__ or cause.__context__
    return "\n".join(lines)
