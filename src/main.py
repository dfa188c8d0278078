# src/main.py — v1
"""CLI entry point: run, download, devices commands.

Usage:
    marathon-cloud run android -t app-test.apk -a app.apk [options]
    marathon-cloud run ios -a app.zip -t runner.zip [options]
    marathon-cloud download --id <run_id> -o <dir> [--glob PATTERN]
    marathon-cloud devices android [--json]

Exit codes: 0 on success, 1 on test failures or errors, 130 when interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import httpx
import yaml

from marathon_cloud.api.http_client import HttpTestService
from marathon_cloud.config.settings import Settings, load_settings
from marathon_cloud.core.concurrency import CancellationToken
from marathon_cloud.core.errors import (
    InputError,
    MarathonCloudError,
    RunCancelled,
    format_error_chain,
)
from marathon_cloud.core.models import RunOptions, RunRequest
from marathon_cloud.core.parsing import (
    compile_glob,
    load_filter_file,
    parse_application_bundles,
    parse_env_args,
    parse_pull_args,
)
from marathon_cloud.logging.logger import setup_logging
from marathon_cloud.orchestrator.download_orchestrator import DownloadOrchestrator
from marathon_cloud.orchestrator.run_orchestrator import RunOrchestrator
from marathon_cloud.reporting.console import ConsoleObserver
from marathon_cloud.reporting.result_file import result_format, write_result_file
from marathon_cloud.upload.strategy_factory import create_upload_strategy
from marathon_cloud.version import __version__

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

IOS_DEFAULT_TEST_TIMEOUT_S = 300


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_FAILURE

    try:
        settings = load_settings(
            api_key=getattr(args, "api_key", None),
            base_url=getattr(args, "base_url", None),
            log_format=args.log_format,
        )
        setup_logging(
            "DEBUG" if args.verbose else settings.log_level, settings.log_format,
        )
        return asyncio.run(args.func(args, settings))
    except (KeyboardInterrupt, RunCancelled):
        print("Interrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED
    except MarathonCloudError as exc:
        print(format_error_chain(exc), file=sys.stderr)
        return EXIT_FAILURE
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        print(format_error_chain(exc), file=sys.stderr)
        return EXIT_FAILURE


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="marathon-cloud",
        description=f"marathon-cloud v{__version__}: run mobile tests in Marathon Cloud",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-format", choices=["text", "json"], default=None,
        help="Log output format on stderr (default: text)",
    )

    api = argparse.ArgumentParser(add_help=False)
    api.add_argument(
        "--api-key", default=None,
        help="Marathon Cloud API key (env: MARATHON_CLOUD_API_KEY)",
    )
    api.add_argument(
        "--base-url", default=None,
        help="Base url for Marathon Cloud API (env: MARATHON_CLOUD_BASE_URL)",
    )

    progress = argparse.ArgumentParser(add_help=False)
    progress.add_argument(
        "--no-progress-bars", action="store_true",
        help="Only print stage lines and results",
    )

    common = _common_run_parser()

    subparsers = parser.add_subparsers(dest="command")

    # --- run ---
    p_run = subparsers.add_parser("run", help="Submit a test run")
    run_platforms = p_run.add_subparsers(dest="platform", required=True)

    p_android = run_platforms.add_parser(
        "android", parents=[common, api, progress], help="Run tests for Android",
    )
    p_android.add_argument(
        "-a", "--application", type=Path, default=None,
        help="Application filepath, example: /home/user/workspace/sample.apk",
    )
    p_android.add_argument(
        "-t", "--test-application", type=Path, default=None,
        help="Test application filepath, example: /home/user/workspace/testSample.apk",
    )
    p_android.add_argument("--os-version", default=None, help="OS version")
    p_android.add_argument("--system-image", default=None, help="Runtime system image")
    p_android.add_argument(
        "--device", default=None,
        help="Device type id. Use `marathon-cloud devices android` to list supported devices",
    )
    p_android.add_argument("--flavor", default=None, help="Test flavor")
    p_android.add_argument(
        "--instrumentation-arg", action="append", default=None, metavar="KEY=VALUE",
        help="Instrumentation argument, repeatable",
    )
    p_android.add_argument(
        "--pull-files", action="append", default=None, metavar="ROOT:PATH",
        help="Pull files from devices after the run. ROOT is EXTERNAL_STORAGE or APP_DATA",
    )
    p_android.add_argument(
        "--application-bundle", action="append", default=None, metavar="APP,TEST_APP",
        help="Application apk and test apk pair, repeatable",
    )
    p_android.add_argument(
        "--library-bundle", action="append", type=Path, default=None, metavar="TEST_APP",
        help="Library test apk, repeatable",
    )
    p_android.set_defaults(func=_cmd_run, build_request=_android_request)

    p_ios = run_platforms.add_parser(
        "ios", parents=[common, api, progress], help="Run tests for iOS",
    )
    p_ios.add_argument(
        "-a", "--application", type=Path, required=True,
        help="Application filepath, example: /home/user/workspace/sample.zip",
    )
    p_ios.add_argument(
        "-t", "--test-application", type=Path, required=True,
        help="Test application filepath, example: /home/user/workspace/sampleUITests-Runner.zip",
    )
    p_ios.add_argument("--os-version", default=None, help="iOS runtime version")
    p_ios.add_argument("--device", default=None, help="Device type")
    p_ios.add_argument("--xcode-version", default=None, help="Xcode version")
    p_ios.add_argument(
        "--xctestrun-env", action="append", default=None, metavar="KEY=VALUE",
        help="xctestrun EnvironmentVariables item, repeatable",
    )
    p_ios.add_argument(
        "--xctestrun-test-env", action="append", default=None, metavar="KEY=VALUE",
        help="xctestrun TestingEnvironmentVariables item, repeatable",
    )
    p_ios.add_argument(
        "--test-timeout-default", type=int, default=IOS_DEFAULT_TEST_TIMEOUT_S,
        help=f"Default timeout for each test in seconds (default: {IOS_DEFAULT_TEST_TIMEOUT_S})",
    )
    p_ios.add_argument(
        "--test-timeout-max", type=int, default=None,
        help="Maximum test timeout in seconds, overriding all other timeout settings",
    )
    p_ios.set_defaults(func=_cmd_run, build_request=_ios_request)

    # --- download ---
    p_download = subparsers.add_parser(
        "download", parents=[api, progress], help="Download artifacts of a run",
    )
    p_download.add_argument("--id", required=True, help="Test run id")
    p_download.add_argument(
        "-o", "--output", type=Path, required=True,
        help="Output folder for test run results",
    )
    p_download.add_argument(
        "--wait", action=argparse.BooleanOptionalAction, default=True,
        help="Wait for the run to finish before downloading (default: true)",
    )
    p_download.add_argument(
        "--glob", default=None,
        help="Only download files matching this glob, e.g. 'tests/**'",
    )
    p_download.set_defaults(func=_cmd_download)

    # --- devices ---
    p_devices = subparsers.add_parser("devices", help="Print the device catalog")
    device_platforms = p_devices.add_subparsers(dest="platform", required=True)
    p_devices_android = device_platforms.add_parser(
        "android", parents=[api], help="Print supported Android devices",
    )
    p_devices_android.add_argument(
        "--json", action="store_true", help="Print JSON instead of YAML",
    )
    p_devices_android.set_defaults(func=_cmd_devices)

    return parser


def _common_run_parser() -> argparse.ArgumentParser:
    """Options shared by every `run` platform."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-o", "--output", type=Path, default=None,
        help="Output folder for test run results",
    )
    common.add_argument(
        "--wait", action=argparse.BooleanOptionalAction, default=True,
        help="Wait for the run to finish (default: true)",
    )
    common.add_argument(
        "--ignore-test-failures", action=argparse.BooleanOptionalAction, default=False,
        help="Exit with code 0 even when tests fail",
    )
    common.add_argument(
        "--isolated", action=argparse.BooleanOptionalAction, default=None,
        help="Run each test in isolation",
    )
    common.add_argument(
        "--code-coverage", action=argparse.BooleanOptionalAction, default=None,
        help="Collect code coverage",
    )
    common.add_argument(
        "--analytics-read-only", action=argparse.BooleanOptionalAction, default=None,
        help="Do not affect any statistical measurements",
    )
    common.add_argument(
        "--profiling", action=argparse.BooleanOptionalAction, default=None,
        help="Collect profiling data",
    )
    common.add_argument(
        "--filter-file", type=Path, default=None,
        help="Test filters supplied as a YAML file",
    )
    common.add_argument("--name", default=None, help="Name for the run, e.g. a commit description")
    common.add_argument("--link", default=None, help="Link, e.g. to a commit or CI run")
    common.add_argument("--branch", default=None, help="Branch for the run")
    common.add_argument("--project", default=None, help="Project slug")
    common.add_argument(
        "--concurrency-limit", type=int, default=None,
        help="Limit maximum number of concurrent devices",
    )
    common.add_argument(
        "--retry-quota-test-uncompleted", type=int, default=None,
        help="Number of allowed uncompleted executions per test",
    )
    common.add_argument(
        "--retry-quota-test-preventive", type=int, default=None,
        help="Number of allowed preventive retries per test",
    )
    common.add_argument(
        "--retry-quota-test-reactive", type=int, default=None,
        help="Number of allowed reactive retries per test",
    )
    common.add_argument(
        "--no-retries", action="store_true",
        help="Disable all retries",
    )
    common.add_argument(
        "--result-file", type=Path, default=None,
        help="Machine-readable result file; format from extension (json, yaml, yml)",
    )
    return common


# --- Request building ---


def _retry_quotas(args: argparse.Namespace) -> dict[str, int | None]:
    quotas = {
        "retry_quota_test_uncompleted": args.retry_quota_test_uncompleted,
        "retry_quota_test_preventive": args.retry_quota_test_preventive,
        "retry_quota_test_reactive": args.retry_quota_test_reactive,
    }
    if args.no_retries:
        if any(v is not None for v in quotas.values()):
            raise InputError("--no-retries cannot be combined with --retry-quota-* options")
        return {k: 0 for k in quotas}
    return quotas


def _common_fields(args: argparse.Namespace) -> dict:
    return {
        "name": args.name,
        "link": args.link,
        "branch": args.branch,
        "project": args.project,
        "isolated": args.isolated,
        "code_coverage": args.code_coverage,
        "analytics_read_only": args.analytics_read_only,
        "profiling": args.profiling,
        "concurrency_limit": args.concurrency_limit,
        "filtering_configuration": load_filter_file(args.filter_file),
        **_retry_quotas(args),
    }


def _android_request(args: argparse.Namespace) -> RunRequest:
    bundles = parse_application_bundles(args.application_bundle)
    libraries = args.library_bundle or []
    if (bundles or libraries) and (args.application or args.test_application):
        raise InputError(
            "--application-bundle / --library-bundle cannot be combined with "
            "--application / --test-application"
        )
    request = RunRequest(
        platform="Android",
        application=args.application,
        test_application=args.test_application,
        application_bundles=bundles,
        library_bundles=libraries,
        os_version=args.os_version,
        system_image=args.system_image,
        device=args.device,
        flavor=args.flavor,
        env_args=parse_env_args(args.instrumentation_arg),
        pull_file_config=parse_pull_args(args.pull_files),
        **_common_fields(args),
    )
    if not request.has_bundle():
        raise InputError(
            "Nothing to test: pass --test-application, --application-bundle or --library-bundle"
        )
    return request


def _ios_request(args: argparse.Namespace) -> RunRequest:
    return RunRequest(
        platform="iOS",
        application=args.application,
        test_application=args.test_application,
        os_version=args.os_version,
        device=args.device,
        xcode_version=args.xcode_version,
        env_args=parse_env_args(args.xctestrun_env),
        test_env_args=parse_env_args(args.xctestrun_test_env),
        test_timeout_default=args.test_timeout_default,
        test_timeout_max=args.test_timeout_max,
        **_common_fields(args),
    )


# --- Commands ---


@asynccontextmanager
async def _open_service(settings: Settings) -> AsyncIterator[HttpTestService]:
    """HTTP service backed by one pooled client, closed on exit."""
    if not settings.api_key:
        raise InputError("API key is required: pass --api-key or set MARATHON_CLOUD_API_KEY")
    async with httpx.AsyncClient(timeout=settings.http_timeout_s) as client:
        yield HttpTestService(
            client,
            settings.base_url,
            settings.api_key,
            upload_strategy=create_upload_strategy(settings.upload_strategy),
        )


def _install_signal_handlers(token: CancellationToken) -> None:
    """Route SIGINT / SIGTERM to the cancellation token."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, token.cancel)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; KeyboardInterrupt still applies.
            logger.debug("Cannot install handler for %s", sig)


async def _cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    """Submit a run and optionally wait for it and fetch its artifacts."""
    if args.result_file is not None:
        result_format(args.result_file)
    request = args.build_request(args)
    options = RunOptions(
        wait=args.wait,
        output=args.output,
        ignore_test_failures=args.ignore_test_failures,
    )

    token = CancellationToken()
    _install_signal_handlers(token)
    observer = ConsoleObserver(show_progress=not args.no_progress_bars)

    async with _open_service(settings) as service:
        outcome = await RunOrchestrator(service, settings, observer, token).execute(
            request, options,
        )

    if args.result_file is not None:
        write_result_file(args.result_file, outcome.event)
    return EXIT_OK if outcome.success else EXIT_FAILURE


async def _cmd_download(args: argparse.Namespace, settings: Settings) -> int:
    """Download the artifacts of an existing run."""
    if args.glob is not None:
        compile_glob(args.glob)
    token = CancellationToken()
    _install_signal_handlers(token)
    observer = ConsoleObserver(show_progress=not args.no_progress_bars)

    async with _open_service(settings) as service:
        report = await DownloadOrchestrator(service, settings, observer, token).execute(
            args.id, args.output, wait=args.wait, glob=args.glob,
        )
    return EXIT_OK if report.ok else EXIT_FAILURE


async def _cmd_devices(args: argparse.Namespace, settings: Settings) -> int:
    """Print the device catalog as YAML (default) or JSON."""
    async with _open_service(settings) as service:
        devices = await service.list_devices(args.platform)

    data = [device.model_dump(mode="json") for device in devices]
    if args.json:
        print(json.dumps(data, indent=2))
    else:
        print(yaml.safe_dump(data, sort_keys=False), end="")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
