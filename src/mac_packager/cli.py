"""
`mac-packager` 的命令行入口模块。

负责收集打包参数、解析配置，并调用 `mac_packager.build.build_macos_wrapper`。
"""

import argparse
import os
from collections.abc import Sequence

import structlog

from .build import build_macos_wrapper
from .config import DEFAULT_ENV_FILE, DEFAULT_PROJECT_JSON, resolve_config
from .errors import ConfigError
from .log import configure_logging

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """构建并返回 `mac-packager` 命令行参数解析器。"""
    p = argparse.ArgumentParser(
        prog="mac-packager",
        formatter_class=argparse.RawTextHelpFormatter,
        description=(
            "Package and sign an Electron app for macOS.\n"
            "App Store builds produce a .pkg installer, notarized builds a .dmg archive.\n"
            "package.json and the project JSON are restored after every run."
        ),
    )
    p.add_argument(
        "-C",
        "--project-root",
        default="",
        help="Project root; relative paths are resolved against it (default: cwd)",
    )
    p.add_argument(
        "-w",
        "--project-json",
        default=DEFAULT_PROJECT_JSON,
        help=f"Project metadata JSON (default: {DEFAULT_PROJECT_JSON})",
    )
    p.add_argument(
        "-e",
        "--env-file",
        default=DEFAULT_ENV_FILE,
        help=f"Environment defaults file (default: {DEFAULT_ENV_FILE})",
    )
    p.add_argument(
        "-p",
        "--package-json",
        default="package.json",
        help="package.json to rewrite with name and version (default: package.json)",
    )
    p.add_argument(
        "--manual-sign",
        action="store_true",
        help="Sign bundle components one by one with codesign instead of the packager",
    )
    p.add_argument(
        "--notarize",
        action="store_true",
        help="Build for distribution outside the App Store (.dmg, notarized)",
    )
    p.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Timeout in seconds for each external tool invocation (default: none)",
    )
    p.add_argument("--verbose", action="store_true", help="Verbose logging")
    return p


def main(argv: Sequence[str] | None = None) -> int:
    """CLI 入口：解析参数与配置并执行打包，打包失败时返回 1。"""
    parser = build_parser()
    ns = parser.parse_args(argv)
    if ns.timeout is not None and ns.timeout <= 0:
        raise SystemExit("Error: --timeout must be positive.")

    configure_logging(bool(ns.verbose))

    project_root = os.path.abspath(os.path.expanduser(ns.project_root or os.getcwd()))
    try:
        config, options = resolve_config(
            ns.project_json,
            ns.env_file,
            project_root=project_root,
            sign_manually=bool(ns.manual_sign),
            should_notarize=bool(ns.notarize),
        )
    except (ConfigError, FileNotFoundError) as e:
        raise SystemExit(f"Error: {e}") from e

    if ns.manual_sign and ns.notarize:
        logger.warning("manual signing cannot be combined with notarization")

    try:
        ok = build_macos_wrapper(
            config,
            options,
            ns.package_json,
            ns.project_json,
            sign_manually=bool(ns.manual_sign),
            should_notarize=bool(ns.notarize),
            timeout=ns.timeout,
            verbose=bool(ns.verbose),
        )
    except OSError as e:
        # 备份阶段读文件失败，此时尚未改动任何文件。
        raise SystemExit(f"Error: {e}") from e
    return 0 if ok else 1
