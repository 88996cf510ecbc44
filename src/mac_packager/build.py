"""
macOS 打包主流程。

High-level flow:
1) 备份 `package.json` 与项目 JSON。
2) 用解析后的名称与版本改写这两个文件。
3) 调用 `electron-packager` 生成 `.app`。
4) App Store 构建生成 `.pkg`（手动签名或 `electron-osx-flat`）；
   仓库外分发构建生成 `.dmg`。
5) 无论成功与否都还原两个项目文件。

第 2-4 步的任何异常都只记录日志，不会跳过第 5 步。
"""

from __future__ import annotations

import json
import os
from typing import Any

import structlog

from . import packager
from .backup import backed_up
from .config import ICON_FILE, read_json
from .errors import UnsupportedCombinationError
from .manual_sign import manual_macos_sign
from .types import PackagerOptions, PackagingConfig

logger = structlog.get_logger(__name__)


def _write_json(path: str, obj: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, ensure_ascii=False)
        f.write("\n")


def _rewrite_project_files(
    config: PackagingConfig, package_json_path: str, project_json_path: str
) -> None:
    common = config.common
    package_json = read_json(package_json_path)
    _write_json(
        package_json_path,
        {**package_json, "productName": common.name, "version": common.version},
    )
    _write_json(project_json_path, common.to_json())


def _build_store(
    build_dir: str,
    config: PackagingConfig,
    *,
    sign_manually: bool,
    timeout: float | None,
) -> bool:
    logger.info("Built app for the App Store", build_dir=build_dir)

    installer_identity = config.macos.cert_name_installer
    if not installer_identity:
        return True

    app_file = config.app_file(build_dir)
    os.makedirs(config.dist_dir, exist_ok=True)
    pkg_file = config.pkg_file

    failed: list[str] = []
    if sign_manually:
        failed = manual_macos_sign(app_file, pkg_file, config, timeout=timeout)
    else:
        packager.build_pkg(
            app_file,
            pkg_file,
            installer_identity,
            project_root=config.project_root,
            platform_name="mas",
            timeout=timeout,
        )
    logger.info("Built App Store installer", dist_dir=config.dist_dir)
    return not failed


def _build_outside_store(
    build_dir: str,
    config: PackagingConfig,
    *,
    sign_manually: bool,
    timeout: float | None,
    verbose: bool,
) -> None:
    logger.info("Built app for outside distribution", build_dir=build_dir)

    app_file = config.app_file(build_dir)
    os.makedirs(config.dist_dir, exist_ok=True)

    if sign_manually:
        raise UnsupportedCombinationError(
            "Can't notarize manually: notarization requires automatic signing"
        )

    packager.build_dmg(
        app_file,
        name=config.common.name,
        out=config.dist_dir,
        icon=config.resolve(ICON_FILE),
        project_root=config.project_root,
        debug=verbose,
        timeout=timeout,
    )
    logger.info("Built outside distribution archive", dist_dir=config.dist_dir)


def build_macos_wrapper(
    config: PackagingConfig,
    options: PackagerOptions,
    package_json_path: str,
    project_json_path: str,
    *,
    sign_manually: bool = False,
    should_notarize: bool = False,
    timeout: float | None = None,
    verbose: bool = False,
) -> bool:
    """执行完整打包流程；返回打包与文件还原是否全部成功。

    备份失败会直接抛出（此时尚未改动文件）；之后的打包错误只记录日志。
    """
    common = config.common
    package_json_path = config.resolve(package_json_path)
    project_json_path = config.resolve(project_json_path)

    logger.info(f"Building {common.name} {common.version} for macOS ...")

    ok = False
    with backed_up([package_json_path, project_json_path]) as backup:
        try:
            _rewrite_project_files(config, package_json_path, project_json_path)
            build_dir = packager.run_packager(
                options, project_root=config.project_root, timeout=timeout
            )
            if should_notarize:
                _build_outside_store(
                    build_dir,
                    config,
                    sign_manually=sign_manually,
                    timeout=timeout,
                    verbose=verbose,
                )
                ok = True
            else:
                ok = _build_store(
                    build_dir, config, sign_manually=sign_manually, timeout=timeout
                )
        except Exception:
            logger.exception("macOS packaging failed")

    if backup.failed:
        return False
    return ok
