"""
不依赖打包工具自动签名时，对应用包各组件逐个签名。

签名顺序很重要：嵌套的可执行文件与框架必须先于包含它们的应用包签名，
顶层应用包最后签名，否则重签外层应用包时内层签名会被判定无效。
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Callable

import structlog

from . import codesign
from .config import ENTITLEMENTS_CHILD, ENTITLEMENTS_PARENT
from .pipeline_utils import log_output
from .types import PackagingConfig, SigningTarget

logger = structlog.get_logger(__name__)

ELECTRON_FRAMEWORK = "Frameworks/Electron Framework.framework"
ELECTRON_LIBRARIES = (
    "libEGL.dylib",
    "libffmpeg.dylib",
    "libGLESv2.dylib",
    "libswiftshader_libEGL.dylib",
    "libswiftshader_libGLESv2.dylib",
    "libvk_swiftshader.dylib",
)
HELPER_SUFFIXES = ("", " (GPU)", " (Plugin)", " (Renderer)")


def _bundle_with_executable(parent: str, bundle_name: str) -> list[SigningTarget]:
    # 先签可执行文件，再签所在的应用包。
    return [
        f"{parent}/{bundle_name}.app/Contents/MacOS/{bundle_name}",
        f"{parent}/{bundle_name}.app/",
    ]


def signing_targets(app_name: str) -> list[SigningTarget]:
    """返回相对 `<App>.app/Contents/` 的有序待签名路径列表。"""
    targets: list[SigningTarget] = [f"{ELECTRON_FRAMEWORK}/Versions/A/Electron Framework"]
    targets += [f"{ELECTRON_FRAMEWORK}/Versions/A/Libraries/{lib}" for lib in ELECTRON_LIBRARIES]
    targets.append(f"{ELECTRON_FRAMEWORK}/")
    for suffix in HELPER_SUFFIXES:
        targets += _bundle_with_executable("Frameworks", f"{app_name} Helper{suffix}")
    targets += _bundle_with_executable("Library/LoginItems", f"{app_name} Login Helper")
    return targets


def _step(
    call: Callable[[], subprocess.CompletedProcess[bytes]], path: str, failed: list[str]
) -> None:
    # 超时或工具无法启动与非零退出码一样，只记为该路径失败。
    try:
        p = call()
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.error("codesign failed", path=path, error=str(e))
        failed.append(path)
        return
    log_output(p)
    if p.returncode != 0:
        logger.error("codesign failed", path=path, returncode=p.returncode)
        failed.append(path)


def manual_macos_sign(
    app_file: str,
    pkg_file: str,
    config: PackagingConfig,
    *,
    timeout: float | None = None,
) -> list[str]:
    """逐个签名应用包组件，必要时生成已签名安装包；返回签名失败的路径。

    单个目标签名失败只记录日志，不中断后续目标。未配置应用签名证书时不做任何事。
    """
    macos = config.macos
    identity = macos.cert_name_application
    if not identity:
        logger.info("no application certificate configured, skipping manual signing")
        return []

    inherit_entitlements = config.resolve(ENTITLEMENTS_CHILD)
    main_entitlements = config.resolve(ENTITLEMENTS_PARENT)
    failed: list[str] = []

    for target in signing_targets(config.common.name):
        full_path = os.path.join(app_file, "Contents", target)
        logger.info("signing", path=full_path)
        _step(
            lambda: codesign.sign(
                full_path, identity, inherit_entitlements, deep=True, timeout=timeout
            ),
            full_path,
            failed,
        )

    if macos.cert_name_installer:
        app_executable = os.path.join(app_file, "Contents", "MacOS", config.common.name)
        logger.info("signing", path=app_executable)
        _step(
            lambda: codesign.sign(app_executable, identity, inherit_entitlements, timeout=timeout),
            app_executable,
            failed,
        )

        logger.info("signing", path=app_file)
        _step(
            lambda: codesign.sign(app_file, identity, main_entitlements, timeout=timeout),
            app_file,
            failed,
        )

        logger.info("building installer", pkg=pkg_file)
        _step(
            lambda: codesign.productbuild(
                app_file, pkg_file, macos.cert_name_installer, timeout=timeout
            ),
            pkg_file,
            failed,
        )

        try:
            p = codesign.verify(app_file, timeout=timeout)
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.warning("signature verification failed", path=app_file, error=str(e))
        else:
            log_output(p)
            if p.returncode != 0:
                logger.warning("signature verification failed", path=app_file)

    if failed:
        logger.error("manual signing finished with failures", count=len(failed))
    return failed
