"""
对 macOS `/usr/bin/codesign` 与 `/usr/bin/productbuild` 的轻量封装。

这里的函数只负责拼装命令并返回结果对象，是否视为致命错误由调用方决定。
"""

from __future__ import annotations

import subprocess

from .pipeline_utils import run_cmd

CODESIGN = "/usr/bin/codesign"
PRODUCTBUILD = "/usr/bin/productbuild"


def sign(
    path: str,
    identity: str,
    entitlements_path: str | None = None,
    *,
    deep: bool = False,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[bytes]:
    """使用给定证书与可选签名权限（`entitlements`）强制重签目标。"""
    cmd = [CODESIGN]
    if deep:
        cmd.append("--deep")
    cmd += ["-fs", identity]
    if entitlements_path:
        cmd += ["--entitlements", entitlements_path]
    cmd.append(path)
    return run_cmd(cmd, timeout=timeout)


def verify(app_path: str, *, timeout: float | None = None) -> subprocess.CompletedProcess[bytes]:
    """对应用包执行严格签名校验。"""
    return run_cmd([CODESIGN, "--verify", "--deep", "--strict", app_path], timeout=timeout)


def productbuild(
    app_path: str,
    pkg_path: str,
    identity: str,
    *,
    install_location: str = "/Applications",
    timeout: float | None = None,
) -> subprocess.CompletedProcess[bytes]:
    """把应用包打成已签名的安装包（`.pkg`）。"""
    cmd = [
        PRODUCTBUILD,
        "--component",
        app_path,
        install_location,
        "--sign",
        identity,
        pkg_path,
    ]
    return run_cmd(cmd, timeout=timeout)
