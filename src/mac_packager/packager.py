"""
外部 npm 打包工具的命令行封装：

- `electron-packager`：生成 `.app` 应用包。
- `electron-osx-flat`：自动签名并生成 App Store 安装包（`.pkg`）。
- `electron-installer-dmg`：生成仓库外分发用的磁盘映像（`.dmg`）。
"""

from __future__ import annotations

import os
import platform
import plistlib
import re
import tempfile

import structlog

from .errors import BundleError, SigningError
from .pipeline_utils import check_cmd, npm_tool
from .types import PackagerOptions, PlistEntries

logger = structlog.get_logger(__name__)

_WROTE_APP_RE = re.compile(r"Wrote new apps? to:?\s*(.+)$", re.MULTILINE)


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _host_arch() -> str:
    """将本机架构映射为 Electron 的架构名称。"""
    machine = platform.machine().lower()
    if machine in ("arm64", "aarch64"):
        return "arm64"
    if machine in ("x86_64", "amd64"):
        return "x64"
    return machine


def write_plist(entries: PlistEntries) -> str:
    """将 `Info.plist` 附加条目写入临时 plist 并返回文件路径。"""
    data = plistlib.dumps(entries, fmt=plistlib.FMT_XML, sort_keys=False)
    fd, path = tempfile.mkstemp(prefix="extend_info_", suffix=".plist")
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    return path


def packager_args(options: PackagerOptions, extend_info_path: str) -> list[str]:
    """把 `PackagerOptions` 转换为 `electron-packager` 的命令行参数。"""
    args = [
        options.dir,
        options.name,
        f"--platform={options.platform}",
        f"--out={options.out}",
        f"--app-bundle-id={options.app_bundle_id}",
        f"--app-category-type={options.app_category_type}",
        f"--app-copyright={options.app_copyright}",
        f"--app-version={options.app_version}",
        f"--build-version={options.build_version}",
        f"--executable-name={options.executable_name}",
        f"--extend-info={extend_info_path}",
        f"--helper-bundle-id={options.helper_bundle_id}",
        f"--icon={options.icon}",
        f"--ignore={options.ignore}",
        f"--asar={_flag(options.asar)}",
        f"--prune={_flag(options.prune)}",
    ]
    if options.dark_mode_support:
        args.append("--darwin-dark-mode-support")
    if options.overwrite:
        args.append("--overwrite")
    if options.quiet:
        args.append("--quiet")
    for proto in options.protocols:
        args.append(f"--protocol-name={proto.name}")
        for scheme in proto.schemes:
            args.append(f"--protocol={scheme}")
    if options.download_mirror:
        args.append(f"--download.mirrorOptions.mirror={options.download_mirror}")

    sign = options.osx_sign
    if sign is not None:
        args += [
            f"--osx-sign.identity={sign.identity}",
            f"--osx-sign.entitlements={sign.entitlements}",
            f"--osx-sign.entitlements-inherit={sign.entitlements_inherit}",
            f"--osx-sign.hardenedRuntime={_flag(sign.hardened_runtime)}",
            f"--osx-sign.pre-embed-provisioning-profile={_flag(sign.pre_embed_provisioning_profile)}",
        ]

    notarize = options.osx_notarize
    if notarize is not None:
        if notarize.apple_id:
            args.append(f"--osx-notarize.appleId={notarize.apple_id}")
        if notarize.apple_id_password:
            args.append(f"--osx-notarize.appleIdPassword={notarize.apple_id_password}")
    return args


def _find_build_dir(output: str, options: PackagerOptions) -> str:
    """从工具输出中解析应用包目录，找不到时按默认命名规则推导。"""
    m = None
    for m in _WROTE_APP_RE.finditer(output):
        pass
    if m is not None:
        return m.group(1).strip()
    return os.path.join(options.out, f"{options.name}-{options.platform}-{_host_arch()}")


def run_packager(
    options: PackagerOptions, *, project_root: str, timeout: float | None = None
) -> str:
    """执行 `electron-packager` 并返回生成的应用包所在目录，失败时抛出 `BundleError`。"""
    extend_info = write_plist(options.extend_info)
    try:
        cmd = npm_tool("electron-packager", project_root) + packager_args(options, extend_info)
        p = check_cmd(cmd, error=BundleError, cwd=project_root, timeout=timeout)
    finally:
        os.remove(extend_info)

    output = p.stdout.decode(errors="replace") + "\n" + p.stderr.decode(errors="replace")
    return _find_build_dir(output, options)


def build_pkg(
    app_file: str,
    pkg_file: str,
    identity: str,
    *,
    project_root: str,
    platform_name: str = "mas",
    timeout: float | None = None,
) -> None:
    """使用 `electron-osx-flat` 生成已签名安装包，失败时抛出 `SigningError`。"""
    cmd = npm_tool("electron-osx-flat", project_root) + [
        app_file,
        f"--identity={identity}",
        f"--pkg={pkg_file}",
        f"--platform={platform_name}",
    ]
    check_cmd(cmd, error=SigningError, cwd=project_root, timeout=timeout)


def build_dmg(
    app_file: str,
    *,
    name: str,
    out: str,
    icon: str,
    project_root: str,
    debug: bool = False,
    timeout: float | None = None,
) -> None:
    """使用 `electron-installer-dmg` 生成磁盘映像，失败时抛出 `BundleError`。"""
    cmd = npm_tool("electron-installer-dmg", project_root) + [
        app_file,
        name,
        f"--out={out}",
        f"--icon={icon}",
        f"--title={name}",
        "--overwrite",
    ]
    if debug:
        cmd.append("--debug")
    check_cmd(cmd, error=BundleError, cwd=project_root, timeout=timeout)
