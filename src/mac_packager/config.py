"""
打包配置解析。

优先级（后者覆盖前者）：
- 通用字段：内置默认值 < 环境变量 < 项目 JSON。
- macOS 字段：内置默认值 < 环境变量。

环境变量来自 env 默认值文件与进程环境（进程环境优先），空字符串视为未设置。
解析过程只读，不会改动任何输入文件。
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from typing import Any

import structlog
from dotenv import dotenv_values

from .errors import ConfigError
from .types import (
    CommonConfig,
    MacOSConfig,
    OsxNotarizeOptions,
    OsxSignOptions,
    PackagerOptions,
    PackagingConfig,
    PlistEntries,
    Protocol,
)

logger = structlog.get_logger(__name__)

DEFAULT_PROJECT_JSON = os.path.join("electron", "wire.json")
DEFAULT_ENV_FILE = ".env.defaults"
PLIST_INFO_JSON = os.path.join("resources", "macos", "Info.plist.json")
ICON_FILE = os.path.join("resources", "macos", "logo.icns")
ENTITLEMENTS_PARENT = os.path.join("resources", "macos", "entitlements", "parent.plist")
ENTITLEMENTS_CHILD = os.path.join("resources", "macos", "entitlements", "child.plist")
IGNORE_PATTERN = r"electron/renderer/src"

APP_CATEGORY = "public.app-category.social-networking"

COMMON_DEFAULTS: dict[str, Any] = {
    "buildDir": "wrap/build",
    "buildNumber": "0",
    "copyright": "",
    "customProtocolName": "wire",
    "description": "",
    "distDir": "wrap/dist",
    "enableAsar": True,
    "environment": "internal",
    "name": "Wire",
    "nameShort": "Wire",
    "version": "0.0.0",
}

# 项目 JSON 键 -> 对应的环境变量
COMMON_ENV_KEYS: dict[str, str] = {
    "buildDir": "BUILD_DIR",
    "buildNumber": "BUILD_NUMBER",
    "copyright": "APP_COPYRIGHT",
    "customProtocolName": "APP_CUSTOM_PROTOCOL_NAME",
    "description": "APP_DESCRIPTION",
    "distDir": "DIST_DIR",
    "enableAsar": "ENABLE_ASAR",
    "environment": "APP_ENV",
    "name": "APP_NAME",
    "nameShort": "APP_NAME_SHORT",
    "version": "APP_VERSION",
}

MACOS_DEFAULTS = MacOSConfig(
    apple_export_compliance_code=None,
    bundle_id="com.wearezeta.zclient.mac",
    category=APP_CATEGORY,
    cert_name_application=None,
    cert_name_installer=None,
    cert_name_notarization=None,
    electron_mirror=None,
    notarize_apple_id=None,
    notarize_apple_password=None,
)


def _abs(project_root: str, path: str) -> str:
    return os.path.normpath(os.path.join(project_root, os.path.expanduser(path)))


def read_json(path: str) -> dict[str, Any]:
    """读取 JSON 对象文件；文件缺失抛 `FileNotFoundError`，格式错误抛 `ConfigError`。"""
    with open(path, "rb") as f:
        raw = f.read()
    try:
        obj = json.loads(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(obj, dict):
        raise ConfigError(f"Expected a JSON object in {path}")
    return obj


def load_env(env_file: str, environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """合并 env 默认值文件与进程环境（进程环境优先），不写回 `os.environ`。"""
    if not os.path.isfile(env_file):
        raise FileNotFoundError(f"env file not found: {env_file}")
    merged: dict[str, str] = {}
    for k, v in dotenv_values(env_file).items():
        if v is not None:
            merged[k] = v
    merged.update(os.environ if environ is None else environ)
    return merged


def _env(env: Mapping[str, str], key: str) -> str | None:
    v = env.get(key)
    return v if v else None


def _bool_from_str(s: str) -> bool:
    v = s.strip().lower()
    if v in ("true", "1", "yes", "y"):
        return True
    if v in ("false", "0", "no", "n"):
        return False
    raise ConfigError(f"invalid bool: {s}")


def _normalize_build_number(value: Any) -> str:
    try:
        return str(int(str(value).strip()))
    except ValueError:
        return "0"


def load_common_config(project_json: dict[str, Any], env: Mapping[str, str]) -> CommonConfig:
    """按 默认值 < 环境变量 < 项目 JSON 合并通用字段。"""
    merged: dict[str, Any] = dict(COMMON_DEFAULTS)
    for key, env_key in COMMON_ENV_KEYS.items():
        v = _env(env, env_key)
        if v is None:
            continue
        merged[key] = _bool_from_str(v) if key == "enableAsar" else v
    merged.update(project_json)

    enable_asar = merged["enableAsar"]
    if isinstance(enable_asar, str):
        enable_asar = _bool_from_str(enable_asar)

    extra = {k: v for k, v in project_json.items() if k not in COMMON_DEFAULTS}
    return CommonConfig(
        name=str(merged["name"]),
        name_short=str(merged["nameShort"]),
        version=str(merged["version"]),
        build_number=_normalize_build_number(merged["buildNumber"]),
        copyright=str(merged["copyright"]),
        description=str(merged["description"]),
        enable_asar=bool(enable_asar),
        build_dir=str(merged["buildDir"]),
        dist_dir=str(merged["distDir"]),
        custom_protocol_name=str(merged["customProtocolName"]),
        environment=str(merged["environment"]),
        extra=extra,
    )


def load_macos_config(env: Mapping[str, str]) -> MacOSConfig:
    """按 默认值 < 环境变量 合并 macOS 字段。"""
    d = MACOS_DEFAULTS
    return MacOSConfig(
        apple_export_compliance_code=_env(env, "APPLE_EXPORT_COMPLIANCE_CODE")
        or d.apple_export_compliance_code,
        bundle_id=_env(env, "MACOS_BUNDLE_ID") or d.bundle_id,
        category=d.category,
        cert_name_application=_env(env, "MACOS_CERTIFICATE_NAME_APPLICATION")
        or d.cert_name_application,
        cert_name_installer=_env(env, "MACOS_CERTIFICATE_NAME_INSTALLER") or d.cert_name_installer,
        cert_name_notarization=_env(env, "MACOS_CERTIFICATE_NAME_NOTARIZATION")
        or d.cert_name_notarization,
        electron_mirror=_env(env, "MACOS_ELECTRON_MIRROR_URL") or d.electron_mirror,
        notarize_apple_id=_env(env, "MACOS_NOTARIZE_APPLE_ID") or d.notarize_apple_id,
        notarize_apple_password=_env(env, "MACOS_NOTARIZE_APPLE_PASSWORD")
        or d.notarize_apple_password,
    )


def load_plist_entries(path: str, macos: MacOSConfig) -> PlistEntries:
    """读取 `Info.plist` 附加条目模板；配置了出口合规代码时追加加密声明字段。"""
    entries: PlistEntries = read_json(path)
    if macos.apple_export_compliance_code:
        entries["ITSAppUsesNonExemptEncryption"] = True
        entries["ITSEncryptionExportComplianceCode"] = macos.apple_export_compliance_code
    return entries


def build_packager_options(
    config: PackagingConfig, *, sign_manually: bool, should_notarize: bool
) -> PackagerOptions:
    """根据解析好的配置生成打包工具参数。"""
    common = config.common
    macos = config.macos

    osx_sign: OsxSignOptions | None = None
    osx_notarize: OsxNotarizeOptions | None = None
    # 手动签名时由 `manual_sign` 负责签名；公证必须走自动签名。
    if not sign_manually or should_notarize:
        if macos.cert_name_application:
            identity = (
                macos.cert_name_notarization if should_notarize else macos.cert_name_application
            )
            if not identity:
                raise ConfigError(
                    "MACOS_CERTIFICATE_NAME_NOTARIZATION is required for notarization"
                )
            osx_sign = OsxSignOptions(
                identity=identity,
                entitlements=config.resolve(ENTITLEMENTS_PARENT),
                entitlements_inherit=config.resolve(ENTITLEMENTS_CHILD),
                hardened_runtime=should_notarize,
            )
        if should_notarize:
            osx_notarize = OsxNotarizeOptions(
                apple_id=macos.notarize_apple_id,
                apple_id_password=macos.notarize_apple_password,
            )

    return PackagerOptions(
        app_bundle_id=macos.bundle_id,
        app_category_type=macos.category,
        app_copyright=common.copyright,
        app_version=common.version,
        asar=common.enable_asar,
        build_version=common.build_number,
        dark_mode_support=True,
        dir=config.project_root,
        executable_name=common.name,
        extend_info=config.plist_entries,
        helper_bundle_id=f"{macos.bundle_id}.helper",
        icon=config.resolve(ICON_FILE),
        ignore=IGNORE_PATTERN,
        name=common.name,
        out=config.resolve(common.build_dir),
        overwrite=True,
        platform="darwin" if should_notarize else "mas",
        protocols=(
            Protocol(name=f"{common.name} Core Protocol", schemes=(common.custom_protocol_name,)),
        ),
        prune=True,
        quiet=False,
        download_mirror=macos.electron_mirror,
        osx_sign=osx_sign,
        osx_notarize=osx_notarize,
    )


def resolve_config(
    project_json_path: str | None = None,
    env_file_path: str | None = None,
    *,
    project_root: str | None = None,
    sign_manually: bool = False,
    should_notarize: bool = False,
    environ: Mapping[str, str] | None = None,
) -> tuple[PackagingConfig, PackagerOptions]:
    """解析全部配置来源，返回不可变的打包配置与打包工具参数。"""
    root = os.path.abspath(project_root or os.getcwd())
    project_json_file = _abs(root, project_json_path or DEFAULT_PROJECT_JSON)
    env_file = _abs(root, env_file_path or DEFAULT_ENV_FILE)

    env = load_env(env_file, environ)
    common = load_common_config(read_json(project_json_file), env)
    macos = load_macos_config(env)
    plist_entries = load_plist_entries(_abs(root, PLIST_INFO_JSON), macos)

    config = PackagingConfig(
        common=common,
        macos=macos,
        plist_entries=plist_entries,
        project_root=root,
    )
    options = build_packager_options(
        config, sign_manually=sign_manually, should_notarize=should_notarize
    )
    logger.debug(
        "resolved config",
        name=common.name,
        version=common.version,
        bundle_id=macos.bundle_id,
        platform=options.platform,
    )
    return config, options
