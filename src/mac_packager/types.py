"""
配置解析、打包流程与手动签名共享的轻量类型定义。
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

# 应用包内相对 `Contents/` 的待签名路径。
SigningTarget = str

# 写入应用包 `Info.plist` 的附加条目。
PlistEntries = dict[str, Any]


@dataclass(frozen=True)
class CommonConfig:
    """与平台无关的项目元数据（对应项目 JSON 文件）。"""

    name: str
    name_short: str
    version: str
    build_number: str
    copyright: str
    description: str
    enable_asar: bool
    build_dir: str
    dist_dir: str
    custom_protocol_name: str
    environment: str
    # 项目 JSON 中未识别的键原样保留，回写时不丢失。
    extra: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        """转换为项目 JSON 的驼峰格式。"""
        return {
            **self.extra,
            "buildDir": self.build_dir,
            "buildNumber": self.build_number,
            "copyright": self.copyright,
            "customProtocolName": self.custom_protocol_name,
            "description": self.description,
            "distDir": self.dist_dir,
            "enableAsar": self.enable_asar,
            "environment": self.environment,
            "name": self.name,
            "nameShort": self.name_short,
            "version": self.version,
        }


@dataclass(frozen=True)
class MacOSConfig:
    """macOS 专属设置：应用包标识、证书名与公证凭据。"""

    apple_export_compliance_code: str | None
    bundle_id: str
    category: str
    cert_name_application: str | None
    cert_name_installer: str | None
    cert_name_notarization: str | None
    electron_mirror: str | None
    notarize_apple_id: str | None
    notarize_apple_password: str | None


@dataclass(frozen=True)
class PackagingConfig:
    """一次打包调用解析完成后的全部配置，解析后不再修改。"""

    common: CommonConfig
    macos: MacOSConfig
    plist_entries: PlistEntries
    project_root: str

    def resolve(self, path: str) -> str:
        return os.path.normpath(os.path.join(self.project_root, path))

    @property
    def dist_dir(self) -> str:
        return self.resolve(self.common.dist_dir)

    @property
    def pkg_file(self) -> str:
        return os.path.join(self.dist_dir, f"{self.common.name}.pkg")

    def app_file(self, build_dir: str) -> str:
        return os.path.join(build_dir, f"{self.common.name}.app")


@dataclass(frozen=True)
class OsxSignOptions:
    """交给打包工具的自动签名参数。"""

    identity: str
    entitlements: str
    entitlements_inherit: str
    hardened_runtime: bool
    pre_embed_provisioning_profile: bool = False


@dataclass(frozen=True)
class OsxNotarizeOptions:
    """交给打包工具的公证参数。"""

    apple_id: str | None
    apple_id_password: str | None


@dataclass(frozen=True)
class Protocol:
    name: str
    schemes: tuple[str, ...]


@dataclass(frozen=True)
class PackagerOptions:
    """应用打包工具（`electron-packager`）的调用参数。"""

    app_bundle_id: str
    app_category_type: str
    app_copyright: str
    app_version: str
    asar: bool
    build_version: str
    dark_mode_support: bool
    dir: str
    executable_name: str
    extend_info: PlistEntries
    helper_bundle_id: str
    icon: str
    ignore: str
    name: str
    out: str
    overwrite: bool
    # 公证（仓库外分发）时为 `darwin`，否则为 `mas`。
    platform: str
    protocols: tuple[Protocol, ...]
    prune: bool
    quiet: bool
    download_mirror: str | None = None
    osx_sign: OsxSignOptions | None = None
    osx_notarize: OsxNotarizeOptions | None = None
