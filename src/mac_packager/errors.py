"""
打包流程中的异常类型。
"""


class PackagingError(RuntimeError):
    """所有打包相关错误的基类。"""


class ConfigError(PackagingError):
    """配置文件格式错误或内容无效。"""


class BundleError(PackagingError):
    """应用打包工具或 DMG 生成工具执行失败。"""


class SigningError(PackagingError):
    """签名或安装包生成工具执行失败。"""


class UnsupportedCombinationError(PackagingError):
    """请求了无法同时满足的选项组合（如手动签名 + 公证）。"""
