from __future__ import annotations

"""
流程通用工具：外部命令执行、输出记录与 npm 工具定位。
"""

import os
import re
import shlex
import subprocess

import structlog

logger = structlog.get_logger(__name__)

_SECRET_FLAG_RE = re.compile(r"^(--[\w.-]*[Pp]assword=).+$")


def _display(cmd: list[str]) -> str:
    """用于日志的命令行文本，密码类参数值被遮蔽。"""
    return shlex.join(_SECRET_FLAG_RE.sub(r"\g<1>***", a) for a in cmd)


def run_cmd(
    cmd: list[str], *, cwd: str | None = None, timeout: float | None = None
) -> subprocess.CompletedProcess[bytes]:
    """执行外部命令并返回结果对象，非零退出码不抛错。"""
    if cwd:
        logger.debug("exec", cmd=_display(cmd), cwd=cwd)
    else:
        logger.debug("exec", cmd=_display(cmd))
    return subprocess.run(
        cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, cwd=cwd, check=False, timeout=timeout
    )


def log_output(p: subprocess.CompletedProcess[bytes]) -> None:
    """stdout 以 info 级别记录，stderr 以 warning 级别记录。"""
    out = p.stdout.decode(errors="replace").strip() if p.stdout else ""
    err = p.stderr.decode(errors="replace").strip() if p.stderr else ""
    if out:
        logger.info(out)
    if err:
        logger.warning(err)


def check_cmd(
    cmd: list[str],
    *,
    error: type[Exception] = RuntimeError,
    cwd: str | None = None,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[bytes]:
    """执行命令并记录输出，失败时抛出带 stderr 的 `error` 异常。"""
    p = run_cmd(cmd, cwd=cwd, timeout=timeout)
    log_output(p)
    if p.returncode != 0:
        raise error(f"Command failed: {_display(cmd)}\n{p.stderr.decode(errors='replace')}")
    return p


def npm_tool(name: str, project_root: str) -> list[str]:
    """优先使用项目 `node_modules/.bin` 下的工具，否则通过 `npx` 调用。"""
    local = os.path.join(project_root, "node_modules", ".bin", name)
    if os.path.isfile(local) and os.access(local, os.X_OK):
        return [local]
    return ["npx", "--no-install", name]
