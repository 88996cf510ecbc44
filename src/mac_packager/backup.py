"""
项目文件的备份与还原。

打包期间会临时改写 `package.json` 与项目 JSON；这里保证无论打包成功与否，
原始内容都会被逐字节写回，且每个备份只能还原一次。
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FileBackup:
    path: str
    content: bytes


@dataclass
class BackupHandle:
    """一次备份得到的有序 `(路径, 原始内容)` 序列。"""

    entries: tuple[FileBackup, ...]
    restored: bool = False
    failed: list[str] = field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        return [e.path for e in self.entries]


def backup_files(paths: Sequence[str]) -> BackupHandle:
    """读取全部文件内容；任一文件不可读时抛出 `OSError`，此时尚未改动任何文件。"""
    entries: list[FileBackup] = []
    for path in paths:
        with open(path, "rb") as f:
            entries.append(FileBackup(path=path, content=f.read()))
    logger.debug("backed up files", paths=[e.path for e in entries])
    return BackupHandle(entries=tuple(entries))


def restore_files(handle: BackupHandle) -> list[str]:
    """写回全部备份内容，单个文件失败不影响其余文件；返回还原失败的路径。"""
    if handle.restored:
        raise RuntimeError("backup has already been restored")
    handle.restored = True

    failed: list[str] = []
    for entry in handle.entries:
        try:
            with open(entry.path, "wb") as f:
                f.write(entry.content)
        except OSError as e:
            logger.error("failed to restore file", path=entry.path, error=str(e))
            failed.append(entry.path)
    handle.failed = failed
    if not failed:
        logger.debug("restored files", paths=handle.paths)
    return failed


@contextmanager
def backed_up(paths: Sequence[str]) -> Iterator[BackupHandle]:
    """在 `with` 块的所有退出路径上还原文件。"""
    handle = backup_files(paths)
    try:
        yield handle
    finally:
        restore_files(handle)
