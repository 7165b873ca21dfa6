# src/srcforge/core/tracking.py
from __future__ import annotations

import logging
import os
import threading
import urllib.parse
import urllib.request
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Union

from .errors import ConfigurationError
from .resources import (
    ClasspathResourceSet,
    Resource,
    ResourceSet,
    UriResourceSet,
    _FilesystemResourceSet,
)

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class FileChange:
    file: Path
    change_type: ChangeType


def _norm(p: Union[str, Path]) -> str:
    p = os.path.normpath(os.path.abspath(p))
    if os.name == "nt":
        p = os.path.normcase(p)
    return p


def load_changes(records: Iterable[Any]) -> List[FileChange]:
    """
    解析宿主提供的变更列表，每项为 {"file": ..., "change_type": "added|modified|removed"}
    （也接受 "changeType"/"type" 键）或 (file, type) 二元组。
    """
    out: List[FileChange] = []
    for rec in records:
        if isinstance(rec, FileChange):
            out.append(rec)
            continue
        if isinstance(rec, Mapping):
            file = rec.get("file")
            typ = rec.get("change_type", rec.get("changeType", rec.get("type")))
        elif isinstance(rec, (list, tuple)) and len(rec) == 2:
            file, typ = rec
        else:
            raise ConfigurationError(f"Bad change record: {rec!r}")
        if not file or not typ:
            raise ConfigurationError(f"Change record requires file and change type: {rec!r}")
        try:
            change_type = ChangeType(str(typ).strip().lower())
        except ValueError:
            raise ConfigurationError(f"Unknown change type: {typ}") from None
        out.append(FileChange(Path(file), change_type))
    return out


def changed_files(changes: Iterable[FileChange]) -> Set[str]:
    # 删除不参与计算
    return {_norm(c.file) for c in changes if c.change_type is not ChangeType.REMOVED}


def to_physical_file(uri: str) -> Optional[Path]:
    """
    把 URI 映射到本地物理文件：
    - file:           -> 文件本身
    - zip:file:/jar:file: -> 归档文件
    其余（http 等）-> None
    """
    scheme, _, rest = uri.partition(":")
    scheme = scheme.lower()
    if scheme == "file":
        return Path(urllib.request.url2pathname(urllib.parse.urlparse(uri).path))
    if scheme in ("zip", "jar") and rest.lower().startswith("file:"):
        archive_uri = rest.split("!", 1)[0]
        return to_physical_file(archive_uri)
    return None


class IncrementalBuildSupport:
    """
    资源集的增量构建支持（默认：不可追踪）。
    fully_trackable 为 False 时，宿主应当每次都重新生成。
    """

    def __init__(self, resource_set: ResourceSet):
        self.resource_set = resource_set

    @property
    def fully_trackable(self) -> bool:
        return False

    @property
    def source_files(self) -> List[Path]:
        return []

    @property
    def source_classpath(self) -> List[Path]:
        return []

    def changed_resources(self, changes: Iterable[FileChange]) -> Iterator[Resource]:
        # 没有追踪信息：全部视为已变化
        return iter(self.resource_set)

    def describe(self) -> Dict[str, Any]:
        return {
            "fully_trackable": self.fully_trackable,
            "source_files": [str(p) for p in self.source_files],
            "source_classpath": [str(p) for p in self.source_classpath],
        }


class NonIncrementalBuildSupport(IncrementalBuildSupport):
    pass


class FilesystemBuildSupport(IncrementalBuildSupport):
    """目录/文件列表资源集：成员都是本地文件，总是可追踪。"""

    resource_set: _FilesystemResourceSet

    @property
    def fully_trackable(self) -> bool:
        return True

    @property
    def source_files(self) -> List[Path]:
        return self.resource_set.member_files()

    def changed_resources(self, changes: Iterable[FileChange]) -> Iterator[Resource]:
        changed = changed_files(changes)
        return (r for r in self.resource_set if _norm(self.resource_set.file_of(r)) in changed)


class PhysicalFileBuildSupport(IncrementalBuildSupport):
    """
    按 URI 能否映射到物理文件对资源分组。
    有映射的资源按文件变化追踪；无映射的资源在任何变化时一律视为已变化。
    """

    def __init__(self, resource_set: ResourceSet,
                 physical_file_mapper: Callable[[Resource], Optional[Path]] = lambda r: to_physical_file(r.uri)):
        super().__init__(resource_set)
        self._mapper = physical_file_mapper
        self._lock = threading.Lock()
        self._groups: Optional[Dict[Optional[str], List[Resource]]] = None

    def _grouped(self) -> Dict[Optional[str], List[Resource]]:
        if self._groups is None:
            with self._lock:
                if self._groups is None:
                    groups: Dict[Optional[str], List[Resource]] = {}
                    for r in self.resource_set:
                        f = self._mapper(r)
                        groups.setdefault(_norm(f) if f is not None else None, []).append(r)
                    self._groups = groups
        return self._groups

    @property
    def physical_files(self) -> List[Path]:
        return [Path(k) for k in self._grouped() if k is not None]

    @property
    def non_physical_resources(self) -> List[Resource]:
        return list(self._grouped().get(None, []))

    @property
    def fully_trackable(self) -> bool:
        return None not in self._grouped()

    @property
    def source_files(self) -> List[Path]:
        return self.physical_files

    def changed_resources(self, changes: Iterable[FileChange]) -> Iterator[Resource]:
        groups = self._grouped()
        changed = changed_files(changes)
        targets: Set[Resource] = set()
        for f in changed:
            targets.update(groups.get(f, ()))
        targets.update(groups.get(None, ()))
        # 保持资源集的迭代顺序
        return (r for r in self.resource_set if r in targets)


class ClasspathBuildSupport(PhysicalFileBuildSupport):
    """类路径条目总是本地目录或归档，视为完全可追踪。"""

    @property
    def fully_trackable(self) -> bool:
        return True

    @property
    def source_files(self) -> List[Path]:
        return []

    @property
    def source_classpath(self) -> List[Path]:
        return self.physical_files


def support_for(resource_set: ResourceSet) -> IncrementalBuildSupport:
    if isinstance(resource_set, _FilesystemResourceSet):
        return FilesystemBuildSupport(resource_set)
    if isinstance(resource_set, ClasspathResourceSet):
        return ClasspathBuildSupport(resource_set)
    if isinstance(resource_set, UriResourceSet):
        return PhysicalFileBuildSupport(resource_set)
    return NonIncrementalBuildSupport(resource_set)
