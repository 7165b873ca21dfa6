# src/srcforge/core/resources.py
from __future__ import annotations

import io
import logging
import os
import posixpath
import sys
import urllib.error
import urllib.parse
import urllib.request
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, TextIO, Tuple, Union

from .errors import ConfigurationError, ResourceError, access_denied, access_error, not_found
from .globbing import UNIVERSAL_PATTERN, matches, normalize_path
from .text_io import charset_from_content_type

logger = logging.getLogger(__name__)

DEFAULT_CHARSET = "utf-8"

Opener = Callable[["Resource"], TextIO]


@dataclass(frozen=True)
class Resource:
    """
    资源集中的一个可读单元。只是视图：每次 get/迭代都会重新创建。
    open_reader() 返回的 reader 由调用方负责关闭（建议 with）。
    """
    resource_set: "ResourceSet" = field(repr=False, compare=False)
    relative_path: str
    uri: str
    absolute_path: str
    charset: str = DEFAULT_CHARSET
    _opener: Optional[Opener] = field(default=None, repr=False, compare=False)

    def open_reader(self) -> TextIO:
        if self._opener is None:
            return self.resource_set.open(self)
        return self._opener(self)

    def read_text(self) -> str:
        with self.open_reader() as r:
            return r.read()


class ResourceSet(ABC):
    """
    共享同一根 URI 与默认编码的一组资源。
    约定：iter() 产出的每个 relative_path 都可以传给 get() 取回。
    """

    def __init__(self, default_charset: str = DEFAULT_CHARSET):
        self.default_charset = default_charset
        self._build_support = None

    @property
    @abstractmethod
    def root_uri(self) -> str:
        ...

    @abstractmethod
    def get(self, path: str) -> Resource:
        ...

    @abstractmethod
    def __iter__(self) -> Iterator[Resource]:
        ...

    def find(self, path: str) -> Optional[Resource]:
        try:
            return self.get(path)
        except ResourceError as e:
            if e.is_not_found:
                return None
            raise

    def open(self, resource: Resource) -> TextIO:
        raise access_error(f"Resource cannot be opened: {resource.absolute_path}", path=resource.relative_path)

    def paths(self) -> List[str]:
        return [r.relative_path for r in self]

    @property
    def build_support(self):
        # 延迟导入，避免与 tracking 循环依赖
        if self._build_support is None:
            from .tracking import support_for
            self._build_support = support_for(self)
        return self._build_support

    def __repr__(self) -> str:
        return f"{type(self).__name__}(root_uri={self.root_uri!r})"


# ---------------------------------------------------------------------------
# 本地文件共用逻辑
# ---------------------------------------------------------------------------

def open_local_file(file_path: Union[str, Path], charset: str, display: Optional[str] = None) -> TextIO:
    """打开本地文件：不存在 -> NOT_FOUND，无权限 -> ACCESS_DENIED，其余 I/O -> ACCESS_ERROR。"""
    shown = display or str(file_path)
    try:
        if not os.path.exists(file_path):
            raise not_found(f"Resource not found: {shown}", path=shown)
        return _LocalFileReader(open(file_path, "r", encoding=charset, newline=""), shown)
    except ResourceError:
        raise
    except PermissionError as e:
        raise access_denied(f"Access denied to resource: {shown}", path=shown, cause=e) from e
    except FileNotFoundError as e:
        raise not_found(f"Resource not found: {shown}", path=shown, cause=e) from e
    except (OSError, LookupError) as e:
        raise access_error(f"Failed to read resource: {shown}", path=shown, cause=e) from e


class _LocalFileReader(io.TextIOBase):
    """本地文件是延迟解码的：读取过程中的解码/I-O 错误同样转换为 ACCESS_ERROR。"""

    def __init__(self, raw: TextIO, shown: str):
        super().__init__()
        self._raw = raw
        self._shown = shown

    def readable(self) -> bool:
        return True

    def _failed(self, e: Exception) -> ResourceError:
        return access_error(f"Failed to read resource: {self._shown}", path=self._shown, cause=e)

    def read(self, size: Optional[int] = -1) -> str:
        try:
            return self._raw.read(size)
        except (UnicodeDecodeError, OSError) as e:
            raise self._failed(e) from e

    def readline(self, size: Optional[int] = -1) -> str:
        try:
            return self._raw.readline(size)
        except (UnicodeDecodeError, OSError) as e:
            raise self._failed(e) from e

    def close(self) -> None:
        try:
            self._raw.close()
        finally:
            super().close()


class _FilesystemMembers:
    """目录集/文件列表集共用的“物理文件”能力。"""

    def __init__(self, root_dir: Union[str, Path]):
        self.root_dir = Path(root_dir).absolute()

    def file_of(self, relative_path: str) -> Path:
        return self.root_dir / relative_path

    def relative_of(self, file: Union[str, Path]) -> Optional[str]:
        try:
            rel = Path(file).absolute().relative_to(self.root_dir)
        except ValueError:
            return None
        return rel.as_posix()


class _FilesystemResourceSet(ResourceSet):

    def __init__(self, root_dir: Union[str, Path], default_charset: str = DEFAULT_CHARSET):
        super().__init__(default_charset)
        self._fs = _FilesystemMembers(root_dir)

    @property
    def root_dir(self) -> Path:
        return self._fs.root_dir

    @property
    def root_uri(self) -> str:
        return self.root_dir.as_uri() + "/"

    def _resource(self, relative_path: str) -> Resource:
        file = self._fs.file_of(relative_path)
        return Resource(
            resource_set=self,
            relative_path=relative_path,
            uri=file.as_uri(),
            absolute_path=str(file),
            charset=self.default_charset,
        )

    def open(self, resource: Resource) -> TextIO:
        return open_local_file(resource.absolute_path, resource.charset)

    def file_of(self, resource: Resource) -> Path:
        return self._fs.file_of(resource.relative_path)

    def find_by_file(self, file: Union[str, Path]) -> Optional[Resource]:
        rel = self._fs.relative_of(file)
        if rel is None:
            return None
        return self.find(rel)

    @abstractmethod
    def member_files(self) -> List[Path]:
        ...


# ---------------------------------------------------------------------------
# StringResourceSet
# ---------------------------------------------------------------------------

class StringResourceSet(ResourceSet):
    """内存字符串资源集，按声明顺序迭代。"""

    ROOT_URI = "string:/"

    def __init__(self, templates: Mapping[str, str], default_charset: str = DEFAULT_CHARSET):
        super().__init__(default_charset)
        self._templates: Dict[str, str] = dict(templates)

    @property
    def root_uri(self) -> str:
        return self.ROOT_URI

    def get(self, path: str) -> Resource:
        if path not in self._templates:
            raise not_found(f"Resource not found: {path} in StringResourceSet", path=path)
        return Resource(
            resource_set=self,
            relative_path=path,
            uri=self.ROOT_URI + path,
            absolute_path=self.ROOT_URI + path,
            charset=self.default_charset,
        )

    def open(self, resource: Resource) -> TextIO:
        data = self._templates.get(resource.relative_path)
        if data is None:
            raise not_found(f"Resource not found: {resource.relative_path}", path=resource.relative_path)
        return io.StringIO(data, newline="")

    def __iter__(self) -> Iterator[Resource]:
        return iter([self.get(k) for k in self._templates])


# ---------------------------------------------------------------------------
# DirectoryResourceSet
# ---------------------------------------------------------------------------

def _escapes_root(path: str) -> bool:
    norm = posixpath.normpath(path)
    return posixpath.isabs(path) or norm == ".." or norm.startswith("../")


class DirectoryResourceSet(_FilesystemResourceSet):
    """目录树资源集，用 includes/excludes glob 过滤；按文件系统遍历顺序迭代。"""

    def __init__(self, root_dir: Union[str, Path], includes: Iterable[str] = (UNIVERSAL_PATTERN,),
                 excludes: Iterable[str] = (), default_charset: str = DEFAULT_CHARSET):
        super().__init__(root_dir, default_charset)
        self.includes: Tuple[str, ...] = tuple(includes)
        self.excludes: Tuple[str, ...] = tuple(excludes)

    def matches(self, path: str) -> bool:
        return matches(path, self.includes, self.excludes)

    def get(self, path: str) -> Resource:
        path = normalize_path(path)
        # 不允许离开根目录（如 "../x"）
        if _escapes_root(path) or self._fs.relative_of(self._fs.file_of(path)) is None:
            raise not_found(f"Resource outside of root directory: {path}", path=path)
        path = posixpath.normpath(path)
        if not self.matches(path):
            raise not_found(f"Resource not matched to includes/excludes patterns: {path}", path=path)
        file = self._fs.file_of(path)
        if not file.exists():
            raise not_found(f"Resource not found: {path}", path=path)
        if not file.is_file():
            raise not_found(f"Resource not a file: {path}", path=path)
        return self._resource(path)

    def _walk(self) -> Iterator[str]:
        # os.walk 自顶向下；不存在的根目录视为空集
        for dirpath, dirnames, filenames in os.walk(self.root_dir):
            for name in filenames:
                rel = Path(dirpath, name).relative_to(self.root_dir).as_posix()
                if self.matches(rel):
                    yield rel

    def __iter__(self) -> Iterator[Resource]:
        return (self._resource(rel) for rel in self._walk())

    def member_files(self) -> List[Path]:
        return [self._fs.file_of(rel) for rel in self._walk()]


# ---------------------------------------------------------------------------
# FileListResourceSet
# ---------------------------------------------------------------------------

FileSpec = Union[str, "os.PathLike[str]"]


def _relative_file_specs(root_dir: Path, file_specs: Iterable[Any]) -> List[str]:
    out: List[str] = []
    for spec in file_specs:
        if spec is None:
            raise ConfigurationError("File spec cannot be None")
        if isinstance(spec, str):
            if not spec:
                raise ConfigurationError("File path cannot be empty")
            file = root_dir / spec
        elif isinstance(spec, os.PathLike):
            file = Path(spec)
            if not file.is_absolute():
                file = root_dir / file
        else:
            raise ConfigurationError(f"Unsupported file spec type: {type(spec).__name__}")
        file = Path(os.path.normpath(file.absolute()))
        try:
            rel = file.relative_to(root_dir).as_posix()
        except ValueError:
            raise ConfigurationError(
                f"File {file} is not relative to root directory {root_dir}", path=str(file)
            ) from None
        if rel in (".", ""):
            raise ConfigurationError(f"File {file} is the root directory itself", path=str(file))
        if rel not in out:
            out.append(rel)
    return out


class FileListResourceSet(_FilesystemResourceSet):
    """显式文件列表资源集；所有成员必须位于根目录之下。"""

    def __init__(self, root_dir: Union[str, Path], file_specs: Iterable[Any],
                 default_charset: str = DEFAULT_CHARSET):
        super().__init__(root_dir, default_charset)
        self._relative_paths: List[str] = _relative_file_specs(self.root_dir, file_specs)

    def get(self, path: str) -> Resource:
        path = normalize_path(path)
        if path not in self._relative_paths:
            raise not_found(f"Resource not found: {path}", path=path)
        return self._resource(path)

    def __iter__(self) -> Iterator[Resource]:
        return iter([self._resource(p) for p in self._relative_paths])

    def member_files(self) -> List[Path]:
        return [self._fs.file_of(p) for p in self._relative_paths]


# ---------------------------------------------------------------------------
# ClasspathResourceSet
# ---------------------------------------------------------------------------

ARCHIVE_SUFFIXES = (".zip", ".jar", ".whl", ".egg")


def _is_archive(entry: Path) -> bool:
    return entry.is_file() and (entry.suffix.lower() in ARCHIVE_SUFFIXES or zipfile.is_zipfile(entry))


def archive_member_uri(archive: Path, member: str) -> str:
    return f"zip:{archive.absolute().as_uri()}!/{member}"


class ClasspathResourceSet(ResourceSet):
    """
    类路径式资源集：在有序的条目（目录或 zip 归档）中查找相对路径，先到先得。
    默认条目为 sys.path。
    """

    ROOT_URI = "classpath:/"

    def __init__(self, relative_paths: Iterable[str],
                 entries: Optional[Sequence[Union[str, Path]]] = None,
                 default_charset: str = DEFAULT_CHARSET):
        super().__init__(default_charset)
        self._relative_paths: List[str] = []
        for p in relative_paths:
            p = normalize_path(p).lstrip("/")
            if p and p not in self._relative_paths:
                self._relative_paths.append(p)
        raw = list(sys.path) if entries is None else list(entries)
        self.entries: List[Path] = [Path(e or ".").absolute() for e in raw]

    @property
    def root_uri(self) -> str:
        return self.ROOT_URI

    def locate(self, path: str) -> Optional[Tuple[Path, bool]]:
        """返回 (条目, 是否归档)；找不到返回 None。"""
        if _escapes_root(path):
            return None
        for entry in self.entries:
            if entry.is_dir():
                if (entry / path).is_file():
                    return entry, False
            elif _is_archive(entry):
                try:
                    with zipfile.ZipFile(entry) as zf:
                        zf.getinfo(path)
                    return entry, True
                except (KeyError, zipfile.BadZipFile, OSError):
                    continue
        return None

    def get(self, path: str) -> Resource:
        path = normalize_path(path).lstrip("/")
        found = self.locate(path)
        if found is None:
            raise not_found(f"Resource not found: {path}", path=path)
        entry, archived = found
        if archived:
            uri = archive_member_uri(entry, path)
            absolute = uri
        else:
            file = entry / path
            uri = file.as_uri()
            absolute = str(file)
        return Resource(resource_set=self, relative_path=path, uri=uri,
                        absolute_path=absolute, charset=self.default_charset)

    def open(self, resource: Resource) -> TextIO:
        path = resource.relative_path
        found = self.locate(path)
        if found is None:
            raise not_found(f"Resource not found: {path}", path=path)
        entry, archived = found
        if not archived:
            return open_local_file(entry / path, resource.charset)
        try:
            with zipfile.ZipFile(entry) as zf:
                data = zf.read(path)
            return io.StringIO(data.decode(resource.charset), newline="")
        except PermissionError as e:
            raise access_denied(f"Access denied to resource: {resource.absolute_path}", path=path, cause=e) from e
        except (OSError, zipfile.BadZipFile, KeyError, UnicodeDecodeError, LookupError) as e:
            raise access_error(f"Failed to read resource: {resource.absolute_path}", path=path, cause=e) from e

    def __iter__(self) -> Iterator[Resource]:
        return iter([self.get(p) for p in self._relative_paths])


# ---------------------------------------------------------------------------
# UriResourceSet
# ---------------------------------------------------------------------------

def _ensure_trailing_slash(uri: str) -> str:
    return uri if uri.endswith("/") else uri + "/"


class UriResourceSet(ResourceSet):
    """
    远程 URI 列表资源集。成员资格是暂定的：get() 不做校验，缺失只在打开时发现。
    不做缓存和重试：一次失败即报错。
    """

    def __init__(self, root_uri: str, relative_paths: Iterable[str],
                 default_charset: str = DEFAULT_CHARSET, timeout: Optional[float] = None):
        super().__init__(default_charset)
        self._root_uri = _ensure_trailing_slash(root_uri)
        self._relative_paths: List[str] = []
        for p in relative_paths:
            if p not in self._relative_paths:
                self._relative_paths.append(p)
        self.timeout = timeout

    @property
    def root_uri(self) -> str:
        return self._root_uri

    def get(self, path: str) -> Resource:
        uri = self._root_uri + path
        return Resource(resource_set=self, relative_path=path, uri=uri,
                        absolute_path=uri, charset=self.default_charset,
                        _opener=self._open_uri)

    def __iter__(self) -> Iterator[Resource]:
        return iter([self.get(p) for p in self._relative_paths])

    def _urlopen(self, uri: str):
        if self.timeout is None:
            return urllib.request.urlopen(uri)
        return urllib.request.urlopen(uri, timeout=self.timeout)

    def _open_uri(self, resource: Resource) -> TextIO:
        uri = resource.uri
        path = resource.relative_path
        if uri.startswith("file:"):
            local = urllib.request.url2pathname(urllib.parse.urlparse(uri).path)
            return open_local_file(local, resource.charset, display=uri)
        try:
            with self._urlopen(uri) as resp:
                status = getattr(resp, "status", None) or 200
                if status >= 400:
                    raise _status_error(status, uri, path)
                content_type = resp.headers.get("Content-Type") if resp.headers else None
                data = resp.read()
        except urllib.error.HTTPError as e:
            raise _status_error(e.code, uri, path, cause=e) from e
        except ResourceError:
            raise
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise access_error(f"Failed to read resource: {uri}", path=path, cause=e) from e
        charset = charset_from_content_type(content_type) or resource.charset
        logger.debug("fetched %s (%d bytes, charset=%s)", uri, len(data), charset)
        try:
            return io.StringIO(data.decode(charset), newline="")
        except (UnicodeDecodeError, LookupError) as e:
            raise access_error(f"Failed to decode resource: {uri}", path=path, cause=e) from e


def _status_error(status: int, uri: str, path: str, cause: Optional[BaseException] = None) -> ResourceError:
    if status == 404:
        return not_found(f"Resource not found: {uri}", path=path, cause=cause)
    if status in (401, 403):
        return access_denied(f"Access denied to resource: {uri}", path=path, cause=cause)
    return access_error(f"Failed to access resource: {uri}, HTTP status: {status}", path=path, cause=cause)


# ---------------------------------------------------------------------------
# 工厂
# ---------------------------------------------------------------------------

def of_string(data: Union[str, Mapping[str, str]], relative_path: str = "index",
              charset: str = DEFAULT_CHARSET) -> StringResourceSet:
    if isinstance(data, str):
        return StringResourceSet({relative_path: data}, charset)
    return StringResourceSet(data, charset)


def of_dir(root_dir: Union[str, Path], includes: Iterable[str] = (UNIVERSAL_PATTERN,),
           excludes: Iterable[str] = (), charset: str = DEFAULT_CHARSET) -> DirectoryResourceSet:
    return DirectoryResourceSet(root_dir, includes, excludes, charset)


def of_files(root_dir: Union[str, Path], file_specs: Iterable[Any],
             charset: str = DEFAULT_CHARSET) -> FileListResourceSet:
    return FileListResourceSet(root_dir, file_specs, charset)


def of_classpath(relative_paths: Iterable[str], entries: Optional[Sequence[Union[str, Path]]] = None,
                 charset: str = DEFAULT_CHARSET) -> ClasspathResourceSet:
    return ClasspathResourceSet(relative_paths, entries, charset)


def of_uri(root_uri: str, uri_specs: Optional[Iterable[Any]] = None,
           charset: str = DEFAULT_CHARSET, timeout: Optional[float] = None) -> UriResourceSet:
    """
    of_uri("http://h/a/b.tmpl")           -> 根为 "http://h/"，成员 "a/b.tmpl"
    of_uri("http://h/base", ["x", "y"])   -> 根为 "http://h/base/"
    成员可为相对路径或绝对 URI，但必须以根为前缀，否则报配置错误。
    """
    if uri_specs is None:
        parsed = urllib.parse.urlsplit(root_uri)
        root = urllib.parse.urlunsplit((parsed.scheme, parsed.netloc, "/", "", ""))
        return UriResourceSet(root, [root_uri[len(root):]] if root_uri.startswith(root) else [root_uri],
                              charset, timeout)
    root = _ensure_trailing_slash(root_uri)
    relative_paths: List[str] = []
    for spec in uri_specs:
        if spec is None:
            raise ConfigurationError("URI cannot be None")
        if not isinstance(spec, str):
            raise ConfigurationError(f"Unsupported URI spec type: {type(spec).__name__}")
        if not spec:
            raise ConfigurationError("URI cannot be empty")
        absolute = urllib.parse.urljoin(root, spec)
        if not absolute.startswith(root):
            raise ConfigurationError(f"URI {absolute} is not relative to root uri {root}", path=absolute)
        relative_paths.append(absolute[len(root):])
    return UriResourceSet(root, relative_paths, charset, timeout)


_SPEC_TYPES = ("string", "dir", "files", "classpath", "uri")


def resource_set_from_spec(spec: Mapping[str, Any], base_dir: Union[str, Path, None] = None) -> ResourceSet:
    """
    从声明式映射构建资源集，例如：
      {"type": "dir", "root": "templates", "includes": ["**/*.tmpl"], "excludes": ["draft/**"]}
      {"type": "files", "root": "templates", "files": ["a.tmpl"]}
      {"type": "string", "templates": {"Foo.java.tmpl": "..."}}
      {"type": "classpath", "paths": ["pkg/a.tmpl"], "entries": ["lib/templates.zip"]}
      {"type": "uri", "root": "https://example.com/t/", "uris": ["a.tmpl"]}
    """
    if not isinstance(spec, Mapping):
        raise ConfigurationError(f"Resource spec must be a mapping, got {type(spec).__name__}")
    typ = str(spec.get("type", "")).strip().lower()
    charset = spec.get("charset", DEFAULT_CHARSET)
    base = Path(base_dir) if base_dir is not None else Path.cwd()

    def _root() -> Path:
        root = spec.get("root")
        if not root:
            raise ConfigurationError(f"Resource spec of type '{typ}' requires 'root'")
        p = Path(root)
        return p if p.is_absolute() else base / p

    if typ == "string":
        templates = spec.get("templates")
        if not isinstance(templates, Mapping):
            raise ConfigurationError("Resource spec of type 'string' requires a 'templates' mapping")
        return of_string(dict(templates), charset=charset)
    if typ == "dir":
        return of_dir(_root(), spec.get("includes") or (UNIVERSAL_PATTERN,), spec.get("excludes") or (), charset)
    if typ == "files":
        return of_files(_root(), list(spec.get("files") or []), charset)
    if typ == "classpath":
        entries = spec.get("entries")
        if entries is not None:
            entries = [e if Path(e).is_absolute() else base / e for e in entries]
        return of_classpath(list(spec.get("paths") or []), entries, charset)
    if typ == "uri":
        root = spec.get("root")
        if not root:
            raise ConfigurationError("Resource spec of type 'uri' requires 'root'")
        return of_uri(str(root), list(spec.get("uris") or []), charset, spec.get("timeout"))
    raise ConfigurationError(
        f"Unsupported resource spec type: {typ or '<missing>'} (expected one of {', '.join(_SPEC_TYPES)})"
    )
