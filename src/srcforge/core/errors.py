# src/srcforge/core/errors.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    ACCESS_ERROR = "access_error"
    CONFIGURATION_ERROR = "configuration_error"


class ResourceError(Exception):
    """
    资源访问与配置错误的统一类型。
    kind 区分错误类别，cause 保留原始异常（同时通过 raise ... from 链接）。
    """

    def __init__(self, kind: ErrorKind, message: str, *, path: Optional[str] = None,
                 cause: Optional[BaseException] = None):
        self.kind = kind
        self.message = message
        self.path = path
        self.cause = cause
        super().__init__(f"[{kind.value}] {message}")

    @property
    def is_not_found(self) -> bool:
        return self.kind is ErrorKind.NOT_FOUND

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.path is not None:
            out["path"] = self.path
        if self.cause is not None:
            out["cause"] = repr(self.cause)
        return out


class ConfigurationError(ResourceError, ValueError):
    """静态配置错误：在构造资源集/处理器时即抛出，先于任何 I/O。"""

    def __init__(self, message: str, *, path: Optional[str] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(ErrorKind.CONFIGURATION_ERROR, message, path=path, cause=cause)


def not_found(message: str, *, path: Optional[str] = None,
              cause: Optional[BaseException] = None) -> ResourceError:
    return ResourceError(ErrorKind.NOT_FOUND, message, path=path, cause=cause)


def access_denied(message: str, *, path: Optional[str] = None,
                  cause: Optional[BaseException] = None) -> ResourceError:
    return ResourceError(ErrorKind.ACCESS_DENIED, message, path=path, cause=cause)


def access_error(message: str, *, path: Optional[str] = None,
                 cause: Optional[BaseException] = None) -> ResourceError:
    return ResourceError(ErrorKind.ACCESS_ERROR, message, path=path, cause=cause)
