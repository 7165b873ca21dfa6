from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from ..core.comment_style import OutputCommentStyle
from ..core.errors import ConfigurationError
from ..core.generator import DEFAULT_CHARSET, DEFAULT_TASK_NAME, GenerationConfig, ProjectInfo
from ..core.resources import resource_set_from_spec
from ..core.templates import TemplateLanguage

_KNOWN_KEYS = {
    "source", "output_dir", "template_suffix", "charset", "header", "footer",
    "comment_styles", "model", "language", "comment_prefix", "task_name", "project",
}


def load_data(path: str | Path) -> Any:
    """按扩展名读取 JSON 或 YAML 文件。"""
    if not os.path.isfile(path):
        raise ConfigurationError(f"Config should be a file, got: {path}", path=str(path))
    suffix = Path(path).suffix.lower()
    try:
        with open(path, "r", encoding="utf-8") as fr:
            if suffix in (".yaml", ".yml"):
                return yaml.safe_load(fr)
            return json.load(fr)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot parse {path}: {e}", path=str(path), cause=e) from e


def load_mapping(path: str | Path) -> Dict[str, Any]:
    data = load_data(path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Top level of {path} must be a mapping", path=str(path))
    return data


def _optional_str(raw: Mapping[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def build_config(raw: Mapping[str, Any], *, base_dir: str | Path,
                 extra_model: Optional[Mapping[str, Any]] = None,
                 output_dir: str | Path | None = None) -> GenerationConfig:
    """
    把任务配置映射转换为 GenerationConfig。
    相对路径（source.root / output_dir）以配置文件所在目录为基准。
    """
    unknown = set(raw) - _KNOWN_KEYS
    if unknown:
        raise ConfigurationError(f"Unknown config keys: {sorted(unknown)}")
    base = Path(base_dir)

    if "source" not in raw:
        raise ConfigurationError("Config requires a 'source' resource spec")
    resource_set = resource_set_from_spec(raw["source"], base)

    out = output_dir if output_dir is not None else raw.get("output_dir")
    if not out:
        raise ConfigurationError("Config requires 'output_dir' (or pass --out)")
    out_path = Path(out)
    if not out_path.is_absolute() and output_dir is None:
        out_path = base / out_path

    language = TemplateLanguage.of_id(str(raw.get("language", TemplateLanguage.SIMPLE.id)))
    processor = language.processor(comment_prefix=_optional_str(raw, "comment_prefix"))

    comment_styles = raw.get("comment_styles") or {}
    if not isinstance(comment_styles, dict):
        raise ConfigurationError("'comment_styles' must be a mapping of extension -> style name")
    # 提前校验风格名，避免运行到一半才失败
    styles = {str(ext).lower().lstrip("."): OutputCommentStyle.of_name(name)
              for ext, name in comment_styles.items()}

    model = raw.get("model") or {}
    if not isinstance(model, dict):
        raise ConfigurationError("'model' must be a mapping")
    model = {**model, **dict(extra_model or {})}

    project_raw = raw.get("project") or {}
    if not isinstance(project_raw, dict):
        raise ConfigurationError("'project' must be a mapping")
    project = ProjectInfo(
        name=project_raw.get("name"),
        group=project_raw.get("group"),
        version=None if project_raw.get("version") is None else str(project_raw.get("version")),
    )

    return GenerationConfig(
        resource_set=resource_set,
        output_dir=out_path,
        template_suffix=_optional_str(raw, "template_suffix"),
        charset=_optional_str(raw, "charset") or DEFAULT_CHARSET,
        header=_optional_str(raw, "header"),
        footer=_optional_str(raw, "footer"),
        comment_styles=styles,
        model=model,
        processor=processor,
        task_name=_optional_str(raw, "task_name") or DEFAULT_TASK_NAME,
        project=project,
    )


def load_config(config_path: str | Path, vars_path: str | Path | None = None,
                output_dir: str | Path | None = None) -> GenerationConfig:
    raw = load_mapping(config_path)
    extra = load_mapping(vars_path) if vars_path else None
    return build_config(raw, base_dir=Path(config_path).absolute().parent,
                        extra_model=extra, output_dir=output_dir)
