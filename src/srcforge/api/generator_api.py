from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List

from .config_api import load_config, load_data
from ..core.errors import ConfigurationError
from ..core.generator import GenerationReport, Generator
from ..core.resources import Resource
from ..core.tracking import load_changes


def make_generator(
    config_path: str | Path,
    vars_path: str | Path | None = None,
    output_dir: str | Path | None = None,
) -> Generator:
    return Generator(load_config(config_path, vars_path, output_dir))


def generate(
    config_path: str | Path,
    vars_path: str | Path | None = None,
    output_dir: str | Path | None = None,
) -> GenerationReport:
    return make_generator(config_path, vars_path, output_dir).generate()


def generate_changed(
    config_path: str | Path,
    changes_path: str | Path,
    vars_path: str | Path | None = None,
    output_dir: str | Path | None = None,
) -> GenerationReport:
    records = load_data(changes_path)
    if not isinstance(records, list):
        raise ConfigurationError(f"Changes file must contain a list: {changes_path}", path=str(changes_path))
    # 相对路径以变更文件所在目录为基准
    base = Path(changes_path).absolute().parent
    changes = [c if c.file.is_absolute() else replace(c, file=base / c.file) for c in load_changes(records)]
    return make_generator(config_path, vars_path, output_dir).generate_changed(changes)


def list_resources(config_path: str | Path) -> List[Resource]:
    return list(make_generator(config_path).config.resource_set)


def describe_inputs(config_path: str | Path) -> Dict[str, Any]:
    gen = make_generator(config_path)
    info = gen.config.resource_set.build_support.describe()
    info["root_uri"] = gen.config.resource_set.root_uri
    return info
