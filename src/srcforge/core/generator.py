# src/srcforge/core/generator.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .comment_style import OutputCommentStyle, style_for
from .naming import default_package_name
from .resources import Resource, ResourceSet
from .simple import DEFAULT_INSTANCE
from .templates import TemplateContext, TemplateProcessor
from .text_io import SequenceReader
from .tracking import FileChange

logger = logging.getLogger(__name__)

DEFAULT_CHARSET = "UTF-8"
DEFAULT_TASK_NAME = "generate"


@dataclass
class ProjectInfo:
    name: Optional[str] = None
    group: Optional[str] = None
    version: Optional[str] = None

    def to_model(self) -> Dict[str, Any]:
        model: Dict[str, Any] = {}
        if self.name is not None:
            model["project.name"] = self.name
        if self.group is not None:
            model["project.group"] = self.group
        if self.version is not None:
            model["project.version"] = self.version
        if self.name is not None and self.group is not None:
            model["project.package"] = default_package_name(self.group, self.name)
        return model


@dataclass
class GenerationConfig:
    resource_set: ResourceSet
    output_dir: Path
    template_suffix: Optional[str] = None  # None -> 处理器语言的默认后缀
    charset: str = DEFAULT_CHARSET
    header: Optional[str] = None
    footer: Optional[str] = None
    comment_styles: Mapping[str, Union[str, OutputCommentStyle]] = field(default_factory=dict)
    model: Mapping[str, Any] = field(default_factory=dict)
    options: Mapping[str, Any] = field(default_factory=dict)
    processor: TemplateProcessor = DEFAULT_INSTANCE
    task_name: str = DEFAULT_TASK_NAME
    project: ProjectInfo = field(default_factory=ProjectInfo)

    @property
    def suffix(self) -> str:
        s = self.template_suffix or self.processor.language().default_suffix
        return s.lstrip(".")


@dataclass
class GenerationReport:
    generated: List[Path] = field(default_factory=list)
    skipped: int = 0

    def __len__(self) -> int:
        return len(self.generated)


def output_relative_path(relative_path: str, suffix: str) -> str:
    """去掉模板后缀：('pkg/Foo.java.tmpl', 'tmpl') -> 'pkg/Foo.java'。"""
    ending = "." + suffix.lstrip(".")
    if suffix and relative_path.endswith(ending):
        return relative_path[: -len(ending)]
    return relative_path


def output_path_for(output_dir: Path, relative_path: str, suffix: str) -> Path:
    return Path(output_dir) / PurePosixPath(output_relative_path(relative_path, suffix))


def _extension_of(path: Path) -> str:
    return path.suffix[1:].lower() if path.suffix else ""


class Generator:
    """
    对资源集中的每个模板：构建上下文 -> 包上页眉/页脚注释 -> 交给处理器 -> 写出文件。
    顺序执行；任何错误都会中止整次运行。
    """

    def __init__(self, config: GenerationConfig):
        self.config = config
        self.default_context = TemplateContext(
            model={**config.project.to_model(), **dict(config.model)},
            options={"charset": config.charset, **dict(config.options)},
        )

    @property
    def processor(self) -> TemplateProcessor:
        return self.config.processor

    def build_context(self, relative_path: str, now: Optional[datetime] = None) -> TemplateContext:
        now = now or datetime.now(timezone.utc)
        metadata = {
            "templates.filename": relative_path,
            "templates.generate.time": now.astimezone(timezone.utc),
            "templates.generate.localtime": now.astimezone(),
            "templates.task.name": self.config.task_name,
            "templates.language": self.processor.language().id,
        }
        # 任务级 model 覆盖元数据
        return TemplateContext(
            model={**metadata, **self.default_context.model},
            options=self.default_context.options,
        )

    def output_path(self, resource: Resource) -> Path:
        return output_path_for(self.config.output_dir, resource.relative_path, self.config.suffix)

    def comment_style(self, output_file: Path) -> OutputCommentStyle:
        ext = _extension_of(output_file)
        if not ext:
            return OutputCommentStyle.NONE
        return style_for(ext, self.config.comment_styles)

    def _banners(self, context: TemplateContext, output_file: Path) -> tuple[str, str]:
        header = self.processor.process_string(context, self.config.header) if self.config.header else ""
        footer = self.processor.process_string(context, self.config.footer) if self.config.footer else ""
        if not header and not footer:
            return "", ""
        style = self.comment_style(output_file)
        return (
            style.create_comment_block(header) if header else "",
            style.create_comment_block(footer) if footer else "",
        )

    def generate_resource(self, resource: Resource, now: Optional[datetime] = None) -> Path:
        output_file = self.output_path(resource)
        context = self.build_context(resource.relative_path, now)
        header, footer = self._banners(context, output_file)

        with resource.open_reader() as origin:
            reader = SequenceReader.wrap(origin, header, footer)
            output_file.parent.mkdir(parents=True, exist_ok=True)
            try:
                # newline="" 保证处理器写出的行分隔符不再被翻译
                with open(output_file, "w", encoding=self.config.charset, newline="") as out:
                    self.processor.process(context, reader, out)
            except BaseException:
                # 不留下写了一半的文件
                output_file.unlink(missing_ok=True)
                raise
        logger.debug("generated %s -> %s", resource.relative_path, output_file)
        return output_file

    def check_comment_styles(self, resources: Iterable[Resource]) -> None:
        """有页眉/页脚时，先确认每个输出扩展名都有注释风格，再开始写文件。"""
        if not self.config.header and not self.config.footer:
            return
        for resource in resources:
            self.comment_style(self.output_path(resource))

    def _run(self, resources: Iterable[Resource]) -> GenerationReport:
        resources = list(resources)
        self.check_comment_styles(resources)
        report = GenerationReport()
        now = datetime.now(timezone.utc)
        for resource in resources:
            report.generated.append(self.generate_resource(resource, now))
        return report

    def generate(self) -> GenerationReport:
        report = self._run(self.config.resource_set)
        logger.info("%s: generated %d file(s) into %s",
                    self.config.task_name, len(report), self.config.output_dir)
        return report

    def generate_changed(self, changes: Iterable[FileChange]) -> GenerationReport:
        changes = list(changes)
        support = self.config.resource_set.build_support
        if not support.fully_trackable:
            logger.warning("%s: resource set %r contains non-physical resources; "
                           "they are regenerated on every change",
                           self.config.task_name, self.config.resource_set)
        report = self._run(support.changed_resources(changes))
        report.skipped = max(0, sum(1 for _ in self.config.resource_set) - len(report))
        logger.info("%s: regenerated %d changed file(s), %d up to date",
                    self.config.task_name, len(report), report.skipped)
        return report
