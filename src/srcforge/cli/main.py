import json
import logging
import sys
from pathlib import Path

import click

from ..api import generator_api
from ..api.config_api import load_mapping
from ..core.comment_style import DEFAULT_SUFFIX_MAP, OutputCommentStyle
from ..core.errors import ConfigurationError, ResourceError
from ..core.simple import SimpleTemplateProcessor
from ..core.templates import TemplateContext


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _fail(e: ResourceError) -> None:
    click.secho(f"Error: {e}", fg="red", err=True)
    if e.cause is not None:
        click.secho(f"  caused by: {e.cause!r}", fg="red", err=True)
    # 配置错误与运行时资源错误用不同的退出码
    raise SystemExit(2 if isinstance(e, ConfigurationError) else 1)


@click.group(help="Generate source files from template resources.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose):
    _setup_logging(verbose)


@main.command(help="Process every template of the configured resource set.")
@click.option("--config", "config_path", required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--vars", "vars_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Extra model variables (JSON/YAML), merged over the config model.")
@click.option("--out", "output_dir", default=None, type=click.Path(file_okay=False),
              help="Override output_dir from the config.")
@click.option("--changes", "changes_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Change list since the last run; only affected templates are regenerated.")
@click.option("--quiet", is_flag=True, help="Only print final summary.")
def generate(config_path, vars_path, output_dir, changes_path, quiet):
    try:
        if changes_path:
            report = generator_api.generate_changed(config_path, changes_path, vars_path, output_dir)
        else:
            report = generator_api.generate(config_path, vars_path, output_dir)
    except ResourceError as e:
        _fail(e)
        return
    if not quiet:
        for p in report.generated:
            click.echo(f"[file] {p}")
    summary = f"Summary: generated={len(report)}"
    if changes_path:
        summary += f", up-to-date={report.skipped}"
    click.secho(summary, fg="cyan")


@main.command("list", help="List template resources of the configured resource set.")
@click.option("--config", "config_path", required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--format", "fmt", type=click.Choice(["text", "json"]), default="text", show_default=True)
def list_(config_path, fmt):
    try:
        resources = generator_api.list_resources(config_path)
    except ResourceError as e:
        _fail(e)
        return
    if fmt == "json":
        rows = [{"path": r.relative_path, "uri": r.uri, "charset": r.charset} for r in resources]
        click.echo(json.dumps(rows, ensure_ascii=False, indent=2))
    else:
        for r in resources:
            click.echo(f"{r.relative_path}  ({r.uri})")


@main.command(help="Show incremental-build inputs: trackability and files to watch.")
@click.option("--config", "config_path", required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--format", "fmt", type=click.Choice(["text", "json"]), default="text", show_default=True)
def inputs(config_path, fmt):
    try:
        info = generator_api.describe_inputs(config_path)
    except ResourceError as e:
        _fail(e)
        return
    if fmt == "json":
        click.echo(json.dumps(info, ensure_ascii=False, indent=2))
        return
    click.secho(f"root: {info['root_uri']}", bold=True)
    trackable = info["fully_trackable"]
    click.secho(f"fully trackable: {'yes' if trackable else 'no'}", fg="green" if trackable else "yellow")
    for f in info["source_files"]:
        click.echo(f"[file] {f}")
    for f in info["source_classpath"]:
        click.echo(f"[cp  ] {f}")


@main.command(help="Print the output extension -> comment style table.")
def styles():
    by_style = {}
    for ext, style in sorted(DEFAULT_SUFFIX_MAP.items()):
        by_style.setdefault(style, []).append(ext)
    for style in OutputCommentStyle:
        if style in by_style:
            click.echo(f"{style.name:<12} {', '.join(by_style[style])}")


@main.command(help="Render a single template file with the simple processor to stdout.")
@click.option("--template", "template_path", required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--vars", "vars_path", default=None, type=click.Path(exists=True, dir_okay=False))
@click.option("--comment-prefix", default="#", show_default=True)
@click.option("--charset", default="UTF-8", show_default=True)
def render(template_path, vars_path, comment_prefix, charset):
    try:
        model = load_mapping(vars_path) if vars_path else {}
        processor = SimpleTemplateProcessor.of(comment_prefix)
        context = TemplateContext(model=model, options={"charset": charset})
        with open(Path(template_path), "r", encoding=charset, newline="") as fr:
            text = processor.process_reader(context, fr)
    except ResourceError as e:
        _fail(e)
        return
    click.echo(text, nl=False)


if __name__ == "__main__":
    main()
