import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from srcforge.core.errors import ConfigurationError, ErrorKind, ResourceError
from srcforge.core.generator import (
    GenerationConfig,
    Generator,
    ProjectInfo,
    output_path_for,
    output_relative_path,
)
from srcforge.core.resources import of_dir, of_files, of_string
from srcforge.core.simple import SimpleTemplateProcessor
from srcforge.core.tracking import ChangeType, FileChange

NL = os.linesep


def read(path: Path) -> str:
    with open(path, "r", encoding="utf-8", newline="") as fr:
        return fr.read()


def test_output_relative_path_strips_template_suffix():
    assert output_relative_path("pkg/Foo.java.tmpl", "tmpl") == "pkg/Foo.java"
    assert output_relative_path("pkg/Foo.java.tmpl", ".tmpl") == "pkg/Foo.java"
    assert output_relative_path("README", "tmpl") == "README"
    assert output_relative_path("notes.tmplx", "tmpl") == "notes.tmplx"
    assert output_path_for(Path("/out"), "pkg/Foo.java.tmpl", "tmpl") == Path("/out/pkg/Foo.java")


def test_generate_directory_with_header(template_tree, tmp_path):
    out = tmp_path / "out"
    config = GenerationConfig(
        resource_set=of_dir(template_tree, ["**/*.tmpl"], ["draft/**"]),
        output_dir=out,
        header="Generated by ${templates.task.name}\n",
        model={"name": "World"},
    )
    report = Generator(config).generate()

    assert sorted(p.relative_to(out).as_posix() for p in report.generated) == ["a", "pkg/Foo.java"]
    assert read(out / "pkg" / "Foo.java") == (
        f"// Generated by generate{NL}package pkg;{NL}{NL}public class Foo {{ /* World */ }}{NL}"
    )
    # 无扩展名 -> 不加注释，页眉原样
    assert read(out / "a") == f"Generated by generate{NL}Hello World!{NL}"


def test_header_and_footer_for_c_source(tmp_path):
    config = GenerationConfig(
        resource_set=of_string({"lib.c.tmpl": "int x;\n"}),
        output_dir=tmp_path,
        header="top",
        footer="line one\nline two\n",
    )
    Generator(config).generate()
    assert read(tmp_path / "lib.c") == f"/* top */{NL}int x;{NL}/*{NL} * line one{NL} * line two{NL} */{NL}"


def test_context_metadata_and_project_model(tmp_path):
    config = GenerationConfig(
        resource_set=of_string({}),
        output_dir=tmp_path,
        task_name="genSources",
        project=ProjectInfo(name="my-app", group="com.example", version="1.2"),
        model={"templates.language": "custom"},
    )
    now = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
    model = Generator(config).build_context("pkg/Foo.java.tmpl", now).model

    assert model["templates.filename"] == "pkg/Foo.java.tmpl"
    assert model["templates.task.name"] == "genSources"
    assert model["templates.generate.time"] == now
    assert model["templates.generate.localtime"] == now
    assert model["templates.language"] == "custom"
    assert model["project.name"] == "my-app"
    assert model["project.version"] == "1.2"
    assert model["project.package"] == "com.example.my_app"


def test_metadata_is_usable_in_templates(tmp_path):
    config = GenerationConfig(
        resource_set=of_string({"stamp.txt.tmpl": "${templates.filename} ${templates.generate.time:%Y}\n"}),
        output_dir=tmp_path,
    )
    Generator(config).generate()
    content = read(tmp_path / "stamp.txt")
    assert content.startswith("stamp.txt.tmpl 20")
    assert content.endswith(NL)


def test_unknown_extension_with_header_fails(tmp_path):
    config = GenerationConfig(
        resource_set=of_string({"x.zzz.tmpl": "body\n"}),
        output_dir=tmp_path,
        header="h",
    )
    with pytest.raises(ConfigurationError):
        Generator(config).generate()


def test_unknown_extension_without_banner_is_fine(tmp_path):
    config = GenerationConfig(resource_set=of_string({"x.zzz.tmpl": "body\n"}), output_dir=tmp_path)
    Generator(config).generate()
    assert read(tmp_path / "x.zzz") == f"body{NL}"


def test_comment_style_override(tmp_path):
    config = GenerationConfig(
        resource_set=of_string({"x.zzz.tmpl": "body\n"}),
        output_dir=tmp_path,
        header="h",
        comment_styles={"zzz": "sql"},
    )
    Generator(config).generate()
    assert read(tmp_path / "x.zzz") == f"-- h{NL}body{NL}"


def test_custom_suffix_and_processor(tmp_path):
    config = GenerationConfig(
        resource_set=of_string({"a.sql.in": "-- dropped\nselect ${n};\n"}),
        output_dir=tmp_path,
        template_suffix=".in",
        processor=SimpleTemplateProcessor.of("--"),
        model={"n": 1},
    )
    Generator(config).generate()
    assert read(tmp_path / "a.sql") == f"select 1;{NL}"


def test_missing_resource_aborts_run(template_tree, tmp_path):
    config = GenerationConfig(
        resource_set=of_files(template_tree, ["a.tmpl", "missing.tmpl"]),
        output_dir=tmp_path / "out",
        model={"name": "x"},
    )
    with pytest.raises(ResourceError) as exc:
        Generator(config).generate()
    assert exc.value.kind is ErrorKind.NOT_FOUND


def test_generate_changed_only_touches_changed_templates(template_tree, tmp_path):
    out = tmp_path / "out"
    config = GenerationConfig(
        resource_set=of_dir(template_tree, ["**/*.tmpl"]),
        output_dir=out,
        model={"name": "v2"},
    )
    report = Generator(config).generate_changed([
        FileChange(template_tree / "draft" / "b.tmpl", ChangeType.MODIFIED),
        FileChange(template_tree / "a.tmpl", ChangeType.REMOVED),
    ])
    assert report.generated == [out / "draft" / "b"]
    assert report.skipped == 2
    assert not (out / "a").exists()
    assert read(out / "draft" / "b") == f"draft v2{NL}"


def test_generate_changed_regenerates_everything_when_untrackable(tmp_path):
    config = GenerationConfig(
        resource_set=of_string({"a.txt.tmpl": "a\n", "b.txt.tmpl": "b\n"}),
        output_dir=tmp_path,
    )
    report = Generator(config).generate_changed([])
    assert len(report) == 2
    assert report.skipped == 0


def test_undecodable_template_is_access_error_without_partial_output(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.txt.tmpl").write_bytes(b"first line\ncaf\xe9\n")
    out = tmp_path / "out"
    config = GenerationConfig(resource_set=of_dir(src), output_dir=out)
    with pytest.raises(ResourceError) as exc:
        Generator(config).generate()
    assert exc.value.kind is ErrorKind.ACCESS_ERROR
    assert isinstance(exc.value.__cause__, UnicodeDecodeError)
    assert not (out / "a.txt").exists()


def test_unknown_extension_fails_before_any_output(tmp_path):
    config = GenerationConfig(
        resource_set=of_string({"A.java.tmpl": "class A {}\n", "B.weird.tmpl": "b\n"}),
        output_dir=tmp_path / "out",
        header="hdr",
    )
    with pytest.raises(ConfigurationError):
        Generator(config).generate()
    assert not (tmp_path / "out" / "A.java").exists()
