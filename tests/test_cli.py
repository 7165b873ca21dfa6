import json
import os

import pytest
from click.testing import CliRunner

from conftest import write
from srcforge.cli.main import main


@pytest.fixture
def project(template_tree):
    root = template_tree.parent
    write(root / "srcforge.json", json.dumps({
        "source": {"type": "dir", "root": "templates", "includes": ["**/*.tmpl"], "excludes": ["draft/**"]},
        "output_dir": "out",
        "model": {"name": "World"},
    }))
    return root


def invoke(*args):
    return CliRunner().invoke(main, list(args))


def test_generate_writes_files(project):
    result = invoke("generate", "--config", str(project / "srcforge.json"))
    assert result.exit_code == 0, result.output
    assert "Summary: generated=2" in result.output
    assert (project / "out" / "pkg" / "Foo.java").is_file()
    assert (project / "out" / "a").read_text(encoding="utf-8").strip() == "Hello World!"


def test_generate_with_changes_file(project):
    write(project / "changes.json", json.dumps([{"file": "templates/a.tmpl", "change_type": "modified"}]))
    result = invoke("generate", "--config", str(project / "srcforge.json"),
                    "--changes", str(project / "changes.json"), "--quiet")
    assert result.exit_code == 0, result.output
    assert "[file]" not in result.output
    assert "generated=1, up-to-date=1" in result.output
    assert (project / "out" / "a").exists()
    assert not (project / "out" / "pkg").exists()


def test_list_json(project):
    result = invoke("list", "--config", str(project / "srcforge.json"), "--format", "json")
    assert result.exit_code == 0, result.output
    rows = json.loads(result.stdout)
    assert sorted(r["path"] for r in rows) == ["a.tmpl", "pkg/Foo.java.tmpl"]
    assert all(r["uri"].startswith("file:") for r in rows)


def test_inputs_json(project):
    result = invoke("inputs", "--config", str(project / "srcforge.json"), "--format", "json")
    assert result.exit_code == 0, result.output
    info = json.loads(result.stdout)
    assert info["fully_trackable"] is True
    assert info["root_uri"].endswith("/templates/")
    assert len(info["source_files"]) == 2


def test_styles_lists_table():
    result = invoke("styles")
    assert result.exit_code == 0
    assert any(line.startswith("JAVA") and "java" in line for line in result.output.splitlines())


def test_render_single_template(template_tree, tmp_path):
    vars_path = write(tmp_path / "vars.yaml", "name: CLI\n")
    result = invoke("render", "--template", str(template_tree / "a.tmpl"), "--vars", str(vars_path))
    assert result.exit_code == 0, result.output
    assert result.output == f"Hello CLI!{os.linesep}"


def test_configuration_error_exit_code(tmp_path):
    config = write(tmp_path / "bad.json", json.dumps({"source": {"type": "nope"}, "output_dir": "out"}))
    result = invoke("generate", "--config", str(config))
    assert result.exit_code == 2
    assert "Unsupported resource spec type" in result.output


def test_resource_error_exit_code(template_tree, tmp_path):
    config = write(tmp_path / "missing.json", json.dumps({
        "source": {"type": "files", "root": str(template_tree), "files": ["nope.tmpl"]},
        "output_dir": "out",
    }))
    result = invoke("generate", "--config", str(config))
    assert result.exit_code == 1
