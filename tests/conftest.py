from pathlib import Path

import pytest


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as fw:
        fw.write(text)
    return path


@pytest.fixture
def template_tree(tmp_path: Path) -> Path:
    """
    templates/
      a.tmpl
      draft/b.tmpl
      c.txt
      pkg/Foo.java.tmpl
    """
    root = tmp_path / "templates"
    write(root / "a.tmpl", "# note\nHello ${name}!\n")
    write(root / "draft" / "b.tmpl", "draft ${name}\n")
    write(root / "c.txt", "plain\n")
    write(root / "pkg" / "Foo.java.tmpl", "package pkg;\n\npublic class Foo { /* ${name} */ }\n")
    return root
