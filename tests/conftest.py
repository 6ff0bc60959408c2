from __future__ import annotations

import os
import subprocess
import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


GREET_MODULE = textwrap.dedent(
    """
    function greet(name) {
      const message = 'Hello, ' + name;
      console.log(message);
      return message;
    }
    """
).lstrip()

SEARCH_MODULE = textwrap.dedent(
    """
    function SearchBox(e) {
      const [s, l] = (0, o.useState)('');
      return (0, n.jsx)(h.jU, {
        value: s,
        onChange: (e) => l(e.target.value),
        placeholder: 'Experiment name',
      });
    }
    function Toolbar(e) {
      const title = e.title || 'Experiments';
      return (0, n.jsx)('div', { children: title });
    }
    """
).lstrip()

# The source build called the input component ``k.p``; nothing in the hunk says what it is now.
SEARCH_PATCH = textwrap.dedent(
    """
    diff --git a/app/search.js b/app/search.js
    --- a/app/search.js
    +++ b/app/search.js
    @@ -9,3 +9,4 @@
     function Toolbar(e) {
       const title = e.title || 'Experiments';
    +  const search = (0, n.jsx)(k.p, { name: 'experimentSearch' });
       return (0, n.jsx)('div', { children: title });
    """
).lstrip()

SEARCH_RULE = {
    "name": "experiment-search-input",
    "trigger": "name: 'experimentSearch'",
    "placeholder": "k.p",
    "anchor": "placeholder: 'Experiment name'",
    "capture": "jsx-component",
    "lookback": 4,
}


@dataclass(slots=True)
class TargetTree:
    """Synthetic extracted build used as the patch target."""

    root: Path

    def write(self, relative: str, content: str) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def read(self, relative: str) -> str:
        return (self.root / relative).read_text(encoding="utf-8")

    def run_cli(self, *args: str, cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
        """Invoke ``python -m adpatch.cli`` with the provided arguments."""

        env = os.environ.copy()
        pythonpath = str(SRC)
        if env.get("PYTHONPATH"):
            pythonpath = os.pathsep.join([pythonpath, env["PYTHONPATH"]])
        env["PYTHONPATH"] = pythonpath

        command = [sys.executable, "-m", "adpatch.cli", *args]
        return subprocess.run(  # noqa: S603 - command constructed from known values
            command,
            cwd=cwd or self.root.parent,
            env=env,
            capture_output=True,
            text=True,
            check=False,
        )


@pytest.fixture()
def target_tree(tmp_path: Path) -> TargetTree:
    """Create an extracted build with one small module under ``app/``."""

    root = tmp_path / "build"
    root.mkdir()
    tree = TargetTree(root=root)
    tree.write("app/main.js", GREET_MODULE)
    return tree
