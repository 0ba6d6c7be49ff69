import pytest
import tempfile
import os
import sys
import logging

from codestruct import ScanConfiguration

# Configure logging for tests - Windows safe
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


def create_file_with_content(
    directory: str, filename: str, content: str, encoding: str = "utf-8"
):
    """Helper to create files with specific content and encoding - Windows safe"""
    filepath = os.path.join(directory, filename.replace("/", os.sep))
    os.makedirs(os.path.dirname(filepath), exist_ok=True)

    if encoding == "binary":
        with open(filepath, "wb") as f:
            f.write(content.encode("utf-8", errors="ignore"))
    else:
        with open(filepath, "w", encoding=encoding, newline="") as f:
            f.write(content)

    return filepath


def build_tree(root: str, structure: dict):
    """Create every 'relative/path': content pair of *structure* under *root*."""
    for path, content in structure.items():
        create_file_with_content(root, path, content)
    return root


@pytest.fixture
def temp_project_dir():
    """Create a temporary directory for individual test projects"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def scan_config():
    """Allow py/js sources, ignore node_modules"""
    return ScanConfiguration.from_lists(["py", "js"], ["node_modules"])


@pytest.fixture
def mixed_project():
    """
    Small tree with one ignored directory and one disallowed file.

    root/
    ├── a.py
    ├── b.txt
    ├── sub/
    │   └── c.js
    └── node_modules/
        └── d.js
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        build_tree(
            tmpdir,
            {
                "a.py": "print('a')\n",
                "b.txt": "plain text\n",
                "sub/c.js": "const c = 1; // trailing\n",
                "node_modules/d.js": "module.exports = 'd';\n",
            },
        )
        yield tmpdir


@pytest.fixture
def layered_project():
    """Three levels of directories with files at every level"""
    with tempfile.TemporaryDirectory() as tmpdir:
        build_tree(
            tmpdir,
            {
                "main.py": "import app\n",
                "setup.py": "from setuptools import setup\nsetup(name='demo')\n",
                "app/__init__.py": "",
                "app/core.py": "def run():\n    return 1\n",
                "app/api/routes.js": "/* routes */\nexport const routes = [];\n",
                "docs/readme.txt": "not a source file\n",
                "lib/util.js": "export function util() { return 'u'; }\n",
                "lib/vendor/extra.js": "// vendored\nvar x = 1;\n",
                "node_modules/pkg/index.js": "module.exports = {};\n",
            },
        )
        os.makedirs(os.path.join(tmpdir, "empty"))
        yield tmpdir


# Windows-compatible test markers
def pytest_configure(config):
    config.addinivalue_line("markers", "critical: marks tests as critical (must pass)")
    config.addinivalue_line(
        "markers", "important: marks tests as important (should pass)"
    )
    config.addinivalue_line(
        "markers", "performance: marks tests as performance-related"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow running")
    config.addinivalue_line("markers", "skip_on_windows: skip test on Windows")


def pytest_runtest_setup(item):
    """Skip certain tests on Windows"""
    if "skip_on_windows" in [marker.name for marker in item.iter_markers()]:
        if sys.platform.startswith("win"):
            pytest.skip("Skipped on Windows")
