"""Tests for the command line interface."""

import json
from pathlib import Path
import tempfile
import textwrap

import cli


APP_COMPONENT = """\
    @Component
    public interface AppComponent {
        Logger logger();
    }
    """

LOGGER = """\
    public class Logger {
        @Inject public Logger() {}
    }
    """


def _project(root: Path, gradle: bool = True, sources=None) -> None:
    if gradle:
        (root / "settings.gradle.kts").write_text('rootProject.name = "demo"\n', encoding="utf-8")
    if sources is None:
        sources = {"src/AppComponent.java": APP_COMPONENT, "src/Logger.java": LOGGER}
    for relative, text in sources.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text), encoding="utf-8")


class TestCLI:
    """Tests for cli.main."""

    def test_writes_bubble_chart_by_default(self):
        """Test the default chart and output location."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir) / "project"
            root.mkdir()
            _project(root)
            out = Path(tmpdir) / "out"

            assert cli.main([str(root), "-o", str(out)]) == 0

            page = (out / "dependency_bubble_graph.html").read_text(encoding="utf-8")
            assert "JSON_PLACEHOLDER" not in page
            assert '"AppComponent"' in page

    def test_json_to_stdout(self, capsys):
        """Test raw json output on stdout."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _project(root)

            assert cli.main([str(root), "-f", "json", "--stdout"]) == 0

            data = json.loads(capsys.readouterr().out)
            assert [c["id"] for c in data["components"]] == ["AppComponent"]
            assert data["edges"][0]["source"] == "Logger"

    def test_linked_chart_file_name(self):
        """Test the linked-nodes output file name."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir) / "project"
            root.mkdir()
            _project(root)
            out = Path(tmpdir) / "charts"

            assert cli.main([str(root), "-f", "linked", "-o", str(out)]) == 0
            assert (out / "dependency_linked_nodes_graph.html").is_file()

    def test_not_a_directory(self, capsys):
        """Test that a missing root exits with an error."""
        with tempfile.TemporaryDirectory() as tmpdir:
            assert cli.main([str(Path(tmpdir) / "missing")]) == 1
            assert "is not a directory" in capsys.readouterr().err

    def test_not_a_gradle_folder(self, capsys):
        """Test the Gradle project check and its override."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _project(root, gradle=False)

            assert cli.main([str(root), "--stdout"]) == 1
            assert "This is not a gradle folder" in capsys.readouterr().err
            assert cli.main([str(root), "--stdout", "--skip-gradle-check"]) == 0

    def test_no_components(self, capsys):
        """Test the message for a project without Dagger components."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _project(root, sources={"src/Plain.java": "public class Plain {}\n"})

            assert cli.main([str(root), "--stdout"]) == 1
            assert "Couldn't find any components" in capsys.readouterr().err

    def test_invalid_config(self, capsys):
        """Test that a bad config file is reported."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _project(root)
            (root / "daggermap.yaml").write_text("colour: blue\n", encoding="utf-8")

            assert cli.main([str(root), "--stdout"]) == 1
            assert "colour" in capsys.readouterr().err

    def test_include_ext_flag(self, capsys):
        """Test that --include-ext restricts the scanned files."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            _project(root)

            assert cli.main([str(root), "--stdout", "--include-ext", "kt"]) == 1
            assert "Couldn't find any components" in capsys.readouterr().err
