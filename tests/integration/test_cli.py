"""
Integration tests for the auikit CLI.

Each test imports a small registry module written to a temporary
directory, referenced as demo_tools:registry.
"""

import json
import sys
import textwrap
from pathlib import Path

import pytest
from typer.testing import CliRunner

from auikit.cli import app, load_registry


runner = CliRunner()

REGISTRY_MODULE = textwrap.dedent(
    """
    from pydantic import BaseModel

    from auikit import CapabilityRegistry

    registry = CapabilityRegistry()


    class EchoInput(BaseModel):
        message: str


    def explode(input, ctx):
        raise RuntimeError("handler exploded")


    registry.capability("echo").input(EchoInput).execute(
        lambda input, ctx: input.message
    ).describe("Echo a message").tag("demo", "text").category("server").build()

    registry.capability("where").execute(lambda input, ctx: "server").client_execute(
        lambda input, ctx: "client"
    ).tag("demo").build()

    registry.capability("explode").execute(explode).build()

    not_a_registry = 42
    """
)

REGISTRY = "demo_tools:registry"


@pytest.fixture(autouse=True)
def demo_tools(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Write the demo registry module and make it importable."""
    (tmp_path / "demo_tools.py").write_text(REGISTRY_MODULE)
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.delitem(sys.modules, "demo_tools", raising=False)
    return tmp_path


class TestLoadRegistry:
    """Tests for module:attribute references."""

    def test_loads_registry(self) -> None:
        assert load_registry(REGISTRY).names() == ["echo", "where", "explode"]

    @pytest.mark.parametrize(
        "reference",
        ["demo_tools", "demo_tools:", ":registry", "missing_module_xyz:registry", "demo_tools:not_a_registry"],
    )
    def test_bad_references(self, reference: str) -> None:
        result = runner.invoke(app, ["list", "--registry", reference])
        assert result.exit_code == 2


class TestVersion:
    """Tests for --version."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "auikit" in result.stdout
        assert "0.1.0" in result.stdout

    def test_verbose_flag(self) -> None:
        result = runner.invoke(app, ["--verbose", "list", "--registry", REGISTRY, "--json"])
        assert result.exit_code == 0


class TestList:
    """Tests for the list command."""

    def test_list_table(self) -> None:
        result = runner.invoke(app, ["list", "--registry", REGISTRY])
        assert result.exit_code == 0
        assert "echo" in result.stdout
        assert "where" in result.stdout

    def test_list_json(self) -> None:
        result = runner.invoke(app, ["list", "--registry", REGISTRY, "--json"])
        assert result.exit_code == 0

        data = json.loads(result.stdout)
        assert [item["name"] for item in data] == ["echo", "where", "explode"]
        assert data[0]["hasInput"] is True
        assert data[1]["hasClientExecute"] is True

    def test_list_by_tags(self) -> None:
        result = runner.invoke(app, ["list", "--registry", REGISTRY, "--tag", "demo", "--tag", "text", "--json"])
        assert result.exit_code == 0
        assert [item["name"] for item in json.loads(result.stdout)] == ["echo"]

    def test_list_no_match(self) -> None:
        result = runner.invoke(app, ["list", "--registry", REGISTRY, "--tag", "nothing"])
        assert result.exit_code == 0
        assert "No capabilities found" in result.stdout

    def test_list_by_category(self) -> None:
        result = runner.invoke(app, ["list", "--registry", REGISTRY, "--category", "server", "--json"])
        assert result.exit_code == 0
        assert [item["name"] for item in json.loads(result.stdout)] == ["echo"]

    def test_list_table_shows_category(self) -> None:
        result = runner.invoke(app, ["list", "--registry", REGISTRY, "--category", "custom"])
        assert result.exit_code == 0
        assert "custom" in result.stdout
        assert "echo" not in result.stdout


class TestDescribe:
    """Tests for the describe command."""

    def test_describe_json(self) -> None:
        result = runner.invoke(app, ["describe", "echo", "--registry", REGISTRY, "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {
            "name": "echo",
            "description": "Echo a message",
            "tags": ["demo", "text"],
            "hasInput": True,
            "hasExecute": True,
            "hasClientExecute": False,
            "hasRender": False,
            "hasMiddleware": False,
        }

    def test_describe_text(self) -> None:
        result = runner.invoke(app, ["describe", "echo", "--registry", REGISTRY])
        assert result.exit_code == 0
        assert "Echo a message" in result.stdout

    def test_describe_missing(self) -> None:
        result = runner.invoke(app, ["describe", "missing", "--registry", REGISTRY, "--json"])
        assert result.exit_code == 1

        data = json.loads(result.stdout)
        assert data["error"] is True
        assert data["error_type"] == "CapabilityNotFoundError"
        assert data["code"] == 3001


class TestSchemaAndSearch:
    """Tests for the schema and search commands."""

    def test_schema(self) -> None:
        result = runner.invoke(app, ["schema", "--registry", REGISTRY])
        assert result.exit_code == 0

        data = json.loads(result.stdout)
        assert data["echo"]["inputSchema"]["required"] == ["message"]
        assert data["where"]["inputSchema"] is None
        assert data["echo"]["category"] == "server"

    def test_search(self) -> None:
        result = runner.invoke(app, ["search", "echo", "--registry", REGISTRY])
        assert result.exit_code == 0
        assert "echo" in result.stdout

    def test_search_no_match(self) -> None:
        result = runner.invoke(app, ["search", "zzz", "--registry", REGISTRY])
        assert result.exit_code == 0
        assert "No capabilities match" in result.stdout


class TestRun:
    """Tests for the run command."""

    def test_run_json(self) -> None:
        result = runner.invoke(
            app, ["run", "echo", "--input", '{"message": "hi"}', "--registry", REGISTRY, "--json"]
        )
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"name": "echo", "result": "hi"}

    def test_run_text(self) -> None:
        result = runner.invoke(app, ["run", "echo", "-i", '{"message": "hi"}', "-r", REGISTRY])
        assert result.exit_code == 0
        assert "echo" in result.stdout
        assert "hi" in result.stdout

    def test_run_untrusted(self) -> None:
        trusted = runner.invoke(app, ["run", "where", "--registry", REGISTRY, "--json"])
        untrusted = runner.invoke(app, ["run", "where", "--registry", REGISTRY, "--untrusted", "--json"])

        assert json.loads(trusted.stdout)["result"] == "server"
        assert json.loads(untrusted.stdout)["result"] == "client"

    def test_run_with_config(self, demo_tools: Path) -> None:
        config = demo_tools / "auikit.yaml"
        config.write_text("origin: untrusted\n")

        result = runner.invoke(app, ["run", "where", "--registry", REGISTRY, "--config", str(config), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["result"] == "client"

    def test_run_invalid_input(self) -> None:
        result = runner.invoke(app, ["run", "echo", "--input", '{"message": 5}', "--registry", REGISTRY, "--json"])
        assert result.exit_code == 1

        data = json.loads(result.stdout)
        assert data["error_type"] == "ValidationError"
        assert data["context"]["issues"][0]["loc"] == ["message"]

    def test_run_malformed_json(self) -> None:
        result = runner.invoke(app, ["run", "echo", "--input", "{not json", "--registry", REGISTRY])
        assert result.exit_code == 2

    def test_run_missing_capability(self) -> None:
        result = runner.invoke(app, ["run", "missing", "--registry", REGISTRY, "--json"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error_type"] == "CapabilityNotFoundError"

    def test_run_handler_failure(self) -> None:
        result = runner.invoke(app, ["run", "explode", "--registry", REGISTRY, "--json"])
        assert result.exit_code == 1

        data = json.loads(result.stdout)
        assert data == {"error": True, "error_type": "RuntimeError", "message": "handler exploded"}
