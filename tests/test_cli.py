"""Tests for SceneCraft CLI commands."""

import json

import pytest
import yaml
from click.testing import CliRunner

from scenecraft.cli.main import cli


def _tag(name, attrs=None, nodes=None, line=1):
    return {
        "type": "Tag",
        "name": name,
        "attrs": [{"name": k, "val": v} for k, v in (attrs or {}).items()],
        "block": {"type": "Block", "nodes": nodes or []},
        "line": line,
    }


SCENE = {
    "name": "Greeting",
    "width": 640,
    "height": 360,
    "structure": {
        "type": "Block",
        "nodes": [
            _tag("text", {"id": "'title'", "text": "'Hello ' + name"}, line=1),
            _tag(
                "phase",
                {"name": "'intro'"},
                [_tag("override", {"component": "'title'", "opacity": "0"}, line=3)],
                line=2,
            ),
        ],
    },
}


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def scene_file(tmp_path):
    path = tmp_path / "greeting.yaml"
    path.write_text(yaml.dump(SCENE))
    return path


@pytest.fixture
def data_file(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(json.dumps({"name": "Ann"}))
    return path


def _write_block(tmp_path, *nodes):
    path = tmp_path / "block.json"
    path.write_text(json.dumps({"type": "Block", "nodes": list(nodes)}))
    return path


class TestCompileCommand:
    def test_prints_spec_tree(self, runner, scene_file):
        result = runner.invoke(cli, ["compile", str(scene_file)])

        assert result.exit_code == 0
        output = json.loads(result.output)
        assert output["root"]["children"] == [
            {"kind": "text", "id": "title", "text": {"$": "'Hello ' + name"}}
        ]
        assert output["phases"][0]["name"] == "intro"

    def test_unknown_tag_fails(self, runner, tmp_path):
        path = _write_block(tmp_path, _tag("circle", line=4))

        result = runner.invoke(cli, ["compile", str(path)])

        assert result.exit_code == 1
        assert "Unknown tag: circle" in result.output

    def test_schema_invalid_document_fails(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"type": "Block"}))

        result = runner.invoke(cli, ["compile", str(path)])

        assert result.exit_code == 1
        assert "Invalid template document" in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["compile", str(tmp_path / "nope.json")])

        assert result.exit_code != 0


class TestRenderCommand:
    def test_renders_one_scene_per_phase(self, runner, scene_file, data_file):
        result = runner.invoke(cli, ["render", str(scene_file), "--data", str(data_file)])

        assert result.exit_code == 0
        scenes = json.loads(result.output)
        assert len(scenes) == 1
        assert scenes[0]["name"] == "Greeting intro"
        assert scenes[0]["root"]["children"][0]["text"] == "Hello Ann"
        assert scenes[0]["effects"] == [{"type": "override", "component": "title", "opacity": 0}]

    def test_trace(self, runner, scene_file, data_file):
        result = runner.invoke(
            cli, ["render", str(scene_file), "--data", str(data_file), "--trace"]
        )

        assert result.exit_code == 0
        assert "'Hello ' + name -> 'Hello Ann'" in result.output

    def test_expression_error_fails(self, runner, tmp_path):
        path = _write_block(tmp_path, _tag("text", {"text": "items[0]"}, line=7))

        result = runner.invoke(cli, ["render", str(path)])

        assert result.exit_code == 1
        assert "7: " in result.output

    def test_data_must_be_mapping(self, runner, scene_file, tmp_path):
        data = tmp_path / "data.yaml"
        data.write_text("- 1\n- 2\n")

        result = runner.invoke(cli, ["render", str(scene_file), "--data", str(data)])

        assert result.exit_code == 1
        assert "must contain a mapping" in result.output

    def test_bad_environment_setting(self, runner, scene_file, monkeypatch):
        monkeypatch.setenv("SCENECRAFT_MAX_EXPRESSION_LENGTH", "lots")

        result = runner.invoke(cli, ["render", str(scene_file)])

        assert result.exit_code == 1
        assert "SCENECRAFT_MAX_EXPRESSION_LENGTH" in result.output


class TestValidateCommand:
    def test_valid_template(self, runner, scene_file):
        result = runner.invoke(cli, ["validate", str(scene_file)])

        assert result.exit_code == 0
        assert "Compiled 1 top-level component(s), phases: intro" in result.output
        assert "Template is valid." in result.output

    def test_schema_errors(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"type": "Block", "nodes": [{"type": "Tag"}]}))

        result = runner.invoke(cli, ["validate", str(path)])

        assert result.exit_code == 1
        assert "nodes[0]" in result.output
        assert "schema error(s) found" in result.output

    def test_compile_failure(self, runner, tmp_path):
        path = _write_block(tmp_path, {"type": "Mixin", "name": "card", "call": True, "line": 2})

        result = runner.invoke(cli, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Compilation failed" in result.output


class TestEvalCommand:
    @pytest.mark.parametrize(
        "expression,expected",
        [
            ("1 + 2", "3"),
            ("'a' + 1", '"a1"'),
            ("max(2, 5)", "5"),
            ("null ?? 'fallback'", '"fallback"'),
        ],
    )
    def test_prints_json(self, runner, expression, expected):
        result = runner.invoke(cli, ["eval", expression])

        assert result.exit_code == 0
        assert result.output.strip() == expected

    def test_uses_data_file(self, runner, data_file):
        result = runner.invoke(cli, ["eval", "name + '!'", "--data", str(data_file)])

        assert result.exit_code == 0
        assert result.output.strip() == '"Ann!"'

    def test_undefined(self, runner):
        result = runner.invoke(cli, ["eval", "missing.value"])

        assert result.exit_code == 0
        assert result.output.strip() == "undefined"

    def test_strict_members(self, runner):
        result = runner.invoke(cli, ["eval", "missing.value", "--strict-members"])

        assert result.exit_code == 1
        assert "[null_dereference]" in result.output

    @pytest.mark.parametrize(
        "expression,kind",
        [
            ("a[0]", "computed_member_not_allowed"),
            ("a.constructor", "forbidden_property"),
            ("eval('1')", "unknown_function"),
            ("1 +", "parse_error"),
        ],
    )
    def test_error_kinds(self, runner, expression, kind):
        result = runner.invoke(cli, ["eval", expression])

        assert result.exit_code == 1
        assert f"[{kind}]" in result.output


class TestFunctionsCommand:
    def test_lists_everything(self, runner):
        result = runner.invoke(cli, ["functions"])

        assert result.exit_code == 0
        assert "floor" in result.output
        assert "pi" in result.output
        assert "entries" in result.output

    def test_filter_by_kind(self, runner):
        result = runner.invoke(cli, ["functions", "--kind", "constant"])

        assert result.exit_code == 0
        assert "tau" in result.output
        assert "floor" not in result.output


class TestCLIEntryPoint:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "SceneCraft" in result.output
        for command in ("compile", "render", "validate", "eval", "functions"):
            assert command in result.output

    def test_log_level(self, runner):
        result = runner.invoke(cli, ["--log-level", "debug", "eval", "1"])

        assert result.exit_code == 0
        assert result.output.strip().endswith("1")
