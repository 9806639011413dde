import json

from typer.testing import CliRunner

from provisioner.cli import app

runner = CliRunner()


def test_stack_name():
    result = runner.invoke(app, ["stack-name", "Shop Demo", "static_webapp"])
    assert result.exit_code == 0
    assert result.output.strip() == "shop-demo-static-webapp"


def test_templates_list(programs_dir, tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"programs_dir: {programs_dir}\n")

    result = runner.invoke(app, ["templates", "list", "--config", str(config_path)])

    assert result.exit_code == 0
    assert "ecommerce\t1.2.0\tOnline shop" in result.output


def test_templates_list_empty(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"programs_dir: {tmp_path / 'nothing'}\n")

    result = runner.invoke(app, ["templates", "list", "--config", str(config_path)])

    assert result.exit_code == 0
    assert "No templates found" in result.output


def test_project_create_missing_file(tmp_path):
    result = runner.invoke(app, ["project", "create", str(tmp_path / "missing.json")])
    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_project_create_failure_exits_nonzero(tmp_path, monkeypatch):
    for var in ("GITHUB_TOKEN", "GitHubToken", "GITHUB_ORGANIZATION_NAME", "GitHubOrganizationName"):
        monkeypatch.delenv(var, raising=False)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"programs_dir: {tmp_path}\n")
    request_path = tmp_path / "request.json"
    request_path.write_text(
        json.dumps(
            {
                "templateName": "ecommerce",
                "projectName": "shopdemo",
                "platform": {"type": "github"},
            }
        )
    )

    result = runner.invoke(
        app, ["project", "create", str(request_path), "--config", str(config_path)]
    )

    assert result.exit_code == 1
    assert "missing in configuration" in result.output
