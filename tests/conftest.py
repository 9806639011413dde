"""Shared fakes for provisioner tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import unquote

import httpx
import pytest

from provisioner.config import ProvisionerConfig, WorkflowConfig
from provisioner.stacks import CommandResult, InfrastructureEngine, Stack


class FakeEngine(InfrastructureEngine):
    """In-memory stand-in for the Pulumi CLI."""

    def __init__(
        self,
        outputs: Optional[Dict[str, Any]] = None,
        fail_up: Optional[Exception] = None,
        fail_destroy: bool = False,
        install_exit: int = 0,
    ) -> None:
        self.stack_config: Dict[str, Dict[str, Optional[str]]] = {}
        self.secrets: set[str] = set()
        self.calls: List[tuple] = []
        self.outputs_value = outputs if outputs is not None else {}
        self.fail_up = fail_up
        self.fail_destroy = fail_destroy
        self.install_exit = install_exit

    def calls_named(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]

    async def install(self, workdir: Path) -> CommandResult:
        self.calls.append(("install", workdir))
        if self.install_exit != 0:
            return CommandResult(self.install_exit, "", "npm ERR! network unreachable")
        (workdir / "node_modules").mkdir(exist_ok=True)
        return CommandResult(0, "", "")

    async def select_stack(self, stack: Stack) -> None:
        self.calls.append(("select", stack.name))
        self.stack_config.setdefault(stack.name, {})
        (stack.workdir / f"Pulumi.{stack.name}.yaml").write_text("config: {}\n")

    async def get_config(self, stack: Stack) -> Dict[str, Optional[str]]:
        return dict(self.stack_config.get(stack.name, {}))

    async def set_config(self, stack: Stack, key: str, value: str, secret: bool = False) -> None:
        self.calls.append(("set", key))
        self.stack_config.setdefault(stack.name, {})[key] = value
        if secret:
            self.secrets.add(key)

    async def remove_config(self, stack: Stack, key: str) -> None:
        self.calls.append(("rm", key))
        self.stack_config.get(stack.name, {}).pop(key, None)

    async def up(self, stack: Stack) -> None:
        self.calls.append(("up", stack.name))
        if self.fail_up is not None:
            raise self.fail_up

    async def outputs(self, stack: Stack) -> Dict[str, Any]:
        return dict(self.outputs_value)

    async def refresh(self, stack: Stack) -> None:
        self.calls.append(("refresh", stack.name))

    async def destroy(self, stack: Stack) -> None:
        self.calls.append(("destroy", stack.name))
        if self.fail_destroy:
            raise RuntimeError("destroy exploded")


class FakeGitHub:
    """Minimal GitHub REST API served through ``httpx.MockTransport``."""

    def __init__(self, org: str = "org", create_status: int = 201) -> None:
        self.org = org
        self.create_status = create_status
        self.requests: List[httpx.Request] = []
        self.files: Dict[str, str] = {}
        self.deleted: List[str] = []

    def _repo_payload(self, name: str) -> Dict[str, Any]:
        return {
            "name": name,
            "html_url": f"https://github.com/{self.org}/{name}",
            "default_branch": "main",
            "owner": {"login": self.org},
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = unquote(request.url.path)
        if request.method == "POST" and path == f"/orgs/{self.org}/repos":
            if self.create_status != 201:
                return httpx.Response(self.create_status, json={"message": "Bad credentials"})
            body = json.loads(request.content)
            return httpx.Response(201, json=self._repo_payload(body["name"]))
        if "/contents/" in path:
            file_path = path.split("/contents/", 1)[1]
            if request.method == "GET":
                return httpx.Response(200, json={"sha": f"sha-{file_path}"})
            if request.method == "PUT":
                body = json.loads(request.content)
                if file_path in self.files and "sha" not in body:
                    return httpx.Response(422, json={"message": "sha wasn't supplied"})
                self.files[file_path] = body["content"]
                return httpx.Response(201, json={"content": {"path": file_path}})
        if request.method == "DELETE" and path.startswith("/repos/"):
            self.deleted.append(path)
            return httpx.Response(204)
        return httpx.Response(404, json={"message": "Not Found"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self), base_url="https://api.github.com"
        )


@pytest.fixture
def programs_dir(tmp_path: Path) -> Path:
    root = tmp_path / "pulumiPrograms"
    template = root / "templates" / "ecommerce"
    program = template / "pulumi"
    program.mkdir(parents=True)
    (program / "Pulumi.yaml").write_text("name: ecommerce\nruntime: nodejs\n")
    (program / "index.ts").write_text(
        'const config = new pulumi.Config();\n'
        'const name = config.require("Name");\n'
        'const framework = config.require("app.framework");\n'
    )
    (program / "node_modules").mkdir()
    (program / "node_modules" / "dep.js").write_text("module.exports = {};\n")
    (template / "template.yaml").write_text(
        "name: ecommerce\ndescription: Online shop\nversion: 1.2.0\n"
        "resources:\n  - type: azure.swa\n    name: storefront\n"
    )

    resource = root / "resources" / "static-webapp"
    resource.mkdir(parents=True)
    (resource / "Pulumi.yaml").write_text("name: static-webapp\nruntime: nodejs\n")
    (resource / "node_modules").mkdir()

    (root / "platforms" / "github").mkdir(parents=True)
    return root


@pytest.fixture
def config(programs_dir: Path) -> ProvisionerConfig:
    return ProvisionerConfig(
        programs_dir=str(programs_dir),
        workflow=WorkflowConfig(resolve_backoff=0),
        settings={"GitHubToken": "ghp_realtoken", "GitHubOrganizationName": "org"},
    )


@pytest.fixture
def fake_engine_factory() -> Callable[..., FakeEngine]:
    return FakeEngine


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()
