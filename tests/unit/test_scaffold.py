import asyncio

import pytest

from provisioner import scaffold
from provisioner.contracts import FrameworkType
from provisioner.errors import ScaffoldError, ValidationError


class FakeProcess:
    def __init__(self, returncode=0, stdout=b"", stderr=b""):
        self.returncode = returncode
        self._stdout = stdout
        self._stderr = stderr

    async def communicate(self):
        return self._stdout, self._stderr


def test_every_framework_has_a_command():
    for framework in FrameworkType:
        argv = scaffold.command_for(framework)
        assert argv[0] in ("dotnet", "npm", "npx", "spring")


def test_command_for_rejects_raw_strings():
    with pytest.raises(ValidationError):
        scaffold.command_for("react; rm -rf /")


@pytest.mark.asyncio
async def test_generate_runs_without_shell_in_target_dir(tmp_path, monkeypatch):
    seen = {}

    async def fake_exec(*argv, **kwargs):
        seen["argv"] = argv
        seen["kwargs"] = kwargs
        return FakeProcess()

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    target = tmp_path / "react"

    await scaffold.generate(FrameworkType.REACT, target)

    assert seen["argv"] == scaffold.command_for(FrameworkType.REACT)
    assert seen["kwargs"]["cwd"] == str(target)
    assert target.is_dir()


@pytest.mark.asyncio
async def test_generate_nonzero_exit_raises(tmp_path, monkeypatch):
    async def fake_exec(*argv, **kwargs):
        return FakeProcess(returncode=3, stderr=b"template not found")

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)

    with pytest.raises(ScaffoldError) as exc_info:
        await scaffold.generate(FrameworkType.DOTNET, tmp_path)
    assert exc_info.value.exit_code == 3
    assert exc_info.value.stderr == "template not found"


@pytest.mark.asyncio
async def test_generate_missing_tool_raises_127(tmp_path, monkeypatch):
    async def fake_exec(*argv, **kwargs):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)

    with pytest.raises(ScaffoldError) as exc_info:
        await scaffold.generate(FrameworkType.JAVA_SPRING, tmp_path)
    assert exc_info.value.exit_code == 127


class StuckGenerator:
    def __init__(self):
        self.pid = 5151
        self.returncode = None
        self.killed = False
        self._exited = asyncio.Event()

    def kill(self):
        self.killed = True
        self.returncode = -9
        self._exited.set()

    async def communicate(self):
        await self._exited.wait()
        return b"", b""

    async def wait(self):
        await self._exited.wait()
        return self.returncode


@pytest.mark.asyncio
async def test_generate_timeout_kills_generator(tmp_path, monkeypatch):
    process = StuckGenerator()

    async def fake_exec(*argv, **kwargs):
        return process

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(scaffold.generate(FrameworkType.NUXT, tmp_path), 0.05)
    assert process.killed
