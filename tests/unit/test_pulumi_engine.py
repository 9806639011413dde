import asyncio
import json

import pytest

from provisioner.config import EngineConfig
from provisioner.errors import EngineCommandError
from provisioner.stacks import PulumiEngine, Stack


class FakeProcess:
    def __init__(self, returncode=0, stdout=b"", stderr=b""):
        self.pid = 4242
        self.returncode = returncode
        self.stdin_data = None
        self._stdout_bytes = stdout
        self._stderr_bytes = stderr
        self.stdout = asyncio.StreamReader()
        self.stdout.feed_data(stdout)
        self.stdout.feed_eof()
        self.stderr = asyncio.StreamReader()
        self.stderr.feed_data(stderr)
        self.stderr.feed_eof()

    async def communicate(self, input=None):
        self.stdin_data = input
        return self._stdout_bytes, self._stderr_bytes

    async def wait(self):
        return self.returncode


class HangingProcess:
    """A child that never exits until killed."""

    def __init__(self):
        self.pid = 4343
        self.returncode = None
        self.killed = False
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self._exited = asyncio.Event()

    def kill(self):
        self.killed = True
        self.returncode = -9
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._exited.set()

    async def communicate(self, input=None):
        await self._exited.wait()
        return b"", b""

    async def wait(self):
        await self._exited.wait()
        return self.returncode


class SubprocessRecorder:
    def __init__(self):
        self.calls = []
        self.responses = []
        self.processes = []

    async def __call__(self, *argv, **kwargs):
        self.calls.append((argv, kwargs))
        response = self.responses.pop(0) if self.responses else (0, b"", b"")
        process = response if isinstance(response, HangingProcess) else FakeProcess(*response)
        self.processes.append(process)
        return process


@pytest.fixture
def recorder(monkeypatch):
    recorder = SubprocessRecorder()
    monkeypatch.setattr(asyncio, "create_subprocess_exec", recorder)
    return recorder


@pytest.fixture
def stack(tmp_path):
    return Stack(name="shopdemo-ecommerce", workdir=tmp_path)


@pytest.mark.asyncio
async def test_select_stack_argv(recorder, stack):
    engine = PulumiEngine(EngineConfig(passphrase="pw"))
    await engine.select_stack(stack)

    argv, kwargs = recorder.calls[0]
    assert argv == (
        "pulumi", "stack", "select", "--create",
        "--stack", "shopdemo-ecommerce", "--non-interactive",
    )
    assert kwargs["cwd"] == str(stack.workdir)
    assert kwargs["env"]["PULUMI_CONFIG_PASSPHRASE"] == "pw"


@pytest.mark.asyncio
async def test_get_config_unwraps_values(recorder, stack):
    recorder.responses.append(
        (0, json.dumps({"proj:Name": {"value": "shop"}, "proj:token": {"secret": True}}).encode(), b"")
    )
    engine = PulumiEngine()
    assert await engine.get_config(stack) == {"proj:Name": "shop", "proj:token": None}


@pytest.mark.asyncio
async def test_set_config_passes_value_on_stdin(recorder, stack):
    engine = PulumiEngine()
    await engine.set_config(stack, "proj:githubToken", "s3cret", secret=True)

    argv, kwargs = recorder.calls[0]
    assert argv[:6] == ("pulumi", "config", "set", "--secret", "--", "proj:githubToken")
    assert "s3cret" not in argv
    assert kwargs["stdin"] == asyncio.subprocess.PIPE
    assert recorder.processes[0].stdin_data == b"s3cret"

    recorder.responses.append((1, b"", b"error: invalid key"))
    with pytest.raises(EngineCommandError) as exc_info:
        await engine.set_config(stack, "proj:Name", "hidden-value")
    assert "hidden-value" not in exc_info.value.message
    assert exc_info.value.exit_code == 1


@pytest.mark.asyncio
async def test_up_streams_output_and_raises_on_failure(recorder, stack, caplog):
    recorder.responses.append((255, b"Updating (dev)\n", b"error: 403 Forbidden\n"))
    engine = PulumiEngine()

    with caplog.at_level("INFO", logger="provisioner.stacks.engine"):
        with pytest.raises(EngineCommandError) as exc_info:
            await engine.up(stack)

    argv, _ = recorder.calls[0]
    assert argv[1:4] == ("up", "--yes", "--skip-preview")
    assert "403 Forbidden" in exc_info.value.stderr
    assert "Updating (dev)" in caplog.text


@pytest.mark.asyncio
async def test_install_uses_configured_command(recorder, tmp_path):
    engine = PulumiEngine(EngineConfig(install_command=["yarn", "install"]))
    result = await engine.install(tmp_path)
    argv, _ = recorder.calls[0]
    assert argv == ("yarn", "install")
    assert result.ok


@pytest.mark.asyncio
async def test_missing_binary_reports_127(monkeypatch, stack):
    async def missing(*argv, **kwargs):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(asyncio, "create_subprocess_exec", missing)
    with pytest.raises(EngineCommandError) as exc_info:
        await PulumiEngine().outputs(stack)
    assert exc_info.value.exit_code == 127


@pytest.mark.asyncio
async def test_cancelled_up_kills_engine_process(recorder, stack):
    process = HangingProcess()
    recorder.responses.append(process)
    engine = PulumiEngine()

    task = asyncio.create_task(engine.up(stack))
    while not recorder.calls:
        await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert process.killed
    assert process.returncode == -9


@pytest.mark.asyncio
async def test_timed_out_config_read_kills_engine_process(recorder, stack):
    process = HangingProcess()
    recorder.responses.append(process)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(PulumiEngine().get_config(stack), 0.05)

    assert process.killed
