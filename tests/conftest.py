"""Shared fixtures for unit and feature tests.

The cmd-mox plugin is registered globally via pyproject.toml.
"""

from __future__ import annotations

import dataclasses
import io
import subprocess
import typing as typ

import pytest

from opskit.aws import AwsContext
from opskit.console import Console
from tests.fakes import sts_client

if typ.TYPE_CHECKING:
    import collections.abc as cabc

TEST_REGION = "ap-northeast-1"


@dataclasses.dataclass(slots=True)
class ConsoleCapture:
    """A colourless console writing to in-memory streams.

    Attributes
    ----------
    console
        Console handed to the code under test.
    out
        Regular output.
    err
        Error output.
    answers
        Replies consumed by confirmation prompts, in order.
    prompts
        Prompt texts shown to the operator.

    """

    console: Console
    out: io.StringIO
    err: io.StringIO
    answers: list[str]
    prompts: list[str]

    @property
    def stdout(self) -> str:
        """Return everything written to regular output."""
        return self.out.getvalue()

    @property
    def stderr(self) -> str:
        """Return everything written to error output."""
        return self.err.getvalue()


@pytest.fixture
def capture() -> ConsoleCapture:
    """Provide a console whose prompts are answered from ``answers``.

    An exhausted answer list behaves like end of input.
    """
    out = io.StringIO()
    err = io.StringIO()
    answers: list[str] = []
    prompts: list[str] = []

    def reader(prompt: str) -> str:
        prompts.append(prompt)
        if not answers:
            raise EOFError
        return answers.pop(0)

    console = Console(color=False, stream=out, error_stream=err, reader=reader)
    return ConsoleCapture(console, out, err, answers, prompts)


@pytest.fixture
def make_aws() -> cabc.Callable[..., AwsContext]:
    """Return a factory building an :class:`AwsContext` over fake clients.

    Keyword arguments map boto3 service names to fakes; an STS fake with a
    fixed account id is supplied unless ``sts`` is given.
    """

    def _make(region: str = TEST_REGION, **clients: object) -> AwsContext:
        registry: dict[str, object] = {"sts": sts_client(), **clients}

        def factory(service: str) -> object:
            if service not in registry:
                msg = f"no fake client registered for {service!r}"
                raise AssertionError(msg)
            return registry[service]

        return AwsContext(region=region, factory=factory)

    return _make


@dataclasses.dataclass(slots=True)
class SubprocessRecorder:
    """Captured ``subprocess.run`` calls and the canned replies they get.

    ``replies`` maps an argument prefix to ``(returncode, stdout, stderr)``; the
    longest matching prefix wins and unmatched commands succeed silently.
    """

    calls: list[tuple[str, ...]]
    inputs: list[str]
    replies: dict[tuple[str, ...], tuple[int, str, str]]

    def reply(
        self, *prefix: str, returncode: int = 0, stdout: str = "", stderr: str = ""
    ) -> None:
        """Register the reply for commands starting with ``prefix``."""
        self.replies[prefix] = (returncode, stdout, stderr)

    def _lookup(self, args: tuple[str, ...]) -> tuple[int, str, str]:
        matches = [prefix for prefix in self.replies if args[: len(prefix)] == prefix]
        if not matches:
            return (0, "", "")
        return self.replies[max(matches, key=len)]

    def run(
        self, args: list[str], **kwargs: object
    ) -> subprocess.CompletedProcess[str]:
        """Stand in for :func:`subprocess.run`."""
        command = tuple(args)
        self.calls.append(command)
        if kwargs.get("input") is not None:
            self.inputs.append(str(kwargs["input"]))
        returncode, stdout, stderr = self._lookup(command)
        if kwargs.get("check") and returncode != 0:
            raise subprocess.CalledProcessError(returncode, args, stdout, stderr)
        return subprocess.CompletedProcess(
            args=args, returncode=returncode, stdout=stdout, stderr=stderr
        )

    def commands_starting(self, *prefix: str) -> list[tuple[str, ...]]:
        """Return the recorded commands beginning with ``prefix``."""
        return [call for call in self.calls if call[: len(prefix)] == prefix]


@pytest.fixture
def subprocess_recorder(monkeypatch: pytest.MonkeyPatch) -> SubprocessRecorder:
    """Replace ``subprocess.run`` with a recorder and return it."""
    recorder = SubprocessRecorder(calls=[], inputs=[], replies={})
    monkeypatch.setattr("subprocess.run", recorder.run)
    return recorder


@pytest.fixture
def all_tools_installed(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make every executable look installed on ``PATH``."""
    monkeypatch.setattr(
        "opskit.prerequisites.shutil.which", lambda name: f"/usr/bin/{name}"
    )
