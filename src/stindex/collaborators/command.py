from __future__ import annotations

import subprocess
import time
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from rich.console import Console

from ..errors import CollaboratorError

if TYPE_CHECKING:
    from ..config import RunConfig

console = Console()

_STDERR_TAIL = 2000


def render_command(template: Sequence[str], values: Dict[str, str]) -> List[str]:
    """
    Substitute {input}, {output}, {granularity}, {shape} in every argv item.
    Unknown placeholders raise CollaboratorError.
    """
    try:
        return [str(part).format(**values) for part in template]
    except (KeyError, IndexError) as e:
        raise CollaboratorError(f"Unknown placeholder in command template {list(template)}: {e}") from e


class CommandRunner:
    def __init__(
        self,
        template: Sequence[str],
        timeout_s: Optional[float] = None,
        max_retries: int = 0,
        retry_backoff_s: float = 2.0,
    ) -> None:
        if not template:
            raise CollaboratorError("Command template is empty")
        self.template = list(template)
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.retry_backoff_s = retry_backoff_s

    def run(self, values: Dict[str, str]) -> None:
        argv = render_command(self.template, values)
        attempt = 0
        last_error: Optional[str] = None
        while attempt <= self.max_retries:
            try:
                proc = subprocess.run(
                    argv,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout_s,
                    check=False,
                )
                if proc.returncode == 0:
                    return
                last_error = f"exit code {proc.returncode}: {(proc.stderr or '').strip()[-_STDERR_TAIL:]}"
            except subprocess.TimeoutExpired:
                last_error = f"timed out after {self.timeout_s}s"
            except OSError as e:
                last_error = f"failed to launch {argv[0]}: {e}"
            attempt += 1
            if attempt > self.max_retries:
                break
            sleep_s = self.retry_backoff_s * (2 ** (attempt - 1))
            console.print(f"[yellow]Command failed ({last_error}); retry {attempt}/{self.max_retries} in {sleep_s:.1f}s[/yellow]")
            time.sleep(sleep_s)
        raise CollaboratorError(f"Command {argv[0]} failed after {attempt} attempt(s): {last_error}")


def _values(input_path: Path, output_path: Path, config: "RunConfig") -> Dict[str, str]:
    return {
        "input": str(input_path),
        "output": str(output_path),
        "granularity": config.granularity.value,
        "shape": config.shape,
    }


class CommandSliceCollaborator:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def slice(self, input_path: Path, output_parent: Path, config: "RunConfig") -> None:
        self.runner.run(_values(input_path, output_parent, config))


class CommandIndexCollaborator:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def build_index(self, partition_input: Path, partition_output: Path, config: "RunConfig") -> None:
        self.runner.run(_values(partition_input, partition_output, config))


def collaborators_from_config(
    config: "RunConfig",
) -> tuple[Optional[CommandSliceCollaborator], Optional[CommandIndexCollaborator]]:
    def _runner(template: Optional[List[str]]) -> Optional[CommandRunner]:
        if not template:
            return None
        return CommandRunner(
            template,
            timeout_s=config.command_timeout_s,
            max_retries=config.max_retries,
            retry_backoff_s=config.retry_backoff_s,
        )

    slice_runner = _runner(config.slice_command)
    index_runner = _runner(config.index_command)
    slicer = CommandSliceCollaborator(slice_runner) if slice_runner else None
    indexer = CommandIndexCollaborator(index_runner) if index_runner else None
    return slicer, indexer
