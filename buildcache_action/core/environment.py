"""
CI runner environment access.

All reads of the process environment and every side effect that outlives
the current step (search path, exported variables, step state, outputs,
job failure) go through ``ActionEnvironment``. Tests pass in a plain dict
instead of ``os.environ``.

The runner picks up persistent changes from command files named by
environment variables:

    GITHUB_PATH    - one directory per line, prepended to PATH for later steps
    GITHUB_ENV     - exported environment variables
    GITHUB_STATE   - values handed from the main step to the post step
    GITHUB_OUTPUT  - step outputs

When a command file variable is unset (local runs, tests) only the
in-process environment is updated.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import List, MutableMapping, Optional, Union

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"true", "yes", "on", "1"}
_FALSE_VALUES = {"false", "no", "off", "0"}


def parse_bool(value: Union[str, bool], name: str = "value") -> bool:
    """
    Parse a boolean action input.

    Args:
        value: String (or bool) to parse
        name: Input name used in the error message

    Raises:
        ConfigError: If value is not a recognized boolean
    """
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigError(
        f"Input '{name}' must be a boolean (true/false), got: {value!r}"
    )


class ActionEnvironment:
    """
    Explicit context object for the CI runner environment.

    Attributes:
        environ: Mapping used as the process environment
        failed: Whether the step has been marked failed
        failure_message: Message passed to ``set_failed``
    """

    def __init__(self, environ: Optional[MutableMapping[str, str]] = None):
        """
        Initialize environment.

        Args:
            environ: Environment mapping (default: os.environ)
        """
        self.environ = os.environ if environ is None else environ
        self.failed = False
        self.failure_message: Optional[str] = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, name: str, default: str = "") -> str:
        """Read an environment variable."""
        return self.environ.get(name, default)

    def get_input(self, name: str, default: str = "") -> str:
        """
        Read an action input (``INPUT_<NAME>``), stripped of whitespace.

        Empty inputs fall back to ``default``.
        """
        key = "INPUT_" + name.replace(" ", "_").upper()
        value = self.environ.get(key, "").strip()
        return value or default

    def has_input(self, name: str) -> bool:
        """Check whether an input was provided with a non-empty value."""
        return bool(self.get_input(name))

    @property
    def workspace(self) -> Path:
        """CI workspace root (``GITHUB_WORKSPACE``, empty default = cwd)."""
        return Path(self.get("GITHUB_WORKSPACE", ""))

    @property
    def debug_enabled(self) -> bool:
        """Whether the runner was started with step debug logging."""
        return self.get("RUNNER_DEBUG") == "1"

    def path_entries(self) -> List[str]:
        """Current executable search path as a list."""
        return [p for p in self.get("PATH").split(os.pathsep) if p]

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def add_path(self, directory: Union[str, Path]) -> None:
        """
        Publish a directory on the executable search path.

        The directory goes in front of the in-process ``PATH`` so it shadows
        system compilers, and is appended to the ``GITHUB_PATH`` file so
        later job steps see it too.
        """
        directory = str(directory)
        path_file = self.get("GITHUB_PATH")
        if path_file:
            self._append_line(path_file, directory)

        current = self.get("PATH")
        self.environ["PATH"] = (
            f"{directory}{os.pathsep}{current}" if current else directory
        )
        logger.info(f"Added to PATH: {directory}")

    def export_variable(self, name: str, value: str) -> None:
        """Set an environment variable for this and all later steps."""
        value = str(value)
        self.environ[name] = value
        env_file = self.get("GITHUB_ENV")
        if env_file:
            self._append_key_value(env_file, name, value)
        logger.debug(f"Exported {name}={value}")

    def save_state(self, name: str, value: str) -> None:
        """
        Hand a value to the post step of this action.

        The value is also stored as ``STATE_<name>`` in the in-process
        environment so a post step run in the same process can read it.
        """
        value = str(value)
        state_file = self.get("GITHUB_STATE")
        if state_file:
            self._append_key_value(state_file, name, value)
        self.environ[f"STATE_{name}"] = value

    def get_state(self, name: str) -> str:
        """Read a value saved by the main step."""
        return self.get(f"STATE_{name}")

    def set_output(self, name: str, value: str) -> None:
        """Set a step output."""
        output_file = self.get("GITHUB_OUTPUT")
        if output_file:
            self._append_key_value(output_file, name, str(value))
        logger.debug(f"Output {name}={value}")

    def set_failed(self, message: str) -> None:
        """Mark the job step failed with ``message``."""
        self.failed = True
        self.failure_message = str(message)
        logger.error(self.failure_message)

    @property
    def exit_code(self) -> int:
        """Process exit status for the step."""
        return 1 if self.failed else 0

    # ------------------------------------------------------------------
    # Command files
    # ------------------------------------------------------------------

    @staticmethod
    def _append_line(file_path: str, line: str) -> None:
        with open(file_path, "a", encoding="utf-8") as f:
            f.write(f"{line}\n")

    @staticmethod
    def _append_key_value(file_path: str, name: str, value: str) -> None:
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        if delimiter in name or delimiter in value:
            raise ValueError("Unexpected delimiter collision in command file value")
        with open(file_path, "a", encoding="utf-8") as f:
            f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
