"""
Logging setup for the action entry points.

Records are written to stdout as GitHub workflow commands so the runner
annotates warnings and errors and hides debug output unless step debugging
is enabled.
"""

import logging
import sys

WORKFLOW_COMMANDS = {
    logging.DEBUG: "::debug::",
    logging.WARNING: "::warning::",
    logging.ERROR: "::error::",
    logging.CRITICAL: "::error::",
}


def escape_data(message: str) -> str:
    """Escape a message for use in a workflow command."""
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class WorkflowCommandFormatter(logging.Formatter):
    """Render records as ``::<level>::message``; INFO stays plain text."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        prefix = WORKFLOW_COMMANDS.get(record.levelno)
        if prefix is None:
            return message
        return prefix + escape_data(message)


def configure_logging(debug: bool = False) -> None:
    """
    Configure the root logger.

    Args:
        debug: Enable DEBUG level
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(WorkflowCommandFormatter("%(message)s"))

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        handlers=[handler],
        force=True,
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)
