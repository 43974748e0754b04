"""Exit code descriptions for the external notifier."""
import signal

DISPATCH_FAILED_EXIT_CODE = 255
SIGNAL_EXIT_CODE_OFFSET = 128

_exit_code_to_description = {
    0: "Success",
    1: "General error",
    2: "Invalid arguments",
    126: "Command is not executable",
    127: "Command not found",
    DISPATCH_FAILED_EXIT_CODE: "Dispatch failed before the process exited",
}


def exit_code_for(exit_code: int | None, term_signal: int | None) -> int:
    """Map process termination to a single exit code."""
    if exit_code is not None:
        return int(exit_code)
    if term_signal is not None:
        return SIGNAL_EXIT_CODE_OFFSET + int(term_signal)
    return DISPATCH_FAILED_EXIT_CODE


def describe_exit_code(exit_code: int) -> str:
    """Describe exit code."""
    if (description := _exit_code_to_description.get(exit_code)) is not None:
        return description
    if SIGNAL_EXIT_CODE_OFFSET < exit_code < DISPATCH_FAILED_EXIT_CODE:
        signal_number = exit_code - SIGNAL_EXIT_CODE_OFFSET
        try:
            return f"Terminated by {signal.Signals(signal_number).name}"
        except ValueError:
            return f"Terminated by signal {signal_number}"
    return "Unknown error"
