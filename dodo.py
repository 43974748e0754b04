#!usr/bin/env python3
"""Project tasks."""


def task_tests():
    """Test application."""
    return {
        "actions": [
            "python -m unittest tests/test_property_container.py",
            "python -m unittest tests/test_checksum.py",
            "python -m unittest tests/test_cell_config.py",
            "python -m unittest tests/test_ido_state_fetcher.py",
            "python -m unittest tests/test_issue_store.py",
            "python -m unittest tests/test_notification_store.py",
            "python -m unittest tests/test_notification_scheduler.py",
            "python -m unittest tests/test_process_result_handler.py",
            "python -m unittest tests/test_notification_dispatcher.py",
            "python -m unittest tests/test_controller.py",
            "python -m unittest tests/test_initer.py",
        ],
        "verbosity": 2
    }


def task_git_clean():
    """Clean untracked files."""
    return {
            "actions": ["git clean -xdf"],
    }


def task_docstyle():
    """Check docstrings in src code files."""
    return {
            "actions": ["pydocstyle ./source"],
            "verbosity": 2
    }


def task_code_style():
    """Check code in src directory."""
    return {
            "actions": ["flake8 ./source --max-line-length 120"],
            "verbosity": 2
    }


def task_check():
    """Perform all checks."""
    return {
            "actions": [],
            "task_dep": ["code_style", "docstyle", "tests"]
    }
