from .notify import slack_on_failure
from .python import checkout, codecov, flake8_step, install_requirements, pytest_step, python_test_steps, setup_python

__all__ = [
    "checkout", "codecov", "flake8_step", "install_requirements", "pytest_step",
    "python_test_steps", "setup_python", "slack_on_failure",
]
