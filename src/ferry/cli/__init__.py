"""Command-line interface for ferry.

Command Groups:
    ferry container: ECR tag aliases (list, promote, rollback, rollout)
    ferry object: S3 permalink aliases (list, promote, rollback, rollout, push)
    ferry fleet: Auto Scaling instance refreshes (status, rollback)

Example:
    $ ferry --help
    $ ferry --version
    $ ferry --env prod container promote a1b2c3d --repository backend

Exit Codes:
    0: Success
    1: General error
    2: Usage error (invalid names, options or configuration)
    3: Build not found
    4: Rollback alias not set
    5: AWS error
    6: Auto Scaling Group not found
    10: Rollout failed
    11: Rollout converged only after an automatic rollback
    12: Rollout timed out twice
    130: Interrupted
"""

from __future__ import annotations

from ferry.cli.main import cli, main
from ferry.cli.utils import ExitCode, error, fail, success, warn

__all__: list[str] = [
    "ExitCode",
    "cli",
    "error",
    "fail",
    "main",
    "success",
    "warn",
]
