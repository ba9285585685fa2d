# step_workflows/notify.py
from __future__ import annotations

from ..dsl import uses
from ..model import StepSpec


def slack_on_failure(
    channel_id: str,
    message: str = "Workflow ${{ github.job }} failed on ${{ github.ref_name }}",
    token_secret: str = "SLACK_BOT_TOKEN",
    version: str = "v1.24.0",
) -> StepSpec:
    """Slack notification that only runs after an earlier step failed."""
    return uses(
        "Notify Slack on failure",
        f"slackapi/slack-github-action@{version}",
        with_={"channel-id": channel_id, "slack-message": message},
        if_="failure()",
        env={"SLACK_BOT_TOKEN": f"${{{{ secrets.{token_secret} }}}}"},
    )
