"""EC2 Auto Scaling adapter: instance refreshes for one fleet."""

from __future__ import annotations

from typing import Any

import structlog
from botocore.exceptions import ClientError

from ferry.aws.session import aws_errors, error_code, error_message
from ferry.errors import FleetNotFoundError
from ferry.schemas.rollout import RefreshPreferences, RefreshState
from ferry.telemetry.tracing import traced

logger = structlog.get_logger(__name__)


def _is_missing_group(exc: ClientError) -> bool:
    return error_code(exc) == "ValidationError" and "not found" in error_message(exc).lower()


class AutoScalingFleetDriver:
    """boto3-backed instance refresh operations.

    Example:
        >>> driver = AutoScalingFleetDriver(factory.client("autoscaling"), "eu-west-1")
        >>> refresh_id = driver.start_refresh("backend-prod", "Rolling", RefreshPreferences())
        >>> driver.get_latest_status("backend-prod").status
        <RefreshStatus.PENDING: 'Pending'>
    """

    def __init__(self, autoscaling_client: Any, region: str) -> None:
        self._asg = autoscaling_client
        self.region = region
        self._log = logger.bind(region=region)

    @traced(
        name="ferry.aws.autoscaling.start_instance_refresh",
        attributes={"aws.service": "autoscaling"},
    )
    def start_refresh(
        self,
        group: str,
        strategy: str,
        preferences: RefreshPreferences,
    ) -> str:
        """Start an instance refresh.

        Returns:
            The instance refresh id.

        Raises:
            FleetNotFoundError: If the group does not exist.
            BackendError: If the refresh cannot be started (including one
                already in progress).
        """
        with aws_errors("autoscaling", "StartInstanceRefresh"):
            try:
                response = self._asg.start_instance_refresh(
                    AutoScalingGroupName=group,
                    Strategy=strategy,
                    Preferences=preferences.to_aws(),
                )
            except ClientError as e:
                if _is_missing_group(e):
                    raise FleetNotFoundError(group, self.region) from e
                raise
        refresh_id = str(response["InstanceRefreshId"]).strip()
        self._log.info("instance_refresh_started", group=group, refresh_id=refresh_id)
        return refresh_id

    def get_latest_status(self, group: str) -> RefreshState:
        """Status of the most recently started refresh.

        Returns:
            RefreshState; status UNKNOWN with raw None when no refresh exists.
        """
        with aws_errors("autoscaling", "DescribeInstanceRefreshes"):
            try:
                response = self._asg.describe_instance_refreshes(AutoScalingGroupName=group)
            except ClientError as e:
                if _is_missing_group(e):
                    raise FleetNotFoundError(group, self.region) from e
                raise

        refreshes = response.get("InstanceRefreshes") or []
        if not refreshes:
            return RefreshState()

        dated = [r for r in refreshes if r.get("StartTime") is not None]
        latest = max(dated, key=lambda r: r["StartTime"]) if dated else refreshes[0]
        raw = latest.get("Status") or None
        return RefreshState.from_raw(
            raw,
            refresh_id=latest.get("InstanceRefreshId"),
            percentage_complete=latest.get("PercentageComplete"),
            reason=latest.get("StatusReason"),
        )

    @traced(
        name="ferry.aws.autoscaling.rollback_instance_refresh",
        attributes={"aws.service": "autoscaling"},
    )
    def rollback_refresh(self, group: str) -> str | None:
        """Roll the fleet back to its previous launch configuration.

        Only reachable from the ``fleet rollback`` command; rollout
        escalation never touches the infrastructure.
        """
        with aws_errors("autoscaling", "RollbackInstanceRefresh"):
            try:
                response = self._asg.rollback_instance_refresh(AutoScalingGroupName=group)
            except ClientError as e:
                if _is_missing_group(e):
                    raise FleetNotFoundError(group, self.region) from e
                raise
        refresh_id = response.get("InstanceRefreshId")
        self._log.warning("instance_refresh_rolled_back", group=group, refresh_id=refresh_id)
        return refresh_id


__all__ = ["AutoScalingFleetDriver"]
