# /*
# Copyright 2026 The Kubernetes Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Deployment readiness polling."""

from __future__ import annotations

from typing import Any

from kubernetes.client.rest import ApiException
from tenacity import RetryError, retry, retry_if_result, stop_after_delay, wait_fixed
from urllib3.exceptions import HTTPError

from capa_e2e import console, logger
from capa_e2e.constants import READINESS_POLL_INTERVAL_SECONDS, READINESS_REQUEST_TIMEOUT_SECONDS
from capa_e2e.errors import ReadinessTimeout


def replica_counts(deployment: Any) -> tuple[int, int]:
    """Return (ready, desired) replicas of a V1Deployment.

    An unset ``spec.replicas`` defaults to 1, as the API server does.
    """
    desired = deployment.spec.replicas if deployment.spec.replicas is not None else 1
    status = deployment.status
    ready = (status.ready_replicas or 0) if status is not None else 0
    return ready, desired


class ReadinessWaiter:
    """Blocks until deployments report all desired replicas ready.

    Args:
        apps_api: ``kubernetes.client.AppsV1Api`` for the cluster.
        poll_interval: Seconds between status reads.
        request_timeout: Per-read timeout in seconds, so a hung API server
            cannot hold a poll past the deadline.
    """

    def __init__(
        self,
        apps_api: Any,
        poll_interval: float = READINESS_POLL_INTERVAL_SECONDS,
        request_timeout: float = READINESS_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._apps = apps_api
        self.poll_interval = poll_interval
        self.request_timeout = request_timeout

    def wait_for_deployment(self, namespace: str, name: str, timeout_seconds: float) -> None:
        """Poll ``namespace/name`` until ready replicas match desired.

        API errors while polling (including 404 before the deployment is
        created) count as not ready yet.

        Raises:
            ReadinessTimeout: If the deployment is not ready in time.
        """
        console.print(f"[yellow]ℹ️  Waiting for deployment {namespace}/{name} to be ready...[/yellow]")
        last_seen = {"state": "not observed"}

        @retry(
            stop=stop_after_delay(timeout_seconds),
            wait=wait_fixed(self.poll_interval),
            retry=retry_if_result(lambda ready: not ready),
        )
        def _poll() -> bool:
            try:
                deployment = self._apps.read_namespaced_deployment(
                    name, namespace, _request_timeout=self.request_timeout)
            except ApiException as err:
                last_seen["state"] = f"API error {err.status}"
                logger.debug("Reading deployment %s/%s failed: %s", namespace, name, err.reason)
                return False
            except HTTPError as err:
                last_seen["state"] = f"connection error: {err}"
                logger.debug("Reading deployment %s/%s failed: %s", namespace, name, err)
                return False
            ready, desired = replica_counts(deployment)
            last_seen["state"] = f"{ready}/{desired} replicas ready"
            return ready == desired

        try:
            _poll()
        except RetryError as err:
            raise ReadinessTimeout(
                f"Timed out after {timeout_seconds}s waiting for deployment "
                f"{namespace}/{name} ({last_seen['state']})"
            ) from err
        console.print(f"[green]✅ Deployment {namespace}/{name} is ready[/green]")
