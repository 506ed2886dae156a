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

"""Background capture of controller pod logs into the artifact tree."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

from urllib3.exceptions import IncompleteRead, ProtocolError

from capa_e2e import console, logger
from capa_e2e.constants import LOG_STREAM_CHUNK_SIZE
from capa_e2e.context import DeploymentReference

# Raised when the API server closes a followed log stream.
STREAM_CLOSED_ERRORS = (ProtocolError, IncompleteRead, EOFError)


def label_selector(selector: Any) -> str:
    """Render a V1LabelSelector as a label selector string.

    Args:
        selector: ``V1LabelSelector`` from a deployment spec.

    Returns:
        Selector string such as ``app=foo,tier in (a,b)``.

    Raises:
        ValueError: If an expression uses an unknown operator.
    """
    if selector is None:
        return ""
    terms = [f"{key}={value}" for key, value in sorted((selector.match_labels or {}).items())]
    for expr in selector.match_expressions or []:
        values = ",".join(expr.values or [])
        if expr.operator == "In":
            terms.append(f"{expr.key} in ({values})")
        elif expr.operator == "NotIn":
            terms.append(f"{expr.key} notin ({values})")
        elif expr.operator == "Exists":
            terms.append(expr.key)
        elif expr.operator == "DoesNotExist":
            terms.append(f"!{expr.key}")
        else:
            raise ValueError(f"{expr.operator!r} is not a valid label selector operator")
    return ",".join(terms)


def container_log_path(output_root: Path, deployment: str, pod: str, container: str) -> Path:
    return output_root / deployment / pod / f"{container}.log"


class LogWatcher:
    """Copies the live logs of one deployment's containers to files.

    Each pod/container stream is copied on its own daemon thread because a
    followed stream only ends when the container stops. The watcher owns
    everything it writes; nothing is shared with other watchers.

    Attributes:
        ref: Watched deployment.
        output_root: Log root; files land under ``<root>/<deployment>/``.
        log_files: Files opened so far.
        errors: Unexpected errors seen while watching.
    """

    def __init__(self, apps_api: Any, core_api: Any, ref: DeploymentReference, output_root: Path) -> None:
        self._apps = apps_api
        self._core = core_api
        self.ref = ref
        self.output_root = output_root
        self.log_files: list[Path] = []
        self.errors: list[BaseException] = []
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None

    def _record(self, err: BaseException, where: str) -> None:
        logger.warning("Log watcher for %s: %s failed: %s", self.ref, where, err)
        with self._lock:
            self.errors.append(err)

    def start(self) -> LogWatcher:
        """Run :meth:`watch` on a daemon thread and return immediately."""
        self._thread = threading.Thread(
            target=self._run, name=f"logs-{self.ref.name}", daemon=True)
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            self.watch()
        except Exception as err:
            self._record(err, "watch")

    def watch(self) -> None:
        """Resolve the deployment's pods and copy every container log stream.

        Blocks until all streams end.
        """
        deployment = self._apps.read_namespaced_deployment(self.ref.name, self.ref.namespace)
        selector = label_selector(deployment.spec.selector)
        pods = self._core.list_namespaced_pod(self.ref.namespace, label_selector=selector)
        containers = [c.name for c in deployment.spec.template.spec.containers]

        streams = []
        for pod in pods.items:
            for container in containers:
                log_file = container_log_path(self.output_root, self.ref.name, pod.metadata.name, container)
                logger.info("Creating directory: %s", log_file.parent)
                log_file.parent.mkdir(parents=True, exist_ok=True)
                with self._lock:
                    self.log_files.append(log_file)
                thread = threading.Thread(
                    target=self._copy_stream,
                    args=(pod.metadata.name, container, log_file),
                    name=f"logs-{pod.metadata.name}-{container}",
                    daemon=True,
                )
                thread.start()
                streams.append(thread)

        console.print(f"[green]✅ Watching {len(streams)} log streams for {self.ref}[/green]")
        for thread in streams:
            thread.join()

    def _copy_stream(self, pod: str, container: str, log_file: Path) -> None:
        # The file exists before the stream is requested, even if the request fails.
        try:
            out = open(log_file, "ab")
        except OSError as err:
            self._record(err, f"opening {log_file}")
            return
        with out:
            try:
                response = self._core.read_namespaced_pod_log(
                    pod, self.ref.namespace, container=container, follow=True, _preload_content=False)
            except Exception as err:
                self._record(err, f"opening log stream {pod}/{container}")
                return
            try:
                for chunk in response.stream(LOG_STREAM_CHUNK_SIZE):
                    out.write(chunk)
                    out.flush()
            except STREAM_CLOSED_ERRORS:
                pass
            except Exception as err:
                self._record(err, f"copying {pod}/{container}")
            finally:
                response.release_conn()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


def start_log_watcher(apps_api: Any, core_api: Any, ref: DeploymentReference, output_root: Path) -> LogWatcher:
    """Start a background log watcher for *ref* under *output_root*."""
    return LogWatcher(apps_api, core_api, ref, output_root).start()
