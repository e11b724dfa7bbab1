"""
Controller runtime: watch threads feed the work queue, workers drain it
through the reconciler.
"""
import logging
import random
import threading
from typing import Any, Dict, List, Optional

from kubernetes import watch
from kubernetes.client.rest import ApiException

from errors import ReconcileError
from kube_client import KubeClient
from kube_types import ObjectKey
from reconciler import Reconciler
from watches import WatchSource
from workqueue import RateLimitingQueue

logger = logging.getLogger(__name__)

MAX_WATCH_BACKOFF_SECS = 30


class Controller:
    """Runs the MyApp watches and reconcile workers on background threads."""

    def __init__(
        self,
        kube: KubeClient,
        reconciler: Reconciler,
        sources: List[WatchSource],
        queue: RateLimitingQueue,
        workers: int = 1,
        watch_timeout_secs: int = 300,
    ):
        self.kube = kube
        self.reconciler = reconciler
        self.sources = sources
        self.queue = queue
        self.workers = workers
        self.watch_timeout_secs = watch_timeout_secs

        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []
        self._synced: Dict[str, threading.Event] = {s.kind: threading.Event() for s in sources}
        self._watchers: Dict[str, watch.Watch] = {}
        self._watchers_lock = threading.Lock()

    @property
    def ready(self) -> bool:
        """True once every source has completed its initial list."""
        return all(event.is_set() for event in self._synced.values())

    def start(self) -> None:
        logger.info(f"🚀 Starting controller with {len(self.sources)} watches and {self.workers} workers")
        for source in self.sources:
            self._spawn(f"watch-{source.kind}", self._watch_loop, source)
        for i in range(self.workers):
            self._spawn(f"worker-{i}", self._worker_loop)

    def stop(self, timeout: float = 10.0) -> None:
        """Stop watches and workers; in-flight reconciles finish first."""
        logger.info("Stopping controller")
        self._stop.set()
        self.queue.shut_down()
        with self._watchers_lock:
            watchers = list(self._watchers.values())
        for watcher in watchers:
            watcher.stop()
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []

    def _spawn(self, name: str, target, *args) -> None:
        thread = threading.Thread(target=target, args=args, name=name, daemon=True)
        thread.start()
        self._threads.append(thread)

    # ------------------------------------------------------------------
    # Watches
    # ------------------------------------------------------------------
    def enqueue(self, source: WatchSource, obj: Dict[str, Any]) -> Optional[ObjectKey]:
        key = source.map_to_key(obj)
        if key is not None:
            self.queue.add(key)
        return key

    def _list(self, source: WatchSource) -> Optional[str]:
        items, resource_version = self.kube.list_objects(source.kind)
        for item in items:
            self.enqueue(source, item)
        self._synced[source.kind].set()
        logger.info(f"✅ Listed {len(items)} {source.kind} objects, watching from resourceVersion {resource_version}")
        return resource_version

    def _watch_loop(self, source: WatchSource) -> None:
        resource_version: Optional[str] = None
        backoff = 1
        while not self._stop.is_set():
            try:
                if resource_version is None:
                    resource_version = self._list(source)

                watcher = watch.Watch()
                with self._watchers_lock:
                    self._watchers[source.kind] = watcher
                stream = watcher.stream(
                    source.list_func,
                    resource_version=resource_version,
                    timeout_seconds=self.watch_timeout_secs,
                    **source.list_kwargs,
                )
                for event in stream:
                    if self._stop.is_set():
                        break
                    obj = event.get("raw_object") or {}
                    version = (obj.get("metadata") or {}).get("resourceVersion")
                    if version:
                        resource_version = version
                    self.enqueue(source, obj)
                backoff = 1
            except ApiException as e:
                if e.status == 410:
                    logger.warning(f"⚠️ {source.kind} watch resource version expired, re-listing")
                    resource_version = None
                    continue
                if e.status in (401, 403):
                    logger.error(
                        f"❌ Kubernetes API access denied watching {source.kind} (status={e.status}). "
                        "Check controller RBAC and service account permissions."
                    )
                else:
                    logger.error(f"❌ {source.kind} watch failed: {e.status} {e.reason}")
                backoff = self._backoff(backoff)
            except Exception:
                logger.exception(f"Unexpected error watching {source.kind}")
                backoff = self._backoff(backoff)

    def _backoff(self, seconds: int) -> int:
        self._stop.wait(timeout=seconds * (0.5 + random.random()))
        return min(seconds * 2, MAX_WATCH_BACKOFF_SECS)

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------
    def _worker_loop(self) -> None:
        while self.process_next_item():
            pass

    def process_next_item(self, timeout: Optional[float] = None) -> bool:
        """
        Reconcile the next queued key.

        Returns:
            False once the queue is shut down
        """
        key = self.queue.get(timeout=timeout)
        if key is None:
            return not self.queue.shutting_down
        try:
            self.reconciler.reconcile(key)
            self.queue.forget(key)
        except ReconcileError as e:
            if e.retryable:
                logger.error(f"❌ Reconcile {key} failed, requeuing: {e}")
                self.queue.add_rate_limited(key)
            else:
                logger.error(f"❌ Reconcile {key} failed permanently, waiting for a change: {e}")
                self.queue.forget(key)
        except Exception:
            logger.exception(f"Unexpected error reconciling {key}, requeuing")
            self.queue.add_rate_limited(key)
        finally:
            self.queue.done(key)
        return True
