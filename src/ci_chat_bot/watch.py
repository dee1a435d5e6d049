"""Kubeconfig watch supervisor: restart the process when a build cluster kubeconfig changes.

Rotated credentials are picked up by exiting and letting the process manager
restart us, which triggers a clean re-scan. Live clients are never swapped
in place.
"""

from __future__ import annotations

import enum
import os
import sys
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from ci_chat_bot.errors import WatchSetupError
from ci_chat_bot.kubeconfigs import BuildClusterClients

log = structlog.get_logger()

RESTART_EXIT_CODE = 0

# Read-only access notifications.
_ACCESS_EVENT_TYPES = frozenset({"opened", "closed_no_write"})


class ChangeKind(enum.StrEnum):
    CREATE = "create"
    WRITE = "write"
    REMOVE = "remove"
    RENAME = "rename"
    CHMOD = "chmod"
    ACCESS = "access"


IGNORED_CHANGES = frozenset({ChangeKind.CHMOD, ChangeKind.ACCESS})


@dataclass(frozen=True)
class RestartRequest:
    """Emitted when a watched kubeconfig changed and the process must be restarted."""

    cluster: str
    path: str
    kind: ChangeKind
    event: str


@dataclass(frozen=True)
class FileFingerprint:
    """What a content change alters; permission and ownership changes leave it intact."""

    target: str
    inode: int
    size: int
    mtime_ns: int

    @classmethod
    def of(cls, path: str) -> FileFingerprint | None:
        try:
            st = os.stat(path)
        except OSError:
            return None
        return cls(target=os.path.realpath(path), inode=st.st_ino, size=st.st_size, mtime_ns=st.st_mtime_ns)


def restart_process(request: RestartRequest) -> None:
    """Terminate the whole process so the kubelet restarts it with fresh kubeconfigs."""
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(RESTART_EXIT_CODE)


class KubeconfigEventHandler(FileSystemEventHandler):
    """Classifies filesystem events against the watched kubeconfigs and requests a restart."""

    def __init__(self, watched: Mapping[str, str], trigger_restart: Callable[[RestartRequest], Any]) -> None:
        super().__init__()
        self._watched = dict(watched)
        self._fingerprints = {path: FileFingerprint.of(path) for path in self._watched}
        self._trigger_restart = trigger_restart
        self._triggered = False
        self._lock = threading.Lock()

    def classify(self, event: FileSystemEvent) -> tuple[str, ChangeKind] | None:
        """Return the affected watched path and the kind of change, or None if no watched file is affected."""
        paths = [os.path.abspath(os.fsdecode(p)) for p in (event.src_path, getattr(event, "dest_path", "")) if p]
        for path in paths:
            if path in self._watched:
                return path, self._classify_watched(event, path)

        # Secret volumes swap a "..data" symlink instead of touching the files themselves.
        for path, before in self._fingerprints.items():
            if FileFingerprint.of(path) != before:
                return path, ChangeKind.RENAME
        return None

    def _classify_watched(self, event: FileSystemEvent, path: str) -> ChangeKind:
        if event.event_type in _ACCESS_EVENT_TYPES:
            return ChangeKind.ACCESS
        if event.event_type == EVENT_TYPE_DELETED:
            return ChangeKind.REMOVE
        if event.event_type == EVENT_TYPE_MOVED:
            return ChangeKind.RENAME
        if event.event_type == EVENT_TYPE_CREATED:
            return ChangeKind.CREATE
        # Emitted only after the file was opened for writing.
        if event.event_type == EVENT_TYPE_CLOSED:
            return ChangeKind.WRITE
        if FileFingerprint.of(path) == self._fingerprints.get(path):
            return ChangeKind.CHMOD
        return ChangeKind.WRITE

    def on_any_event(self, event: FileSystemEvent) -> None:
        classified = self.classify(event)
        if classified is None:
            return
        path, kind = classified
        if kind in IGNORED_CHANGES:
            log.debug("kubeconfig_event_ignored", path=path, kind=str(kind))
            return

        with self._lock:
            if self._triggered:
                return
            self._triggered = True

        request = RestartRequest(cluster=self._watched[path], path=path, kind=kind, event=event.event_type)
        log.info(
            "kubeconfig_changed",
            cluster=request.cluster,
            path=path,
            kind=str(kind),
            event=request.event,
            action="exiting so the kubelet restarts us with the new kubeconfigs",
        )
        self._trigger_restart(request)


class KubeconfigWatcher:
    """Watches the kubeconfig file of every build cluster whose file exists at registration time."""

    def __init__(
        self,
        clusters: Mapping[str, BuildClusterClients],
        *,
        trigger_restart: Callable[[RestartRequest], Any] = restart_process,
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        self._clusters = clusters
        self._trigger_restart = trigger_restart
        self._observer_factory = observer_factory
        self._observer: Any | None = None
        self.watched: dict[str, str] = {}

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        """Register watches and start the background observer thread.

        Raises:
            WatchSetupError: If the OS watch facility cannot be created or started.
        """
        watched: dict[str, str] = {}
        for name, bundle in sorted(self._clusters.items()):
            path = os.path.abspath(bundle.kubeconfig_path)
            if not os.path.exists(path):
                log.debug("kubeconfig_missing_skipping_watch", cluster=name, path=path)
                continue
            watched[path] = name
        self.watched = watched

        if not watched:
            log.info("no_kubeconfigs_to_watch")
            return

        handler = KubeconfigEventHandler(watched, self._trigger_restart)
        try:
            observer = self._observer_factory()
            # Watch the directory, not the file: secret volumes replace a "..data" symlink
            # and never touch the file itself, and an inode watch would go stale on rename.
            for directory in sorted({os.path.dirname(path) for path in watched}):
                observer.schedule(handler, directory, recursive=False)
            observer.start()
        except OSError as exc:
            msg = f"failed to set up watcher: {exc}"
            raise WatchSetupError(msg) from exc

        self._observer = observer
        log.info("kubeconfig_watches_started", paths=sorted(watched))

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None


def setup_kubeconfig_watches(
    clusters: Mapping[str, BuildClusterClients],
    *,
    trigger_restart: Callable[[RestartRequest], Any] = restart_process,
    observer_factory: Callable[[], Any] = Observer,
) -> KubeconfigWatcher:
    """Start watching every existing build cluster kubeconfig. Must run after the scan completes."""
    watcher = KubeconfigWatcher(clusters, trigger_restart=trigger_restart, observer_factory=observer_factory)
    watcher.start()
    return watcher
