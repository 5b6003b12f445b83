import logging
import threading
from typing import Optional
from buildrun.build.resolver import resolve
from buildrun.build.snapshot import BuildSnapshot, ResolvedTarget, TargetSpec
from buildrun.errors import SKIPPED_HAS_ERRORS, SKIPPED_NOT_WATCHING, BuildRunError, kind_extra
from buildrun.local.supervisor import ProcessSupervisor

log = logging.getLogger(__name__)

# Resolution failures that only mean "nothing to do this cycle".
_WARNING_KINDS = {SKIPPED_HAS_ERRORS}


class WatchSession:
    """
    Connects build events to the supervisor for the lifetime of one watch.

    Builds that finish before `on_watch_started` has been called are skipped.
    """

    def __init__(self, spec: TargetSpec, supervisor: Optional[ProcessSupervisor] = None) -> None:
        self.spec = spec
        self.supervisor = supervisor or ProcessSupervisor()
        self.last_target: Optional[ResolvedTarget] = None
        self._watching = threading.Event()

    @property
    def is_watching(self) -> bool:
        return self._watching.is_set()

    def on_watch_started(self) -> None:
        """One-time latch: from now on finished builds start the child."""
        if not self._watching.is_set():
            log.debug("Watch mode engaged.")
        self._watching.set()

    def on_build_finished(self, snapshot: BuildSnapshot) -> Optional[ResolvedTarget]:
        """
        Handles one finished build. Never raises.

        :param snapshot: The build cycle's output.
        :return: The target handed to the supervisor, or None if the cycle was skipped or failed.
        """
        try:
            return self._process_build(snapshot)
        except Exception as e:
            log.error(f"Unexpected error while handling a finished build: {e}", exc_info=True)
            return None

    def _process_build(self, snapshot: BuildSnapshot) -> Optional[ResolvedTarget]:
        if not self.is_watching:
            log.warning("Skipped because watch mode is not enabled. Use 'buildrun watch' to enable it.", extra=kind_extra(SKIPPED_NOT_WATCHING))
            return None

        try:
            target = resolve(snapshot, self.spec)
            self.supervisor.ensure_running(target.path, self.spec.extra_args)
        except BuildRunError as e:
            level = logging.WARNING if e.kind in _WARNING_KINDS else logging.ERROR
            log.log(level, str(e), extra=kind_extra(e.kind))
            return None

        self.last_target = target
        return target
