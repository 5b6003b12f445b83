"""
Error taxonomy and log-event kinds for buildrun.

Every failure in a build cycle maps to exactly one of the kinds below. The kind
is attached to the emitted log record as ``record.kind`` so it can be filtered
(or asserted on) independently of the human-readable message.
"""
from typing import List, Optional, Sequence

#* --- Log event kinds ---
SKIPPED_NOT_WATCHING = "skipped-not-watching"
SKIPPED_HAS_ERRORS = "skipped-has-errors"
NO_ARTIFACTS = "no-artifacts"
TARGET_NOT_FOUND = "target-not-found"
AMBIGUOUS_TARGET = "ambiguous-target"
SPAWN_FAILED = "spawn-failed"
TERMINATION_FAILED = "termination-failed"
RESTARTING = "restarting"
STARTING = "starting"

LOG_KINDS = frozenset({
    SKIPPED_NOT_WATCHING, SKIPPED_HAS_ERRORS, NO_ARTIFACTS, TARGET_NOT_FOUND,
    AMBIGUOUS_TARGET, SPAWN_FAILED, TERMINATION_FAILED, RESTARTING, STARTING,
})


def kind_extra(kind: str) -> dict:
    """Returns the `extra` mapping used to tag a log record with its kind."""
    return {"kind": kind}


class BuildRunError(Exception):
    """Base class for every recoverable error raised during a build cycle."""
    kind: str = ""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


#* --- Resolution errors ---
class ResolutionError(BuildRunError):
    """The build snapshot could not be turned into a runnable target."""


class BuildHasErrors(ResolutionError):
    kind = SKIPPED_HAS_ERRORS

    def __init__(self) -> None:
        super().__init__("Skipped because the build has errors.")


class NoOutputArtifacts(ResolutionError):
    kind = NO_ARTIFACTS

    def __init__(self) -> None:
        super().__init__("No output artifacts to process!")


class TargetNotFound(ResolutionError):
    kind = TARGET_NOT_FOUND

    def __init__(self, specifier: str, candidates: Sequence[str]) -> None:
        self.specifier = specifier
        self.candidates: List[str] = list(candidates)
        super().__init__(
            f"Target '{specifier}' was not found among the emitted artifacts "
            f"{self.candidates} nor on the filesystem. Check the target name or path."
        )


class AmbiguousTarget(ResolutionError):
    kind = AMBIGUOUS_TARGET

    def __init__(self, candidates: Sequence[str]) -> None:
        self.candidates: List[str] = list(candidates)
        super().__init__(
            f"Multiple output artifacts detected. Choose one with --target "
            f"(or BUILDRUN_TARGET) from: {', '.join(self.candidates)}"
        )


#* --- Supervisor errors ---
class SupervisorError(BuildRunError):
    """A process lifecycle operation failed. The supervisor itself stays usable."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class SpawnFailed(SupervisorError):
    kind = SPAWN_FAILED


class TerminationFailed(SupervisorError):
    kind = TERMINATION_FAILED
