import os
import shlex
from typing import Any, NamedTuple, Optional, Sequence, Tuple


class BuildSnapshot(NamedTuple):
    """
    The immutable outcome of one build cycle.

    :param artifact_names: Emitted file names, in emission order.
    :param output_directory: Absolute path of the build output directory.
    :param has_errors: True if the build reported errors.
    """
    artifact_names: Tuple[str, ...]
    output_directory: str
    has_errors: bool = False

    @classmethod
    def create(cls, artifact_names: Sequence[str], output_directory: Any, has_errors: bool = False) -> "BuildSnapshot":
        """Builds a snapshot, normalizing the names to a tuple and the directory to an absolute path."""
        return cls(tuple(artifact_names), os.path.abspath(str(output_directory)), bool(has_errors))


class TargetSpec(NamedTuple):
    """What to run and how, fixed for the lifetime of a watch session."""
    raw_specifier: Optional[str] = None
    extra_args: Tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, config: Any, specifier: Optional[str] = None, extra_args: Optional[Sequence[str]] = None) -> "TargetSpec":
        """
        Builds the session spec from settings, letting explicit values win.

        :param config: The settings object (see `buildrun.local.config`).
        :param specifier: A target given on the command line, if any.
        :param extra_args: Child arguments given on the command line, if any.
        """
        if specifier is None:
            specifier = config.BUILDRUN_TARGET or None
        if extra_args is None:
            extra_args = shlex.split(config.BUILDRUN_ARGS or "")
        return cls(specifier, tuple(extra_args))


class ResolvedTarget(NamedTuple):
    """The artifact chosen for this cycle. Never reused across cycles."""
    name: str
    path: str
