import os
import logging
from typing import Optional, Sequence
from buildrun.build.snapshot import BuildSnapshot, ResolvedTarget, TargetSpec
from buildrun.errors import AmbiguousTarget, BuildHasErrors, NoOutputArtifacts, TargetNotFound

log = logging.getLogger(__name__)


def find_matching_artifact(specifier: str, artifact_names: Sequence[str]) -> Optional[str]:
    """
    Finds the artifact a specifier refers to.

    An exact name always wins over a substring match, whatever the emission
    order. Within each phase the first name in emission order wins.

    :param specifier: The configured target name or fragment.
    :param artifact_names: Emitted names, in emission order.
    :return: The matching name, or None.
    """
    for name in artifact_names:
        if name == specifier:
            return name
    for name in artifact_names:
        if specifier in name:
            return name
    return None


def _resolve_filesystem_path(specifier: str) -> Optional[ResolvedTarget]:
    """Treats the specifier as a path on disk, bypassing the output directory."""
    if not os.path.exists(specifier):
        return None
    path = os.path.normpath(os.path.abspath(specifier))
    return ResolvedTarget(name=os.path.basename(path), path=path)


def resolve(snapshot: BuildSnapshot, spec: TargetSpec) -> ResolvedTarget:
    """
    Determines the single artifact to run for a finished build.

    :param snapshot: The build cycle's output.
    :param spec: The session's target spec.
    :return: The resolved target with an absolute path.
    :raises BuildHasErrors: If the build reported errors.
    :raises NoOutputArtifacts: If the build emitted nothing.
    :raises TargetNotFound: If the specifier matches no artifact and no file.
    :raises AmbiguousTarget: If no specifier is set and several artifacts exist.
    """
    if snapshot.has_errors:
        raise BuildHasErrors()

    names = list(snapshot.artifact_names)
    if not names:
        raise NoOutputArtifacts()

    if spec.raw_specifier:
        selected = find_matching_artifact(spec.raw_specifier, names)
        if selected is None:
            on_disk = _resolve_filesystem_path(spec.raw_specifier)
            if on_disk is None:
                raise TargetNotFound(spec.raw_specifier, names)
            log.debug(f"Target '{spec.raw_specifier}' resolved from the filesystem to {on_disk.path}")
            return on_disk
    elif len(names) == 1:
        selected = names[0]
    else:
        raise AmbiguousTarget(names)

    path = os.path.join(snapshot.output_directory, selected)
    return ResolvedTarget(name=selected, path=os.path.abspath(path))
