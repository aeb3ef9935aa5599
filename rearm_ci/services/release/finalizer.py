"""Submit a finished build and, for ASSEMBLED releases, finalize it.

    PENDING --addrelease--> ASSEMBLED --releasefinalizer--> FINALIZED
    PENDING --addrelease--> REJECTED

A reply without a readable release id leaves the release assembled but
unfinalized; that is reported as a warning, not a failure.
"""

from __future__ import annotations

from dataclasses import dataclass

from rearm_ci.core.json_fragment import extract_envelope
from rearm_ci.core.result import Err, Ok, Result
from rearm_ci.core.structured import get_path_str
from rearm_ci.output.console import ConsoleProtocol
from rearm_ci.services.release.errors import ReleaseError
from rearm_ci.services.release.model import Lifecycle, ReleaseSubmission
from rearm_ci.services.release.registry import RegistryClient

__all__ = [
    "FinalizeOutcome",
    "RELEASE_ENVELOPE_PREFIX",
    "check_target_lifecycle",
    "finalize_release",
    "release_id_from_reply",
]

RELEASE_ENVELOPE_PREFIX = '{"data":'


@dataclass(frozen=True, slots=True)
class FinalizeOutcome:
    lifecycle: Lifecycle
    release_id: str | None = None

    @property
    def finalized(self) -> bool:
        return self.lifecycle == Lifecycle.FINALIZED


def check_target_lifecycle(value: str) -> Result[Lifecycle, ReleaseError]:
    """Parse a submission target; it must be reachable from PENDING."""
    target = Lifecycle.parse(value)
    if target is None or not Lifecycle.PENDING.can_transition_to(target):
        allowed = ", ".join(
            str(lc) for lc in Lifecycle if Lifecycle.PENDING.can_transition_to(lc)
        )
        return Err(
            ReleaseError(
                kind="invalid_lifecycle",
                message=f"invalid lifecycle: {value!r}",
                hint=f"expected one of: {allowed}",
            )
        )
    return Ok(target)


def release_id_from_reply(output: str) -> Result[str, str]:
    """``data.addReleaseProgrammatic.uuid`` from the first ``{"data":`` envelope."""
    match extract_envelope(output, RELEASE_ENVELOPE_PREFIX):
        case Err(e):
            return Err(e.message)
        case Ok(reply):
            release_id = get_path_str(reply, "data", "addReleaseProgrammatic", "uuid")
            if release_id is None:
                return Err("reply has no data.addReleaseProgrammatic.uuid")
            return Ok(release_id)


def finalize_release(
    submission: ReleaseSubmission,
    *,
    registry: RegistryClient,
    console: ConsoleProtocol,
) -> Result[FinalizeOutcome, ReleaseError]:
    if not Lifecycle.PENDING.can_transition_to(submission.lifecycle):
        return Err(
            ReleaseError(
                kind="invalid_lifecycle",
                message=f"cannot submit a release as {submission.lifecycle}",
            )
        )

    console.info(f"Sending release {submission.version} ({submission.lifecycle}) to the registry")
    added = registry.add_release(submission)
    if isinstance(added, Err):
        return added

    if submission.lifecycle != Lifecycle.ASSEMBLED:
        console.success(f"Release {submission.version} recorded as {submission.lifecycle}")
        return Ok(FinalizeOutcome(lifecycle=submission.lifecycle))

    found = release_id_from_reply(added.value)
    if isinstance(found, Err):
        console.warning(f"Release id not found in addrelease output ({found.error}), not finalizing")
        return Ok(FinalizeOutcome(lifecycle=Lifecycle.ASSEMBLED))

    release_id = found.value

    console.info(f"Finalizing release {release_id}")
    finalized = registry.finalize_release(release_id)
    if isinstance(finalized, Err):
        return finalized

    console.success(f"Release {submission.version} finalized")
    return Ok(FinalizeOutcome(lifecycle=Lifecycle.FINALIZED, release_id=release_id))
