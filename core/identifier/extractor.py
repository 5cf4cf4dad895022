# ============================================
# 📁 core/identifier/extractor.py
# ============================================
"""
Derives a stable, resource-name-safe deployment identifier from a branch.

Resolution order, first success wins:
  1. platform change id from the triggering event
  2. authoritative proposal lookup (first open proposal for the head branch)
  3. `pr` marker token followed by digits anywhere in the branch name
  4. the trailing (last) digit group in the branch name
  5. sanitized branch name + a fixed-length commit hash slice
"""
import logging
import re
from typing import Optional, Tuple

from interfaces.types.deployment import DeploymentIdentifier, DerivationMethod, normalize_ref
from sdk.exceptions import BranchDeploySDKError
from sdk.protocols import LookupClient, VcsClient
from core.orchestrator.exceptions import ResolutionError, ProposalLookupError

logger = logging.getLogger(__name__)

DEFAULT_HASH_LENGTH = 7

DETACHED_REFS = {"", "HEAD", "DETACHED"}

# Marker must start a token: "feature/pr-212", "PR_45", "fix-pr#9" but not "sprint5"
PR_MARKER_PATTERN = re.compile(r"(?<![A-Za-z0-9])pr[-_/#]?([0-9]+)", re.IGNORECASE)
DIGITS_PATTERN = re.compile(r"[0-9]+")
NON_ALNUM_RUN = re.compile(r"[^A-Za-z0-9]+")


def normalize_branch(ref: Optional[str]) -> str:
    return normalize_ref(ref or "")


def is_detached(branch: Optional[str]) -> bool:
    return normalize_branch(branch).upper() in DETACHED_REFS


def sanitize_token(text: Optional[str]) -> str:
    """Every non-alphanumeric run becomes one hyphen; edge hyphens are trimmed."""
    return NON_ALNUM_RUN.sub("-", text or "").strip("-")


def extract_from_branch_name(branch: str, commit: Optional[str], hash_length: int = DEFAULT_HASH_LENGTH) -> Tuple[str, DerivationMethod]:
    """Steps 3-5: no I/O, deterministic for a given (branch, commit)."""
    marker = PR_MARKER_PATTERN.search(branch)
    if marker:
        return marker.group(1), DerivationMethod.PATTERN_MATCH

    digit_groups = DIGITS_PATTERN.findall(branch)
    if digit_groups:
        return digit_groups[-1], DerivationMethod.TRAILING_NUMBER

    sanitized = sanitize_token(branch)
    if not sanitized:
        raise ResolutionError(f"Branch '{branch}' has no usable characters for an identifier")

    commit_slice = sanitize_token(commit)[:hash_length]
    if not commit_slice:
        logger.warning(f"No commit hash available for branch '{branch}'; identifier '{sanitized}' is not unique per commit.")
        return sanitized, DerivationMethod.HASH_FALLBACK
    return f"{sanitized}-{commit_slice}", DerivationMethod.HASH_FALLBACK


class IdentifierExtractor:
    def __init__(self, vcs: Optional[VcsClient] = None, hash_length: int = DEFAULT_HASH_LENGTH):
        self.vcs = vcs
        self.hash_length = hash_length

    async def resolve(self,
                      branch: Optional[str],
                      commit: Optional[str],
                      platform_change_id: Optional[str] = None,
                      lookup: Optional[LookupClient] = None) -> DeploymentIdentifier:
        branch_name = await self._resolve_branch(branch, commit)

        change_id = sanitize_token(platform_change_id)
        if change_id:
            logger.info(f"Identifier '{change_id}' taken from platform change id (branch '{branch_name}').")
            return self._identifier(change_id, DerivationMethod.PLATFORM_CHANGE_ID, branch_name)
        if platform_change_id:
            logger.warning(f"Platform change id '{platform_change_id}' has no usable characters; ignoring it.")

        if lookup is not None:
            proposal_number = await self._lookup_proposal(lookup, branch_name)
            if proposal_number is not None:
                logger.info(f"Identifier '{proposal_number}' taken from proposal lookup for '{branch_name}'.")
                return self._identifier(str(proposal_number), DerivationMethod.API_LOOKUP, branch_name)

        value, method = extract_from_branch_name(branch_name, commit, self.hash_length)
        logger.info(f"Identifier '{value}' derived from branch '{branch_name}' via {method.value}.")
        return self._identifier(value, method, branch_name)

    async def _resolve_branch(self, branch: Optional[str], commit: Optional[str]) -> str:
        branch_name = normalize_branch(branch)
        if not is_detached(branch_name):
            return branch_name

        logger.info(f"Branch '{branch or ''}' is detached or empty; running branch discovery for commit {commit or 'HEAD'}.")
        if self.vcs is None:
            raise ResolutionError("Branch is detached/empty and no VCS client is available for branch discovery")
        try:
            discovered = await self.vcs.discover_branch(commit)
        except BranchDeploySDKError as e:
            raise ResolutionError(f"Branch discovery failed: {e}") from e

        discovered_name = normalize_branch(discovered)
        if is_detached(discovered_name):
            raise ResolutionError(f"Could not resolve a branch name for commit {commit or 'HEAD'}")
        logger.info(f"Branch discovery resolved '{discovered_name}'.")
        return discovered_name

    async def _lookup_proposal(self, lookup: LookupClient, branch_name: str) -> Optional[int]:
        try:
            numbers = await lookup.find_open_proposals(branch_name)
        except BranchDeploySDKError as e:
            raise ProposalLookupError(f"Proposal lookup for '{branch_name}' failed: {e}") from e
        if not numbers:
            logger.info(f"Proposal lookup for '{branch_name}' returned no open proposals.")
            return None
        return numbers[0]

    @staticmethod
    def _identifier(value: str, method: DerivationMethod, branch_name: str) -> DeploymentIdentifier:
        return DeploymentIdentifier(value=value, method=method, source_branch=branch_name)
