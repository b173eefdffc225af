"""Path whitelisting and the access audit trail."""

import os

import structlog

from proofline.errors import PathDenied
from proofline.ids import now_ms
from proofline.models import PATH_ACTIONS, PathAccessAudit, PathAccessRecord

logger = structlog.get_logger()


def normalize_path(path: str) -> str:
    """Absolute, normalized, case-folded where the platform is case-insensitive.

    Backslashes are treated as separators on every platform so that paths
    recorded on Windows compare correctly.
    """
    if os.sep == "/" and "\\" in path and "/" not in path:
        path = path.replace("\\", "/")
    return os.path.normcase(os.path.normpath(os.path.abspath(os.path.expanduser(path))))


def path_contains(root: str, path: str) -> bool:
    """True if ``path`` equals ``root`` or lies beneath it.

    Comparison is by path segment: ``/a/proj2`` is not inside ``/a/proj``.
    """
    norm_root = normalize_path(root)
    norm_path = normalize_path(path)
    if norm_path == norm_root:
        return True
    prefix = norm_root if norm_root.endswith(os.sep) else norm_root + os.sep
    return norm_path.startswith(prefix)


def create_audit(client: str) -> PathAccessAudit:
    return PathAccessAudit(client=client)


def record_audit(audit: PathAccessAudit, path: str, action: str,
                 allowed: bool, reason: str) -> None:
    audit.records.append(PathAccessRecord(
        path=path, action=action, allowed=allowed, reason=reason, ts=now_ms(),
    ))


def assert_path_allowed(path: str, allowed_roots: list[str],
                        audit: PathAccessAudit, action: str) -> str:
    """Check ``path`` against the allowed roots and record the decision.

    Returns the normalized path. Raises PathDenied when no root contains it.
    """
    if action not in PATH_ACTIONS:
        raise ValueError(f"Unknown path action: {action}")

    resolved = normalize_path(path)
    if not any(path_contains(root, resolved) for root in allowed_roots):
        record_audit(audit, resolved, action, False, "outside client whitelist")
        logger.debug("path.denied", path=resolved, action=action)
        raise PathDenied(resolved)

    record_audit(audit, resolved, action, True, "within client whitelist")
    return resolved
