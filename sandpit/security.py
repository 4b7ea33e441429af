"""
Path safety checks for sandpit adapters.

validate_workspace() guards host directories before they are used as a local
workspace root or mounted into a container. resolve_inside() maps a
sandbox-relative path onto a workspace without letting it escape.
"""

from pathlib import Path, PurePosixPath
from typing import Optional

from .errors import ProviderError
from .logging import get_logger

logger = get_logger("security")

# Paths that must never be mounted (exact match only)
BLOCKED_EXACT = {Path("/")}

# System directories: a workspace or mount must not be inside these
BLOCKED_TREES = {
    Path("/etc"),
    Path("/var"),
    Path("/usr"),
    Path("/bin"),
    Path("/sbin"),
    Path("/boot"),
    Path("/dev"),
    Path("/proc"),
    Path("/sys"),
    Path("/root"),
}

# Safe subdirectories under blocked trees (e.g. macOS temp dirs under /var)
ALLOWED_SUBTREES = {
    Path("/var/folders"),
    Path("/var/tmp"),
}


def _is_under(path: Path, parent: Path) -> bool:
    for check in {parent, parent.resolve()}:
        try:
            path.relative_to(check)
            return True
        except ValueError:
            continue
    return False


def validate_workspace(workspace: Path, allowed_root: Optional[Path] = None) -> bool:
    """
    Check that a host path is safe to use as a workspace or container mount.

    Rules:
    - Cannot be the root filesystem itself
    - Cannot be inside system directories (/etc, /var, /usr, etc.),
      except the allowed temp subtrees
    - If allowed_root is set, must be under that directory

    Returns:
        True if the path is safe
    """
    workspace = Path(workspace).resolve()

    if workspace in BLOCKED_EXACT:
        logger.warning(f"Blocked workspace path: {workspace} (exact match)")
        return False

    if not any(_is_under(workspace, allowed) for allowed in ALLOWED_SUBTREES):
        for blocked in BLOCKED_TREES:
            if _is_under(workspace, blocked):
                logger.warning(f"Blocked workspace path: {workspace} (under {blocked})")
                return False

    if allowed_root is not None and not _is_under(workspace, Path(allowed_root).resolve()):
        logger.warning(f"Workspace {workspace} is not under allowed root {allowed_root}")
        return False

    return True


def resolve_inside(root: Path, path: str) -> Path:
    """
    Resolve a sandbox path against a workspace directory.

    Absolute sandbox paths are taken relative to the workspace ("/app/x.py"
    becomes "<root>/app/x.py"). Raises ProviderError if the result would
    leave the workspace.
    """
    root = root.resolve()
    relative = PurePosixPath(path)
    if relative.is_absolute():
        relative = relative.relative_to("/")
    target = (root / relative).resolve()
    if target != root and not _is_under(target, root):
        raise ProviderError(f"Path escapes the sandbox workspace: {path}", detail=path)
    return target
