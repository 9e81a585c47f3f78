# utils/version.py
"""
Version detection utilities for serverpilot.

Implements fallback chain:
1. installed package metadata
2. git describe --tags
3. hardcoded "0.0.0-dev"
"""
import subprocess
from importlib import metadata
from pathlib import Path


def get_version() -> str:
    """
    Get serverpilot version using fallback chain.

    Returns:
        Version string (e.g., "1.2.3" or "0.0.0-dev")
    """
    # 1. Installed package metadata
    try:
        version = metadata.version("serverpilot")
        if version:
            return version
    except metadata.PackageNotFoundError:
        pass

    # 2. Try git describe --tags
    try:
        repo_root = Path(__file__).parent.parent
        result = subprocess.run(
            ["git", "describe", "--tags", "--always"],
            cwd=repo_root,
            capture_output=True,
            text=True,
            timeout=2
        )
        if result.returncode == 0 and result.stdout.strip():
            version = result.stdout.strip()
            # Remove 'v' prefix if present
            if version.startswith("v"):
                version = version[1:]
            return version
    except (OSError, subprocess.SubprocessError):
        pass

    # 3. Fallback
    return "0.0.0-dev"
