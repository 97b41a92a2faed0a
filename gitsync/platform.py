"""Cross-platform compatibility utilities for gitsync."""

import platform
import subprocess
from typing import Optional, Dict, Any


class PlatformInfo:
    """Platform the engine runs on; decides the git executable name."""

    def __init__(self):
        self._system = platform.system()

    @property
    def is_windows(self) -> bool:
        """Check if running on Windows."""
        return self._system.lower() == "windows"

    def get_system_info(self) -> Dict[str, Any]:
        """Get the system details reported by the MCP server at startup."""
        return {
            'system': self._system,
            'release': platform.release(),
            'python_version': platform.python_version(),
        }


_platform_info: Optional[PlatformInfo] = None


def get_platform_info() -> PlatformInfo:
    """Get the cached platform info instance."""
    global _platform_info
    if _platform_info is None:
        _platform_info = PlatformInfo()
    return _platform_info


def get_git_executable() -> str:
    """
    Get the Git executable name for the current platform.

    Returns:
        Git executable name
    """
    if get_platform_info().is_windows:
        return "git.exe"
    return "git"


def validate_git_availability() -> tuple[bool, Optional[str]]:
    """
    Validate that Git is available on the current platform.

    Returns:
        Tuple of (is_available, error_message)
    """
    git_cmd = get_git_executable()

    try:
        result = subprocess.run(
            [git_cmd, "--version"],
            capture_output=True,
            text=True,
            timeout=10
        )

        if result.returncode == 0:
            return True, None
        else:
            return False, f"Git command failed: {result.stderr}"

    except FileNotFoundError:
        return False, f"Git executable '{git_cmd}' not found"
    except subprocess.TimeoutExpired:
        return False, "Git command timed out"
    except OSError as e:
        return False, f"Error checking Git availability: {e}"
