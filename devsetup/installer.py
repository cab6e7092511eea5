"""
Remote installer scripts (Homebrew, Oh-My-Zsh) fetched over HTTPS with httpx.
"""
import os
import subprocess
from typing import Dict, Optional

import httpx

from .errors import CommandError
from .models import ExecutionMode
from .ui import log_dry_run, log_substep

HOMEBREW_INSTALL_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"
OH_MY_ZSH_INSTALL_URL = "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"


def fetch_script(url: str, timeout: float = 30.0) -> str:
    """Download an installer script, following redirects."""
    try:
        with httpx.Client(timeout=timeout, follow_redirects=True) as client:
            response = client.get(url)
            response.raise_for_status()
            return response.text
    except httpx.HTTPError as e:
        raise CommandError(f"Failed to download installer from {url}: {e}") from e

def run_installer(
    url: str,
    mode: ExecutionMode,
    shell: str = "/bin/bash",
    env: Optional[Dict[str, str]] = None,
    timeout: float = 30.0,
) -> None:
    """Fetch the script at url and run it with shell. Interactive installers get the real terminal."""
    if mode == ExecutionMode.SIMULATE:
        log_dry_run(f"download and run installer: {url}")
        return

    script = fetch_script(url, timeout=timeout)
    log_substep(f"Running installer from {url}")
    merged_env = {**os.environ, **(env or {})}
    try:
        proc = subprocess.run([shell, "-c", script], env=merged_env, check=False)
    except OSError as e:
        raise CommandError(f"Failed to run installer {url}: {e}") from e
    if proc.returncode != 0:
        raise CommandError(f"Installer {url} exited with code {proc.returncode}")
