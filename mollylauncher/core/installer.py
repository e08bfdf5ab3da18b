"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                    INSTALL & RELAUNCH SEQUENCER                               ║
║              Silent install -> settle -> relaunch -> exit                     ║
╠══════════════════════════════════════════════════════════════════════════════╣
║  📝 Writes a transient helper script (batch on Windows, sh elsewhere)        ║
║  🚀 Spawns it detached so it outlives this process                           ║
║  🧹 The script removes the installer artifact and itself                     ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import os
import shlex
import subprocess
import sys
import time
from typing import Callable, List, NoReturn, Optional, Sequence

from mollylauncher.core.errors import InstallLaunchError

logger = logging.getLogger(__name__)

SILENT_INSTALL_ARGS = ("/S",)
POST_UPDATE_FLAG = "--post-update"


# ══════════════════════════════════════════════════════════════════════════════
# OS INTERACTION
# ══════════════════════════════════════════════════════════════════════════════

class ProcessLauncher:
    """Starts child processes that survive the exit of this process."""

    def spawn_detached(self, args: Sequence[str], cwd: Optional[str] = None) -> None:
        """
        Start ``args`` without waiting for it.

        Raises:
            OSError: the executable could not be started
        """
        if sys.platform == "win32":
            creationflags = (
                getattr(subprocess, "DETACHED_PROCESS", 0)
                | getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
            )
            subprocess.Popen(
                list(args),
                cwd=cwd,
                close_fds=True,
                creationflags=creationflags,
            )
        else:
            subprocess.Popen(
                list(args),
                cwd=cwd,
                close_fds=True,
                start_new_session=True,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )

    def terminate_current(self) -> None:
        """Exit this process immediately, from any thread."""
        logger.info("Terminating launcher for update")
        logging.shutdown()
        os._exit(0)


# ══════════════════════════════════════════════════════════════════════════════
# HELPER SCRIPTS
# ══════════════════════════════════════════════════════════════════════════════

def build_batch_script(
    artifact_path: str,
    install_args: Sequence[str],
    relaunch_path: str,
    settle_seconds: int,
) -> str:
    args = " ".join(install_args)
    return f'''@echo off
chcp 65001 >nul

:: Wait for the launcher to close
timeout /t 1 /nobreak >nul

:: Silent install (blocks until the installer exits)
"{artifact_path}" {args}
timeout /t {settle_seconds} /nobreak >nul

:: Relaunch
if exist "{relaunch_path}" (
    start "" "{relaunch_path}" {POST_UPDATE_FLAG}
)

:: Cleanup
del /f /q "{artifact_path}" 2>nul
(goto) 2>nul & del "%~f0"
'''


def build_shell_script(
    artifact_path: str,
    install_args: Sequence[str],
    relaunch_path: str,
    settle_seconds: int,
) -> str:
    artifact = shlex.quote(artifact_path)
    relaunch = shlex.quote(relaunch_path)
    args = " ".join(shlex.quote(a) for a in install_args)
    return f'''#!/bin/sh
sleep 1

chmod +x {artifact} 2>/dev/null
{artifact} {args}
sleep {settle_seconds}

if [ -x {relaunch} ]; then
    nohup {relaunch} {POST_UPDATE_FLAG} >/dev/null 2>&1 &
fi

rm -f {artifact}
rm -f "$0"
'''


# ══════════════════════════════════════════════════════════════════════════════
# SEQUENCER
# ══════════════════════════════════════════════════════════════════════════════

class InstallSequencer:
    """
    Hands the downloaded installer to a detached helper and exits.

    Args:
        relaunch_path: Well-known path of the launcher executable after install
        launcher: OS collaborator used to spawn the helper
        terminate: Called to end this process; defaults to
            ``launcher.terminate_current``
        settle_seconds: Fixed wait after the installer returns
        exit_delay: Pause before terminating so the UI can show final feedback
        platform: Overrides ``sys.platform`` to choose the script flavour
    """

    def __init__(
        self,
        relaunch_path: str,
        launcher: Optional[ProcessLauncher] = None,
        terminate: Optional[Callable[[], None]] = None,
        settle_seconds: int = 5,
        exit_delay: float = 0.5,
        platform: Optional[str] = None,
    ):
        self.relaunch_path = relaunch_path
        self.launcher = launcher or ProcessLauncher()
        self.terminate = terminate or self.launcher.terminate_current
        self.settle_seconds = settle_seconds
        self.exit_delay = exit_delay
        self.platform = platform or sys.platform

    @property
    def is_windows(self) -> bool:
        return self.platform == "win32"

    def script_path_for(self, artifact_path: str) -> str:
        directory = os.path.dirname(os.path.abspath(artifact_path))
        name = "apply_update.bat" if self.is_windows else "apply_update.sh"
        return os.path.join(directory, name)

    def build_command(self, script_path: str) -> List[str]:
        if self.is_windows:
            return ["cmd", "/c", script_path]
        return ["/bin/sh", script_path]

    def install_and_relaunch(
        self,
        artifact_path: str,
        install_args: Sequence[str] = SILENT_INSTALL_ARGS,
    ) -> NoReturn:
        """
        Start the silent install + relaunch helper, then end this process.

        Raises:
            InstallLaunchError: artifact missing or the helper cannot start
        """
        if not os.path.isfile(artifact_path):
            raise InstallLaunchError(f"Installer not found: {artifact_path}")

        script_path = self.script_path_for(artifact_path)
        builder = build_batch_script if self.is_windows else build_shell_script
        content = builder(artifact_path, install_args, self.relaunch_path, self.settle_seconds)

        try:
            with open(script_path, 'w', encoding='utf-8', newline="\r\n" if self.is_windows else "\n") as f:
                f.write(content)
        except OSError as e:
            raise InstallLaunchError(f"Cannot write update script: {e}") from e

        logger.info("🚀 Starting update script %s", script_path)
        try:
            self.launcher.spawn_detached(
                self.build_command(script_path),
                cwd=os.path.dirname(script_path),
            )
        except OSError as e:
            self._cleanup(script_path)
            raise InstallLaunchError(f"Cannot start installer: {e}") from e

        if self.exit_delay > 0:
            time.sleep(self.exit_delay)
        self.terminate()
        raise SystemExit(0)

    @staticmethod
    def _cleanup(*paths: str) -> None:
        for path in paths:
            try:
                if os.path.exists(path):
                    os.remove(path)
            except OSError as e:
                logger.warning("Cleanup of %s failed: %s", path, e)
