"""
╔══════════════════════════════════════════════════════════════════════════════╗
║                  MOLLY'S LAUNCHER - UPDATE WINDOW                            ║
║                 Presentation layer (CustomTkinter GUI)                        ║
╠══════════════════════════════════════════════════════════════════════════════╣
║  📨 Receives orchestrator events through notify(event, payload)              ║
║  🧵 Every widget update is marshalled onto the Tk loop with after(0, ...)    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from tkinter import messagebox
from typing import Any, Dict, Optional

import customtkinter as ctk

from mollylauncher.core.scheduler import run_in_thread
from mollylauncher.core.updater import (
    EVENT_AVAILABLE,
    EVENT_CHECKING,
    EVENT_DOWNLOADED,
    EVENT_DOWNLOADING,
    EVENT_ERROR,
    EVENT_NOT_AVAILABLE,
    EVENT_PROGRESS,
    UpdateOrchestrator,
)

logger = logging.getLogger(__name__)

# Set UI Theme
ctk.set_appearance_mode("dark")
ctk.set_default_color_theme("blue")


class LauncherApp(ctk.CTk):
    """
    Small launcher window showing the update status.

    Acts as the orchestrator's notification sink. The orchestrator is
    attached after construction because it needs the window as its sink.
    """

    def __init__(self, version: str):
        super().__init__()

        self.version = version
        self.orchestrator: Optional[UpdateOrchestrator] = None
        self._pending: Optional[Dict[str, Any]] = None

        self.title(f"Molly's Launcher v{version}")
        self.geometry("550x500")
        self.resizable(False, False)

        self._build_ui()
        self.protocol("WM_DELETE_WINDOW", self._on_close)

    def attach(self, orchestrator: UpdateOrchestrator) -> None:
        self.orchestrator = orchestrator

    def _build_ui(self) -> None:
        """Build the window UI."""
        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(3, weight=1)

        # ══════════════════════════════════════════════════════════════════════
        # 1. HEADER
        # ══════════════════════════════════════════════════════════════════════
        header = ctk.CTkFrame(self, fg_color="transparent")
        header.grid(row=0, column=0, padx=25, pady=(20, 10), sticky="ew")

        ctk.CTkLabel(
            header,
            text="Molly's Launcher",
            font=ctk.CTkFont(size=24, weight="bold")
        ).pack(anchor="w")

        ctk.CTkLabel(
            header,
            text=f"v{self.version}",
            text_color="#777777"
        ).pack(anchor="w")

        # ══════════════════════════════════════════════════════════════════════
        # 2. STATUS + PROGRESS
        # ══════════════════════════════════════════════════════════════════════
        status_frame = ctk.CTkFrame(self)
        status_frame.grid(row=1, column=0, padx=25, pady=10, sticky="ew")
        status_frame.grid_columnconfigure(0, weight=1)

        self.status_label = ctk.CTkLabel(status_frame, text="Ready")
        self.status_label.grid(row=0, column=0, padx=15, pady=(12, 4), sticky="w")

        self.progress_bar = ctk.CTkProgressBar(status_frame, height=12, corner_radius=6)
        self.progress_bar.grid(row=1, column=0, padx=15, pady=(0, 12), sticky="ew")
        self.progress_bar.set(0)

        # ══════════════════════════════════════════════════════════════════════
        # 3. BUTTONS
        # ══════════════════════════════════════════════════════════════════════
        btn_row = ctk.CTkFrame(self, fg_color="transparent")
        btn_row.grid(row=2, column=0, padx=20, pady=5, sticky="ew")
        btn_row.grid_columnconfigure((0, 1), weight=1)

        self.check_btn = ctk.CTkButton(
            btn_row,
            text="🔄 Check for updates",
            command=self._on_check,
            height=44,
            fg_color="#3B82F6",
            hover_color="#2563EB",
        )
        self.check_btn.grid(row=0, column=0, padx=5, sticky="ew")

        self.install_btn = ctk.CTkButton(
            btn_row,
            text="⬇️ Install update",
            command=self._on_install,
            height=44,
            fg_color="#22C55E",
            hover_color="#16A34A",
            state="disabled",
        )
        self.install_btn.grid(row=0, column=1, padx=5, sticky="ew")

        # ══════════════════════════════════════════════════════════════════════
        # 4. CHANGELOG
        # ══════════════════════════════════════════════════════════════════════
        self.changelog_box = ctk.CTkTextbox(self, font=("Consolas", 12))
        self.changelog_box.grid(row=3, column=0, padx=25, pady=(10, 20), sticky="nsew")
        self.changelog_box.configure(state="disabled")

    # ══════════════════════════════════════════════════════════════════════════
    # NOTIFICATION SINK
    # ══════════════════════════════════════════════════════════════════════════

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        """Called from worker threads; hands the event to the Tk loop."""
        self.after(0, lambda: self._handle_event(event, payload))

    def _handle_event(self, event: str, payload: Dict[str, Any]) -> None:
        if event == EVENT_CHECKING:
            self._set_status("Checking for updates...")
        elif event == EVENT_AVAILABLE:
            self._pending = payload
            self._set_status(f"🆕 Version {payload.get('version')} is available")
            self._show_changelog(payload.get("changelog") or [])
            self.install_btn.configure(state="normal")
        elif event == EVENT_NOT_AVAILABLE:
            self._pending = None
            self.install_btn.configure(state="disabled")
            self._set_status("✅ Launcher is up to date")
        elif event == EVENT_DOWNLOADING:
            self._set_busy(True)
            self._set_status("Downloading update...")
            self.progress_bar.set(0)
        elif event == EVENT_PROGRESS:
            percent = payload.get("percent")
            if percent is not None:
                self.progress_bar.set(percent / 100.0)
                self._set_status(f"Downloading... {percent:.0f}%")
            else:
                self._set_status(f"Downloading... {payload.get('downloaded', 0) // 1024} KB")
        elif event == EVENT_DOWNLOADED:
            self.progress_bar.set(1)
            self._set_status("Installing update, the launcher will restart...")
        elif event == EVENT_ERROR:
            self._set_busy(False)
            self._set_status(f"❌ {payload.get('message', 'Update failed')}")

    # ══════════════════════════════════════════════════════════════════════════
    # UI STATE MANAGEMENT
    # ══════════════════════════════════════════════════════════════════════════

    def _set_status(self, text: str) -> None:
        self.status_label.configure(text=text)

    def _set_busy(self, busy: bool) -> None:
        state = "disabled" if busy else "normal"
        self.check_btn.configure(state=state)
        self.install_btn.configure(state="disabled" if busy or not self._pending else "normal")

    def _show_changelog(self, changelog) -> None:
        self.changelog_box.configure(state="normal")
        self.changelog_box.delete("1.0", "end")
        for item in changelog:
            self.changelog_box.insert("end", f"• {item}\n")
        self.changelog_box.configure(state="disabled")

    # ══════════════════════════════════════════════════════════════════════════
    # EVENT HANDLERS
    # ══════════════════════════════════════════════════════════════════════════

    def _on_check(self) -> None:
        if self.orchestrator:
            self.orchestrator.check_now()

    def _on_install(self) -> None:
        if not self.orchestrator or not self._pending:
            return
        version = self._pending.get("version")
        if messagebox.askyesno("Update", f"Install version {version} now?\nThe launcher will restart."):
            self._start_install(self._pending.get("downloadUrl"), version)

    @run_in_thread
    def _start_install(self, download_url: str, version: str) -> None:
        # Failures reach the window through the orchestrator's error event
        result = self.orchestrator.install(download_url, version)
        if not result.success:
            logger.warning("Install did not start: %s", result.error)

    def _on_close(self) -> None:
        if self.orchestrator:
            self.orchestrator.stop(timeout=0)
        self.destroy()
