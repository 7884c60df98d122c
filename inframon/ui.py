"""
Design (ui.py)
- Purpose: Tkinter status window: one row per board device with its latest ping and SSH
           state, plus controls to reload the board, change the ping interval, re-detect link speed
           and show logs.
- Inputs: BoardRepo (board pushes), PingMonitor / SSHMonitor (status reads), LogStore.
- Outputs: None (renders UI).
- Side effects: Reloading the board re-reads the board file and wakes both monitors.
- Thread-safety: UI code runs on the main thread; monitors are only read through their
                 copy-returning getters, polled with Tk.after().
                 Link-speed detection runs on short-lived worker threads; results reach
                 the window through the log.
"""

from dataclasses import replace
import threading
import tkinter as tk
from tkinter import ttk
from typing import Optional

from .config import APP_TITLE, LOG_LIST_DEFAULT, MAX_INTERVAL_SEC, MIN_INTERVAL_SEC, UI_REFRESH_MS
from .logs import LogStore
from .models import PingResult, SSHStatus
from .ping_monitor import PingMonitor
from .repository import BoardRepo
from .secret_store import SecretStoreError
from .ssh_monitor import SSHMonitor

COLUMNS = ("device", "type", "target", "ping", "rtt", "ssh", "checked")
HEADERS = {
    "device": "Device",
    "type": "Type",
    "target": "Target",
    "ping": "Ping",
    "rtt": "RTT",
    "ssh": "SSH",
    "checked": "Last Checked",
}


def format_ping(result: Optional[PingResult]) -> str:
    if result is None:
        return "—"
    if result.online:
        return "ONLINE"
    return f"OFFLINE ({result.error})" if result.error else "OFFLINE"


def format_ssh(status: Optional[SSHStatus]) -> str:
    if status is None:
        return "—"
    return "ONLINE" if status.online else "OFFLINE"


def row_color(result: Optional[PingResult]) -> str:
    if result is None:
        return "grey"
    return "green" if result.online else "red"


class StatusWindow:
    """
    Design (StatusWindow)
    - Public attributes:
        show_logs (tk.BooleanVar): toggles visibility of the logs panel
        interval (tk.IntVar): global ping interval to apply
    - Public methods:
        refresh(): repaint rows and logs from the current snapshots (main thread)
    """

    def __init__(self, root: tk.Tk, repo: BoardRepo, ping: PingMonitor, ssh: SSHMonitor, logs: LogStore):
        self.root = root
        self.repo = repo
        self.ping = ping
        self.ssh = ssh
        self.logs = logs
        self.show_logs = tk.BooleanVar(value=False)
        self.interval = tk.IntVar(value=ping.get_policy().interval_sec)

        self.root.title(APP_TITLE)
        self.root.rowconfigure(0, weight=1)
        self.root.columnconfigure(0, weight=1)
        self.root.configure(bg="#1e1e1e")

        style = ttk.Style(self.root)
        style.theme_use("default")
        style.configure(
            "Treeview",
            background="#2b2b2b",
            foreground="#f0f0f0",
            fieldbackground="#2b2b2b",
            rowheight=24,
        )
        style.configure("Treeview.Heading", background="#1e1e1e", foreground="#ffffff")
        style.map("Treeview", background=[("selected", "#444")], foreground=[])

        self.tree = ttk.Treeview(self.root, columns=COLUMNS, show="headings")
        self.tree.grid(row=0, column=0, sticky="nsew", padx=10, pady=(10, 5))
        for col in COLUMNS:
            self.tree.heading(col, text=HEADERS[col])
        self.tree.tag_configure("green", foreground="#7CFC00")
        self.tree.tag_configure("red", foreground="#FF6A6A")
        self.tree.tag_configure("grey", foreground="#9a9a9a")

        self.logs_box = tk.Text(self.root, height=8, bg="#1b1b1b", fg="#dddddd", wrap="none")
        self.logs_box.configure(state="disabled")

        button_frame = tk.Frame(self.root, bg="#1e1e1e")
        button_frame.grid(row=2, column=0, sticky="ew", padx=10, pady=(0, 10))
        ttk.Button(button_frame, text="Reload Board", command=self.reload_board).pack(side=tk.LEFT, padx=5)
        tk.Label(button_frame, text="Interval (s)", fg="white", bg="#1e1e1e").pack(side=tk.LEFT, padx=(15, 5))
        tk.Spinbox(
            button_frame,
            from_=MIN_INTERVAL_SEC,
            to=MAX_INTERVAL_SEC,
            textvariable=self.interval,
            width=6,
        ).pack(side=tk.LEFT)
        ttk.Button(button_frame, text="Apply", command=self.apply_interval).pack(side=tk.LEFT, padx=5)
        ttk.Button(button_frame, text="Detect Link Speed", command=self.detect_link_speed).pack(side=tk.LEFT, padx=5)
        tk.Checkbutton(
            button_frame,
            text="Show Logs",
            variable=self.show_logs,
            fg="white",
            bg="#1e1e1e",
            selectcolor="#2b2b2b",
            command=self.toggle_logs,
        ).pack(side=tk.LEFT, padx=5)

        self.refresh()

    # ---------- Actions ----------

    def reload_board(self) -> None:
        self.repo.load()
        self.interval.set(self.ping.get_policy().interval_sec)
        self.refresh()

    def apply_interval(self) -> None:
        try:
            value = int(self.interval.get())
        except (tk.TclError, ValueError):
            value = 0
        self.ping.set_policy(replace(self.ping.get_policy(), interval_sec=value))
        # show the sanitized value
        self.interval.set(self.ping.get_policy().interval_sec)

    def detect_link_speed(self) -> None:
        """Re-detect link speed for the selected devices off the UI thread (SSH can block)."""
        for device_id in self.tree.selection():
            threading.Thread(target=self._detect_worker, args=(device_id,), daemon=True).start()

    def _detect_worker(self, device_id: str) -> None:
        try:
            creds = self.repo.refresh_link_speed(device_id, force=True)
        except SecretStoreError as err:
            self.logs.append("warn", "settings", f"failed to read settings for {device_id}: {err}")
            return
        if creds is None:
            self.logs.append("info", "ssh", f"no SSH settings for {device_id}")

    def toggle_logs(self) -> None:
        if self.show_logs.get():
            self.logs_box.grid(row=1, column=0, sticky="nsew", padx=10, pady=(0, 6))
            self._render_logs()
        else:
            self.logs_box.grid_remove()

    # ---------- Painting ----------

    def refresh(self) -> None:
        board = self.repo.snapshot()
        ping_results = self.ping.get_results()
        ssh_results = self.ssh.get_results()

        selected = set(self.tree.selection())
        self.tree.delete(*self.tree.get_children())
        for device in board.devices:
            if device.is_segment:
                continue
            result = ping_results.get(device.id)
            status = ssh_results.get(device.id)
            checked = result.last_checked.astimezone().strftime("%Y-%m-%d %H:%M:%S") if result else ""
            self.tree.insert(
                "",
                "end",
                iid=device.id,
                values=(
                    device.id,
                    device.device_type,
                    (result.target if result else "") or device.pick_target() or "—",
                    format_ping(result) if device.ping_enabled else "off",
                    f"{result.rtt_ms} ms" if result and result.online else "",
                    format_ssh(status) if device.connect_enabled else "off",
                    checked,
                ),
                tags=(row_color(result),),
            )
        self.tree.selection_set([iid for iid in selected if self.tree.exists(iid)])

        if self.show_logs.get():
            self._render_logs()
        self.root.after(UI_REFRESH_MS, self.refresh)

    def _render_logs(self) -> None:
        lines = [
            f"[{e.time}] {e.level.upper():<4} {e.source}: {e.message}\n"
            for e in self.logs.list(LOG_LIST_DEFAULT)
        ]
        self.logs_box.configure(state="normal")
        self.logs_box.delete("1.0", "end")
        self.logs_box.insert("end", "".join(lines))
        self.logs_box.see("end")
        self.logs_box.configure(state="disabled")
