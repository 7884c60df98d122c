"""
Design (main.py)
- Purpose: Wire stores, monitors and the status window, then run the Tk main loop.
- Order: data dir -> LogStore -> SecretStore -> PingMonitor/SSHMonitor (started) ->
         BoardRepo.load() (first board push) -> StatusWindow.
- Side effects: Creates the data directory, board file and secret key on first run.
"""

import tkinter as tk

from inframon.logs import LogStore
from inframon.ping_monitor import PingMonitor
from inframon.repository import BoardRepo
from inframon.secret_store import SecretStore
from inframon.ssh_monitor import SSHMonitor
from inframon.storage import get_board_path, get_data_dir, get_secret_paths
from inframon.ui import StatusWindow


def main() -> None:
    data_dir = get_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)

    logs = LogStore()
    key_path, secrets_path = get_secret_paths(data_dir)
    secrets = SecretStore(key_path, secrets_path)

    ping = PingMonitor(logs=logs)
    ssh = SSHMonitor(provider=secrets, logs=logs)
    ping.start()
    ssh.start()

    repo = BoardRepo(get_board_path(data_dir), ping, ssh, secrets=secrets, logs=logs)
    repo.load()
    logs.append("info", "app", f"board loaded from {repo.path}")

    root = tk.Tk()
    StatusWindow(root, repo, ping, ssh, logs)
    try:
        root.mainloop()
    finally:
        ping.stop()
        ssh.stop()


if __name__ == "__main__":
    main()
