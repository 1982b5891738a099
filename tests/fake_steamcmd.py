"""
Stand-in for SteamCMD used by the end-to-end tests.

Invoked as ``fake_steamcmd.py +runscript <script>``. It reads the run script
the way SteamCMD would and acts out a per-item behaviour taken from the JSON
plan in the ``FAKE_STEAMCMD_PLAN`` environment variable::

    {"default": "ok", "items": {"1000001": "hang"}, "state_dir": "/tmp/x"}

Behaviours: ok, lock, claim (success line, no files), fail, ratelimit,
hang (sleeps until killed), flaky (fails on the first attempt, then ok).
"""

import json
import os
import re
import sys
import time
from pathlib import Path

PLAN_ENV = "FAKE_STEAMCMD_PLAN"
INSTALL_DIR = re.compile(r'^force_install_dir "(.*)"$')


def parse_script(path: Path) -> tuple[Path, str, list[str]]:
    install_dir = Path(".")
    app_id = ""
    items = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if m := INSTALL_DIR.match(line):
            install_dir = Path(m.group(1))
        elif line.startswith("workshop_download_item"):
            _, app_id, item_id = line.split()
            items.append(item_id)
    return install_dir, app_id, items


def download(install_dir: Path, app_id: str, item_id: str) -> None:
    content = install_dir / "steamapps" / "workshop" / "content" / app_id / item_id
    content.mkdir(parents=True, exist_ok=True)
    (content / "item.bin").write_bytes(b"workshop item payload")
    staging = install_dir / "steamapps" / "workshop" / "downloads"
    staging.mkdir(parents=True, exist_ok=True)
    (staging / f"{item_id}.tmp").write_bytes(b"partial")
    print(f'Success. Downloaded item {item_id} to "{content}" (21 bytes)')


def main(argv: list[str]) -> int:
    script = Path(argv[argv.index("+runscript") + 1])
    install_dir, app_id, items = parse_script(script)
    plan = json.loads(os.environ.get(PLAN_ENV, "{}"))
    behaviours = plan.get("items", {})
    default = plan.get("default", "ok")
    state_dir = Path(plan["state_dir"]) if plan.get("state_dir") else None

    if state_dir:
        with open(state_dir / "invocations.log", "a", encoding="utf-8") as f:
            f.write(" ".join(items) + "\n")

    print("Redirecting stderr to 'logs/stderr.txt'")
    print("Loading Steam API...OK")
    print("Connecting anonymously to Steam Public...OK")

    for item_id in items:
        behaviour = behaviours.get(item_id, default)
        if behaviour == "flaky" and state_dir:
            marker = state_dir / f"{item_id}.attempted"
            behaviour = "ok" if marker.exists() else "fail"
            marker.touch()

        if behaviour == "ok":
            download(install_dir, app_id, item_id)
        elif behaviour == "lock":
            print(f"[AppID {app_id}] Download item {item_id} result : Locking Failed")
        elif behaviour == "claim":
            print(f'Success. Downloaded item {item_id} to "nowhere" (0 bytes)')
        elif behaviour == "fail":
            print(f"ERROR! Download item {item_id} failed (Failure).")
        elif behaviour == "ratelimit":
            print(f"[AppID {app_id}] Download item {item_id} result : Rate Limit Exceeded")
        elif behaviour == "hang":
            sys.stdout.flush()
            time.sleep(3600)
        sys.stdout.flush()

    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
