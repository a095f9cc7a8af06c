"""Desktop entry point: start the calculator with Streamlit."""

from __future__ import annotations

import os
import pathlib
import sys


def _app_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(getattr(sys, "_MEIPASS"))
    return pathlib.Path(__file__).resolve().parent


def _data_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(sys.executable).resolve().parent / ".local_store"
    return pathlib.Path.cwd() / ".local_store"


def streamlit_argv(app_path: pathlib.Path) -> list[str]:
    return [
        "streamlit",
        "run",
        str(app_path),
        "--server.headless=false",
        "--browser.gatherUsageStats=false",
    ]


def main() -> None:
    # History and runtime log live beside the executable unless configured.
    os.environ.setdefault("GATHERING_STORAGE_ROOT", str(_data_root()))
    os.environ.setdefault("STREAMLIT_BROWSER_GATHER_USAGE_STATS", "false")

    from streamlit.web import cli as stcli

    sys.argv = streamlit_argv(_app_root() / "app.py")
    raise SystemExit(stcli.main())


if __name__ == "__main__":
    main()
