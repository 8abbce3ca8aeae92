import os
from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def resolve_log_path() -> Path:
    raw_dir = os.getenv("RADAR_LOG_DIR")
    if raw_dir:
        log_dir = Path(raw_dir)
        if not log_dir.is_absolute():
            log_dir = PROJECT_ROOT / log_dir
    else:
        log_dir = PROJECT_ROOT / "logs"
    return log_dir / "radar.log"


LOG_PATH = resolve_log_path()


def log(msg: str) -> None:
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    line = f"{ts} | {msg}"
    print(line, flush=True)
    LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
    with LOG_PATH.open("a", encoding="utf-8") as f:
        f.write(line + "\n")
