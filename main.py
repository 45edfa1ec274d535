"""Mystery Maker dev launcher. Starts the API server in watch mode."""

import argparse
import logging
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Mystery Maker dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Data storage directory (default: ./data)")
    parser.add_argument("--demo", action="store_true",
                        help="Clean and create demo mystery data")
    args = parser.parse_args()

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Handle --demo: init storage and populate, then continue to dev server
    if args.demo or args.data_dir:
        from mystery_maker import storage
        data_dir = args.data_dir or Path("data")
        storage.init_storage(data_dir)
        if args.demo:
            from mystery_maker.demo import create_demo_data
            create_demo_data()

    # Build env for the server process so it picks up the same data dir
    env = os.environ.copy()
    if args.data_dir:
        env["DATA_DIR"] = str(args.data_dir.resolve())

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    proc = subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "mystery_maker.app:app", "--reload",
         "--host", HOST, "--port", BACKEND_PORT],
        cwd=ROOT, env=env,
    )
    try:
        proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down...")
        proc.terminate()
        proc.wait()


if __name__ == "__main__":
    main()
