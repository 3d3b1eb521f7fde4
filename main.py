"""Palestine Timeline — dev launcher. Starts the API server in watch mode."""

import argparse
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Palestine Timeline dev launcher")
    parser.add_argument("--echo", action="store_true",
                        help="Use the offline echo LLM instead of Gemini")
    parser.add_argument("--log-level", default="info",
                        choices=["debug", "info", "warning", "error"],
                        help="Log level for the backend (default: info)")
    args = parser.parse_args()

    # Build env for the subprocess so the backend picks up the same choices
    env = os.environ.copy()
    env["LOG_LEVEL"] = args.log_level
    if args.echo:
        env["LLM_PROVIDER"] = "echo"

    procs: list[subprocess.Popen] = []

    def shutdown(*_):
        print("\nShutting down...")
        for p in procs:
            p.terminate()
        for p in procs:
            p.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    procs.append(subprocess.Popen(
        ["uv", "run", "uvicorn", "backend.app:app", "--reload",
         "--host", HOST, "--port", BACKEND_PORT, "--log-level", args.log_level],
        cwd=ROOT, env=env,
    ))

    for p in procs:
        p.wait()


if __name__ == "__main__":
    main()
