import argparse
import os
import subprocess
import sys
from pathlib import Path


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the Budget Engine HTTP API")
    parser.add_argument("--host", default=os.environ.get("BUDGET_ENGINE_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("BUDGET_ENGINE_PORT", "8000")))
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    project_root = Path(__file__).parent.parent
    os.chdir(project_root)

    # uvicorn imports the app by name, so src must be importable
    env = os.environ.copy()
    src_path = str(project_root / "src")
    env["PYTHONPATH"] = os.pathsep.join(p for p in (src_path, env.get("PYTHONPATH")) if p)

    command = [
        sys.executable, "-m", "uvicorn",
        "budget_engine.api.main:app",
        "--host", args.host,
        "--port", str(args.port),
    ]
    if not args.no_reload:
        command.append("--reload")

    print(f"Starting Budget Engine API on http://{args.host}:{args.port} ...")
    try:
        subprocess.run(command, env=env)
    except KeyboardInterrupt:
        print("\nAPI stopped.")


if __name__ == "__main__":
    main()
