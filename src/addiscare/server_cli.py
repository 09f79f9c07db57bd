"""CLI entry point for the AddisCare API server."""

import argparse
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="addiscare-server",
        description="AddisCare notification API server",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=5000, help="Bind port (default: 5000)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: console logs instead of JSON",
    )
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    args = parser.parse_args(argv)

    if args.local:
        os.environ["ADDISCARE_LOCAL_MODE"] = "1"

    import uvicorn

    uvicorn.run("addiscare.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
