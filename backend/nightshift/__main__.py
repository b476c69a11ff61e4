"""
run the service: watcher, scheduler and dashboard api in one process

    nightshift              # full pipeline
    nightshift --web-only   # api only, no watcher or scheduler
"""
import argparse
import sys

import uvicorn

from nightshift.core.config import settings


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="drop-folder media ingestion and night-window processing")
    parser.add_argument("--web-only", action="store_true", help="serve the api without the watcher and scheduler")
    parser.add_argument("--host", type=str, default="0.0.0.0")
    parser.add_argument("--port", type=int, default=settings.PORT)
    args = parser.parse_args(argv)

    if args.web_only:
        settings.WEB_ONLY = True

    uvicorn.run("nightshift.main:app", host=args.host, port=args.port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
