from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

import uvicorn
from dotenv import load_dotenv

from .api import create_app
from .config import load_config


def _load_env_files(config_path: Path | None) -> None:
    """Read secrets from .env in the working directory, then beside the config file.

    Variables already present in the process environment are never replaced.
    """

    candidates = [Path.cwd() / ".env"]
    if config_path is not None:
        candidates.append(config_path.parent / ".env")
    for env_file in candidates:
        if env_file.is_file():
            load_dotenv(dotenv_path=env_file, override=False)


LOGGER = logging.getLogger("sheet_insights")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Serve AI analytics for Google Drive spreadsheets"
    )
    parser.add_argument("--config", default=None, help="Optional path to the YAML configuration file")
    parser.add_argument("--host", default=None, help="Interface to bind (overrides the configuration)")
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on (overrides PORT and the configuration)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config_path = Path(args.config).expanduser().resolve() if args.config else None
    _load_env_files(config_path)
    config = load_config(config_path)

    host = args.host or config.server.host
    port = args.port or int(os.environ.get("PORT") or config.server.port)

    app = create_app(config)
    LOGGER.info("Unified API running on %s:%s (model %s)", host, port, config.llm.model)
    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0


def run() -> None:
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
