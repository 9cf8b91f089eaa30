"""
Parse a saved model response and print the recovered tracker state.

Usage:
    python scripts/parse_response.py response.txt
    python scripts/parse_response.py response.txt --markdown
    python scripts/parse_response.py response.txt --previous state.json -v
    python scripts/parse_response.py --schema                # print the prompt example

The tracker configuration comes from --config, else TRACKER_CONFIG_PATH
(read from the environment or a .env file), else the defaults.
"""

import sys
import os
import json
import argparse
import logging

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from dotenv import load_dotenv

from models.tracker_config import load_tracker_config
from models.tracker_data import TrackerData, encode_json
from pipeline.turn_parser import parse_response
from tools.markdown_codec import encode_markdown
from tools.normalizer import normalize_tracker_data
from tools.schema_builder import format_instruction_block

load_dotenv()

logger = logging.getLogger("ParseResponse")


def load_previous_state(path: str) -> TrackerData:
    with open(path, "r", encoding="utf-8") as f:
        return normalize_tracker_data(json.load(f))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Recover tracker state from a model response")
    parser.add_argument("response", nargs="?", help="File holding the raw response text ('-' for stdin)")
    parser.add_argument("--config", default=os.getenv("TRACKER_CONFIG_PATH"), help="Tracker config (YAML or JSON)")
    parser.add_argument("--previous", help="Committed state JSON to parse against")
    parser.add_argument("--markdown", action="store_true", help="Print the state in the markdown dialect")
    parser.add_argument("--schema", action="store_true", help="Print the instruction example block and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config = load_tracker_config(args.config)

    if args.schema:
        print(format_instruction_block(config, use_markdown=args.markdown or None))
        return 0

    if not args.response:
        parser.error("a response file is required unless --schema is given")

    if args.response == "-":
        text = sys.stdin.read()
    else:
        with open(args.response, "r", encoding="utf-8") as f:
            text = f.read()

    committed = load_previous_state(args.previous) if args.previous else None
    result = parse_response(text, config, committed)

    if not result.updated:
        logger.warning("No tracker found in the response")
    for ref in result.dangling_references:
        logger.warning(f"Dropped dangling {ref.kind} on '{ref.owner}' -> '{ref.target}'")

    print(encode_markdown(result.state) if args.markdown else encode_json(result.state))
    return 0 if result.updated else 1


if __name__ == "__main__":
    sys.exit(main())
