"""Entry point for linkhop CLI client."""

import argparse
import json
import sys

from cli.api_client import LinkhopAPIClient
from cli.console import ConsoleUI


def load_pool(path: str) -> list[dict]:
    """Read a challenge pool: a JSON list, or an object with a "challenges" list."""
    with open(path, 'r') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get('challenges', [])
    return data


def main():
    parser = argparse.ArgumentParser(description='Linkhop - challenge navigation console')
    parser.add_argument(
        '--server',
        default='http://localhost:8000',
        help='Server URL (default: http://localhost:8000)'
    )
    parser.add_argument(
        '--user',
        default='default',
        help='User ID (default: default)'
    )
    parser.add_argument(
        '--pool',
        required=True,
        help='JSON file with the challenge pool'
    )
    args = parser.parse_args()

    try:
        challenges = load_pool(args.pool)
    except (OSError, ValueError) as e:
        print(f'Error: cannot read challenge pool {args.pool}: {e}')
        sys.exit(1)

    client = LinkhopAPIClient(base_url=args.server, user_id=args.user)
    ui = ConsoleUI(client, challenges)

    try:
        ui.run()
    except KeyboardInterrupt:
        print('\nGoodbye!')
        sys.exit(0)


if __name__ == '__main__':
    main()
