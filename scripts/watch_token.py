"""
Script to follow a token from the console
Connects to a running server, prints every accepted update and every
companion message until interrupted
"""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
import os

# Load environment variables from the project .env
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

from services.tracker_service import TokenTracker

async def watch(address: str):
    """Track a token until the stream gives up or Ctrl+C"""

    base_url = os.getenv('COMPANION_SERVER_URL', f"http://localhost:{os.getenv('PORT', 8000)}")

    print("=" * 80)
    print("TOKEN COMPANION - CONSOLE WATCHER")
    print("=" * 80)
    print(f"\nServer: {base_url}")
    print(f"Token:  {address}\n")

    def print_state(state, emotion):
        print(
            f"{state.last_updated:%H:%M:%S}  {state.symbol or 'TOKEN'}  "
            f"${state.price:.8f}  24h {state.change24h:+.2f}%  "
            f"mcap ${state.market_cap:,.0f}  mood {emotion.value}"
        )

    tracker = TokenTracker(base_url, address, on_state=print_state)
    tracker.companion.listeners.append(
        lambda message: print(f"  [{message.emotion.value:>8}] {message.text}")
    )

    try:
        await tracker.start()
        if tracker.state is None:
            print("No price data yet, waiting for stream updates...")
        await tracker.wait()
        if tracker.error:
            print(f"\nStream stopped: {tracker.error}")
    finally:
        await tracker.close()

if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python scripts/watch_token.py <token_address>")
        sys.exit(1)

    try:
        asyncio.run(watch(sys.argv[1]))
    except KeyboardInterrupt:
        print("\nStopped")
