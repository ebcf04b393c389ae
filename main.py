"""
Main entry point for the Video Slicer application.

This module provides the main entry point for the CLI application,
handling graceful shutdown and cleanup on interruption.
"""

import sys
import signal
from cli.main_cli import main as cli_main, cli_app


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully."""
    signal_names = {signal.SIGINT: 'SIGINT', signal.SIGTERM: 'SIGTERM'}
    signal_name = signal_names.get(signum, f'Signal {signum}')

    print(f"\nReceived {signal_name}, shutting down gracefully...", file=sys.stderr)

    # Cancels a running export and removes the engine workspace
    cli_app.shutdown()

    sys.exit(130 if signum == signal.SIGINT else 143)


def main():
    """Main entry point for the CLI application."""
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        cli_main()
        return 0

    except KeyboardInterrupt:
        print("\nOperation cancelled by user.", file=sys.stderr)
        return 1

    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 0 if e.code is None else 1

    except Exception as e:
        print(f"Unexpected error: {str(e)}", file=sys.stderr)
        return 1

    finally:
        cli_app.shutdown()


if __name__ == "__main__":
    sys.exit(main())
