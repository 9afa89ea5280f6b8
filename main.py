"""
Application Tracker - Main Entry Point

Usage:
    # Start the HTTP / WebSocket API
    python main.py api

    # Run a CLI command
    python main.py cli list --start 2026-01-01

    # Quick funnel for the default owner
    python main.py funnel
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))


def main():
    if len(sys.argv) < 2:
        print_help()
        return

    command = sys.argv[1].lower()

    if command == "api":
        import uvicorn
        from config.settings import settings

        uvicorn.run(
            "apptracker.ui.api.main:app",
            host=settings.api_host,
            port=settings.api_port,
        )

    elif command == "cli":
        from apptracker.ui.cli import app
        sys.argv = sys.argv[1:]  # Remove 'cli' from args
        if len(sys.argv) == 1:
            sys.argv.append("--help")
        app()

    elif command in ["funnel", "status"]:
        # Shortcuts for the most used CLI commands
        from apptracker.ui.cli import app
        app()

    elif command in ["help", "-h", "--help"]:
        print_help()

    else:
        print(f"Unknown command: {command}")
        print_help()


def print_help():
    print("""
Application Tracker
===================

Commands:
    api             Start the HTTP / WebSocket API
    cli <command>   Run a CLI command (add, list, update, delete, funnel, status)
    funnel          Show the application funnel
    status          Show store status
    help            Show this help message

Examples:
    python main.py api
    python main.py cli add "TechCorp" "Backend Engineer" --date 2026-02-01
    python main.py cli update app_123 status "Interview"
    python main.py funnel --start 2026-01-01

For CLI subcommands, run:
    python -m apptracker.ui.cli --help
""")


if __name__ == "__main__":
    main()
