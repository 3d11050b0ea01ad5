"""Run the app-reconciler command line tool."""

from .tool.app_reconciler import main

if __name__ == "__main__":
    main()
