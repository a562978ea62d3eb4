"""
Main entry point for the agent routing service.
Quick launcher for development and testing.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from scripts.run_server import main

if __name__ == "__main__":
    main()
