"""
Entry point for the lesson engine CLI.

Run with:
    python main.py simulate lessons.json script.json
    lesson-engine --help
"""
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from src.cli.main import main

if __name__ == "__main__":
    main()
