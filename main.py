#!/usr/bin/env python3
"""
FlashQuiz - Main Entry Point

Runs the terminal quiz front-end. Configure the backend URL and storage
location in config.json or through environment variables.

Usage:
    python main.py quiz SET_ID
    python main.py history

Environment Variables:
    FLASHQUIZ_API_URL: Backend base URL (overrides config.json)
    FLASHQUIZ_STORAGE_PATH: Local storage file (overrides config.json)
"""

from flashquiz.console import app

if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        print("\n👋 Quiz stopped by user")
