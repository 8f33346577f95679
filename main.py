"""
soundprint - Main Entry Point

Example usage:
    python main.py teach path/to/doorbell.wav --id doorbell --owner me
    python main.py match path/to/capture.wav
    python main.py --config config/config.yaml list
"""

from soundprint.cli import main


if __name__ == "__main__":
    main()
