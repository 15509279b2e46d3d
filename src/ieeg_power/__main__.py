"""
Entry point for running the pipeline as a module.

Usage:
    python -m ieeg_power --input exports/sub-01_power.h5 [--config FILE.yml]
"""

from ieeg_power.pipeline import main

if __name__ == "__main__":
    main()
