#!/usr/bin/env python3
"""
run_pipeline.py - Horizon Distance Integration Test

Top-level script: generate a synthetic horizon image, measure the distance
to the Earth from it, and analyze the result.

Usage:
    PYTHONPATH=. python run_pipeline.py --help
    PYTHONPATH=. python run_pipeline.py
    PYTHONPATH=. python run_pipeline.py --position 10378137 0 0 --orientation 140 0 0
    PYTHONPATH=. python run_pipeline.py --image earth.png --ground-truth 10378137
    PYTHONPATH=. python run_pipeline.py --config configs/pipeline.yaml --output-dir results/demo
"""

import sys

from horizon.pipeline.orchestrator import main

if __name__ == "__main__":
    sys.exit(main())
