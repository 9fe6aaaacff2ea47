"""
Horizon-based distance determination integration pipeline.

Packages:
    core: camera model, measurement engine, result records
    edge: horizon edge extraction
    distance: spherical distance determination
    scene: synthetic horizon image generation
    pipeline: generate / measure / analyze orchestration
"""

__version__ = "1.0.0"
