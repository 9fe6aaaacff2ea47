"""
Test suite for the horizon distance pipeline

To run all tests:
    PYTHONPATH=. python -m pytest validation/tests/ -v

To run specific test file:
    PYTHONPATH=. python -m pytest validation/tests/test_measurement.py -v
"""
