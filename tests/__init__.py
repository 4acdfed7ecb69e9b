"""Test package for quake-clusters.

This package contains:
- Unit tests (test_features.py, test_index.py, test_engine.py, test_styling.py, ...)
- Server tests (test_actions.py, test_debounce.py)
- Live-service tests (test_integration.py, marked ``integration``)
- Test configuration (conftest.py)
"""
