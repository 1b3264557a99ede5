"""Test package for the N-Back Trainer.

Most tests drive the engine headlessly with a manual clock. The UI smoke
tests use pygame's dummy video driver to avoid opening real windows. To
run these tests, execute ``pytest`` from the project root.
"""
