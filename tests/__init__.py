"""
Test package for the Prescripto backend.
"""
