"""
Prescripto

A FastAPI backend for booking doctor appointments, with email-verified
patient accounts, a doctor panel and an admin panel.
"""

__version__ = "1.0.0"
