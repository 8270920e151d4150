"""
ParcelAI Tracker.
Carrier detection and multi-source shipment tracking retrieval.
"""

__version__ = "1.0.0"
