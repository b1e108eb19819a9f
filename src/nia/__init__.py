"""Local session and message store for the Nia voice assistant"""

__version__ = "0.1.0"
