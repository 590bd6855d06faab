"""Interactive review of one day of Google Calendar events"""

__version__ = "0.1.0"
