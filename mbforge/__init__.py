"""
MBForge - synthetic MBDB device-backup archive builder.

Assembles unencrypted backup archives that an external restore tool
applies to a device:
- Big-endian MBDB manifest codec
- Content-addressed blob and property-list sidecar writer
- Protected-domain classification of restore paths
- Restore pipeline driving idevicebackup2
"""

__version__ = "0.1.0"
__author__ = "MBForge Contributors"
