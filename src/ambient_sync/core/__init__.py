"""
Core Layer
==========

Configuration, exceptions and logging shared by every layer.
"""
