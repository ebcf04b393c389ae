"""
Application core for the Video Slicer.
"""

from .application import VideoSlicerApp

__all__ = ['VideoSlicerApp']
