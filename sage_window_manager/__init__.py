"""Sage Window Manager

Focus cycling and focus-border highlighting for Sway / i3.

This package provides a long-running daemon that:
- Cycles focus among windows on the active workspace and output via keybindings
- Draws a border around the focused, non-fullscreen window
- Keeps the border in sync as the window moves, resizes or is restacked

License: MIT
Version: 1.0.0
"""

__version__ = "1.0.0"
