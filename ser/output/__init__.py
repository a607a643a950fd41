"""Output formatting module."""

from .render import render_details, render_plain, render_table

__all__ = ["render_details", "render_plain", "render_table"]
