"""
lessonwatch - Interactive Exercise Runner

Watches a directory of small exercises, checks each one with the language
toolchain as you edit it, and walks you through the curriculum in order.
"""

__version__ = "0.1.0"
