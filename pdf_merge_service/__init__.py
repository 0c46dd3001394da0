"""
PDF Merge service.

A small Flask application that merges uploaded PDF files into a single
document and serves the result for a one-time download.
"""
from .server import create_app

__all__ = ['create_app']
