"""
Core media library logic.

This module is framework-agnostic - it doesn't import FastAPI, boto3 or
httpx. Collaborators are described by the protocols in
core.media.interfaces and supplied by the infrastructure layer.
"""
