"""Lifecycle orchestration for AWS Private CA (ACM PCA) certificate authorities."""

__version__ = "0.1.0"
