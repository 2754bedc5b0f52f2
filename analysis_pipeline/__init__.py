"""
Document & Image Analysis Pipeline

Runs Cloud Natural Language / Cloud Vision analysis on files uploaded to
Cloud Storage, publishes the results on Pub/Sub, and writes classified
results back to a results bucket.
"""

__version__ = "1.0.0"
