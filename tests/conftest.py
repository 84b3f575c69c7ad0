"""
pytest configuration shared by all test modules.
"""

import os

# JSONL request logs are disabled for the whole test session
os.environ["AI_DISPATCH_LOGGING"] = "false"
