"""Test configuration and fixtures."""

import os

# Set test environment variables BEFORE importing the package
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("GITHUB_TOKEN", "ghp_test_token_for_testing_only")
