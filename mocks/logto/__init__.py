"""Mock Logto tenant for local development and tests."""
