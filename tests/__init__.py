# Jewelry POS API Test Suite
#
# This package contains:
# - API tests (pytest + httpx, app driven in-process through WSGITransport)
#
# Run with: python -m pytest tests -m smoke
