#!/usr/bin/env python3
"""
BOS signed request tool

Run this script to send a single signed request to a BOS endpoint and
print the response.

Usage:
    python run.py /v1                         # List buckets
    python run.py -c custom.json /v1          # Use custom config
    python run.py -X PUT /v1/my-bucket        # Create a bucket
    python run.py -X PUT -P acl -d '{...}' /v1/my-bucket
    python run.py -o out.json /v1             # Write body to a file
"""

import sys
from bce_bos.cli import main

if __name__ == "__main__":
    sys.exit(main())
