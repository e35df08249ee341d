#!/usr/bin/env python3
"""
Simple example of calling a running disperse/collect service.

Start the service first (``disperse-collect-api``), then run this script with
the signer's address and two recipients in the environment.
"""
import os
import json

import requests


def main():
    """
    Disperse native value to two recipients.

    The first recipient gets 1.1% of the caller's balance, the second
    exactly 0.5 ETH. Amounts are decimal strings in wei.
    """
    # Read configuration from environment
    API_URL = os.environ.get("API_URL", "http://127.0.0.1:3000")
    CALLER = os.environ.get("CALLER_ADDRESS")
    RECIPIENT_A = os.environ.get("RECIPIENT_A")
    RECIPIENT_B = os.environ.get("RECIPIENT_B")

    # Verify configuration
    if not CALLER:
        print("ERROR: CALLER_ADDRESS environment variable is required")
        return

    if not RECIPIENT_A or not RECIPIENT_B:
        print("ERROR: RECIPIENT_A and RECIPIENT_B environment variables are required")
        return

    body = {
        "caller": CALLER,
        "recipients": {
            RECIPIENT_A: {"fraction": "11", "units": "1000"},
            RECIPIENT_B: {"amount": "500000000000000000"},
        },
    }

    try:
        response = requests.post(f"{API_URL}/api/disperse-eth", json=body, timeout=30)
    except requests.RequestException as e:
        print(f"Error reaching service: {str(e)}")
        return

    result = response.json()
    if response.status_code != 200:
        print(f"Request failed ({result['code']}): {result['message']}")
        return

    print("Disperse submitted!")
    print(f"Transaction hash: {result['tx']['txHash']}")
    print(json.dumps(result["transfers"], indent=2))


if __name__ == "__main__":
    main()
