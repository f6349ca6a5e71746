#!/usr/bin/env python3
"""Create the roomledger schema and sample inventory."""

from roomledger.bootstrap import main

if __name__ == "__main__":
    main()
