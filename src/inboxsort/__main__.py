#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""python -m inboxsort"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
