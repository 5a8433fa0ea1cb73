#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
inboxsort 主入口文件

未安装时直接运行: python main.py --once
"""

import sys
import os

# 添加src目录到Python路径
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from inboxsort.cli import main

if __name__ == "__main__":
    sys.exit(main())
