"""Entry point for `python -m kubedeploy`.

Usage:
    KUBEDEPLOY_CLUSTER_NAME=my-cluster python -m kubedeploy
"""

from __future__ import annotations

import asyncio

from kubedeploy.app import main

asyncio.run(main())
