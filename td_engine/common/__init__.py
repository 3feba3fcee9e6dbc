"""
common package
==============

Shared infrastructure of the TD value-estimation engine:

- buffers     : transition records and the per-episode trajectory arena
- estimators  : function estimators, target synchronization, agent barrier
- values      : backward pass, index resolvers, target strategies, baseline
- networks    : torch value / policy networks used by the torch estimator
- optimizers  : optimizer factory and checkpoint helpers
- loggers     : Logger frontend and writer backends
- utils       : conversion, configuration and error helpers
"""

from __future__ import annotations
