"""
Cluster backends package.

Backends run the external cluster tool (k3d by default) on behalf of the
reconciler.
"""

from plugins.backends.base import ClusterBackend, ClusterInfo

__all__ = ["ClusterBackend", "ClusterInfo"]
