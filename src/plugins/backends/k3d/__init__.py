from plugins.backends.k3d.executor import K3dBackend

__all__ = ["K3dBackend"]
