"""
k3d Backend - Implements ClusterBackend by shelling out to the k3d CLI.

Each call runs one or more ``k3d`` subcommands to completion. Cluster
configs are streamed on stdin so nothing is written to disk.
"""

import json
import logging
import os
import subprocess
from typing import Any, Dict, List, Optional

from errors import CommandError
from plugins.backends.base import ClusterBackend, ClusterInfo

logger = logging.getLogger(__name__)

# Node roles that make up the cluster proper (as opposed to the load
# balancer or a registry).
_SERVER_ROLE = "server"
_AGENT_ROLE = "agent"

# Error k3d prints for flags its subcommand does not know.
_UNKNOWN_FLAG_MARKER = "unknown flag"


class K3dBackend(ClusterBackend):
    """Cluster backend driving the ``k3d`` binary."""

    def __init__(self):
        self.binary: str = "k3d"
        self.image_repository: str = "rancher/k3s"
        self.command_timeout: Optional[int] = None

    @property
    def name(self) -> str:
        return "k3d"

    @property
    def version(self) -> str:
        return "1.0.0"

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """Load k3d backend configuration from environment variables."""
        timeout = os.getenv("K3D_COMMAND_TIMEOUT", "")
        return {
            "binary": os.getenv("K3D_BINARY", "k3d"),
            "image_repository": os.getenv("K3D_IMAGE_REPOSITORY", "rancher/k3s"),
            "command_timeout": int(timeout) if timeout else None,
        }

    def initialize(self, config: Dict[str, Any]) -> None:
        """Initialize the backend with configuration."""
        self.binary = config.get("binary") or self.binary
        self.image_repository = (
            config.get("image_repository") or self.image_repository
        )
        self.command_timeout = config.get("command_timeout", self.command_timeout)

        logger.debug(
            f"k3d backend initialized: binary={self.binary}, "
            f"image_repository={self.image_repository}, "
            f"timeout={self.command_timeout}"
        )

    def image_for(self, version: str) -> str:
        """Node image for an engine version, e.g. ``rancher/k3s:v1.27.4-k3s1``."""
        return f"{self.image_repository}:{version}"

    # Lifecycle

    def create(self, name: str, config: str, version: Optional[str] = None) -> None:
        args = ["cluster", "create", name, "--config", "-"]
        if version:
            args += ["--image", self.image_for(version)]

        logger.info(f"Creating k3d cluster {name}")
        self._run(args, stdin=config)
        logger.info(f"Created k3d cluster {name}")

    def get_kubeconfig(self, name: str) -> str:
        return self._run(["kubeconfig", "get", name])

    def inspect(self, name: str) -> Optional[ClusterInfo]:
        output = self._run(["cluster", "list", "-o", "json"])
        try:
            clusters = json.loads(output or "[]")
        except json.JSONDecodeError as e:
            raise CommandError(
                [self.binary, "cluster", "list"], 0, f"unparseable output: {e}"
            )

        for cluster in clusters:
            if cluster.get("name") == name:
                return self._to_cluster_info(cluster)
        return None

    def upgrade(self, name: str, version: str) -> None:
        """
        Move every server and agent node to the image for ``version``.

        Needs a k3d whose ``node edit`` accepts ``--image``; k3d v5 releases
        only accept port edits there and fail with "unknown flag".
        """
        info = self.inspect(name)
        if info is None:
            raise CommandError(
                [self.binary, "node", "edit"], None, f"cluster {name} not found"
            )

        image = self.image_for(version)
        logger.info(f"Upgrading k3d cluster {name} to {image}")
        for node in info.nodes:
            try:
                self._run(["node", "edit", node, "--image", image])
            except CommandError as e:
                if _UNKNOWN_FLAG_MARKER not in e.output.lower():
                    raise
                logger.warning(
                    f"{self.binary} cannot change node images in place; "
                    f"replace cluster {name} to move it to {version}"
                )
                raise CommandError(
                    e.argv,
                    e.returncode,
                    f"{self.binary} does not support in-place image updates "
                    f"({e.output})",
                ) from e

    def delete(self, name: str) -> None:
        """
        Delete the cluster.

        A failure is always raised; callers decide whether the cluster is
        already gone by inspecting.
        """
        logger.info(f"Deleting k3d cluster {name}")
        self._run(["cluster", "delete", name])
        logger.info(f"Deleted k3d cluster {name}")

    # Helpers

    def _run(self, args: List[str], stdin: Optional[str] = None) -> str:
        """
        Run a k3d subcommand and return its stdout.

        Raises:
            CommandError: On a non-zero exit, a timeout, or a missing binary.
        """
        argv = [self.binary] + args
        logger.debug(f"Running: {' '.join(argv[:4])}")

        try:
            result = subprocess.run(
                argv,
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self.command_timeout,
            )
        except subprocess.TimeoutExpired as e:
            output = _decode(e.stdout) + _decode(e.stderr)
            logger.error(f"{' '.join(argv[:3])} timed out after {e.timeout}s")
            raise CommandError(argv, None, output, timed_out=True)
        except OSError as e:
            logger.error(f"Could not run {self.binary}: {e}")
            raise CommandError(argv, None, str(e))

        if result.returncode != 0:
            error = CommandError(
                argv, result.returncode, (result.stdout or "") + (result.stderr or "")
            )
            logger.error(f"k3d command failed: {error.output!r}")
            raise error

        return result.stdout or ""

    def _to_cluster_info(self, cluster: Dict[str, Any]) -> ClusterInfo:
        nodes = [
            n
            for n in cluster.get("nodes", [])
            if n.get("role") in (_SERVER_ROLE, _AGENT_ROLE)
        ]
        servers = [n for n in nodes if n.get("role") == _SERVER_ROLE]

        return ClusterInfo(
            name=cluster["name"],
            servers=cluster.get("serversCount", len(servers)),
            agents=cluster.get("agentsCount", len(nodes) - len(servers)),
            version=_image_tag(servers[0].get("image", "")) if servers else None,
            nodes=[n["name"] for n in nodes if n.get("name")],
        )


def _image_tag(image: str) -> Optional[str]:
    """Tag portion of an image reference, ignoring registry ports."""
    _, _, last = image.rpartition("/")
    if ":" not in last:
        return None
    return last.rsplit(":", 1)[1] or None


def _decode(stream: Any) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode(errors="replace")
    return stream
