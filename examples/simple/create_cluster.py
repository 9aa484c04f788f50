"""
Create a k3d cluster with two agents and print its recorded state.

Install the provider first (``pip install -e .``) and make sure ``k3d``
is on PATH.
"""

import json
import sys

from main import build_provider, setup_logging

CLUSTER_CONFIG = """apiVersion: k3d.io/v1alpha5
kind: Simple
servers: 1
agents: 2
"""


def run(stack: str = "dev") -> None:
    setup_logging()
    provider = build_provider()

    spec = provider.check(f"my-cluster-{stack}", {"config": CLUSTER_CONFIG})
    action, state = provider.reconcile(
        None, spec, None, resource_name=f"my-cluster-{stack}"
    )

    print(f"{action.value}: {state.name}")
    print(json.dumps(state.to_dict(redact=True), indent=2))


if __name__ == "__main__":
    run(sys.argv[1] if len(sys.argv) > 1 else "dev")
