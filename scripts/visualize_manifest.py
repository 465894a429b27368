#!/usr/bin/env python3
"""
Generate a visual representation of the entity manifests.

Prints a Mermaid flowchart of who subscribes to which fields, followed by
the manifest validation report.

Usage:
    python scripts/visualize_manifest.py [--output docs/manifests.mmd]
"""

import argparse
import sys
from pathlib import Path

from capacity_sync.logging_config import configure_logging
from capacity_sync.manifest import ManifestRegistry


def main() -> int:
    """Generate manifest visualization."""
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--output", type=Path, help="Also write the Mermaid diagram to this file")
    args = parser.parse_args()

    configure_logging(level="WARNING", json_output=False)
    registry = ManifestRegistry()

    mermaid = registry.to_mermaid()
    print("=== Mermaid Diagram ===")
    print(mermaid)

    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(mermaid)
        print(f"Saved to: {args.output}")
    print("Tip: Paste Mermaid code into https://mermaid.live/ to visualize online\n")

    issues = registry.validate()
    print("=== Validation ===")
    if not issues:
        print("No manifest issues found")
        return 0
    for issue in issues:
        print(f"- {issue.message}")

    return 1


if __name__ == "__main__":
    sys.exit(main())
