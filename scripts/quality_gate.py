"""Run ruff, mypy and pytest over the connectivity service and stop at the first failure."""

from __future__ import annotations

import subprocess
import sys

PACKAGES = ["app", "tests", "scripts"]

GATES: dict[str, list[str]] = {
    "lint": ["ruff", "check", *PACKAGES],
    "typecheck": ["mypy", "app/core", "app/integrations/exchange"],
    "test": ["pytest", "-q"],
}


def main(argv: list[str]) -> int:
    selected = argv or list(GATES)
    unknown = [name for name in selected if name not in GATES]
    if unknown:
        print(f"Unknown gate(s): {', '.join(unknown)}; choose from {', '.join(GATES)}")
        return 2

    for name in selected:
        cmd = [sys.executable, "-m", *GATES[name]]
        print(f"[{name}] {' '.join(cmd)}")
        code = subprocess.run(cmd, check=False).returncode
        if code != 0:
            return code
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
