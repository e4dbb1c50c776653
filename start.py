#!/usr/bin/env python
"""Start the Lost & Found Work Request Service from a checkout."""

import os
import sys
from pathlib import Path

# Relative paths in config.yaml resolve against the repo root
script_dir = Path(__file__).parent.resolve()
os.chdir(script_dir)

src_path = script_dir / "src"
sys.path.insert(0, str(src_path))

if __name__ == "__main__":
    if (script_dir / "config.yaml").exists():
        os.environ.setdefault("LOSTFOUND_CONFIG", str(script_dir / "config.yaml"))

    from lostfound_svc.main import run
    run()
