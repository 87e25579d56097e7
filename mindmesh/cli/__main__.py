"""Allow ``python -m mindmesh.cli`` execution."""

import sys

from mindmesh.cli.commands import main

sys.exit(main())
